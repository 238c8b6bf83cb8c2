"""
Accessibility Scanner - Markup that screen readers cannot describe.
"""

import re

from ..models import SeverityLevel
from .base_scanner import FileScanner, PatternRule


A11Y_RULES = (
    PatternRule(
        rule_id="img-alt",
        pattern=re.compile(r"<img(?![^>]*\balt=)", re.IGNORECASE),
        level=SeverityLevel.HIGH,
        title="Image Missing Alt Text",
        description="Images should have alt attributes for accessibility.",
        suggestion='Add alt="description" or alt="" for decorative images',
        auto_fixable=True,
        documentation="https://www.w3.org/WAI/tutorials/images/",
    ),
    PatternRule(
        rule_id="input-label",
        pattern=re.compile(
            r"<input(?![^>]*aria-label)(?![^>]*aria-labelledby)(?![^>]*\bid=\"[^\"]*\")"
            r"(?![^>]*type=\"(?:submit|button|hidden)\")",
            re.IGNORECASE,
        ),
        level=SeverityLevel.HIGH,
        title="Form Input Missing Label",
        description="Form inputs should have accessible labels.",
        suggestion="Add aria-label, aria-labelledby, or associate with a label element",
        auto_fixable=True,
    ),
    PatternRule(
        rule_id="button-name",
        pattern=re.compile(r"<button(?![^>]*aria-label)(?![^>]*aria-labelledby)[^>]*>\s*</button>", re.IGNORECASE),
        level=SeverityLevel.MEDIUM,
        title="Empty Button",
        description="Empty buttons should have accessible labels.",
        suggestion="Add descriptive text content or an aria-label attribute",
        auto_fixable=True,
    ),
)


class AccessibilityScanner(FileScanner):
    """Line-level accessibility checks for component and page markup"""

    name = "accessibility"
    kind = "accessibility"
    category = "Accessibility"
    suffixes = (".astro", ".tsx", ".jsx", ".vue", ".svelte", ".html")
    rules = A11Y_RULES
