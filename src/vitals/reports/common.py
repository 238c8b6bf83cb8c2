"""
Shared pieces of the report renderers: output formats, icons and escaping.
"""

import re
from collections import OrderedDict
from enum import Enum
from typing import Dict, List

from ..core.health import health_band
from ..models import CheckStatus, Issue, SeverityLevel


class ReportFormat(Enum):
    """Supported output formats with their content type and file extension"""
    JSON = ("json", "application/json", ".json")
    MARKDOWN = ("markdown", "text/markdown", ".md")
    TERMINAL = ("terminal", "text/plain", ".txt")
    HTML = ("html", "text/html", ".html")
    SARIF = ("sarif", "application/sarif+json", ".sarif")
    CSV = ("csv", "text/csv", ".csv")
    JUNIT = ("junit", "application/xml", ".xml")

    def __init__(self, format_name: str, content_type: str, extension: str):
        self.format_name = format_name
        self.content_type = content_type
        self.extension = extension

    @classmethod
    def parse(cls, name: str) -> "ReportFormat":
        for fmt in cls:
            if fmt.format_name == name.lower():
                return fmt
        raise ValueError(f"Unknown report format: {name}")


SEVERITY_ICONS: Dict[SeverityLevel, str] = {
    SeverityLevel.CRITICAL: "🔴",
    SeverityLevel.HIGH: "🟠",
    SeverityLevel.MEDIUM: "🟡",
    SeverityLevel.LOW: "🟢",
    SeverityLevel.INFO: "🔵",
}

SEVERITY_COLORS: Dict[SeverityLevel, str] = {
    SeverityLevel.CRITICAL: "#dc2626",
    SeverityLevel.HIGH: "#ea580c",
    SeverityLevel.MEDIUM: "#ca8a04",
    SeverityLevel.LOW: "#16a34a",
    SeverityLevel.INFO: "#2563eb",
}

BAND_ICONS = {"good": "✅", "fair": "⚠️", "poor": "🟠", "critical": "🔴"}
BAND_COLORS = {"good": "#16a34a", "fair": "#ca8a04", "poor": "#ea580c", "critical": "#dc2626"}

STATUS_LABELS = {
    CheckStatus.PASS: "✅ Pass",
    CheckStatus.FAIL: "❌ Fail",
    CheckStatus.WARNING: "⚠️ Warning",
}

CHECK_LABELS = {
    "buildStatus": "Build",
    "typeChecking": "Type Checking",
    "linting": "Linting",
    "testing": "Testing",
    "dependencies": "Dependencies",
    "security": "Security",
    "performance": "Performance",
    "accessibility": "Accessibility",
    "seo": "SEO",
    "assets": "Assets",
}

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def health_icon(score: int) -> str:
    return BAND_ICONS[health_band(score)]


def health_color(score: int) -> str:
    return BAND_COLORS[health_band(score)]


def group_by_category(issues: List[Issue]) -> "OrderedDict[str, List[Issue]]":
    """Group issues by category, keeping first-seen category order"""
    groups: "OrderedDict[str, List[Issue]]" = OrderedDict()
    for issue in issues:
        groups.setdefault(issue.category or "Uncategorized", []).append(issue)
    return groups


def strip_control(text: str) -> str:
    """Remove ANSI sequences and control characters; newlines become spaces"""
    text = ANSI_ESCAPE.sub("", text or "")
    text = text.replace("\r\n", " ").replace("\n", " ").replace("\t", " ")
    return CONTROL_CHARS.sub("", text)
