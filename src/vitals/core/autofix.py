"""
Auto-fix - Line-level remediation for auto-fixable issues.

A strategy is chosen by the issue's category. Strategies edit only the
reported line; an issue no strategy handles gets its suggestion appended
as a comment on that line.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog

from ..errors import AutoFixError
from ..models import Issue


logger = structlog.get_logger(__name__)

# line -> fixed line, or None when the strategy does not handle the issue
FixStrategy = Callable[[str, Issue], Optional[str]]

HTML_COMMENT_SUFFIXES = {".html", ".htm", ".md", ".mdx", ".vue", ".svelte", ".astro", ".xml"}
HASH_COMMENT_SUFFIXES = {".py", ".sh", ".yml", ".yaml", ".toml", ".rb"}
BLOCK_COMMENT_SUFFIXES = {".css", ".scss", ".less"}


@dataclass
class FixFailure:
    issue: Issue
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"issue": self.issue.to_dict(), "reason": self.reason}


@dataclass
class AutoFixResult:
    """Outcome of an auto-fix pass"""
    fixed: List[Issue] = field(default_factory=list)
    failed: List[FixFailure] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dryRun": self.dry_run,
            "fixed": [issue.to_dict() for issue in self.fixed],
            "failed": [failure.to_dict() for failure in self.failed],
        }


def comment_for(path: str, text: str) -> str:
    """Render `text` as a comment in the syntax of the file type"""
    suffix = Path(path).suffix.lower()
    text = text.replace("\n", " ")
    if suffix in HTML_COMMENT_SUFFIXES:
        return f"<!-- {text.replace('--', '- -')} -->"
    if suffix in HASH_COMMENT_SUFFIXES:
        return f"# {text}"
    if suffix in BLOCK_COMMENT_SUFFIXES:
        return f"/* {text.replace('*/', '* /')} */"
    return f"// {text}"


def fix_accessibility(line: str, issue: Issue) -> Optional[str]:
    suggestion = issue.suggestion or ""
    if "alt=" in suggestion:
        return re.sub(r"<img\b(?![^>]*\balt=)", '<img alt=""', line, flags=re.IGNORECASE)
    if "aria-label" in suggestion:
        line = re.sub(
            r"<button\b(?![^>]*aria-label)", '<button aria-label="Button"', line, flags=re.IGNORECASE
        )
        return re.sub(
            r"<input\b(?![^>]*aria-label)", '<input aria-label="Input field"', line, flags=re.IGNORECASE
        )
    return None


def fix_security(line: str, issue: Issue) -> Optional[str]:
    if "sanitize" not in (issue.suggestion or "").lower() or "dangerouslySetInnerHTML" not in line:
        return None
    indent = line[: len(line) - len(line.lstrip())]
    note = comment_for(issue.file, "SECURITY: sanitize this HTML (e.g. DOMPurify) before rendering")
    return f"{indent}{note}\n{line}"


def fix_performance(line: str, issue: Issue) -> Optional[str]:
    if "lazy" not in (issue.suggestion or ""):
        return None
    return re.sub(r"<img\b(?![^>]*\bloading=)", '<img loading="lazy"', line, flags=re.IGNORECASE)


STRATEGIES: Dict[str, FixStrategy] = {
    "accessibility": fix_accessibility,
    "security": fix_security,
    "performance": fix_performance,
}


def fix_line(line: str, issue: Issue) -> str:
    strategy = STRATEGIES.get(issue.category.lower())
    fixed = strategy(line, issue) if strategy is not None else None
    if fixed is None:
        fixed = f"{line} {comment_for(issue.file, issue.suggestion or '')}"
    return fixed


def apply_fix(project_root: Path, issue: Issue, dry_run: bool = False):
    """
    Apply one fix in place.

    Args:
        project_root: Root the issue's file path is relative to
        issue: Auto-fixable issue
        dry_run: Validate and compute the fix without writing

    Raises:
        AutoFixError: With the reason the fix could not be applied
    """
    if not issue.suggestion:
        raise AutoFixError(issue.id, "Issue has no suggestion to apply")
    if issue.line is None:
        raise AutoFixError(issue.id, "Issue has no line number")

    root = Path(project_root).resolve()
    path = (root / issue.file).resolve()
    if not path.is_relative_to(root):
        raise AutoFixError(issue.id, f"File is outside the project root: {issue.file}")
    if not path.is_file():
        raise AutoFixError(issue.id, f"File not found: {issue.file}")

    try:
        with open(path, "r", encoding="utf-8", newline="") as handle:
            lines = handle.read().splitlines(keepends=True)
    except (OSError, UnicodeDecodeError) as e:
        raise AutoFixError(issue.id, f"Cannot read {issue.file}: {e}") from e

    if not 1 <= issue.line <= len(lines):
        raise AutoFixError(issue.id, f"Line {issue.line} is outside {issue.file} ({len(lines)} lines)")

    raw = lines[issue.line - 1]
    body = raw.rstrip("\r\n")
    ending = raw[len(body):]
    fixed = fix_line(body, issue)
    if fixed == body:
        raise AutoFixError(issue.id, "Fix strategy made no change")

    if dry_run:
        logger.debug("fix_planned", issue_id=issue.id, file=issue.file, line=issue.line)
        return

    newline = "\r\n" if ending == "\r\n" else "\n"
    lines[issue.line - 1] = fixed.replace("\n", newline) + ending
    try:
        with open(path, "w", encoding="utf-8", newline="") as handle:
            handle.write("".join(lines))
    except OSError as e:
        raise AutoFixError(issue.id, f"Cannot write {issue.file}: {e}") from e

    logger.info("fix_applied", issue_id=issue.id, file=issue.file, line=issue.line)


def apply_fixes(project_root: Path, issues: List[Issue], dry_run: bool = False) -> AutoFixResult:
    """
    Attempt every issue independently.

    Within a file, issues are fixed from the bottom up so a fix that adds a
    line does not shift the lines of fixes still pending.
    """
    result = AutoFixResult(dry_run=dry_run)
    ordered = sorted(issues, key=lambda issue: (issue.file, -(issue.line or 0)))

    for issue in ordered:
        try:
            apply_fix(project_root, issue, dry_run=dry_run)
        except AutoFixError as e:
            logger.warning("fix_failed", issue_id=issue.id, title=issue.title, reason=e.message)
            result.failed.append(FixFailure(issue=issue, reason=e.message))
        else:
            result.fixed.append(issue)

    logger.info("auto_fix_completed", fixed=len(result.fixed), failed=len(result.failed), dry_run=dry_run)
    return result
