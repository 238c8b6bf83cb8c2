"""
Human-readable renderers: markdown, terminal and standalone HTML.
"""

import html
from typing import List

from ..models import AnalysisResult, Issue, SeverityLevel
from .common import (
    CHECK_LABELS,
    SEVERITY_COLORS,
    SEVERITY_ICONS,
    STATUS_LABELS,
    group_by_category,
    health_color,
    health_icon,
    strip_control,
)


TERMINAL_ISSUE_LIMIT = 20
BOX_WIDTH = 62


def _md(text: str) -> str:
    return (text or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _code(text: str) -> str:
    """Text for an inline code span; a backtick would end the span early"""
    return strip_control(text).replace("`", "'")


def render_markdown(result: AnalysisResult) -> str:
    health = result.health
    lines = [
        f"# {health_icon(health.score)} Project Health Report",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| **Health Score** | {health.score}/100 |",
        f"| **Total Issues** | {health.total_issues} |",
        f"| **Critical** | {health.critical_issues} |",
        f"| **High** | {health.high_issues} |",
        f"| **Medium** | {health.medium_issues} |",
        f"| **Low** | {health.low_issues} |",
        f"| **Info** | {health.info_issues} |",
        "",
    ]

    if result.partial:
        lines.append("> ⚠️ Partial result: some scanners failed.")
        lines.append("")
        for failure in result.failures:
            lines.append(f"> - `{_code(failure.scanner)}`: {_md(failure.error)}")
        lines.append("")

    lines.extend(["---", "", "## Issues by Category", ""])
    groups = group_by_category(result.issues)
    if not groups:
        lines.extend(["✅ No issues found!", ""])
    for category, issues in groups.items():
        lines.append(f"### {_md(category)} ({len(issues)})")
        lines.append("")
        for issue in issues:
            lines.append(f"- {SEVERITY_ICONS[issue.level]} **{_md(issue.title)}** - {_md(issue.description)}")
            where = f"  - File: `{_code(issue.file)}`"
            if issue.line is not None:
                where += f" (line {issue.line})"
            lines.append(where)
            if issue.suggestion:
                lines.append(f"  - 💡 Suggestion: {_md(issue.suggestion)}")
            lines.append("")

    if result.git is not None:
        git = result.git
        lines.extend([
            "---",
            "",
            "## Git Status",
            "",
            f"- **Branch:** {_md(git.branch) or '(detached)'}",
            f"- **Commit:** `{_code(git.commit)}`",
            f"- **Status:** {git.branch_status.value}",
            f"- **Uncommitted Changes:** {'Yes' if git.uncommitted_changes else 'No'}",
            f"- **Conflicts:** {'Yes' if git.conflicts else 'No'}",
            "",
        ])

    if result.deployment is not None:
        lines.extend([
            "---",
            "",
            "## Deployment Readiness",
            "",
            "| Check | Status |",
            "|-------|--------|",
        ])
        for key, status in result.deployment.items():
            lines.append(f"| {CHECK_LABELS.get(key, key)} | {STATUS_LABELS[status]} |")
        lines.append("")

    lines.extend(["---", "", f"*Generated on {result.generated_at.isoformat()}*", ""])
    return "\n".join(lines)


def _box_line(text: str) -> str:
    return f"║  {text}".ljust(BOX_WIDTH + 1) + "║"


def render_terminal(result: AnalysisResult) -> str:
    health = result.health
    border = "═" * BOX_WIDTH
    lines = [
        "",
        f"╔{border}╗",
        "║" + "PROJECT HEALTH REPORT".center(BOX_WIDTH) + "║",
        f"╠{border}╣",
        _box_line(f"Health Score: {health.score} / 100"),
        _box_line(f"Total Issues: {health.total_issues}"),
        f"╠{border}╣",
        _box_line(
            f"🔴 Critical: {health.critical_issues:<5} 🟠 High: {health.high_issues:<5} "
            f"🟡 Medium: {health.medium_issues:<5}"
        ),
        _box_line(f"🟢 Low: {health.low_issues:<5} 🔵 Info: {health.info_issues:<5}"),
        f"╚{border}╝",
        "",
    ]

    if result.partial:
        for failure in result.failures:
            lines.append(f"  ⚠️  Scanner {failure.scanner} failed: {strip_control(failure.error)}")
        lines.append("")

    if result.issues:
        lines.extend(["Issues:", ""])
        for issue in result.issues[:TERMINAL_ISSUE_LIMIT]:
            lines.append(f"  {SEVERITY_ICONS[issue.level]} [{issue.level.value.upper()}] {strip_control(issue.title)}")
            lines.append(f"     {strip_control(str(issue.location))}")
            lines.append("")
        hidden = len(result.issues) - TERMINAL_ISSUE_LIMIT
        if hidden > 0:
            lines.append(f"  ... and {hidden} more issues")
    else:
        lines.append("  ✅ No issues found!")

    lines.append("")
    return "\n".join(lines)


HTML_STYLE = """
    :root { --bg: #0f172a; --panel: #1e293b; --text: #f1f5f9; --muted: #94a3b8; --border: #334155; }
    * { box-sizing: border-box; margin: 0; padding: 0; }
    body { font-family: system-ui, -apple-system, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 2rem; }
    .container { max-width: 1200px; margin: 0 auto; }
    h1 { font-size: 2rem; margin-bottom: 1.5rem; }
    h2 { font-size: 1.5rem; margin: 2rem 0 1rem; color: var(--muted); }
    .score-card { display: inline-block; padding: 1.5rem 2rem; background: var(--panel); border-radius: 12px; border: 1px solid var(--border); margin-bottom: 2rem; }
    .score-value { font-size: 3rem; font-weight: 700; }
    .score-label, .stat-label, .issue-meta, .issue-desc { color: var(--muted); font-size: 0.875rem; }
    .stats-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(150px, 1fr)); gap: 1rem; margin-bottom: 2rem; }
    .stat-card, .issue-item { background: var(--panel); padding: 1rem; border-radius: 8px; border: 1px solid var(--border); }
    .stat-card { text-align: center; }
    .stat-value { font-size: 1.5rem; font-weight: 600; }
    .issue-list { list-style: none; }
    .issue-item { margin-bottom: 0.75rem; }
    .issue-severity { padding: 0.25rem 0.5rem; border-radius: 4px; font-size: 0.75rem; font-weight: 600; text-transform: uppercase; margin-right: 0.5rem; }
    .issue-title { font-weight: 600; }
    .empty-state { text-align: center; padding: 3rem; color: var(--muted); }
    .warning { padding: 1rem; border: 1px solid #ca8a04; border-radius: 8px; margin-bottom: 2rem; }
"""


def _esc(text: str) -> str:
    return html.escape(text or "", quote=True)


def _html_issue(issue: Issue) -> str:
    level = issue.level.value
    where = _esc(issue.file)
    if issue.line is not None:
        where += f" &bull; Line {issue.line}"
        if issue.column is not None:
            where += f":{issue.column}"
    suggestion = (
        f'\n        <div class="issue-desc">💡 {_esc(issue.suggestion)}</div>' if issue.suggestion else ""
    )
    return (
        '      <li class="issue-item">\n'
        f'        <span class="issue-severity" style="color: {SEVERITY_COLORS[issue.level]}">{level}</span>\n'
        f'        <span class="issue-title">{_esc(issue.title)}</span>\n'
        f'        <div class="issue-desc">{_esc(issue.description)}</div>{suggestion}\n'
        f'        <div class="issue-meta">📁 {where} &bull; {_esc(issue.category)}</div>\n'
        "      </li>"
    )


def render_html(result: AnalysisResult) -> str:
    health = result.health
    stats: List[str] = []
    for label, level in (
        ("Critical", SeverityLevel.CRITICAL),
        ("High", SeverityLevel.HIGH),
        ("Medium", SeverityLevel.MEDIUM),
        ("Low", SeverityLevel.LOW),
        ("Info", SeverityLevel.INFO),
    ):
        stats.append(
            f'      <div class="stat-card"><div class="stat-value" style="color: {SEVERITY_COLORS[level]}">'
            f'{health.count_for(level)}</div><div class="stat-label">{label}</div></div>'
        )
    stats.append(
        f'      <div class="stat-card"><div class="stat-value">{health.total_issues}</div>'
        '<div class="stat-label">Total Issues</div></div>'
    )

    if result.issues:
        body = '    <ul class="issue-list">\n' + "\n".join(_html_issue(i) for i in result.issues) + "\n    </ul>"
    else:
        body = '    <div class="empty-state">✅ No issues found!</div>'

    warning = ""
    if result.partial:
        failed = ", ".join(_esc(f.scanner) for f in result.failures)
        warning = f'    <div class="warning">⚠️ Partial result: failed scanners: {failed}</div>\n'

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Project Health Report</title>
  <style>{HTML_STYLE}  </style>
</head>
<body>
  <div class="container">
    <h1>🔍 Project Health Report</h1>
{warning}    <div class="score-card">
      <div class="score-value" style="color: {health_color(health.score)}">{health.score}</div>
      <div class="score-label">Health Score</div>
    </div>
    <div class="stats-grid">
{chr(10).join(stats)}
    </div>
    <h2>Issues ({len(result.issues)})</h2>
{body}
    <p class="issue-meta">Generated on {_esc(result.generated_at.isoformat())}</p>
  </div>
</body>
</html>
"""
