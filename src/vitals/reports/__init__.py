"""
Report renderers - Pure functions turning an AnalysisResult into text.
"""

from typing import Callable, Dict, Union

from ..models import AnalysisResult
from .common import ReportFormat
from .human import render_html, render_markdown, render_terminal
from .machine import render_csv, render_json, render_junit, render_sarif


RENDERERS: Dict[ReportFormat, Callable[[AnalysisResult], str]] = {
    ReportFormat.JSON: render_json,
    ReportFormat.MARKDOWN: render_markdown,
    ReportFormat.TERMINAL: render_terminal,
    ReportFormat.HTML: render_html,
    ReportFormat.SARIF: render_sarif,
    ReportFormat.CSV: render_csv,
    ReportFormat.JUNIT: render_junit,
}


def render(result: AnalysisResult, fmt: Union[ReportFormat, str]) -> str:
    """
    Render a result in the requested format.

    Args:
        result: Analysis result to render
        fmt: ReportFormat or its name ("json", "markdown", ...)

    Raises:
        ValueError: If the format name is unknown
    """
    if isinstance(fmt, str):
        fmt = ReportFormat.parse(fmt)
    return RENDERERS[fmt](result)


__all__ = [
    "RENDERERS",
    "ReportFormat",
    "render",
    "render_csv",
    "render_html",
    "render_json",
    "render_junit",
    "render_markdown",
    "render_sarif",
    "render_terminal",
]
