"""
Shared fixtures for VITALS tests.
"""

from datetime import datetime, timezone
from typing import Dict, List, Union

import pytest

from vitals.core.command import CommandResult
from vitals.core.health import calculate_project_health
from vitals.models import (
    AnalysisResult,
    Issue,
    IssueContext,
    Location,
    ProjectHealth,
    Severity,
    SeverityLevel,
)


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end tests over a real project tree")


def build_issue(
    level: SeverityLevel = SeverityLevel.HIGH,
    *,
    id: str = None,
    kind: str = "security",
    title: str = "Test Issue",
    description: str = "This is a test issue description",
    file: str = "src/test.ts",
    line: int = 10,
    column: int = 5,
    rule_id: str = "test-rule",
    category: str = "Security",
    source: str = "security",
    suggestion: str = None,
    auto_fixable: bool = False,
    context: IssueContext = None,
) -> Issue:
    """Issue factory with sensible defaults"""
    return Issue.create(
        kind,
        id=id,
        severity=Severity.for_level(level),
        title=title,
        description=description,
        location=Location(file=file, line=line, column=column),
        rule_id=rule_id,
        category=category,
        source=source,
        suggestion=suggestion,
        auto_fixable=auto_fixable,
        context=context,
    )


def build_result(issues=None, **fields) -> AnalysisResult:
    """AnalysisResult with health counts derived from the issues"""
    issues = list(issues or [])
    fields.setdefault("scan_id", "scan_20240101_120000")
    fields.setdefault("generated_at", datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
    return AnalysisResult(issues=issues, health=calculate_project_health(issues), **fields)


@pytest.fixture
def make_issue():
    return build_issue


@pytest.fixture
def make_result():
    return build_result


@pytest.fixture
def empty_health():
    return ProjectHealth(score=100)


@pytest.fixture
def project(tmp_path):
    """Minimal web project tree with one file per scanner concern"""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.ts").write_text(
        "const data = load();\n"
        "eval(data);\n"
        "export default data;\n",
        encoding="utf-8",
    )
    (tmp_path / "src" / "page.html").write_text(
        "<main>\n"
        '  <img src="hero.png">\n'
        "</main>\n",
        encoding="utf-8",
    )
    (tmp_path / "src" / "clean.ts").write_text("export const answer = 42;\n", encoding="utf-8")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "lib.js").write_text("eval('ignored');\n", encoding="utf-8")
    return tmp_path


class FakeCommandRunner:
    """
    Stand-in for execute_command.

    Responses are keyed by the exact command line; a response that is an
    exception is raised. Unknown commands succeed with empty output.
    """

    def __init__(self, responses: Dict[str, Union[CommandResult, Exception]] = None):
        self.responses = dict(responses or {})
        self.calls: List[str] = []

    async def __call__(self, command, cwd=None, timeout=None, ignore_exit_code=False):
        self.calls.append(command)
        response = self.responses.get(command, CommandResult("", "", 0))
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_runner():
    return FakeCommandRunner
