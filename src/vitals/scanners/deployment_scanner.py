"""
Deployment Scanner - Pre-deployment readiness checklist.

Runs the project's own build, type-check, lint and test commands and a
few file-presence checks, then reports every failing or warning check as
an issue. The checklist itself is exposed for the Deployment Readiness
report section.
"""

import json
import os
from typing import Any, Dict, List, Optional

from ..config import AnalyzerConfig
from ..errors import CommandTimeoutError, ExternalCommandError
from ..models import (
    CheckStatus,
    DeploymentChecklist,
    Impact,
    Issue,
    IssueContext,
    Location,
    Severity,
    SeverityLevel,
    Urgency,
)
from .base_scanner import BaseScanner


SEO_FILES = ("robots.txt", "sitemap.xml", "sitemap-index.xml")
MAX_MAJOR_UPDATES = 5

SUGGESTIONS = {
    "buildStatus": "Fix build errors before deployment",
    "typeChecking": "Resolve TypeScript errors",
    "linting": "Fix linting issues",
    "testing": "Ensure all tests pass",
    "dependencies": "Update outdated dependencies",
    "security": "Address security vulnerabilities",
    "performance": "Optimize performance issues",
    "accessibility": "Fix accessibility issues",
    "seo": "Add robots.txt and a sitemap to public/",
    "assets": "Optimize and compress assets",
}


class DeploymentScanner(BaseScanner):
    """
    Deployment-readiness checks for Node-based projects.

    Skipped when deployment checks are disabled, when the project has no
    package.json, or while already running inside a production build.
    """

    name = "deployment"
    kind = "deployment"
    category = "Deployment"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.last_checklist: Optional[DeploymentChecklist] = None

    def can_run(self, config: AnalyzerConfig) -> bool:
        if not (super().can_run(config) and config.deployment_checks):
            return False
        if os.environ.get("NODE_ENV") == "production" or os.environ.get("npm_lifecycle_event") == "build":
            self.logger.info("deployment_checks_skipped", reason="inside_build")
            return False
        return (config.project_root / "package.json").is_file()

    def report_context(self) -> Dict[str, Any]:
        return {"deployment": self.last_checklist} if self.last_checklist is not None else {}

    async def run(self, config: AnalyzerConfig) -> List[Issue]:
        self.last_checklist = None
        self.logger.info("deployment_checks_started")
        commands = config.commands

        has_tsconfig = (config.project_root / "tsconfig.json").is_file()
        checklist = DeploymentChecklist(
            build_status=await self._command_check("build", commands.build, config),
            type_checking=(
                await self._command_check("type_checking", commands.type_check, config)
                if has_tsconfig else CheckStatus.PASS
            ),
            linting=await self._command_check("linting", commands.lint, config),
            testing=await self._command_check("testing", commands.test, config),
            dependencies=await self._check_dependencies(config),
            seo=self._check_seo(config),
        )
        self.last_checklist = checklist

        issues = []
        for key, status in checklist.items():
            if status is CheckStatus.FAIL:
                issues.append(self._issue(key, status, SeverityLevel.HIGH, failed=True))
            elif status is CheckStatus.WARNING:
                issues.append(self._issue(key, status, SeverityLevel.MEDIUM, failed=False))

        self.record_run(issues)
        self.logger.info(
            "deployment_checks_completed",
            failed=sum(1 for _, s in checklist.items() if s is CheckStatus.FAIL),
            warnings=sum(1 for _, s in checklist.items() if s is CheckStatus.WARNING),
        )
        return issues

    async def _command_check(self, check: str, command: str, config: AnalyzerConfig) -> CheckStatus:
        """Pass on exit code 0, fail otherwise; undeterminable is a warning"""
        try:
            result = await self.run_command(command, config)
        except CommandTimeoutError as e:
            self.logger.warning("deployment_check_timeout", check=check, error=e.message)
            return CheckStatus.FAIL
        except ExternalCommandError as e:
            self.logger.warning("deployment_check_unavailable", check=check, error=e.message)
            return CheckStatus.WARNING
        return CheckStatus.PASS if result.ok else CheckStatus.FAIL

    async def _check_dependencies(self, config: AnalyzerConfig) -> CheckStatus:
        """Warn when more than five packages are a major version behind"""
        try:
            result = await self.run_command(config.commands.outdated, config)
            outdated = json.loads(result.stdout) if result.stdout.strip() else {}
        except (ExternalCommandError, ValueError) as e:
            self.logger.debug("outdated_check_unavailable", error=str(e))
            return CheckStatus.PASS

        if not isinstance(outdated, dict):
            return CheckStatus.PASS

        majors = 0
        for info in outdated.values():
            if not isinstance(info, dict):
                continue
            current = str(info.get("current") or "").split(".")[0]
            latest = str(info.get("latest") or "").split(".")[0]
            if current != latest:
                majors += 1

        return CheckStatus.WARNING if majors > MAX_MAJOR_UPDATES else CheckStatus.PASS

    def _check_seo(self, config: AnalyzerConfig) -> CheckStatus:
        found = 0
        for filename in SEO_FILES:
            if any((config.project_root / folder / filename).is_file() for folder in ("public", "dist")):
                found += 1
        return CheckStatus.PASS if found >= 2 else CheckStatus.WARNING

    def _issue(self, key: str, status: CheckStatus, level: SeverityLevel, failed: bool) -> Issue:
        title = f"Deployment Check Failed: {key}" if failed else f"Deployment Warning: {key}"
        description = (
            f"The {key} check failed and must be resolved before deployment"
            if failed
            else f"The {key} check has warnings that should be reviewed"
        )
        return self.make_issue(
            level,
            title,
            description,
            Location(file="package.json"),
            f"deployment-{key}",
            severity=Severity(
                level=level,
                impact=Impact.BLOCKING if failed else Impact.MINOR,
                urgency=Urgency.HIGH if failed else Urgency.MEDIUM,
            ),
            suggestion=SUGGESTIONS.get(key, f"Review and fix {key} issues"),
            context=IssueContext(current=f"{key} status: {status.value}"),
        )

