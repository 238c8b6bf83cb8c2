"""
Syntax Scanner - Parser errors reported by the TypeScript compiler.
"""

from typing import List

from ..config import AnalyzerConfig
from ..errors import CommandTimeoutError, ExternalCommandError
from ..models import Issue, IssueContext, Location, SeverityLevel
from .base_scanner import BaseScanner, ScanError, ScannerTimeoutError
from .typescript import parse_diagnostics


class SyntaxScanner(BaseScanner):
    """
    Runs the configured compiler check and reports TS1xxx (syntax) errors.

    A syntax error breaks the build, so every one is critical.

    Only applies to projects with a tsconfig.json.

    Example:
        >>> scanner = SyntaxScanner()
        >>> issues = await scanner.run(config)
    """

    name = "syntax"
    kind = "syntax"
    category = "TypeScript"

    def can_run(self, config: AnalyzerConfig) -> bool:
        return super().can_run(config) and (config.project_root / "tsconfig.json").is_file()

    async def run(self, config: AnalyzerConfig) -> List[Issue]:
        self.logger.info("syntax_check_started")
        command = config.commands.syntax_check

        try:
            result = await self.run_command(command, config)
        except CommandTimeoutError as e:
            raise ScannerTimeoutError(self.name, f"Syntax check timed out: {e.message}", e) from e
        except ExternalCommandError as e:
            raise ScanError(self.name, f"Failed to run syntax check: {e.message}", e) from e

        issues = []
        for diagnostic in parse_diagnostics(result.stdout + "\n" + result.stderr, config.project_root):
            if not diagnostic.is_syntax:
                continue
            issues.append(self.make_issue(
                SeverityLevel.CRITICAL,
                f"TypeScript Syntax Error TS{diagnostic.code}",
                diagnostic.message,
                Location(file=diagnostic.file, line=diagnostic.line, column=diagnostic.column),
                f"TS{diagnostic.code}",
                context=IssueContext(current=diagnostic.raw),
            ))

        self.record_run(issues)
        self.logger.info("syntax_check_completed", issues=len(issues))
        return issues
