"""
Type Scanner - Type-checking diagnostics reported by the TypeScript compiler.
"""

from typing import List

from ..config import AnalyzerConfig
from ..errors import CommandTimeoutError, ExternalCommandError
from ..models import Issue, IssueContext, Location
from .base_scanner import BaseScanner, ScanError, ScannerTimeoutError
from .typescript import parse_diagnostics, severity_for


# Possibly-null access; fixable with optional chaining
AUTO_FIXABLE_CODES = {"2531", "2532"}


class TypeScanner(BaseScanner):
    """
    Runs the configured type check and reports every non-syntax diagnostic.

    Example:
        >>> scanner = TypeScanner()
        >>> issues = await scanner.run(config)
    """

    name = "types"
    kind = "type"
    category = "TypeScript"

    def can_run(self, config: AnalyzerConfig) -> bool:
        return super().can_run(config) and (config.project_root / "tsconfig.json").is_file()

    async def run(self, config: AnalyzerConfig) -> List[Issue]:
        self.logger.info("type_check_started")

        try:
            result = await self.run_command(config.commands.type_check, config)
        except CommandTimeoutError as e:
            raise ScannerTimeoutError(self.name, f"Type check timed out: {e.message}", e) from e
        except ExternalCommandError as e:
            raise ScanError(self.name, f"Failed to run type check: {e.message}", e) from e

        issues = []
        for diagnostic in parse_diagnostics(result.stdout + "\n" + result.stderr, config.project_root):
            if diagnostic.is_syntax:
                continue
            fixable = diagnostic.code in AUTO_FIXABLE_CODES
            issues.append(self.make_issue(
                severity_for(diagnostic.code),
                f"TypeScript Error TS{diagnostic.code}",
                diagnostic.message,
                Location(file=diagnostic.file, line=diagnostic.line, column=diagnostic.column),
                f"TS{diagnostic.code}",
                suggestion="Use optional chaining (?.) or add a null check" if fixable else None,
                auto_fixable=fixable,
                documentation=f"https://typescript.tv/errors/#ts{diagnostic.code}",
                context=IssueContext(current=diagnostic.raw),
            ))

        self.record_run(issues)
        self.logger.info("type_check_completed", issues=len(issues))
        return issues
