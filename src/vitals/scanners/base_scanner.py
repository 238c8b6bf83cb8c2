"""
Base Scanner - Abstract base class for all health scanners.

This module defines the common interface every scanner implements, plus
FileScanner, the shared machinery for scanners that walk source files
(content-hash cache lookups, concurrent file batches, line-pattern rules).

Design Pattern: Strategy Pattern
"""

import asyncio
import fnmatch
import hashlib
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Tuple

import structlog

from ..config import AnalyzerConfig
from ..core.batch import BatchOptions, process_parallel_batches
from ..core.cache import AnalysisCache
from ..core.command import CommandResult, execute_command
from ..errors import FileSystemError, VitalsError
from ..models import (
    Issue,
    IssueContext,
    IssueMetadata,
    Location,
    Severity,
    SeverityLevel,
    utcnow,
)


CommandRunner = Callable[..., Awaitable[CommandResult]]

FRAMEWORK_SUFFIXES = {
    ".astro": "astro",
    ".vue": "vue",
    ".svelte": "svelte",
    ".tsx": "react",
    ".jsx": "react",
}


class BaseScanner(ABC):
    """
    Abstract base class for all scanners.

    Subclasses set `name` (the key used in `enabled_scanners`), `kind` (the
    issue category they emit) and implement run().

    Features:
    1. Unified interface for the orchestrator
    2. Built-in logging support
    3. Optional rate limiting of external commands
    4. Issue construction with the scanner's name as source

    Example:
        >>> class TodoScanner(BaseScanner):
        ...     name = "todo"
        ...     kind = "maintenance"
        ...     async def run(self, config):
        ...         return [self.make_issue(...)]
    """

    name: str = "base"
    kind: str = "general"
    category: str = "General"

    def __init__(
        self,
        rate_limiter: Optional[Any] = None,
        enabled: bool = True,
        command_runner: Optional[CommandRunner] = None,
    ):
        """
        Initialize the base scanner.

        Args:
            rate_limiter: Rate limiter gating external commands
            enabled: Whether this scanner is enabled
            command_runner: Replacement for execute_command (tests)
        """
        self.rate_limiter = rate_limiter
        self.enabled = enabled
        self.command_runner = command_runner or execute_command

        # Set by the orchestrator before each run
        self.cache: Optional[AnalysisCache] = None

        # Statistics
        self.run_count = 0
        self.issue_count = 0

        self.logger = structlog.get_logger(__name__, scanner=self.name)

    def can_run(self, config: AnalyzerConfig) -> bool:
        """Whether this scanner applies to the configured project"""
        return self.enabled and config.scanner_enabled(self.name)

    @abstractmethod
    async def run(self, config: AnalyzerConfig) -> List[Issue]:
        """
        Scan the project.

        Args:
            config: Finalized analyzer configuration

        Returns:
            List of issues (empty if none found)

        Raises:
            ScanError: If the scanner cannot complete
        """
        pass

    def report_context(self) -> Dict[str, Any]:
        """Extra report sections captured by the last run (e.g. git status)"""
        return {}

    async def run_command(
        self,
        command: str,
        config: AnalyzerConfig,
        ignore_exit_code: bool = True,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run a shell command in the project root"""
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()
        return await self.command_runner(
            command,
            cwd=config.project_root,
            timeout=timeout or config.command_timeout,
            ignore_exit_code=ignore_exit_code,
        )

    def make_issue(
        self,
        level: SeverityLevel,
        title: str,
        description: str,
        location: Location,
        rule_id: str,
        **fields: Any,
    ) -> Issue:
        """Build an issue attributed to this scanner"""
        severity = fields.pop("severity", None) or Severity.for_level(level)
        return Issue.create(
            kind=self.kind,
            severity=severity,
            title=title,
            description=description,
            location=location,
            rule_id=rule_id,
            category=fields.pop("category", self.category),
            source=self.name,
            **fields,
        )

    def record_run(self, issues: List[Issue]):
        self.run_count += 1
        self.issue_count += len(issues)

    def get_statistics(self) -> Dict[str, int]:
        """
        Get scanner statistics.

        Returns:
            Dictionary with run count and issue count
        """
        return {"runs": self.run_count, "issues": self.issue_count}

    def reset_statistics(self):
        """Reset scanner statistics"""
        self.run_count = 0
        self.issue_count = 0

    def __repr__(self) -> str:
        """String representation"""
        return (
            f"{type(self).__name__}("
            f"name={self.name!r}, "
            f"enabled={self.enabled}, "
            f"runs={self.run_count}, "
            f"found={self.issue_count})"
        )


@dataclass(frozen=True)
class PatternRule:
    """A line-level regular-expression check"""
    rule_id: str
    pattern: Pattern[str]
    level: SeverityLevel
    title: str
    description: str
    suggestion: Optional[str] = None
    auto_fixable: bool = False
    documentation: Optional[str] = None
    unless: Optional[Pattern[str]] = None  # line is exempt when this matches
    suffixes: Tuple[str, ...] = ()  # empty = every scanned file

    def applies_to(self, path: str) -> bool:
        return not self.suffixes or Path(path).suffix in self.suffixes


def _matches(path: str, pattern: str) -> bool:
    if fnmatch.fnmatch(path, pattern):
        return True
    return pattern.startswith("**/") and fnmatch.fnmatch(path, pattern[3:])


def discover_files(config: AnalyzerConfig, suffixes: Tuple[str, ...] = ()) -> List[str]:
    """
    List project files matching the include globs, relative to the root.

    Directories named in `ignore` (or matching an ignore glob) are pruned.
    The result is sorted so scans are deterministic.
    """
    root = config.project_root
    found: List[str] = []

    for current, dirnames, filenames in os.walk(root):
        rel_dir = Path(current).relative_to(root)
        dirnames[:] = [
            d for d in dirnames
            if not _ignored((rel_dir / d).as_posix(), d, config.ignore)
        ]
        for filename in filenames:
            rel_path = (rel_dir / filename).as_posix()
            if _ignored(rel_path, filename, config.ignore):
                continue
            if suffixes and Path(filename).suffix not in suffixes:
                continue
            if any(_matches(rel_path, pattern) for pattern in config.include):
                found.append(rel_path)

    return sorted(found)


def _ignored(rel_path: str, name: str, ignore: List[str]) -> bool:
    return any(
        name == pattern or rel_path == pattern or fnmatch.fnmatch(rel_path, pattern)
        for pattern in ignore
    )


def line_checksum(line: str) -> str:
    return hashlib.sha256(line.strip().encode("utf-8")).hexdigest()[:16]


class FileScanner(BaseScanner):
    """
    Scanner that inspects project files one at a time.

    Each file is looked up in the cache first; on a miss it is read and
    passed to scan_file(), and the fresh issues are written back. Files are
    processed in concurrent batches. A file that cannot be read is logged
    and skipped; it does not fail the scanner.
    """

    suffixes: Tuple[str, ...] = ()
    rules: Tuple[PatternRule, ...] = ()
    batch_size: int = 10

    async def run(self, config: AnalyzerConfig) -> List[Issue]:
        files = await asyncio.to_thread(discover_files, config, self.suffixes)
        self.logger.info("file_scan_started", files=len(files))

        async def scan_one(rel_path: str, index: int) -> List[Issue]:
            return await self._scan_cached(rel_path, config)

        result = await process_parallel_batches(
            files,
            scan_one,
            BatchOptions(batch_size=self.batch_size, concurrency=config.file_concurrency),
        )
        for failure in result.failures:
            self.logger.warning("file_scan_failed", file=failure.item, error=str(failure.error))

        issues = [issue for file_issues in result.results for issue in file_issues]
        issues.extend(await self.project_checks(config))

        self.record_run(issues)
        self.logger.info(
            "file_scan_completed",
            files=len(files),
            issues=len(issues),
            failed_files=len(result.failures),
        )
        return issues

    async def _scan_cached(self, rel_path: str, config: AnalyzerConfig) -> List[Issue]:
        if self.cache is not None:
            cached = await self.cache.get_cached_issues(rel_path, {self.name})
            if cached is not None:
                return cached

        path = config.project_root / rel_path
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            raise FileSystemError("read", str(path), e) from e

        issues = self.scan_file(rel_path, content, config)

        if self.cache is not None:
            await self.cache.record_scanner_issues(rel_path, self.name, issues)
        return issues

    def scan_file(self, path: str, content: str, config: AnalyzerConfig) -> List[Issue]:
        """Check one file; the default applies `rules` line by line"""
        return self.scan_lines(path, content, self.rules)

    async def project_checks(self, config: AnalyzerConfig) -> List[Issue]:
        """Project-level checks that are not tied to one source file"""
        return []

    def scan_lines(self, path: str, content: str, rules: Tuple[PatternRule, ...]) -> List[Issue]:
        """Apply pattern rules to every line of a file"""
        applicable = [rule for rule in rules if rule.applies_to(path)]
        if not applicable:
            return []

        lines = content.splitlines()
        framework = FRAMEWORK_SUFFIXES.get(Path(path).suffix)
        issues: List[Issue] = []

        for index, line in enumerate(lines):
            for rule in applicable:
                match = rule.pattern.search(line)
                if match is None:
                    continue
                if rule.unless is not None and rule.unless.search(line):
                    continue

                issues.append(self.make_issue(
                    rule.level,
                    rule.title,
                    rule.description,
                    Location(file=path, line=index + 1, column=match.start() + 1),
                    rule.rule_id,
                    suggestion=rule.suggestion,
                    auto_fixable=rule.auto_fixable,
                    documentation=rule.documentation,
                    context=IssueContext.from_lines(lines, index),
                    metadata=IssueMetadata(
                        checksum=line_checksum(line),
                        timestamp=utcnow(),
                        framework=framework,
                    ),
                ))

        return issues


class ScanError(VitalsError):
    """Raised when a scanner cannot complete (recoverable at run level)"""

    def __init__(self, scanner: str, message: str, original: Optional[BaseException] = None):
        super().__init__(
            message,
            code="SCAN_ERROR",
            details={"scanner": scanner, "original": original},
        )
        self.scanner = scanner
        self.original = original


class ScannerTimeoutError(ScanError):
    """Raised when a scanner's external command times out"""

    def __init__(self, scanner: str, message: str, original: Optional[BaseException] = None):
        super().__init__(scanner, message, original)
        self.code = "SCAN_TIMEOUT"
