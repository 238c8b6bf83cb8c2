"""
Orchestrator - Central coordinator for one project's health analysis.

Runs every applicable scanner concurrently, merges their issues into one
result, persists the cache and scores project health. A failing scanner
never hides the issues of the others: the fan-out boundary turns every
scanner run into a ScannerOutcome value.

Design Pattern: Fan-out/Fan-in + Observer
"""

import asyncio
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

from ..config import AnalyzerConfig, ConfigLoader
from ..errors import VitalsError
from ..models import (
    AnalysisResult,
    DeploymentChecklist,
    GitSnapshot,
    Issue,
    ScannerFailure,
    utcnow,
)
from ..scanners.base_scanner import BaseScanner, ScanError
from ..scanners.registry import ScannerRegistry, create_default_registry
from .autofix import AutoFixResult, apply_fixes
from .cache import AnalysisCache
from .health import calculate_project_health
from .rate_limiter import RateLimitConfig, TokenBucketRateLimiter


Observer = Callable[[str, Dict[str, Any]], None]


@dataclass
class ScannerOutcome:
    """Result of one scanner run: issues on success, a failure otherwise"""
    scanner: str
    issues: List[Issue] = field(default_factory=list)
    failure: Optional[ScannerFailure] = None
    context: Dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failure is None


class Orchestrator:
    """
    Central coordinator for the analysis pipeline.

    Responsibilities:
    1. Finalize configuration and open the cache lazily
    2. Fan out to every applicable scanner and contain their failures
    3. Merge, filter and score the issues
    4. Notify observers of progress
    5. Apply auto-fixes to the last result

    Example:
        >>> orchestrator = Orchestrator(ConfigLoader.load_config({"project_root": "."}))
        >>> result = await orchestrator.analyze()
        >>> result.health.score
        87
    """

    def __init__(
        self,
        config: AnalyzerConfig,
        registry: Optional[ScannerRegistry] = None,
        cache: Optional[AnalysisCache] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Analyzer configuration (finalized again before each run)
            registry: Scanners to run (default: every bundled scanner)
            cache: Pre-built cache (default: opened lazily when enabled)
        """
        self.config = config
        if registry is None:
            # one bucket shared by every scanner that shells out
            limiter = TokenBucketRateLimiter(RateLimitConfig(
                requests_per_second=config.command_rate_limit,
                burst_limit=config.command_burst,
            ))
            registry = create_default_registry(rate_limiter=limiter)
        self.registry = registry
        self.cache = cache

        # State tracking
        self.is_running = False
        self.scan_id: Optional[str] = None
        self.last_result: Optional[AnalysisResult] = None
        self.outcomes: Dict[str, ScannerOutcome] = {}

        # Structured logging
        self.logger = structlog.get_logger(__name__)

        # Observer pattern - callbacks
        self.observers: List[Observer] = []

    def subscribe(self, observer: Observer):
        """
        Subscribe to orchestrator events (Observer pattern).

        Events: analysis_started, scanner_completed, scanner_failed,
        analysis_completed.

        Args:
            observer: Callback called as observer(event, data)
        """
        self.observers.append(observer)
        self.logger.debug("observer_subscribed", observer=getattr(observer, "__name__", repr(observer)))

    def _notify_observers(self, event: str, data: Dict[str, Any]):
        """Notify all observers of an event"""
        for observer in self.observers:
            try:
                observer(event, data)
            except Exception as e:
                self.logger.error(
                    "observer_error",
                    observer=getattr(observer, "__name__", repr(observer)),
                    error=str(e),
                )

    async def _open_cache(self) -> Optional[AnalysisCache]:
        if not self.config.enable_cache:
            return None
        if self.cache is None:
            self.cache = AnalysisCache(self.config.project_root, max_age=self.config.cache_max_age)
        if not self.cache.initialized:
            await self.cache.initialize()
            stats = self.cache.get_stats()
            self.logger.info("cache_opened", files=stats["total_files"], issues=stats["total_issues"])
        return self.cache

    async def analyze(self) -> AnalysisResult:
        """
        Run one analysis.

        Returns:
            Unified result; `partial` is True when any scanner failed

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = ConfigLoader.finalize(self.config)
        self.scan_id = f"scan_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.is_running = True
        self.outcomes = {}

        try:
            cache = await self._open_cache()
            scanners = self.registry.applicable(self.config)

            self.logger.info(
                "analysis_started",
                scan_id=self.scan_id,
                project_root=str(self.config.project_root),
                scanners=[scanner.name for scanner in scanners],
                cache=cache is not None,
            )
            self._notify_observers("analysis_started", {
                "scan_id": self.scan_id,
                "scanners": [scanner.name for scanner in scanners],
            })

            for scanner in scanners:
                scanner.cache = cache

            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(self._run_scanner(scanner)) for scanner in scanners]
            outcomes = [task.result() for task in tasks]

            result = self._merge(outcomes)

            if cache is not None:
                await cache.save()
        finally:
            self.is_running = False

        self.last_result = result
        self.logger.info(
            "analysis_completed",
            scan_id=self.scan_id,
            issues=len(result.issues),
            score=result.health.score,
            failures=len(result.failures),
        )
        self._notify_observers("analysis_completed", {
            "scan_id": self.scan_id,
            "score": result.health.score,
            "issues": len(result.issues),
            "partial": result.partial,
        })
        return result

    async def _run_scanner(self, scanner: BaseScanner) -> ScannerOutcome:
        """Run one scanner; every exception becomes a failure outcome"""
        started = asyncio.get_running_loop().time()
        try:
            issues = await scanner.run(self.config)
        except Exception as e:
            error = e if isinstance(e, ScanError) else ScanError(scanner.name, str(e) or type(e).__name__, e)
            duration = asyncio.get_running_loop().time() - started
            self.logger.error(
                "scanner_failed",
                scanner=scanner.name,
                code=error.code,
                error=error.message,
                exc_info=not isinstance(e, VitalsError),
            )
            outcome = ScannerOutcome(
                scanner=scanner.name,
                failure=ScannerFailure(scanner=scanner.name, error=error.message, code=error.code),
                duration=duration,
            )
            self.outcomes[scanner.name] = outcome
            self._notify_observers("scanner_failed", {"scanner": scanner.name, "error": error.message})
            return outcome

        duration = asyncio.get_running_loop().time() - started
        outcome = ScannerOutcome(
            scanner=scanner.name,
            issues=list(issues),
            context=scanner.report_context(),
            duration=duration,
        )
        self.outcomes[scanner.name] = outcome
        self.logger.info(
            "scanner_completed",
            scanner=scanner.name,
            issues=len(outcome.issues),
            duration=f"{duration:.2f}s",
        )
        self._notify_observers("scanner_completed", {"scanner": scanner.name, "issues": len(outcome.issues)})
        return outcome

    def _merge(self, outcomes: List[ScannerOutcome]) -> AnalysisResult:
        """Concatenate issues in registry order, filter by threshold, score"""
        threshold = self.config.severity_threshold
        issues: List[Issue] = []
        failures: List[ScannerFailure] = []
        git: Optional[GitSnapshot] = None
        deployment: Optional[DeploymentChecklist] = None

        for outcome in outcomes:
            if not outcome.ok:
                failures.append(outcome.failure)
                continue
            issues.extend(issue for issue in outcome.issues if issue.severity.is_at_least(threshold))
            git = outcome.context.get("git", git)
            deployment = outcome.context.get("deployment", deployment)

        previous = self.last_result.health if self.last_result is not None else None
        return AnalysisResult(
            issues=issues,
            health=calculate_project_health(issues, previous=previous),
            git=git,
            deployment=deployment,
            failures=failures,
            scan_id=self.scan_id or "",
            generated_at=utcnow(),
        )

    async def auto_fix(
        self,
        issue_ids: Optional[Iterable[str]] = None,
        dry_run: bool = False,
    ) -> AutoFixResult:
        """
        Fix auto-fixable issues of the last analysis (running one if needed).

        Args:
            issue_ids: Allow-list of issue ids (default: every fixable issue)
            dry_run: Report what would be attempted without writing files

        Returns:
            AutoFixResult with fixed issues and failures with reasons
        """
        if self.last_result is None:
            await self.analyze()

        candidates = [issue for issue in self.last_result.issues if issue.auto_fixable]
        if issue_ids is not None:
            allowed = set(issue_ids)
            candidates = [issue for issue in candidates if issue.id in allowed]

        self.logger.info("auto_fix_started", candidates=len(candidates), dry_run=dry_run)
        result = await asyncio.to_thread(apply_fixes, self.config.project_root, candidates, dry_run)

        if result.fixed and not dry_run:
            # fixed issues are gone from disk; health keeps the measured score for the next trend
            fixed_ids = {issue.id for issue in result.fixed}
            self.last_result = dataclasses.replace(
                self.last_result,
                issues=[issue for issue in self.last_result.issues if issue.id not in fixed_ids],
            )
            if self.cache is not None:
                self.cache.invalidate({issue.file for issue in result.fixed})
                await self.cache.save()
        return result

    async def clear_cache(self):
        """Delete every cached entry and the cache artifact"""
        if self.cache is None:
            self.cache = AnalysisCache(self.config.project_root, max_age=self.config.cache_max_age)
        await self.cache.clear()

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Statistics of the persisted cache (loads it if needed)"""
        if self.cache is None:
            self.cache = AnalysisCache(self.config.project_root, max_age=self.config.cache_max_age)
        if not self.cache.initialized:
            await self.cache.initialize()
        return self.cache.get_stats()

    def get_status(self) -> Dict[str, Any]:
        """
        Get current orchestrator status.

        Returns:
            Status dictionary
        """
        return {
            "scan_id": self.scan_id,
            "is_running": self.is_running,
            "scanners": {
                "registered": self.registry.names(),
                "completed": [name for name, o in self.outcomes.items() if o.ok],
                "failed": [name for name, o in self.outcomes.items() if not o.ok],
            },
            "last_score": self.last_result.health.score if self.last_result else None,
            "cache_enabled": self.config.enable_cache,
        }
