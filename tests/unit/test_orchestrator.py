"""
Unit tests for Orchestrator module.

Scanners are stubs registered under real scanner names, so the config's
enabled_scanners applies to them.

Run with: pytest tests/unit/test_orchestrator.py -v
"""

import asyncio

import pytest

from vitals.config import AnalyzerConfig
from vitals.errors import ConfigurationError
from vitals.core.orchestrator import Orchestrator, ScannerOutcome
from vitals.core.rate_limiter import TokenBucketRateLimiter
from vitals.models import BranchStatus, GitSnapshot, SeverityLevel
from vitals.scanners import BaseScanner, ScannerRegistry, ScannerTimeoutError


ALT_SUGGESTION = 'Add alt="description" or alt="" for decorative images'


class StubScanner(BaseScanner):
    """Scanner returning canned issues, or raising a canned error"""

    def __init__(self, name, issues=None, error=None, delay=0.0, context=None):
        self.name = name
        super().__init__()
        self.issues = list(issues or [])
        self.error = error
        self.delay = delay
        self.context = context or {}
        self.calls = 0

    async def run(self, config):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.issues)

    def report_context(self):
        return dict(self.context)


def registry_of(*scanners) -> ScannerRegistry:
    registry = ScannerRegistry()
    for scanner in scanners:
        registry.register(scanner)
    return registry


@pytest.fixture
def config(tmp_path):
    return AnalyzerConfig(project_root=tmp_path, enable_cache=False)


class TestOrchestrator:
    """Test suite for Orchestrator class"""

    def test_orchestrator_initialization(self, config):
        """Test orchestrator initializes correctly"""
        orchestrator = Orchestrator(config)

        assert orchestrator.is_running is False
        assert orchestrator.scan_id is None
        assert orchestrator.last_result is None
        assert len(orchestrator.registry) == 7

    def test_default_scanners_share_one_rate_limiter(self, tmp_path):
        config = AnalyzerConfig(project_root=tmp_path, command_rate_limit=2, command_burst=3)

        registry = Orchestrator(config).registry

        limiters = {id(scanner.rate_limiter) for scanner in registry}
        limiter = registry.get("git").rate_limiter

        assert len(limiters) == 1
        assert isinstance(limiter, TokenBucketRateLimiter)
        assert limiter.config.burst_limit == 3
        assert limiter.config.refill_interval == 0.5

    @pytest.mark.asyncio
    async def test_merges_issues_in_registry_order(self, config, make_issue):
        """Test a slow first scanner still contributes its issues first"""
        security = make_issue(source="security")
        performance = make_issue(source="performance", category="Performance")
        orchestrator = Orchestrator(config, registry=registry_of(
            StubScanner("security", [security], delay=0.05),
            StubScanner("performance", [performance]),
        ))

        result = await orchestrator.analyze()

        assert result.issues == [security, performance]
        assert result.partial is False
        assert result.scan_id.startswith("scan_")
        assert result.health.total_issues == 2

    @pytest.mark.asyncio
    async def test_failing_scanner_does_not_hide_others(self, config, make_issue):
        issue = make_issue()
        orchestrator = Orchestrator(config, registry=registry_of(
            StubScanner("security", [issue]),
            StubScanner("git", error=RuntimeError("boom")),
            StubScanner("types", error=ScannerTimeoutError("types", "Type check timed out")),
        ))

        result = await orchestrator.analyze()

        assert result.issues == [issue]
        assert result.partial is True
        failures = {failure.scanner: failure for failure in result.failures}
        assert failures["git"].error == "boom"
        assert failures["git"].code == "SCAN_ERROR"
        assert failures["types"].code == "SCAN_TIMEOUT"

    @pytest.mark.asyncio
    async def test_configuration_error_aborts_before_scanning(self, tmp_path):
        """Test an invalid configuration fails the run before any scanner starts"""
        scanner = StubScanner("security")
        orchestrator = Orchestrator(
            AnalyzerConfig(project_root=tmp_path / "missing", enable_cache=False),
            registry=registry_of(scanner),
        )

        with pytest.raises(ConfigurationError) as exc_info:
            await orchestrator.analyze()

        assert exc_info.value.config_key == "project_root"
        assert scanner.calls == 0
        assert orchestrator.is_running is False
        assert orchestrator.last_result is None

    @pytest.mark.asyncio
    async def test_disabled_scanners_do_not_run(self, tmp_path, make_issue):
        config = AnalyzerConfig(project_root=tmp_path, enable_cache=False, enabled_scanners=["security"])
        orchestrator = Orchestrator(config, registry=registry_of(
            StubScanner("security", [make_issue()]),
            StubScanner("performance", [make_issue(source="performance")]),
        ))

        result = await orchestrator.analyze()

        assert [issue.source for issue in result.issues] == ["security"]
        assert list(orchestrator.outcomes) == ["security"]

    @pytest.mark.asyncio
    async def test_severity_threshold_filters_before_scoring(self, tmp_path, make_issue):
        config = AnalyzerConfig(
            project_root=tmp_path,
            enable_cache=False,
            severity_threshold=SeverityLevel.HIGH,
        )
        kept = [make_issue(SeverityLevel.CRITICAL), make_issue(SeverityLevel.HIGH)]
        dropped = [make_issue(SeverityLevel.MEDIUM), make_issue(SeverityLevel.INFO)]
        orchestrator = Orchestrator(config, registry=registry_of(StubScanner("security", kept + dropped)))

        result = await orchestrator.analyze()

        assert result.issues == kept
        assert result.health.score == 70
        assert result.health.medium_issues == 0

    @pytest.mark.asyncio
    async def test_report_context_is_collected(self, config):
        snapshot = GitSnapshot("main", "abc1234", False, BranchStatus.UP_TO_DATE)
        orchestrator = Orchestrator(config, registry=registry_of(
            StubScanner("git", context={"git": snapshot}),
        ))

        result = await orchestrator.analyze()

        assert result.git == snapshot
        assert result.deployment is None

    @pytest.mark.asyncio
    async def test_trend_compares_with_previous_run(self, config, make_issue):
        scanner = StubScanner("security", [make_issue(SeverityLevel.HIGH)])
        orchestrator = Orchestrator(config, registry=registry_of(scanner))

        first = await orchestrator.analyze()
        scanner.issues = []
        second = await orchestrator.analyze()

        assert first.health.trends.velocity == 0
        assert second.health.trends.velocity == 10
        assert second.health.trends.improving is True

    @pytest.mark.asyncio
    async def test_observer_pattern(self, config, make_issue):
        """Test observer subscription and notification"""
        orchestrator = Orchestrator(config, registry=registry_of(
            StubScanner("security", [make_issue()]),
            StubScanner("git", error=RuntimeError("boom")),
        ))
        events_received = []

        def broken_observer(event, data):
            raise RuntimeError("observer bug")

        orchestrator.subscribe(broken_observer)
        orchestrator.subscribe(lambda event, data: events_received.append((event, data)))

        await orchestrator.analyze()

        events = [event for event, _ in events_received]
        assert events[0] == "analysis_started"
        assert events[-1] == "analysis_completed"
        assert sorted(events[1:-1]) == ["scanner_completed", "scanner_failed"]
        assert events_received[-1][1]["partial"] is True

    @pytest.mark.asyncio
    async def test_get_status(self, config):
        """Test status reporting"""
        orchestrator = Orchestrator(config, registry=registry_of(
            StubScanner("security"),
            StubScanner("git", error=RuntimeError("boom")),
        ))

        status = orchestrator.get_status()
        assert status["scan_id"] is None
        assert status["last_score"] is None

        await orchestrator.analyze()
        status = orchestrator.get_status()

        assert status["is_running"] is False
        assert status["scanners"]["registered"] == ["security", "git"]
        assert status["scanners"]["completed"] == ["security"]
        assert status["scanners"]["failed"] == ["git"]
        assert status["last_score"] == 100
        assert status["cache_enabled"] is False

    def test_scanner_outcome_ok(self):
        assert ScannerOutcome("security").ok is True


class TestOrchestratorCache:
    """Test suite for cache handling in the orchestrator"""

    @pytest.mark.asyncio
    async def test_cache_is_saved_after_analysis(self, tmp_path):
        orchestrator = Orchestrator(
            AnalyzerConfig(project_root=tmp_path),
            registry=registry_of(StubScanner("security")),
        )

        await orchestrator.analyze()

        assert orchestrator.cache.cache_file.exists()
        assert orchestrator.registry.get("security").cache is orchestrator.cache

    @pytest.mark.asyncio
    async def test_cache_stats_and_clear(self, tmp_path):
        orchestrator = Orchestrator(
            AnalyzerConfig(project_root=tmp_path),
            registry=registry_of(StubScanner("security")),
        )
        await orchestrator.analyze()

        stats = await orchestrator.get_cache_stats()
        await orchestrator.clear_cache()

        assert stats["total_files"] == 0
        assert not orchestrator.cache.cache_file.exists()


class TestAutoFix:
    """Test suite for Orchestrator.auto_fix"""

    @pytest.fixture
    def page(self, tmp_path):
        page = tmp_path / "page.html"
        page.write_text(
            '<img src="a.png">\n'
            '<img src="b.png">\n'
            '<img src="c.png">\n',
            encoding="utf-8",
        )
        return page

    def fixable(self, make_issue, line, **fields):
        options = {
            "category": "Accessibility",
            "source": "accessibility",
            "file": "page.html",
            "line": line,
            "suggestion": ALT_SUGGESTION,
            "auto_fixable": True,
        }
        options.update(fields)
        return make_issue(**options)

    @pytest.mark.asyncio
    async def test_allow_list_limits_attempts(self, config, page, make_issue, make_result):
        """Test only allow-listed fixable issues are attempted"""
        issues = [self.fixable(make_issue, line) for line in (1, 2, 3)]
        orchestrator = Orchestrator(config, registry=registry_of())
        orchestrator.last_result = make_result(issues)

        result = await orchestrator.auto_fix([issues[1].id])

        assert result.fixed == [issues[1]]
        assert result.failed == []
        assert page.read_text(encoding="utf-8").splitlines() == [
            '<img src="a.png">',
            '<img alt="" src="b.png">',
            '<img src="c.png">',
        ]

    @pytest.mark.asyncio
    async def test_failed_fix_carries_reason(self, config, page, make_issue, make_result):
        issues = [self.fixable(make_issue, 1), self.fixable(make_issue, 2), self.fixable(make_issue, 42)]
        orchestrator = Orchestrator(config, registry=registry_of())
        orchestrator.last_result = make_result(issues)

        result = await orchestrator.auto_fix([issues[2].id])

        assert result.fixed == []
        assert len(result.failed) == 1
        assert result.failed[0].issue == issues[2]
        assert "outside" in result.failed[0].reason

    @pytest.mark.asyncio
    async def test_unfixable_issues_are_skipped(self, config, page, make_issue, make_result):
        fixable = self.fixable(make_issue, 1)
        manual = self.fixable(make_issue, 2, auto_fixable=False)
        orchestrator = Orchestrator(config, registry=registry_of())
        orchestrator.last_result = make_result([fixable, manual])

        result = await orchestrator.auto_fix()

        assert result.fixed == [fixable]
        assert '<img src="b.png">' in page.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, config, page, make_issue, make_result):
        issue = self.fixable(make_issue, 1)
        orchestrator = Orchestrator(config, registry=registry_of())
        orchestrator.last_result = make_result([issue])
        before = page.read_text(encoding="utf-8")

        result = await orchestrator.auto_fix(dry_run=True)

        assert result.dry_run is True
        assert result.fixed == [issue]
        assert page.read_text(encoding="utf-8") == before

    @pytest.mark.asyncio
    async def test_second_run_does_not_reapply_fixes(self, config, page, make_issue, make_result):
        """Test fixed issues leave the last result so a repeat run writes nothing"""
        issue = self.fixable(make_issue, 1, category="Style", suggestion="Prefer a picture element")
        untouched = self.fixable(make_issue, 2, auto_fixable=False)
        orchestrator = Orchestrator(config, registry=registry_of())
        orchestrator.last_result = make_result([issue, untouched])

        first = await orchestrator.auto_fix()
        after_first = page.read_text(encoding="utf-8")
        second = await orchestrator.auto_fix()

        assert first.fixed == [issue]
        assert second.fixed == []
        assert second.failed == []
        assert page.read_text(encoding="utf-8") == after_first
        assert after_first.count("Prefer a picture element") == 1
        assert orchestrator.last_result.issues == [untouched]

    @pytest.mark.asyncio
    async def test_runs_analysis_when_needed(self, config, page, make_issue):
        issue = self.fixable(make_issue, 3)
        orchestrator = Orchestrator(config, registry=registry_of(StubScanner("accessibility", [issue])))

        result = await orchestrator.auto_fix()

        assert orchestrator.last_result is not None
        assert result.fixed == [issue]

    @pytest.mark.asyncio
    async def test_fixed_files_leave_the_cache(self, tmp_path, page, make_issue):
        issue = self.fixable(make_issue, 1)
        orchestrator = Orchestrator(
            AnalyzerConfig(project_root=tmp_path),
            registry=registry_of(StubScanner("accessibility", [issue])),
        )
        await orchestrator.analyze()
        await orchestrator.cache.set_cached_issues("page.html", [issue], {"accessibility"})

        await orchestrator.auto_fix()

        assert "page.html" not in orchestrator.cache.files


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
