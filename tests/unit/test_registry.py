"""
Unit tests for ScannerRegistry.

Run with: pytest tests/unit/test_registry.py -v
"""

import pytest

from vitals.config import SCANNER_NAMES, AnalyzerConfig
from vitals.scanners import ScannerRegistry, SecurityScanner, create_default_registry


class TestScannerRegistry:
    """Test suite for ScannerRegistry"""

    def test_default_registry_order(self):
        registry = create_default_registry()

        assert registry.names() == list(SCANNER_NAMES)
        assert len(registry) == 7
        assert "security" in registry

    def test_kwargs_reach_every_scanner(self, fake_runner):
        runner = fake_runner()

        registry = create_default_registry(command_runner=runner)

        assert all(scanner.command_runner is runner for scanner in registry)

    def test_duplicate_name_is_rejected(self):
        registry = ScannerRegistry()
        registry.register(SecurityScanner())

        with pytest.raises(ValueError, match="already registered"):
            registry.register(SecurityScanner())

    def test_unregister(self):
        registry = create_default_registry()

        removed = registry.unregister("git")

        assert removed.name == "git"
        assert registry.get("git") is None
        assert registry.unregister("git") is None

    def test_applicable_respects_config(self, project):
        """Test only enabled scanners whose preconditions hold are applicable"""
        registry = create_default_registry()
        config = AnalyzerConfig(
            project_root=project,
            enabled_scanners=["syntax", "security", "accessibility", "git"],
        )

        names = [scanner.name for scanner in registry.applicable(config)]

        # no tsconfig.json and no .git directory in the fixture project
        assert names == ["security", "accessibility"]
