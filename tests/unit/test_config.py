"""
Unit tests for configuration loading and validation.

Run with: pytest tests/unit/test_config.py -v
"""

import json

import pytest

from vitals.config import SCANNER_NAMES, AnalyzerConfig, ConfigLoader
from vitals.errors import ConfigurationError
from vitals.models import SeverityLevel


class TestAnalyzerConfig:
    """Test suite for AnalyzerConfig defaults and validation"""

    def test_defaults(self, tmp_path):
        config = AnalyzerConfig(project_root=tmp_path)

        assert config.project_root == tmp_path.resolve()
        assert config.enabled_scanners == list(SCANNER_NAMES)
        assert config.severity_threshold is SeverityLevel.INFO
        assert config.output_format == "terminal"
        assert config.enable_cache is True
        assert config.cache_max_age == 24 * 60 * 60
        assert config.file_concurrency == 3
        assert "node_modules" in config.ignore

    def test_rejects_unknown_scanner(self, tmp_path):
        with pytest.raises(ValueError):
            AnalyzerConfig(project_root=tmp_path, enabled_scanners=["security", "spelling"])

    def test_rejects_unknown_field(self, tmp_path):
        with pytest.raises(ValueError):
            AnalyzerConfig(project_root=tmp_path, colour=True)

    def test_scanner_enabled(self, tmp_path):
        config = AnalyzerConfig(project_root=tmp_path, enabled_scanners=["git"])

        assert config.scanner_enabled("git")
        assert not config.scanner_enabled("security")


class TestConfigLoader:
    """Test suite for ConfigLoader"""

    def test_defaults_without_file(self, tmp_path):
        config = ConfigLoader.load_config({"project_root": tmp_path})

        assert config.project_root == tmp_path.resolve()
        assert config.output_format == "terminal"

    def test_yaml_file_is_merged(self, tmp_path):
        (tmp_path / ".analyzer.yaml").write_text(
            "severity_threshold: medium\n"
            "enabled_scanners: [security, performance]\n"
            "commands:\n"
            "  build: make build\n",
            encoding="utf-8",
        )

        config = ConfigLoader.load_config({"project_root": tmp_path})

        assert config.severity_threshold is SeverityLevel.MEDIUM
        assert config.enabled_scanners == ["security", "performance"]
        assert config.commands.build == "make build"
        assert config.commands.lint == "npm run lint"

    def test_json_file_is_merged(self, tmp_path):
        (tmp_path / ".analyzer.json").write_text(json.dumps({"output_format": "sarif"}), encoding="utf-8")

        assert ConfigLoader.load_config({"project_root": tmp_path}).output_format == "sarif"

    def test_overrides_win_and_none_is_ignored(self, tmp_path):
        """Test explicit overrides beat the file, None overrides do not"""
        (tmp_path / ".analyzer.yml").write_text("output_format: html\nenable_cache: false\n", encoding="utf-8")

        config = ConfigLoader.load_config({
            "project_root": tmp_path,
            "output_format": "csv",
            "enable_cache": None,
        })

        assert config.output_format == "csv"
        assert config.enable_cache is False

    def test_invalid_yaml_raises_configuration_error(self, tmp_path):
        (tmp_path / ".analyzer.yaml").write_text("severity_threshold: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigLoader.load_config({"project_root": tmp_path})

    def test_non_mapping_file_raises(self, tmp_path):
        (tmp_path / ".analyzer.yaml").write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigLoader.load_config({"project_root": tmp_path})

    def test_invalid_value_raises_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.load_config({"project_root": tmp_path, "severity_threshold": "urgent"})

        assert exc_info.value.code == "CONFIGURATION_ERROR"

    def test_finalize_rejects_missing_root(self, tmp_path):
        config = AnalyzerConfig(project_root=tmp_path / "missing")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.finalize(config)

        assert exc_info.value.config_key == "project_root"

    def test_finalize_revalidates(self, tmp_path):
        config = AnalyzerConfig(project_root=tmp_path)

        finalized = ConfigLoader.finalize(config)

        assert finalized == config
