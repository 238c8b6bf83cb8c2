"""
Configuration - Validated analyzer settings.

Settings are merged from three layers, lowest precedence first:
built-in defaults, a `.analyzer.yaml` / `.analyzer.yml` / `.analyzer.json`
file in the project root, and explicit overrides (CLI flags or host code).
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .models import SeverityLevel


logger = structlog.get_logger(__name__)

CONFIG_FILENAMES = (".analyzer.yaml", ".analyzer.yml", ".analyzer.json")

SCANNER_NAMES = (
    "syntax",
    "types",
    "security",
    "performance",
    "accessibility",
    "git",
    "deployment",
)

OutputFormat = Literal["json", "markdown", "html", "terminal", "sarif", "csv", "junit"]


class CommandSet(BaseModel):
    """Shell commands used by the scanners that gather external facts"""

    model_config = ConfigDict(extra="forbid")

    syntax_check: str = "npx tsc --noEmit --listFiles"
    type_check: str = "npx tsc --noEmit --skipLibCheck"
    git_branch: str = "git branch --show-current"
    git_status: str = "git status --porcelain"
    git_log: str = "git log --oneline -1"
    git_upstream: str = "git rev-list --left-right --count HEAD...@{u}"
    build: str = "npm run build"
    lint: str = "npm run lint"
    test: str = "npm test -- --run"
    outdated: str = "npm outdated --json"
    audit: str = "npm audit --json"


class AnalyzerConfig(BaseModel):
    """Complete, validated analyzer configuration"""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    project_root: Path = Field(default_factory=Path.cwd)
    include: List[str] = Field(default_factory=lambda: [
        "**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx", "**/*.astro",
        "**/*.vue", "**/*.svelte", "**/*.html", "**/*.md", "**/*.mdx",
    ])
    ignore: List[str] = Field(default_factory=lambda: [
        "node_modules", ".git", "dist", "build", ".astro", ".cache",
    ])
    frameworks: List[str] = Field(default_factory=lambda: [
        "astro", "react", "vue", "svelte", "solid", "preact",
    ])
    enabled_scanners: List[str] = Field(default_factory=lambda: list(SCANNER_NAMES))
    severity_threshold: SeverityLevel = SeverityLevel.INFO
    output_format: OutputFormat = "terminal"
    git_integration: bool = True
    deployment_checks: bool = True
    auto_fix: bool = False
    enable_cache: bool = True
    cache_max_age: float = Field(default=24 * 60 * 60, gt=0)
    file_concurrency: int = Field(default=3, ge=1)
    command_timeout: float = Field(default=60.0, gt=0)
    command_rate_limit: float = Field(default=5.0, gt=0)  # external commands per second
    command_burst: int = Field(default=4, ge=1)
    commands: CommandSet = Field(default_factory=CommandSet)

    @field_validator("enabled_scanners")
    @classmethod
    def _known_scanners(cls, value: List[str]) -> List[str]:
        unknown = sorted(set(value) - set(SCANNER_NAMES))
        if unknown:
            raise ValueError(f"unknown scanners: {', '.join(unknown)}")
        return value

    @field_validator("project_root")
    @classmethod
    def _absolute_root(cls, value: Path) -> Path:
        return value.expanduser().resolve()

    def scanner_enabled(self, name: str) -> bool:
        return name in self.enabled_scanners


class ConfigLoader:
    """
    Loads and validates analyzer configuration.

    Example:
        >>> config = ConfigLoader.load_config({"project_root": "."})
        >>> config.severity_threshold
        <SeverityLevel.INFO: 'info'>
    """

    @staticmethod
    def find_config_file(project_root: Path) -> Optional[Path]:
        """Return the first config file present in the project root"""
        for filename in CONFIG_FILENAMES:
            candidate = project_root / filename
            if candidate.is_file():
                return candidate
        return None

    @staticmethod
    def read_config_file(path: Path) -> Dict[str, Any]:
        """
        Parse a YAML or JSON config file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        try:
            text = path.read_text(encoding="utf-8")
            if path.suffix == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            logger.error("config_file_unreadable", path=str(path), error=str(e))
            raise ConfigurationError("file", f"Failed to parse {path.name}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError("file", f"{path.name} must contain a mapping")
        return data

    @classmethod
    def load_config(cls, overrides: Optional[Dict[str, Any]] = None) -> AnalyzerConfig:
        """
        Merge defaults < config file < overrides and validate.

        Args:
            overrides: Explicit settings with highest precedence; entries
                whose value is None are ignored

        Returns:
            Validated configuration

        Raises:
            ConfigurationError: On unreadable files or invalid values
        """
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        project_root = Path(overrides.get("project_root") or Path.cwd())

        merged: Dict[str, Any] = {}
        config_file = cls.find_config_file(project_root)
        if config_file is not None:
            merged.update(cls.read_config_file(config_file))
            logger.info("config_file_loaded", path=str(config_file))
        else:
            logger.debug("config_file_not_found", project_root=str(project_root))

        if "commands" in merged and "commands" in overrides:
            overrides = {**overrides, "commands": {**merged["commands"], **overrides["commands"]}}
        merged.update(overrides)
        merged.setdefault("project_root", project_root)

        return cls.validate(merged)

    @staticmethod
    def validate(data: Dict[str, Any]) -> AnalyzerConfig:
        try:
            return AnalyzerConfig.model_validate(data)
        except ValidationError as e:
            logger.error("config_validation_failed", errors=e.error_count())
            raise ConfigurationError("validation", f"Invalid configuration: {e}") from e

    @classmethod
    def finalize(cls, config: AnalyzerConfig) -> AnalyzerConfig:
        """
        Re-validate a configuration before a run.

        Catches invalid values assigned after construction and checks the
        project root exists.
        """
        finalized = cls.validate(config.model_dump())
        if not finalized.project_root.is_dir():
            raise ConfigurationError(
                "project_root",
                f"Project root does not exist: {finalized.project_root}",
            )
        return finalized
