"""
Scanner registry - Ordered, closed set of scanner instances.

The registry is built once at startup (create_default_registry) and handed
to the orchestrator; there is no runtime plugin loading.
"""

from typing import Dict, Iterator, List, Optional

from ..config import AnalyzerConfig
from .accessibility_scanner import AccessibilityScanner
from .base_scanner import BaseScanner
from .deployment_scanner import DeploymentScanner
from .git_scanner import GitScanner
from .performance_scanner import PerformanceScanner
from .security_scanner import SecurityScanner
from .syntax_scanner import SyntaxScanner
from .type_scanner import TypeScanner


class ScannerRegistry:
    """
    Central registry for the scanners of one orchestrator.

    Scanners keep their registration order, which is also the order their
    issues appear in a result.
    """

    def __init__(self):
        """Initialize empty registry."""
        self._scanners: Dict[str, BaseScanner] = {}

    def register(self, scanner: BaseScanner) -> BaseScanner:
        """
        Register a scanner instance.

        Raises:
            ValueError: If a scanner with the same name is already registered
        """
        if scanner.name in self._scanners:
            existing = self._scanners[scanner.name]
            raise ValueError(
                f"Scanner '{scanner.name}' already registered as {type(existing).__name__}. "
                f"Cannot register {type(scanner).__name__}"
            )
        self._scanners[scanner.name] = scanner
        return scanner

    def unregister(self, name: str) -> Optional[BaseScanner]:
        return self._scanners.pop(name, None)

    def get(self, name: str) -> Optional[BaseScanner]:
        """Scanner by name, or None if not registered"""
        return self._scanners.get(name)

    def names(self) -> List[str]:
        return list(self._scanners)

    def applicable(self, config: AnalyzerConfig) -> List[BaseScanner]:
        """Scanners whose can_run() holds for this configuration"""
        return [scanner for scanner in self._scanners.values() if scanner.can_run(config)]

    def __iter__(self) -> Iterator[BaseScanner]:
        return iter(list(self._scanners.values()))

    def __len__(self) -> int:
        return len(self._scanners)

    def __contains__(self, name: object) -> bool:
        return name in self._scanners


def create_default_registry(**scanner_kwargs) -> ScannerRegistry:
    """
    Registry with every bundled scanner.

    Args:
        **scanner_kwargs: Passed to each scanner (rate_limiter, command_runner)
    """
    registry = ScannerRegistry()
    for scanner_class in (
        SyntaxScanner,
        TypeScanner,
        SecurityScanner,
        PerformanceScanner,
        AccessibilityScanner,
        GitScanner,
        DeploymentScanner,
    ):
        registry.register(scanner_class(**scanner_kwargs))
    return registry
