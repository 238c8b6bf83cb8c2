"""
Health scanners module.

This package contains every bundled scanner. Each scanner inherits from
BaseScanner and implements run().

Available scanners:
- SyntaxScanner: TypeScript parser errors
- TypeScanner: TypeScript type diagnostics
- SecurityScanner: Risky patterns, hardcoded secrets, npm audit
- PerformanceScanner: Lazy loading and oversized images
- AccessibilityScanner: Alt text, labels, empty buttons
- GitScanner: Working tree and upstream status
- DeploymentScanner: Build/lint/test readiness checklist
"""

from .base_scanner import (
    BaseScanner,
    FileScanner,
    PatternRule,
    ScanError,
    ScannerTimeoutError,
)
from .registry import ScannerRegistry, create_default_registry

from .accessibility_scanner import AccessibilityScanner
from .deployment_scanner import DeploymentScanner
from .git_scanner import GitScanner
from .performance_scanner import PerformanceScanner
from .security_scanner import SecurityScanner
from .syntax_scanner import SyntaxScanner
from .type_scanner import TypeScanner


__all__ = [
    # Base classes
    "BaseScanner",
    "FileScanner",
    "PatternRule",
    # Exceptions
    "ScanError",
    "ScannerTimeoutError",
    # Registry
    "ScannerRegistry",
    "create_default_registry",
    # Scanners
    "AccessibilityScanner",
    "DeploymentScanner",
    "GitScanner",
    "PerformanceScanner",
    "SecurityScanner",
    "SyntaxScanner",
    "TypeScanner",
]
