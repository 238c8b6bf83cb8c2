"""
Logging setup - structlog console output for the CLI and embedding hosts.
"""

import logging
import sys

import structlog


def configure_logging(verbose: bool = False) -> None:
    """
    Install the structlog pipeline used by every VITALS module.

    Log lines go to stderr so that reports written to stdout stay clean.

    Args:
        verbose: Emit DEBUG events as well (default: INFO and above)
    """
    level = logging.DEBUG if verbose else logging.INFO

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
