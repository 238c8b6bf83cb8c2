"""Core engine: work batching, command execution, caching, scoring and auto-fix"""

from .autofix import AutoFixResult, FixFailure, apply_fix, apply_fixes
from .batch import (
    BatchOptions,
    BatchProgress,
    BatchResult,
    CancellationToken,
    ErrorAction,
    chunk_list,
    filter_with_concurrency,
    map_with_concurrency,
    process_batch,
    process_parallel_batches,
    process_stream,
)
from .cache import AnalysisCache, CacheEntry
from .command import CommandResult, execute_command
from .health import calculate_project_health, health_band
from .queue import BatchQueue
from .rate_limiter import RateLimitConfig, TokenBucketRateLimiter, create_rate_limited_processor

__all__ = [
    "AnalysisCache",
    "AutoFixResult",
    "BatchOptions",
    "BatchProgress",
    "BatchQueue",
    "BatchResult",
    "CacheEntry",
    "CancellationToken",
    "CommandResult",
    "ErrorAction",
    "FixFailure",
    "RateLimitConfig",
    "TokenBucketRateLimiter",
    "apply_fix",
    "apply_fixes",
    "calculate_project_health",
    "chunk_list",
    "create_rate_limited_processor",
    "execute_command",
    "filter_with_concurrency",
    "health_band",
    "map_with_concurrency",
    "process_batch",
    "process_parallel_batches",
    "process_stream",
]
