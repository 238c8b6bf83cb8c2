"""
Token Bucket Rate Limiter - Throttles how often a processor may be invoked.

The bucket holds at most `burst_limit` tokens and refills continuously at
the configured rate. A caller takes one token per invocation and suspends
(never spins) until one is available.

Design Pattern: Token Bucket
"""

import asyncio
import functools
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog


DEFAULT_REQUESTS_PER_SECOND = 10.0


@dataclass
class RateLimitConfig:
    """Configuration for rate limiter"""
    requests_per_second: Optional[float] = None
    requests_per_minute: Optional[float] = None  # used when requests_per_second is unset
    burst_limit: int = 1  # bucket capacity

    @property
    def refill_interval(self) -> float:
        """Seconds needed to earn one token"""
        if self.requests_per_second:
            return 1.0 / self.requests_per_second
        if self.requests_per_minute:
            return 60.0 / self.requests_per_minute
        return 1.0 / DEFAULT_REQUESTS_PER_SECOND


class TokenBucketRateLimiter:
    """
    Token bucket shared by every caller of one limiter instance.

    Waiters are serialized by a lock, so tokens are handed out in arrival
    order and the refill arithmetic is never interleaved.

    Example:
        >>> limiter = TokenBucketRateLimiter(RateLimitConfig(requests_per_second=5))
        >>> await limiter.acquire()
        >>> limited = limiter.wrap(fetch)
        >>> await limited(item)
    """

    def __init__(self, config: Optional[RateLimitConfig] = None):
        """
        Initialize the rate limiter.

        Args:
            config: Rate limit configuration (uses defaults if None)
        """
        self.config = config or RateLimitConfig()
        if self.config.burst_limit < 1:
            raise ValueError(f"burst_limit must be at least 1, got {self.config.burst_limit}")

        self.tokens = float(self.config.burst_limit)
        self.last_refill = time.monotonic()
        self.acquired_count = 0
        self.total_wait = 0.0
        self._lock = asyncio.Lock()

        self.logger = structlog.get_logger(__name__)

        self.logger.debug(
            "rate_limiter_initialized",
            refill_interval=f"{self.config.refill_interval:.3f}s",
            burst_limit=self.config.burst_limit,
        )

    def _refill(self):
        now = time.monotonic()
        earned = (now - self.last_refill) / self.config.refill_interval
        self.tokens = min(float(self.config.burst_limit), self.tokens + earned)
        self.last_refill = now

    async def acquire(self):
        """Wait until a token is available, then take it"""
        async with self._lock:
            self._refill()

            if self.tokens < 1:
                wait = (1 - self.tokens) * self.config.refill_interval
                self.logger.debug("rate_limit_wait", delay=f"{wait:.3f}s")
                self.total_wait += wait
                await asyncio.sleep(wait)
                self._refill()
                self.tokens = max(self.tokens, 1.0)

            self.tokens -= 1
            self.acquired_count += 1

    def wrap(self, processor: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        """Return a coroutine function that acquires a token before each call"""

        @functools.wraps(processor)
        async def limited(*args: Any, **kwargs: Any) -> Any:
            await self.acquire()
            return await processor(*args, **kwargs)

        return limited

    def reset(self):
        """Reset the rate limiter to initial state"""
        self.tokens = float(self.config.burst_limit)
        self.last_refill = time.monotonic()
        self.acquired_count = 0
        self.total_wait = 0.0

        self.logger.debug("rate_limiter_reset")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get rate limiter statistics.

        Returns:
            Dictionary with current statistics
        """
        return {
            "tokens": round(self.tokens, 3),
            "acquired_count": self.acquired_count,
            "total_wait": f"{self.total_wait:.2f}s",
            "config": {
                "refill_interval": self.config.refill_interval,
                "burst_limit": self.config.burst_limit,
            },
        }


def create_rate_limited_processor(
    processor: Callable[..., Awaitable[Any]],
    requests_per_second: Optional[float] = None,
    requests_per_minute: Optional[float] = None,
    burst_limit: int = 1,
) -> Callable[..., Awaitable[Any]]:
    """Shortcut: build a private limiter and wrap `processor` with it"""
    limiter = TokenBucketRateLimiter(
        RateLimitConfig(
            requests_per_second=requests_per_second,
            requests_per_minute=requests_per_minute,
            burst_limit=burst_limit,
        )
    )
    return limiter.wrap(processor)
