"""
Unit tests for TokenBucketRateLimiter module.

Run with: pytest tests/unit/test_rate_limiter.py -v
"""

import asyncio
import time

import pytest

from vitals.core.rate_limiter import (
    RateLimitConfig,
    TokenBucketRateLimiter,
    create_rate_limited_processor,
)


class TestRateLimitConfig:
    """Test suite for RateLimitConfig"""

    def test_default_rate_is_ten_per_second(self):
        assert RateLimitConfig().refill_interval == pytest.approx(0.1)

    def test_requests_per_second_wins(self):
        config = RateLimitConfig(requests_per_second=4, requests_per_minute=6)
        assert config.refill_interval == pytest.approx(0.25)

    def test_requests_per_minute(self):
        assert RateLimitConfig(requests_per_minute=120).refill_interval == pytest.approx(0.5)


class TestTokenBucketRateLimiter:
    """Test suite for TokenBucketRateLimiter class"""

    def test_initialization_with_defaults(self):
        """Test limiter starts with a full bucket"""
        limiter = TokenBucketRateLimiter()

        assert limiter.tokens == 1.0
        assert limiter.acquired_count == 0
        assert limiter.total_wait == 0.0

    def test_rejects_empty_bucket(self):
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(RateLimitConfig(burst_limit=0))

    @pytest.mark.asyncio
    async def test_burst_is_immediate(self):
        """Test burst_limit tokens are handed out without waiting"""
        limiter = TokenBucketRateLimiter(RateLimitConfig(requests_per_second=1, burst_limit=3))

        start = time.monotonic()
        for _ in range(3):
            await limiter.acquire()

        assert time.monotonic() - start < 0.5
        assert limiter.acquired_count == 3
        assert limiter.total_wait == 0.0

    @pytest.mark.asyncio
    async def test_waits_when_bucket_is_empty(self):
        """Test the call after the burst suspends for roughly one interval"""
        limiter = TokenBucketRateLimiter(RateLimitConfig(requests_per_second=20, burst_limit=1))

        await limiter.acquire()
        start = time.monotonic()
        await limiter.acquire()

        assert time.monotonic() - start >= 0.03
        assert limiter.total_wait > 0

    @pytest.mark.asyncio
    async def test_concurrent_waiters_are_all_served(self):
        limiter = TokenBucketRateLimiter(RateLimitConfig(requests_per_second=100, burst_limit=2))

        await asyncio.gather(*(limiter.acquire() for _ in range(5)))

        assert limiter.acquired_count == 5

    @pytest.mark.asyncio
    async def test_wrap_passes_arguments_through(self):
        limiter = TokenBucketRateLimiter(RateLimitConfig(requests_per_second=100))

        async def add(a, b=0):
            return a + b

        limited = limiter.wrap(add)

        assert await limited(2, b=3) == 5
        assert limited.__name__ == "add"
        assert limiter.acquired_count == 1

    @pytest.mark.asyncio
    async def test_reset(self):
        """Test reset() restores initial state"""
        limiter = TokenBucketRateLimiter(RateLimitConfig(requests_per_second=100, burst_limit=2))
        await limiter.acquire()
        await limiter.acquire()

        limiter.reset()

        assert limiter.tokens == 2.0
        assert limiter.acquired_count == 0
        assert limiter.total_wait == 0.0

    def test_get_stats(self):
        """Test get_stats() returns correct data"""
        limiter = TokenBucketRateLimiter(RateLimitConfig(requests_per_minute=60, burst_limit=4))

        stats = limiter.get_stats()

        assert stats["tokens"] == 4.0
        assert stats["acquired_count"] == 0
        assert stats["total_wait"] == "0.00s"
        assert stats["config"]["refill_interval"] == pytest.approx(1.0)
        assert stats["config"]["burst_limit"] == 4

    @pytest.mark.asyncio
    async def test_create_rate_limited_processor(self):
        calls = []

        async def record(item):
            calls.append(item)
            return item

        limited = create_rate_limited_processor(record, requests_per_second=100, burst_limit=3)

        assert await asyncio.gather(limited(1), limited(2), limited(3)) == [1, 2, 3]
        assert sorted(calls) == [1, 2, 3]
