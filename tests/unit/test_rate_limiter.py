"""Tests for the fixed-window rate limiter."""
from __future__ import annotations

import asyncio
import time

import pytest

from src.exceptions import TaskValidationError
from src.services.rate_limiter import CREATE, DEFAULT_LIMITS, INSPECT, RateLimit, RateLimiter
from tests.mocks.remote_mocks import FakeClock


class TestRateLimit:
    """Budget validation."""

    def test_defaults(self):
        assert DEFAULT_LIMITS[CREATE] == RateLimit(quota=20, window=1.0)
        assert DEFAULT_LIMITS[INSPECT] == RateLimit(quota=100, window=1.0)

    @pytest.mark.parametrize("quota,window", [(0, 1.0), (5, 0), (5, -1.0)])
    def test_invalid_limits(self, quota, window):
        with pytest.raises(ValueError):
            RateLimit(quota=quota, window=window)


class TestTryAcquire:
    """Non-blocking slot reservation."""

    def test_allows_quota_calls_per_window(self, rate_limiter):
        assert [rate_limiter.try_acquire(CREATE) for _ in range(5)] == [0.0] * 5
        assert rate_limiter.try_acquire(CREATE) > 0

    def test_wait_is_remaining_window(self, rate_limiter, fake_clock):
        for _ in range(5):
            rate_limiter.try_acquire(CREATE)
        fake_clock.advance(0.3)
        assert rate_limiter.try_acquire(CREATE) == pytest.approx(0.7)

    def test_window_rolls_over(self, rate_limiter, fake_clock):
        for _ in range(5):
            rate_limiter.try_acquire(CREATE)
        fake_clock.advance(1.0)
        assert rate_limiter.try_acquire(CREATE) == 0.0
        assert rate_limiter.get_stats()[CREATE]["count"] == 1

    def test_operation_types_are_independent(self, rate_limiter):
        for _ in range(5):
            rate_limiter.try_acquire(CREATE)
        assert rate_limiter.try_acquire(INSPECT) == 0.0

    def test_unknown_operation_type(self, rate_limiter):
        with pytest.raises(TaskValidationError, match="Unknown rate limit operation type"):
            rate_limiter.try_acquire("delete")


class TestAcquire:
    """Waiting acquisition."""

    @pytest.mark.asyncio
    async def test_no_wait_within_quota(self, rate_limiter, fake_clock):
        for _ in range(5):
            assert await rate_limiter.acquire(CREATE) == 0.0
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_call_over_quota_waits_for_window(self, rate_limiter, fake_clock):
        for _ in range(5):
            await rate_limiter.acquire(CREATE)
        fake_clock.advance(0.25)

        waited = await rate_limiter.acquire(CREATE)

        assert waited == pytest.approx(0.75)
        assert fake_clock.sleeps == [pytest.approx(0.75)]
        stats = rate_limiter.get_stats()[CREATE]
        assert stats["total_acquired"] == 6
        assert stats["total_waits"] == 1

    @pytest.mark.asyncio
    async def test_waiters_loop_until_a_slot_frees(self):
        clock = FakeClock()
        limiter = RateLimiter(
            limits={CREATE: RateLimit(quota=1, window=1.0)}, clock=clock, sleep=clock.sleep
        )

        results = await asyncio.gather(*(limiter.acquire(CREATE) for _ in range(3)))

        assert sorted(results)[0] == 0.0
        assert max(results) >= 1.0
        assert limiter.get_stats()[CREATE]["total_acquired"] == 3

    @pytest.mark.asyncio
    async def test_real_clock_delay(self):
        limiter = RateLimiter(limits={INSPECT: RateLimit(quota=2, window=0.2)})
        start = time.monotonic()
        for _ in range(3):
            await limiter.acquire(INSPECT)
        elapsed = time.monotonic() - start

        assert 0.15 <= elapsed < 1.0


class TestFromConfig:
    """Construction from application settings."""

    def test_uses_config_limits(self):
        from src.config import Config

        config = Config(create_rate_limit=3, inspect_rate_limit=7, rate_limit_window=2.0)
        limiter = RateLimiter.from_config(config)

        assert limiter.limits == {
            CREATE: RateLimit(quota=3, window=2.0),
            INSPECT: RateLimit(quota=7, window=2.0),
        }
