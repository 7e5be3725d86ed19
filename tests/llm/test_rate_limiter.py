"""
Unit tests for SlidingWindowRateLimiter.

A fake clock is advanced by the fake sleep so that window arithmetic can be
checked exactly, without waiting a minute per test.
"""

import asyncio
import time

import pytest

from testmedic.llm.rate_limiter import WAIT_BUFFER_SECONDS, SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class TestSlidingWindowRateLimiter:
    def setup_method(self):
        self.clock = FakeClock()
        self.limiter = SlidingWindowRateLimiter(
            max_calls=5, window_seconds=60.0, clock=self.clock, sleep=self.clock.sleep
        )

    @pytest.mark.asyncio
    async def test_calls_within_limit_are_immediate(self):
        for _ in range(5):
            assert await self.limiter.wait() == 0.0
        assert self.clock.sleeps == []
        assert self.limiter.current_count() == 5

    @pytest.mark.asyncio
    async def test_sixth_call_waits_for_oldest_to_leave_window(self):
        for _ in range(5):
            await self.limiter.wait()

        waited = await self.limiter.wait()

        assert waited == pytest.approx(60.0 + WAIT_BUFFER_SECONDS)
        assert self.clock.sleeps == [pytest.approx(60.0 + WAIT_BUFFER_SECONDS)]
        assert self.limiter.current_count() == 1

    @pytest.mark.asyncio
    async def test_wait_accounts_for_elapsed_time(self):
        for _ in range(5):
            await self.limiter.wait()
            self.clock.now += 10.0

        # oldest call at t=0, now t=50: 10s left in the window
        waited = await self.limiter.wait()
        assert waited == pytest.approx(10.0 + WAIT_BUFFER_SECONDS)

    @pytest.mark.asyncio
    async def test_window_expiry_frees_slots(self):
        for _ in range(5):
            await self.limiter.wait()
        self.clock.now = 61.0
        assert self.limiter.current_count() == 0
        assert await self.limiter.wait() == 0.0

    @pytest.mark.asyncio
    async def test_concurrent_callers_never_exceed_limit(self):
        limiter = SlidingWindowRateLimiter(max_calls=2, window_seconds=10.0, clock=self.clock, sleep=self.clock.sleep)
        admitted: list[float] = []

        async def call():
            await limiter.wait()
            admitted.append(self.clock.now)

        await asyncio.gather(*(call() for _ in range(6)))

        assert len(admitted) == 6
        for t in admitted:
            in_window = [a for a in admitted if t <= a < t + 10.0]
            assert len(in_window) <= 2

    def test_reset(self):
        asyncio.run(self.limiter.wait())
        self.limiter.reset()
        assert self.limiter.current_count() == 0

    @pytest.mark.parametrize("kwargs", [{"max_calls": 0}, {"window_seconds": 0}, {"window_seconds": -1}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(**kwargs)


class TestRealClock:
    @pytest.mark.asyncio
    async def test_over_limit_caller_is_suspended(self):
        limiter = SlidingWindowRateLimiter(max_calls=2, window_seconds=0.2)
        t0 = time.monotonic()
        for _ in range(3):
            await limiter.wait()
        elapsed = time.monotonic() - t0
        assert elapsed >= 0.2
