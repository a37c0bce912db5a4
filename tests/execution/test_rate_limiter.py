"""Tests for SlidingWindowRateLimiter — window, rejection, expiry, sweep."""

from __future__ import annotations

import asyncio

import pytest

from src.execution.rate_limiter import RateWindowStore, SlidingWindowRateLimiter
from tests.fakes import FakeClock


def _limiter(clock: FakeClock, max_requests: int = 3, window: float = 60.0) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(RateWindowStore(), max_requests=max_requests, window_seconds=window, clock=clock)


class TestCheck:
    def test_admits_up_to_max(self, fake_clock: FakeClock) -> None:
        rl = _limiter(fake_clock)
        decisions = [rl.check("owner") for _ in range(3)]
        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [2, 1, 0]

    def test_rejects_n_plus_one_with_positive_retry_after(self, fake_clock: FakeClock) -> None:
        rl = _limiter(fake_clock)
        for _ in range(3):
            rl.check("owner")
        fake_clock.advance(10)
        decision = rl.check("owner")
        assert decision.allowed is False
        assert decision.retry_after == 50
        assert decision.remaining == 0

    def test_retry_after_is_at_least_one(self, fake_clock: FakeClock) -> None:
        rl = _limiter(fake_clock, max_requests=1, window=1.0)
        rl.check("owner")
        fake_clock.advance(0.999)
        assert rl.check("owner").retry_after == 1

    def test_new_requests_after_window_elapses(self, fake_clock: FakeClock) -> None:
        rl = _limiter(fake_clock)
        for _ in range(3):
            assert rl.check("owner").allowed
        assert not rl.check("owner").allowed
        fake_clock.advance(60)
        assert all(rl.check("owner").allowed for _ in range(3))
        assert not rl.check("owner").allowed

    def test_rejected_requests_are_not_recorded(self, fake_clock: FakeClock) -> None:
        rl = _limiter(fake_clock, max_requests=1, window=10)
        rl.check("owner")
        for _ in range(5):
            rl.check("owner")
        fake_clock.advance(10)
        assert rl.check("owner").allowed

    def test_owners_are_independent(self, fake_clock: FakeClock) -> None:
        rl = _limiter(fake_clock, max_requests=1)
        assert rl.check("alice").allowed
        assert not rl.check("alice").allowed
        assert rl.check("bob").allowed

    def test_invalid_configuration(self) -> None:
        with pytest.raises(ValueError, match="max_requests"):
            SlidingWindowRateLimiter(max_requests=0)
        with pytest.raises(ValueError, match="window_seconds"):
            SlidingWindowRateLimiter(window_seconds=0)


class TestSweep:
    def test_sweep_evicts_only_expired_owners(self, fake_clock: FakeClock) -> None:
        store = RateWindowStore()
        rl = SlidingWindowRateLimiter(store, max_requests=5, window_seconds=30, clock=fake_clock)
        rl.check("stale")
        fake_clock.advance(20)
        rl.check("fresh")
        fake_clock.advance(15)
        assert rl.sweep() == 1
        assert "stale" not in store
        assert "fresh" in store

    def test_sweep_keeps_partially_expired_window(self, fake_clock: FakeClock) -> None:
        store = RateWindowStore()
        rl = SlidingWindowRateLimiter(store, max_requests=5, window_seconds=30, clock=fake_clock)
        rl.check("owner")
        fake_clock.advance(20)
        rl.check("owner")
        fake_clock.advance(15)
        assert rl.sweep() == 0
        assert len(store.window("owner")) == 1

    @pytest.mark.asyncio
    async def test_run_sweeper_is_cancellable(self, fake_clock: FakeClock) -> None:
        rl = _limiter(fake_clock, window=0.01)
        rl.check("owner")
        fake_clock.advance(1)
        task = asyncio.create_task(rl.run_sweeper(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert rl.sweep() == 0
