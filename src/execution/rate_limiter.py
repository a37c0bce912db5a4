"""Per-owner sliding window rate limiter for relay admission."""

from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from src.core.logging import get_logger

logger = get_logger(__name__)

_DEFAULT_MAX_REQUESTS = 10
_DEFAULT_WINDOW_SECONDS = 60.0


class RateWindowStore:
    """Keyed request-timestamp windows.

    Owned by whoever builds the limiter (normally the relay app), so each
    app instance gets its own windows instead of a module-level map.
    """

    def __init__(self) -> None:
        self._windows: dict[str, deque[float]] = {}

    def window(self, key: str) -> deque[float]:
        return self._windows.setdefault(key, deque())

    def evict(self, key: str) -> None:
        self._windows.pop(key, None)

    def items(self) -> Iterator[tuple[str, deque[float]]]:
        return iter(list(self._windows.items()))

    def __contains__(self, key: object) -> bool:
        return key in self._windows

    def __len__(self) -> int:
        return len(self._windows)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0
    reset_after: float = 0.0


class SlidingWindowRateLimiter:
    """Admit at most ``max_requests`` per owner within ``window_seconds``.

    Process-local and best effort: concurrent checks for one owner may
    over- or under-admit at the boundary, which is acceptable for a
    single-instance relay.
    """

    def __init__(
        self,
        store: RateWindowStore | None = None,
        max_requests: int = _DEFAULT_MAX_REQUESTS,
        window_seconds: float = _DEFAULT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            msg = f"max_requests must be >= 1, got {max_requests}"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = f"window_seconds must be > 0, got {window_seconds}"
            raise ValueError(msg)
        self._store = store if store is not None else RateWindowStore()
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _purge(self, window: deque[float], now: float) -> None:
        while window and now - window[0] >= self._window_seconds:
            window.popleft()

    def check(self, owner: str) -> RateDecision:
        """Record a request for ``owner`` if it fits in the window."""
        now = self._clock()
        window = self._store.window(owner)
        self._purge(window, now)

        if len(window) >= self._max_requests:
            retry_after = max(1, math.ceil(self._window_seconds - (now - window[0])))
            logger.warning(
                "rate_limit_exceeded",
                owner=owner[:10],
                limit=self._max_requests,
                retry_after=retry_after,
            )
            return RateDecision(
                allowed=False,
                limit=self._max_requests,
                remaining=0,
                retry_after=retry_after,
                reset_after=retry_after,
            )

        window.append(now)
        return RateDecision(
            allowed=True,
            limit=self._max_requests,
            remaining=self._max_requests - len(window),
            reset_after=self._window_seconds - (now - window[0]),
        )

    def sweep(self) -> int:
        """Drop owners whose windows are entirely expired. Returns count evicted."""
        now = self._clock()
        evicted = 0
        for key, window in self._store.items():
            self._purge(window, now)
            if not window:
                self._store.evict(key)
                evicted += 1
        if evicted:
            logger.debug("rate_limit_sweep", evicted=evicted, remaining=len(self._store))
        return evicted

    async def run_sweeper(self, interval_seconds: float | None = None) -> None:
        """Sweep forever; run as a background task and cancel on shutdown."""
        interval = interval_seconds if interval_seconds is not None else self._window_seconds
        while True:
            await asyncio.sleep(interval)
            self.sweep()
