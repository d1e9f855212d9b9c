"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: the read-increment-compare sequence runs under a lock.
- Expired windows are swept inline, at most once per window, so memory
  tracks the keys seen in roughly the last two windows.
- Windows are fixed, not sliding: a burst straddling a window boundary can
  briefly see up to twice the nominal rate admitted.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    A key's window opens with its first request and lasts ``window_seconds``.
    Once the window has elapsed, the next request resets the counter and opens
    a new window. Requests over the limit are rejected, never queued.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of requests admitted per window.
            window_seconds: Size of the fixed window in seconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._next_sweep_at = 0.0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def _current_window(self, key: str, now: float) -> _WindowState:
        """Get the window for key, opening a new one if the last has elapsed.

        Args:
            key: Rate limit key.
            now: UNIX time in seconds.

        Returns:
            The live window state for this key.
        """
        state = self._state_by_key.get(key)
        if state is None or now >= state.window_start + self._window_seconds:
            state = _WindowState(window_start=now, count=0)
            self._state_by_key[key] = state
        return state

    def _sweep_expired(self, now: float) -> None:
        """Forget keys whose window has elapsed. Runs at most once per window.

        An expired window would be replaced on the key's next request anyway,
        so dropping it early does not change any decision.
        """
        if now < self._next_sweep_at:
            return

        expired = [
            key
            for key, state in self._state_by_key.items()
            if now >= state.window_start + self._window_seconds
        ]
        for key in expired:
            del self._state_by_key[key]
        self._next_sweep_at = now + self._window_seconds

    def admit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it may proceed.

        Rejected requests still count against the current window.

        Args:
            key: Unique identifier for rate limiting (e.g., client address).

        Returns:
            RateLimitDecision with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            self._sweep_expired(now)
            state = self._current_window(key, now)
            state.count += 1
            count = state.count
            reset_at = state.window_start + self._window_seconds

        remaining = max(0, self._limit - count)
        if count <= self._limit:
            return RateLimitDecision(
                allowed=True,
                limit=self._limit,
                remaining=remaining,
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=None,
            )

        return RateLimitDecision(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=max(1, int(math.ceil(reset_at - now))),
        )
