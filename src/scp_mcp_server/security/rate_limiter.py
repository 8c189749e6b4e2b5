"""
Rate Limiter

Fixed-window request limiting for tool calls, keyed by client session.
State is in memory only and resets with the process.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Dict, NamedTuple, Optional

from ..config import settings


class UsageStatus(NamedTuple):
    """Outcome of consuming one request from a key's window."""
    allowed: bool
    remaining: int
    limit: int
    reset_time: datetime


class _Window(NamedTuple):
    start_ms: int
    count: int


def _now_ms() -> int:
    return int(time.time() * 1000)


class FixedWindowRateLimiter:
    """
    Allows ``max_requests`` per key in each window of ``window_ms``.

    A key's window starts with its first request and restarts with the
    first request after it expires.
    """

    def __init__(
        self,
        window_ms: Optional[int] = None,
        max_requests: Optional[int] = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        """
        Parameters
        ----------
        window_ms : Optional[int]
            Window length. Defaults to settings.rate_limit_window_ms.

        max_requests : Optional[int]
            Requests allowed per window. Defaults to
            settings.rate_limit_max_requests.

        clock : Callable[[], int]
            Millisecond clock, overridable in tests.
        """
        self._window_ms = settings.rate_limit_window_ms if window_ms is None else window_ms
        self._max_requests = (
            settings.rate_limit_max_requests if max_requests is None else max_requests
        )
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._last_sweep_ms: Optional[int] = None

    def __len__(self) -> int:
        return len(self._windows)

    def consume(self, key: str) -> UsageStatus:
        now = self._clock()
        self._sweep(now)
        window = self._windows.get(key)

        if window is None or now - window.start_ms >= self._window_ms:
            window = _Window(start_ms=now, count=1)
            self._windows[key] = window
            return self._status(window, allowed=True)

        if window.count >= self._max_requests:
            return self._status(window, allowed=False)

        window = window._replace(count=window.count + 1)
        self._windows[key] = window
        return self._status(window, allowed=True)

    def _sweep(self, now: int) -> None:
        """Drop expired windows, at most once per window length."""
        last = self._last_sweep_ms
        if last is not None and now - last < self._window_ms:
            return
        self._last_sweep_ms = now
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.start_ms >= self._window_ms
        ]
        for key in expired:
            del self._windows[key]

    def _status(self, window: _Window, allowed: bool) -> UsageStatus:
        reset_ms = window.start_ms + self._window_ms
        return UsageStatus(
            allowed=allowed,
            remaining=max(0, self._max_requests - window.count) if allowed else 0,
            limit=self._max_requests,
            reset_time=datetime.fromtimestamp(reset_ms / 1000, tz=timezone.utc),
        )
