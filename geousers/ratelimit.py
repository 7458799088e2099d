"""In-memory fixed-window request throttling per client address."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class _Window:
    started_at: float
    hits: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request against a client's window."""

    allowed: bool
    limit: int
    remaining: int
    reset_after: int

    def headers(self) -> Dict[str, str]:
        values = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if not self.allowed:
            values["Retry-After"] = str(self.reset_after)
        return values


class FixedWindowRateLimiter:
    """Allow ``limit`` requests per ``window_seconds`` for each key."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._limit = limit
        self._window = float(window_seconds)
        self._clock = clock or time.monotonic
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self._window:
                if window is None and len(self._windows) > 10_000:
                    self._prune_locked(now)
                window = _Window(started_at=now, hits=0)
                self._windows[key] = window

            window.hits += 1
            reset_after = max(0, math.ceil(window.started_at + self._window - now))
            allowed = window.hits <= self._limit
            remaining = max(0, self._limit - window.hits)

        return RateLimitDecision(
            allowed=allowed,
            limit=self._limit,
            remaining=remaining,
            reset_after=reset_after,
        )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _prune_locked(self, now: float) -> None:
        expired = [
            key for key, window in self._windows.items() if now - window.started_at >= self._window
        ]
        for key in expired:
            self._windows.pop(key, None)


__all__ = ["FixedWindowRateLimiter", "RateLimitDecision"]
