"""Process-local maps backing the AI content generator.

Neither map is locked: requests for one instance are served on a single
event loop and no method awaits while mutating. Both start empty on boot.
"""

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cachetools import TTLCache

Clock = Callable[[], float]


class ContentCache:
    """Size-capped map with age-based expiry.

    Inserting drops expired entries first, then evicts the least recently
    used ones until at most ``max_size`` remain.
    """

    def __init__(self, ttl_seconds: float, max_size: int, clock: Clock = time.time):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._entries = TTLCache(maxsize=max_size, ttl=ttl_seconds, timer=clock)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[Any]:
        self._entries.expire()
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def cleanup(self) -> int:
        return len(self._entries.expire())

    def clear(self) -> None:
        self._entries.clear()


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float
    retry_after: Optional[int] = None


@dataclass
class _Window:
    count: int
    window_start: float


class RateLimiter:
    """Fixed-window request counter keyed by caller address."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Clock = time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def cleanup(self) -> int:
        now = self._clock()
        stale = [k for k, w in self._windows.items() if now - w.window_start > self.window_seconds]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def check(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and say whether it may proceed."""
        self.cleanup()
        now = self._clock()
        window = self._windows.get(key)
        if window is None:
            window = self._windows[key] = _Window(count=1, window_start=now)
            return RateLimitResult(True, self.max_requests - 1, now + self.window_seconds)
        reset_time = window.window_start + self.window_seconds
        if window.count >= self.max_requests:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=reset_time,
                retry_after=max(1, math.ceil(reset_time - now)),
            )
        window.count += 1
        return RateLimitResult(True, self.max_requests - window.count, reset_time)

    def clear(self) -> None:
        self._windows.clear()
