"""Fixed window limiter for answer submissions.

Keys are ``(identity, match_id)`` pairs so one match can never throttle
another. The first call in a window opens it with a count of 1; calls under
quota increment; calls at quota are denied without incrementing. Closed
windows are evicted by ``sweep`` once they are older than the retention
period.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional


DEFAULT_WINDOW_MS = 1000
DEFAULT_QUOTA = 3
DEFAULT_RETENTION_MS = 60000


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after_ms: int = 0
    message: Optional[str] = None


@dataclass
class _Window:
    count: int
    reset_at_ms: float


class FixedWindowRateLimiter:
    def __init__(
        self,
        window_ms: int = DEFAULT_WINDOW_MS,
        quota: int = DEFAULT_QUOTA,
        retention_ms: int = DEFAULT_RETENTION_MS,
        clock: Callable[[], float] = time.monotonic,
        message: str = 'Rate limit exceeded. Please slow down.',
    ):
        self.window_ms = window_ms
        self.quota = quota
        self.retention_ms = retention_ms
        self.message = message
        self._clock = clock
        self._windows: Dict[Hashable, _Window] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def check_and_consume(self, identity, match_id) -> RateDecision:
        key = (identity, match_id)
        now = self._now_ms()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at_ms:
                self._windows[key] = _Window(count=1, reset_at_ms=now + self.window_ms)
                return RateDecision(allowed=True)
            if window.count >= self.quota:
                retry_after = max(0, int(window.reset_at_ms - now))
                return RateDecision(allowed=False, retry_after_ms=retry_after, message=self.message)
            window.count += 1
            return RateDecision(allowed=True)

    def sweep(self, now: Optional[float] = None) -> int:
        """Evict windows closed for longer than the retention period.

        ``now`` is in milliseconds on the limiter's clock. Returns the number
        of evicted keys.
        """
        now = self._now_ms() if now is None else now
        with self._lock:
            stale = [k for k, w in self._windows.items() if now > w.reset_at_ms + self.retention_ms]
            for k in stale:
                del self._windows[k]
        return len(stale)

    def __len__(self):
        return len(self._windows)
