import time
import logging
import threading
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window, in-memory limiter keyed by caller (and action)."""

    def __init__(self, max_requests: int, window_seconds: int, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}
        # Sync endpoints run in a threadpool
        self._lock = threading.Lock()

    def hit(self, key: str) -> Tuple[bool, Optional[int]]:
        """
        Registers an attempt for `key`.

        Returns:
            (allowed, seconds_until_reset) - seconds is None when allowed
        """
        with self._lock:
            now = self._clock()
            self._evict_expired(now)

            recent = self._requests.get(key, [])
            if len(recent) >= self.max_requests:
                reset_in = int(min(recent) + self.window_seconds - now)
                logger.warning(f"Rate limit hit for {key} ({len(recent)} in {self.window_seconds}s)")
                return False, max(1, reset_in)

            recent.append(now)
            self._requests[key] = recent
            return True, None

    def _evict_expired(self, now: float):
        cutoff = now - self.window_seconds
        for key in list(self._requests):
            recent = [t for t in self._requests[key] if t > cutoff]
            if recent:
                self._requests[key] = recent
            else:
                del self._requests[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._requests)

    def reset(self, key: str = None):
        with self._lock:
            if key is None:
                self._requests.clear()
            else:
                self._requests.pop(key, None)
