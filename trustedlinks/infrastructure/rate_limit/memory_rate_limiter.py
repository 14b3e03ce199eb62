import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Tuple

from ...application.ports.rate_limiter import RateLimiter


class InMemoryRateLimiter(RateLimiter):
    """Sliding-window limiter for a single process.

    Keys whose window has fully lapsed are dropped, so idle phone numbers do
    not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_every: int = 1000) -> None:
        self.clock = clock
        self.sweep_every = sweep_every
        # key -> (window_seconds, hit times)
        self._hits: Dict[str, Tuple[int, Deque[float]]] = {}
        self._calls = 0
        self._lock = threading.Lock()

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        now = self.clock()
        with self._lock:
            self._calls += 1
            if self._calls % self.sweep_every == 0:
                self._sweep(now)
            _, hits = self._hits.get(key, (window_seconds, deque()))
            # prune
            while hits and hits[0] <= now - window_seconds:
                hits.popleft()
            if len(hits) >= max_requests:
                return False
            hits.append(now)
            self._hits[key] = (window_seconds, hits)
            return True

    def _sweep(self, now: float) -> None:
        stale = [k for k, (window, hits) in self._hits.items() if not hits or hits[-1] <= now - window]
        for k in stale:
            del self._hits[k]

    def __len__(self) -> int:
        return len(self._hits)
