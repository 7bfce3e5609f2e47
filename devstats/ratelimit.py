import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from fastapi import HTTPException, Request


class RateLimiter:
    """Sliding-window limit of ``limit`` requests per ``period`` seconds per client address."""

    def __init__(self, limit: int, period: int, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.period = period
        self._clock = clock
        self._buckets: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        now = self._clock()
        cutoff = now - self.period
        with self._lock:
            # forget clients whose whole window has passed
            for idle in [k for k, d in self._buckets.items() if not d or d[-1] <= cutoff]:
                del self._buckets[idle]
            dq = self._buckets.setdefault(key, deque())
            while dq and dq[0] <= cutoff:
                dq.popleft()
            if len(dq) >= self.limit:
                return False
            dq.append(now)
            return True

    def __len__(self) -> int:
        return len(self._buckets)

    def __call__(self, request: Request) -> None:
        ip = request.client.host if request.client else "unknown"
        if not self.hit(ip):
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded ({self.limit} req / {self.period}s)",
            )
