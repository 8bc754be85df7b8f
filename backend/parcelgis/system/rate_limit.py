import threading
import time
from collections import defaultdict, deque

from fastapi import Request

from parcelgis.core.config import settings
from parcelgis.core.errors import RateLimited


class SlidingWindowLimiter:
    """Per-key hit counter over a sliding time window (per process)."""

    def __init__(self, *, limit: int, window_seconds: int, message: str):
        self.limit = limit
        self.window_seconds = window_seconds
        self.message = message
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def _prune(self, q: deque, now: float) -> None:
        cutoff = now - self.window_seconds
        while q and q[0] <= cutoff:
            q.popleft()

    def hit(self, key: str, now: float | None = None) -> bool:
        now = time.monotonic() if now is None else now
        with self._lock:
            q = self._hits[key]
            self._prune(q, now)
            if len(q) >= self.limit:
                return False
            q.append(now)
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


login_limiter = SlidingWindowLimiter(
    limit=settings.LOGIN_RATE_LIMIT,
    window_seconds=settings.LOGIN_RATE_WINDOW_SECONDS,
    message="Too many login attempts. Please try again later.",
)
register_limiter = SlidingWindowLimiter(
    limit=settings.REGISTER_RATE_LIMIT,
    window_seconds=settings.REGISTER_RATE_WINDOW_SECONDS,
    message="Too many registration attempts. Please try again later.",
)
api_limiter = SlidingWindowLimiter(
    limit=settings.API_RATE_LIMIT,
    window_seconds=settings.API_RATE_WINDOW_SECONDS,
    message="Too many requests. Please try again later.",
)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def rate_limit(limiter: SlidingWindowLimiter):
    def _dep(request: Request) -> None:
        if not limiter.hit(client_ip(request)):
            raise RateLimited(limiter.message)

    return _dep
