"""
Simple in-memory rate limiting for the public donation and like endpoints.

Configure via RATE_LIMIT_ENABLED, DONATION_RATE_LIMIT / DONATION_RATE_WINDOW_SECONDS
and LIKE_RATE_LIMIT / LIKE_RATE_WINDOW_SECONDS. Counts are per process, which
is the scope of a single Lambda container.
"""
import time
from threading import Lock

from fastapi import HTTPException, Request

from shelter_giving.core.config import get_settings


class SlidingWindowLimiter:
    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        self._lock = Lock()
        self._hits: dict[str, list[float]] = {}

    def is_limited(self, key: str) -> bool:
        """Return True if the key has used up its allowance; otherwise record the hit."""
        if self.limit <= 0:
            return False
        now = time.monotonic()
        cutoff = now - self.window_seconds
        with self._lock:
            self._prune(cutoff)
            hits = self._hits.setdefault(key, [])
            if len(hits) >= self.limit:
                return True
            hits.append(now)
            return False

    def _prune(self, cutoff: float) -> None:
        # keys with no hits left in the window are dropped
        for key in list(self._hits):
            hits = [t for t in self._hits[key] if t > cutoff]
            if hits:
                self._hits[key] = hits
            else:
                del self._hits[key]

    def tracked_keys(self) -> int:
        return len(self._hits)


_limiters: dict[str, SlidingWindowLimiter] = {}


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _limiter(name: str) -> SlidingWindowLimiter:
    if name not in _limiters:
        settings = get_settings()
        if name == "likes":
            _limiters[name] = SlidingWindowLimiter(settings.LIKE_RATE_LIMIT, settings.LIKE_RATE_WINDOW_SECONDS)
        else:
            _limiters[name] = SlidingWindowLimiter(settings.DONATION_RATE_LIMIT, settings.DONATION_RATE_WINDOW_SECONDS)
    return _limiters[name]


def reset_rate_limits() -> None:
    _limiters.clear()


def rate_limit(name: str):
    """FastAPI dependency limiting requests per client IP."""

    def dependency(request: Request) -> None:
        if not get_settings().RATE_LIMIT_ENABLED:
            return
        key = client_ip(request) or "unknown"
        if _limiter(name).is_limited(key):
            raise HTTPException(
                status_code=429,
                detail="Too many attempts. Please try again later."
            )

    return dependency
