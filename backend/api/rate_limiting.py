"""
General Rate Limiting Middleware

Fixed-window request counter per client address, applied to every endpoint
except health checks and docs.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple
from threading import Lock
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int  # seconds until the window resets (0 when allowed)


class FixedWindowRateLimiter:
    """
    Fixed-window rate limiter.

    Each client gets `limit` requests per `window_seconds`, counted from its
    first request in the window. Once the window has elapsed the counter
    starts over.
    """

    # Stale windows are swept once the table holds this many clients
    PRUNE_THRESHOLD = 10_000

    def __init__(self, limit: int = 100, window_seconds: int = 60, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self.windows: Dict[str, Tuple[int, float]] = {}  # client -> (count, window_start)
        self._prune_at = self.PRUNE_THRESHOLD
        self.lock = Lock()

        logger.info(f"Rate limiter initialized: {limit} requests per {window_seconds}s per client")

    def check(self, client: str) -> RateLimitDecision:
        """Count a request for the client and decide whether it may proceed."""
        with self.lock:
            now = self._clock()

            if len(self.windows) >= self._prune_at:
                self._prune(now)

            count, window_start = self.windows.get(client, (0, now))
            if now - window_start >= self.window_seconds:
                count, window_start = 0, now

            if count >= self.limit:
                retry_after = max(1, math.ceil(window_start + self.window_seconds - now))
                return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

            count += 1
            self.windows[client] = (count, window_start)
            return RateLimitDecision(allowed=True, remaining=self.limit - count, retry_after=0)

    def _prune(self, now: float):
        self.windows = {
            client: window for client, window in self.windows.items()
            if now - window[1] < self.window_seconds
        }
        # Next sweep only after the live table has doubled
        self._prune_at = max(self.PRUNE_THRESHOLD, 2 * len(self.windows))

    def reset(self):
        with self.lock:
            self.windows.clear()
            self._prune_at = self.PRUNE_THRESHOLD


class FixedWindowRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to apply rate limiting to all API endpoints.
    """

    # Exempt paths (health checks, docs)
    EXEMPT_PATHS = ["/health", "/docs", "/redoc", "/openapi.json"]

    def __init__(self, app, limiter: FixedWindowRateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        # Skip rate limiting for exempt paths
        if any(request.url.path.startswith(path) for path in self.EXEMPT_PATHS):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        decision = self.limiter.check(client_ip)

        if not decision.allowed:
            logger.warning(f"Rate limit blocked: {client_ip} - {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={"error": "Rate limit exceeded"},
                headers={
                    "Retry-After": str(decision.retry_after),
                    "X-RateLimit-Limit": str(self.limiter.limit),
                    "X-RateLimit-Remaining": "0"
                }
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
