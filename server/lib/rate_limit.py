"""Per-client request rate limiting for the /api surface.

Sliding window over request timestamps, keyed by client IP. State is held
in memory for the lifetime of the process.
"""

import os
import time
from collections import deque
from typing import Callable, Deque, Dict

from fastapi import Request
from fastapi.responses import JSONResponse

from server.lib.metrics import record_rate_limited
from server.lib.structured_logger import StructuredLogger

logger = StructuredLogger(__name__)

RATE_LIMIT_MESSAGE = 'Too many requests from this IP, please try again later.'


class RateLimiter:
    """Sliding-window limiter.

    Args:
        max_requests: Requests allowed per window (RATE_LIMIT_MAX_REQUESTS, default 100)
        window_seconds: Window length (RATE_LIMIT_WINDOW_SECONDS, default 900)
        clock: Time source, injectable for tests
    """

    def __init__(
        self,
        max_requests: int | None = None,
        window_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests if max_requests is not None else int(os.getenv('RATE_LIMIT_MAX_REQUESTS', '100'))
        self.window_seconds = (
            window_seconds if window_seconds is not None else float(os.getenv('RATE_LIMIT_WINDOW_SECONDS', '900'))
        )
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def _expire(self, key: str, now: float) -> Deque[float] | None:
        hits = self._hits.get(key)
        if hits is None:
            return None
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if not hits:
            del self._hits[key]
            return None
        return hits

    def prune(self) -> None:
        """Drop every key with no hits left in the window."""
        now = self.clock()
        for key in list(self._hits):
            self._expire(key, now)
        self._last_sweep = now

    def hit(self, key: str) -> float:
        """Register a request for key.

        Returns:
            0 if the request is allowed, otherwise seconds until a slot frees up
        """
        now = self.clock()
        if now - self._last_sweep >= self.window_seconds:
            self.prune()
        hits = self._expire(key, now)

        if hits is not None and len(hits) >= self.max_requests:
            return max(self.window_seconds - (now - hits[0]), 0.0) or 1.0

        self._hits.setdefault(key, deque()).append(now)
        return 0.0

    def reset(self) -> None:
        self._hits.clear()


async def rate_limit_middleware(request: Request, call_next):
    """Reject /api/ requests above the configured rate with 429.

    Health checks are never limited.
    """
    limiter: RateLimiter | None = getattr(request.app.state, 'rate_limiter', None)
    path = request.url.path

    if limiter is None or not path.startswith('/api/') or path == '/api/health':
        return await call_next(request)

    client_ip = request.client.host if request.client else 'unknown'
    retry_after = limiter.hit(client_ip)
    if retry_after:
        record_rate_limited()
        logger.warning('Rate limit exceeded', client_ip=client_ip, endpoint=path)
        return JSONResponse(
            status_code=429,
            headers={'Retry-After': str(int(retry_after) + 1)},
            content={
                'detail': {
                    'error_code': 'RATE_LIMITED',
                    'message': RATE_LIMIT_MESSAGE,
                    'retry_after': int(retry_after) + 1,
                }
            },
        )

    return await call_next(request)
