"""
Simple rate limiter middleware (in-memory sliding window).

- Keyed by client IP; a single conductor phone posting every few seconds
  stays well under the default window.
- Buckets whose window has emptied are swept once per window, so idle
  clients do not accumulate.
- Not shared between instances; put a gateway limiter in front when scaled out.
- Usage: app.add_middleware(RateLimiterMiddleware, calls=600, per_seconds=60)
"""
import time
import asyncio
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
from fastapi.responses import JSONResponse
from .response import error as resp_error

EXEMPT_PATHS = {"/health", "/ready"}


class RateLimiterMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, calls: int = 60, per_seconds: float = 60):
        super().__init__(app)
        self.calls = calls
        self.per_seconds = per_seconds
        self._buckets: dict[str, list[float]] = {}
        self._last_sweep = time.time()
        self._lock = asyncio.Lock()

    def _sweep(self, window_start: float):
        stale = [key for key, stamps in self._buckets.items() if not stamps or stamps[-1] <= window_start]
        for key in stale:
            del self._buckets[key]
        self._last_sweep = time.time()

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        key = f"ip:{request.client.host if request.client else 'anon'}"
        now = time.time()
        async with self._lock:
            window_start = now - self.per_seconds
            if now - self._last_sweep >= self.per_seconds:
                self._sweep(window_start)
            timestamps = [ts for ts in self._buckets.get(key, []) if ts > window_start]
            if len(timestamps) >= self.calls:
                self._buckets[key] = timestamps
                retry_after = int(timestamps[0] + self.per_seconds - now) + 1
                return JSONResponse(
                    status_code=429,
                    content=resp_error(code="rate_limited", message=f"Rate limit exceeded. Retry after {retry_after} seconds"),
                    headers={"Retry-After": str(retry_after)},
                )
            timestamps.append(now)
            self._buckets[key] = timestamps
        return await call_next(request)
