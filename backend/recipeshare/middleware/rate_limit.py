"""
Recipe Share Backend — Rate Limiting Middleware
=================================================

What:  Per-IP token bucket rate limiter.
Why:   Protects sign-up/sign-in from credential stuffing and the write
       endpoints from upload floods, without requiring authentication.
Who:   Applied to every request via Starlette middleware.
When:  Right after the request ID is assigned, before any other processing.

Algorithm: Token Bucket
    1. Each IP owns a bucket holding at most `capacity` tokens (default 10)
    2. Tokens flow back continuously at `refill_rate` per `interval` seconds
       (default 5 per 10s)
    3. A request spends one token; an empty bucket means 429 with
       Retry-After set to the time until the next whole token

    Bursts up to the capacity are allowed, the long-run rate is bounded by the
    refill rate.

Production Upgrade Path:
    Buckets live in process memory, so each uvicorn worker enforces its own
    limit. Multi-instance deployments need a shared store (e.g. Redis).
"""

import logging
import math
import time
from typing import Callable, Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from recipeshare.config import settings
from recipeshare.exceptions import RateLimitExceededError, error_body

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory token bucket rate limiter.

    Args:
        capacity:    Bucket size (defaults to settings.rate_limit_capacity)
        refill_rate: Tokens added per interval (settings.rate_limit_refill_rate)
        interval:    Interval length in seconds (settings.rate_limit_interval)
        clock:       Monotonic time source; tests pass a fake clock

    Excluded paths:
        /health, /docs, /openapi.json, /redoc and stored media
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}
    EXCLUDED_PREFIXES = ("/media/",)

    def __init__(
        self,
        app,
        capacity: Optional[int] = None,
        refill_rate: Optional[int] = None,
        interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.capacity = capacity or settings.rate_limit_capacity
        refill = refill_rate or settings.rate_limit_refill_rate
        period = interval or settings.rate_limit_interval
        # Tokens per second
        self.rate = refill / period
        self._clock = clock
        # IP → (tokens, last refill timestamp)
        self._buckets: Dict[str, Tuple[float, float]] = {}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS or path.startswith(self.EXCLUDED_PREFIXES):
            return await call_next(request)

        # Caveat: behind a proxy this is the proxy's IP; run uvicorn with
        # --proxy-headers so request.client reflects X-Forwarded-For.
        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )

        allowed, retry_after = self._take(client_ip)
        if not allowed:
            logger.warning(
                "Rate limit exceeded for IP %s on %s %s",
                client_ip,
                request.method,
                path,
            )
            exc = RateLimitExceededError(retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content=error_body(exc.error_code, exc.message, exc.context),
                headers={"Retry-After": str(exc.retry_after)},
            )

        if len(self._buckets) > 10_000:
            self._cleanup_full_buckets()

        return await call_next(request)

    def _take(self, client_ip: str) -> Tuple[bool, int]:
        """Spends one token for `client_ip`. Returns (allowed, retry_after_seconds)."""
        now = self._clock()
        tokens, last = self._buckets.get(client_ip, (float(self.capacity), now))
        tokens = min(float(self.capacity), tokens + (now - last) * self.rate)

        if tokens >= 1:
            self._buckets[client_ip] = (tokens - 1, now)
            return True, 0

        self._buckets[client_ip] = (tokens, now)
        retry_after = max(1, math.ceil((1 - tokens) / self.rate))
        return False, retry_after

    def _cleanup_full_buckets(self) -> None:
        """Drops buckets that have refilled completely; they carry no state."""
        now = self._clock()
        full = [
            ip for ip, (tokens, last) in self._buckets.items()
            if tokens + (now - last) * self.rate >= self.capacity
        ]
        for ip in full:
            del self._buckets[ip]

        if full:
            logger.debug("Cleaned up %d idle rate limit buckets", len(full))
