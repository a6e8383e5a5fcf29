"""
Recipe Share Backend — Request Logging Middleware
===================================================

What:  One access log line per HTTP request: method, path, status, duration.
Who:   Applied to every request via Starlette middleware.
When:  After RequestIDMiddleware (uses the request ID for correlation).

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, IP, request ID
    ❌ Don't log: request bodies (passwords, emails), Authorization headers,
       uploaded image bytes
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from recipeshare.middleware.request_id import request_id_var

logger = logging.getLogger("recipeshare.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request at a level chosen by its status code.

    5xx → ERROR, 4xx → WARNING, everything else → INFO.
    Health checks and media downloads are not logged.

    Typical durations:
        - GET /api/v1/recipe: 10-50ms (indexed query)
        - POST /api/v1/recipe/create: 100-600ms (Pillow optimization dominates)
        - POST /api/v1/auth/signup: 50-100ms (bcrypt at 10 rounds)
    """

    SKIPPED_PREFIXES = ("/health", "/media/")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(self.SKIPPED_PREFIXES):
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
