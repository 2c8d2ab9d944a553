"""
MakerBench Backend — Request Logging Middleware
=================================================

What:  One access-log line per HTTP request with status and duration.
How:   Times the downstream call and logs to the "makerbench.access" logger;
       the level follows the status class (5xx ERROR, 4xx WARNING, else INFO).
       The same duration is returned to the client as a Server-Timing header,
       so slow searches can be spotted from the browser's network panel.
When:  After RequestIDMiddleware, so the request ID is available.

Logged: method, path, status, duration, client IP, request ID.
Not logged: request bodies, query strings, headers.

Example:
    2024-01-15T12:00:00 [INFO] makerbench.access [3f9a1c0b22de]: GET /api/bookmarks/search 200 12.4ms from 10.0.0.7
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from makerbench.middleware.rate_limit import client_ip

logger = logging.getLogger("makerbench.access")

SKIPPED_PATHS = {"/health"}
SERVER_TIMING_HEADER = "Server-Timing"


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log plus Server-Timing for everything except health probes."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[SERVER_TIMING_HEADER] = f"app;dur={elapsed_ms:.1f}"

        # The request ID is added to the record by RequestIdLogFilter.
        logger.log(
            level_for_status(response.status_code),
            "%s %s %d %.1fms from %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            client_ip(request),
        )
        return response
