"""
Beyond Trips Backend — Access Log Middleware
============================================

Writes a single line per handled request to the `beyondtrips.access` logger.
Failures are logged louder than successes so a WARNING-level deployment still
sees every 4xx and 5xx. Payloads stay out of the log entirely; a review body
holds the rider's name, e-mail and phone number.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

access_log = logging.getLogger("beyondtrips.access")

# Polled by the load balancer every few seconds
QUIET_PATHS = frozenset({"/health"})


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        peer = request.client.host if request.client else "unknown"
        fields = {
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "client_ip": peer,
        }
        access_log.log(
            level_for_status(response.status_code),
            "%(method)s %(path)s -> %(status)d in %(duration_ms).1fms (%(client_ip)s)",
            fields,
            extra=fields,
        )
        return response
