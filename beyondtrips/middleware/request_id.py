"""
Beyond Trips Backend — Correlation IDs
======================================

Every request gets an ID: the caller's `X-Request-ID` when the gateway or a
mobile client sends one, else eight hex characters of a fresh UUID. It is
echoed back in the response header, exposed on `request.state`, included in
error bodies, and stamped onto log records by `RequestIDLogFilter`.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

HEADER = "X-Request-ID"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDLogFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = correlation_id
        # Not reset afterwards: the catch-all 500 handler runs outside this
        # middleware and still needs the ID. Each request is its own task.
        request_id_var.set(correlation_id)
        response = await call_next(request)
        response.headers[HEADER] = correlation_id
        return response
