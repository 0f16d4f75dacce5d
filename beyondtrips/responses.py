"""
Error body shared by the exception handlers and the middleware that answers
before routing:

    {"error": <code>, "message": <text>, "details": {...}?, "request_id": <id>}
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from beyondtrips.exceptions import BeyondTripsError
from beyondtrips.middleware.request_id import request_id_var


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {"error": error, "message": message}
    if details:
        body["details"] = details
    body["request_id"] = request_id_var.get("")
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def render_app_error(exc: BeyondTripsError) -> JSONResponse:
    # 5xx context is diagnostic, kept out of the body
    details = exc.context if exc.status_code < 500 else None
    return error_response(exc.status_code, exc.error_code, exc.message, details, exc.headers)
