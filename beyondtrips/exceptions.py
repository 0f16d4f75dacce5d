"""
Beyond Trips Backend — Application Errors
=========================================

Services and dependencies raise these; one handler in main.py renders them.
Each class declares the HTTP status and the machine-readable `error` code it
is answered with, and carries a client-safe `message` plus a `context` dict
that becomes the response's `details`.

    BeyondTripsError              500 server_error
    ├── ValidationError           400 validation_error
    ├── AuthenticationError       401 unauthorized
    ├── PermissionDeniedError     403 forbidden
    ├── NotFoundError             404 not_found
    ├── DuplicateSubmissionError  409 duplicate_submission
    ├── InvalidTransitionError    409 invalid_transition
    ├── ScanCooldownError         429 scan_cooldown        (+ Retry-After)
    ├── RateLimitExceededError    429 rate_limit_exceeded  (+ Retry-After)
    └── DatabaseError             500 server_error
"""

from typing import Any, Dict, Optional


class BeyondTripsError(Exception):
    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationError(BeyondTripsError):
    """
    Input broke a business rule: rating outside 1-5, blank rater name,
    missing barcode, magazine not activated, and so on.

    `field` names the offending input when there is one.
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        details = dict(context or {})
        if field:
            details["field"] = field
        super().__init__(message=message, context=details)
        self.field = field


class AuthenticationError(BeyondTripsError):
    """No usable identity headers on the request."""

    status_code = 401
    error_code = "unauthorized"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message)


class PermissionDeniedError(BeyondTripsError):
    status_code = 403
    error_code = "forbidden"

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message=message)


class NotFoundError(BeyondTripsError):
    """
    A row the caller referred to does not exist, or is not theirs to see.

    Services turn SQLAlchemy's `None` into this; ownership failures use it
    too so foreign IDs are indistinguishable from missing ones.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        details: Dict[str, Any] = dict(context or {}, resource=resource)
        if resource_id:
            details["resource_id"] = resource_id
        if message is None:
            message = (
                f"{resource} with ID '{resource_id}' was not found"
                if resource_id
                else f"The requested {resource} was not found"
            )
        super().__init__(message=message, context=details)


class DuplicateSubmissionError(BeyondTripsError):
    """The rider already reviewed this driver; `identifier` is "device" or "email"."""

    status_code = 409
    error_code = "duplicate_submission"

    _MESSAGES = {
        "email": "You have already submitted a review for this driver with this email",
        "device": "You have already submitted a review for this driver from this device",
    }

    def __init__(self, identifier: str, message: Optional[str] = None):
        super().__init__(
            message=message or self._MESSAGES.get(identifier, self._MESSAGES["device"]),
            context={"identifier": identifier},
        )
        self.identifier = identifier


class InvalidTransitionError(BeyondTripsError):
    """Requested pickup or withdrawal status is not reachable from the current one."""

    status_code = 409
    error_code = "invalid_transition"

    def __init__(
        self,
        current: str,
        target: str,
        message: Optional[str] = None,
        resource: str = "pickup",
    ):
        super().__init__(
            message=message or f"Cannot change {resource} status from '{current}' to '{target}'",
            context={"current": current, "target": target},
        )
        self.current = current
        self.target = target


class _RetryAfterError(BeyondTripsError):
    status_code = 429

    def __init__(self, message: str, retry_after: int):
        super().__init__(message=message, context={"retry_after": retry_after})
        self.retry_after = retry_after

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after)}


class ScanCooldownError(_RetryAfterError):
    """Same device scanned this driver's magazine within the cool-down window."""

    error_code = "scan_cooldown"

    def __init__(self, retry_after: int):
        super().__init__(
            "You have already scanned this magazine recently. "
            "Please wait a few minutes before scanning again.",
            retry_after,
        )


class RateLimitExceededError(_RetryAfterError):
    error_code = "rate_limit_exceeded"

    def __init__(self, retry_after: int = 60):
        super().__init__(
            f"Too many requests. Try again in {retry_after} seconds.",
            retry_after,
        )


class DatabaseError(BeyondTripsError):
    """
    The database failed underneath a request.

    `context` holds the driver error for the log; it is never sent to the
    client.
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "An internal error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
