"""
Beyond Trips Backend — Shared Pydantic Schemas
==============================================

What:  Base model and response shapes used by every API module.
How:   `ApiModel` emits camelCase keys (the contract the rider and driver
       apps already use) and accepts snake_case on input as well.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for all request/response schemas: camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(ApiModel):
    """Page metadata for list endpoints (1-based pages)."""

    page: int
    total_pages: int
    total_docs: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total_docs: int) -> "Pagination":
        total_pages = (total_docs + limit - 1) // limit if total_docs else 0
        return cls(
            page=page,
            total_pages=total_pages,
            total_docs=total_docs,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "duplicate_submission",
            "message": "You have already submitted a review for this driver from this device",
            "details": {"identifier": "device"},
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Service health for load balancers and monitoring."""

    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    pending_tasks: Optional[int] = Field(default=None, description="Side-effect tasks awaiting execution")
    dead_tasks: Optional[int] = Field(default=None, description="Side-effect tasks that exhausted their retries")
    uptime_seconds: float = Field(description="Seconds since service started")
