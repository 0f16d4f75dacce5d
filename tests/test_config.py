"""
Beyond Trips Backend — Configuration and Shared Helper Tests
============================================================

What we test:
    ✅ Settings validation (log level, production checks, CORS parsing)
    ✅ Pagination metadata
    ✅ Request ID log filter outside of a request
    ✅ Access log level by status class
"""

import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from beyondtrips.config import Settings
from beyondtrips.middleware.logging import level_for_status
from beyondtrips.middleware.request_id import RequestIDLogFilter, request_id_var
from beyondtrips.schemas.common import Pagination


class TestSettings:

    def test_log_level_is_normalised(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(log_level="chatty")

    def test_cors_origins_split(self):
        settings = Settings(cors_origins="https://beyondtrips.ng, http://localhost:3000 ,")
        assert settings.cors_origins_list == ["https://beyondtrips.ng", "http://localhost:3000"]

    def test_production_checks_list_every_problem(self):
        settings = Settings(
            database_url="sqlite+aiosqlite:///:memory:",
            btl_coin_value_ngn=0,
            task_backoff_base_seconds=300,
            task_backoff_max_seconds=60,
        )
        with pytest.raises(ValueError) as exc_info:
            settings.validate_required_for_production()
        message = str(exc_info.value)
        assert "BTL_COIN_VALUE_NGN" in message
        assert "TASK_BACKOFF_BASE_SECONDS" in message
        assert "SQLite" in message

    def test_production_settings_pass(self):
        Settings(
            database_url="postgresql+asyncpg://u:p@db:5432/beyondtrips",
            btl_coin_value_ngn=500,
        ).validate_required_for_production()


class TestPagination:

    @pytest.mark.parametrize(
        "page,limit,total,pages,has_next,has_prev",
        [
            (1, 20, 0, 0, False, False),
            (1, 20, 20, 1, False, False),
            (1, 20, 21, 2, True, False),
            (2, 20, 21, 2, False, True),
        ],
    )
    def test_build(self, page, limit, total, pages, has_next, has_prev):
        pagination = Pagination.build(page=page, limit=limit, total_docs=total)
        assert pagination.total_pages == pages
        assert pagination.has_next_page is has_next
        assert pagination.has_prev_page is has_prev

    def test_camel_case_on_the_wire(self):
        dumped = Pagination.build(page=1, limit=10, total_docs=5).model_dump(by_alias=True)
        assert set(dumped) == {"page", "totalPages", "totalDocs", "hasNextPage", "hasPrevPage"}


class TestRequestIDLogFilter:

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)

    def test_placeholder_outside_request(self):
        record = self._record()
        assert RequestIDLogFilter().filter(record) is True
        assert record.request_id == "-"

    def test_uses_current_request_id(self):
        token = request_id_var.set("abc12345")
        try:
            record = self._record()
            RequestIDLogFilter().filter(record)
            assert record.request_id == "abc12345"
        finally:
            request_id_var.reset(token)


class TestAccessLogLevel:

    @pytest.mark.parametrize(
        "status,level",
        [(200, logging.INFO), (302, logging.INFO), (404, logging.WARNING), (429, logging.WARNING), (503, logging.ERROR)],
    )
    def test_level_follows_status_class(self, status, level):
        assert level_for_status(status) == level
