"""
Beyond Trips Backend — Application Entry Point
==============================================

`create_app()` assembles the service; the module-level `app` is what
`uvicorn beyondtrips.main:app` serves. Tests call `create_app()` directly so
each one gets fresh middleware state.

Surface:
    /api/public/rider/*      anonymous riders (scan, review), rate limited
    /api/magazine-pickups/*  drivers and admins
    /api/driver/*            driver dashboard
    /api/admin/*             side-effect queue and withdrawal processing
    /health                  liveness / readiness

The lifespan configures logging, checks production settings, and owns the
TaskWorker that retries queued side effects while the process is up.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from beyondtrips import __version__
from beyondtrips.config import settings
from beyondtrips.database import dispose_engine
from beyondtrips.exceptions import BeyondTripsError
from beyondtrips.middleware.logging import RequestLoggingMiddleware
from beyondtrips.middleware.rate_limit import RateLimitMiddleware
from beyondtrips.middleware.request_id import RequestIDLogFilter, RequestIDMiddleware
from beyondtrips.responses import error_response, render_app_error
from beyondtrips.routes import admin, driver, health, pickups, rider
from beyondtrips.services.task_queue import TaskWorker, task_queue

logger = logging.getLogger(__name__)

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx")


def setup_logging() -> None:
    """Root logger to stdout: `time [LEVEL] logger [request_id] message`."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDLogFilter())
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )
    # We write our own access log
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("Beyond Trips Backend %s starting", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Still start; /health and this log line tell operators what is wrong
        logger.error("Configuration problems:\n%s", e)

    logger.info(
        "1 BTL coin = %d %s; rescan cool-down %ds",
        settings.btl_coin_value_ngn, settings.btl_coin_currency, settings.scan_cooldown_seconds,
    )

    worker: Optional[TaskWorker] = None
    if settings.task_worker_enabled:
        worker = TaskWorker(task_queue)
        worker.start()
    else:
        logger.warning("Side-effect worker disabled; queued tasks only run after requests")

    logger.info("Listening on %s:%d", settings.backend_host, settings.backend_port)
    yield

    logger.info("Shutting down")
    if worker is not None:
        await worker.stop()
    await dispose_engine()


def register_exception_handlers(app: FastAPI) -> None:
    """
    Every error leaves as `{error, message, details?, request_id}`.

    Application errors pick their own status from the exception class.
    Body validation is answered 400, not FastAPI's 422, so every malformed
    input shares one status with business-rule failures.
    """

    @app.exception_handler(BeyondTripsError)
    async def handle_app_error(request: Request, exc: BeyondTripsError):
        if exc.status_code >= 500:
            logger.error("%s: %s | %s", type(exc).__name__, exc.message, exc.context)
        elif exc.status_code in (400, 409):
            logger.warning("%s: %s", type(exc).__name__, exc.message)
        return render_app_error(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        problems = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg"),
            }
            for err in exc.errors()
        ]
        logger.warning("Rejected request body: %s", problems)
        message = problems[0]["message"] if problems else "Invalid request"
        return error_response(400, "validation_error", message, {"errors": problems})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unhandled %s: %s", type(exc).__name__, exc, exc_info=True)
        return error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
            {"error": str(exc)},
        )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Beyond Trips API",
        description=(
            "Magazine pickups, rider reviews and BTL coin rewards for the "
            "Beyond Trips driver network."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # add_middleware prepends: the last one added is the outermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    for module in (rider, pickups, driver, admin, health):
        app.include_router(module.router)

    return app


app = create_app()
