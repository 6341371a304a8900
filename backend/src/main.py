"""
FastAPI application for the OTA update server.

Wires together:
- Device-facing routers under /api (update checks, channel self-assignment, stats)
- slowapi rate limiting keyed on client IP
- Exception handlers returning {"error", "message"} bodies
- Per-request access logging on the "api" logger

Environment Variables:
    OTA_DB_URL: Database connection URL
    OTA_ENV: Environment (production/development, default: development)
    OTA_LOG_LEVEL: Log level (default: INFO)
    OTA_DEFAULT_CHANNEL: Fallback channel name (default: production)
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.src.api import channels, stats, updates
from backend.src.api.rate_limit import limiter
from backend.src.config.settings import get_settings
from backend.src.db.database import dispose_engine, get_db
from backend.src.utils.client_ip import get_client_ip
from backend.src.utils.logging_config import get_logger, init_logging
from backend.src.version import __version__


SERVICE_NAME = "ota-update-server"


def _error_response(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    content = {"error": error, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def _request_context(request: Request) -> Dict[str, Any]:
    return {"path": request.url.path, "method": request.method}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log effective settings on startup; release DB connections on shutdown."""
    logger = get_logger("api")
    settings = get_settings()
    logger.info(
        "Starting %s %s",
        SERVICE_NAME,
        __version__,
        extra={
            "channel": settings.default_channel,
            "signed_downloads": settings.signing_configured,
        },
    )

    yield

    logger.info("Stopping %s", SERVICE_NAME)
    dispose_engine()


init_logging()

app = FastAPI(
    title="OTA Update API",
    description="Over-the-air bundle update server. "
                "Resolves device channels, serves the newest eligible bundle "
                "and the integrity metadata needed to verify it.",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Access log line per request with status and duration."""
    started = time.perf_counter()
    response = await call_next(request)
    get_logger("api").info(
        "%s %s %s",
        request.method,
        request.url.path,
        response.status_code,
        extra={
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            "client_ip": get_client_ip(request),
        },
    )
    return response


@app.exception_handler(ValidationError)
async def response_validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """
    Pydantic errors raised after request parsing.

    Request bodies are validated by FastAPI (422) before a handler runs,
    so an error arriving here comes from building a response out of
    stored data. That is a server fault.
    """
    get_logger("api").error(
        "Response serialization failed",
        extra={**_request_context(request), "errors": exc.errors(include_url=False)},
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "The server could not build a valid response.",
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Fail the request when a read fails.

    Check-in bookkeeping never reaches this handler; it is isolated in
    the device service. Anything arriving here means the decision itself
    could not be computed, and no stale answer is served.
    """
    get_logger("db").error(
        "Database error", extra={**_request_context(request), "error": str(exc)}
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Database Error",
        "An error occurred while accessing the database. Please try again later.",
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    get_logger("api").error(
        "Unhandled %s",
        type(exc).__name__,
        extra={**_request_context(request), "error": str(exc)},
        exc_info=True,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred. Please try again later.",
    )


@app.get("/health", tags=["Health"])
def health_check(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Liveness plus a database round trip.

    Returns:
        status, service name, server version and database reachability
    """
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        get_logger("db").warning("Health check query failed", extra={"error": str(e)})
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "service": SERVICE_NAME,
        "version": __version__,
        "database": database,
    }


app.include_router(updates.router, prefix="/api")
app.include_router(channels.router, prefix="/api")
app.include_router(stats.router, prefix="/api")
