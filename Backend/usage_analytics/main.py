"""
Usage Analytics API
===================

Collects usage events (page views, clicks, ...) from third-party sites and
apps, and reports on them to the apps' owners.

Tech Stack:
- FastAPI
- SQLAlchemy (SQLite by default, Postgres in production)
- PyJWT for caller identity

Features:
- API-key authenticated event ingestion (`x-api-key`)
- Per-key fixed-window rate limiting
- Event summaries: counts, unique visitors, device breakdown
- App + API key lifecycle with audit logging
"""

from contextlib import asynccontextmanager
from pathlib import Path
import logging

from dotenv import load_dotenv

# Load environment variables before settings are read
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / ".env")

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from usage_analytics import __version__
from usage_analytics.config import settings
from usage_analytics.database import SessionLocal, init_db
from usage_analytics.errors import AnalyticsError, InvalidPayload, StorageFailure
from usage_analytics.middleware.audit_log import audit_logger
from usage_analytics.middleware.auth_middleware import API_KEY_HEADER_NAME
from usage_analytics.middleware.rate_limiter import RateLimiter
from usage_analytics.routes.app_routes import router as app_router
from usage_analytics.routes.event_routes import router as event_router
from usage_analytics.routes.key_routes import router as key_router
from usage_analytics.services.authenticator import LastUsedRecorder

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = settings.app_name


def db_healthcheck() -> None:
    """Simple DB connectivity check."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Verifies the database is reachable and creates missing tables.
    - Drains pending last-used updates on shutdown.
    """
    try:
        db_healthcheck()
        init_db()
        logger.info("Connected to database successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}", exc_info=True)
        raise RuntimeError("Database connection failed") from e

    audit_logger.set_session_factory(SessionLocal)

    logger.info("%s started", SERVICE_NAME)
    yield
    app.state.usage_recorder.shutdown(wait_for_pending=True)
    logger.info("Shutdown complete")


app = FastAPI(
    title=SERVICE_NAME,
    description="""
## Overview

Event collection and reporting for registered websites and apps.

### Authentication Methods

1. **Bearer JWT**: dashboard operations (apps, keys, summaries)
2. **API Key**: event ingestion (`x-api-key` header)

### Limits

- 100 events per minute per API key (fixed window)
""",
    version=__version__,
    lifespan=lifespan,
)

# Process-local state, owned by this app instance
app.state.rate_limiter = RateLimiter(
    limit=settings.rate_limit_per_window,
    window_seconds=settings.rate_limit_window_seconds,
    shards=settings.rate_limit_shards,
)
app.state.usage_recorder = LastUsedRecorder(
    SessionLocal,
    max_workers=settings.usage_recorder_workers,
    max_pending=settings.usage_recorder_max_pending,
)

# CORS: any origin, pre-flight limited to the headers this API reads
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type", API_KEY_HEADER_NAME],
    expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

# Routers
app.include_router(app_router)
app.include_router(key_router)
app.include_router(event_router)


# Health
@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": __version__,
    }


# Error handlers
@app.exception_handler(AnalyticsError)
async def analytics_exception_handler(request: Request, exc: AnalyticsError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error = InvalidPayload(f"Invalid request: {len(exc.errors())} invalid field(s)")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": "HTTPError"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}", exc_info=True)
    error = StorageFailure()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "Error"},
    )


if __name__ == "__main__":
    import os

    import uvicorn
    uvicorn.run("usage_analytics.main:app", host="0.0.0.0", port=int(os.environ.get("PORT", 8001)), reload=True)
