"""
FastAPI application entry point.
Configures middleware, routes, error handlers and application lifecycle events.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tradeboard import __version__
from tradeboard.api import leaderboard_router, trades_router, user_router, users_router
from tradeboard.api.deps import close_clients
from tradeboard.config import get_settings
from tradeboard.core.cache import get_cache_stats
from tradeboard.core.exceptions import AppException
from tradeboard.core.logging_service import RequestLoggingMiddleware, setup_structured_logging
from tradeboard.db.database import init_db, engine

app_settings = get_settings()

# JSON logs in production, plain text while debugging
setup_structured_logging(
    level="DEBUG" if app_settings.debug else "INFO",
    json_output=not app_settings.debug,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.
    Creates tables on startup and releases connections on shutdown.
    """
    logger.info(f"Starting {app_settings.app_name} v{__version__}")

    try:
        await init_db()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down")
    await close_clients()
    await engine.dispose()


app = FastAPI(
    title="Tradeboard",
    description="Options trade tracking, settlement and company leaderboards",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Map typed application errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": jsonable_encoder(exc.details),
        },
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests are reported as 400 like every other validation failure."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "ValidationError",
            "message": "Invalid request data",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins_list,
    allow_credentials=app_settings.cors_allow_credentials,
    allow_methods=app_settings.cors_methods_list,
    allow_headers=app_settings.cors_headers_list,
)

# Request logging (innermost - logs after processing)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(trades_router, prefix="/api")
app.include_router(leaderboard_router, prefix="/api")
app.include_router(user_router, prefix="/api")
app.include_router(users_router, prefix="/api")


@app.get("/health")
async def health_check():
    """
    Basic health check endpoint for load balancers.
    """
    return {
        "status": "healthy",
        "app": app_settings.app_name,
        "version": __version__,
        "cache": await get_cache_stats(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
