"""
ShotSpot API Server

FastAPI server that provides REST endpoints for korfball match tracking:
clubs, teams, players, live match data, competitions, reports and the
Twizzit integration.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore
from slowapi.middleware import SlowAPIMiddleware  # type: ignore

from shotspot.api.routes import router, limiter as routes_limiter, IS_TEST_ENV
from shotspot.api.auth_dependencies import TokenExpiredError
from shotspot.database import db
from shotspot.database.init_defaults import init_defaults
from shotspot.services import settings_service
from shotspot.services.error_notification_service import get_error_notification_service
from shotspot.services.scheduled_report_runner import get_scheduled_report_runner
from shotspot.services.twizzit_scheduler import get_twizzit_scheduler
from shotspot.utils.config_check import check_config
from shotspot.utils.db_sanitizer import sanitize_db_error

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
# Note: Database setting will be checked after database initialization
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up ShotSpot API...")

    # Fatal in production when JWT_SECRET is unusable
    check_config()

    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await init_defaults()
        logger.info("Default values initialized")

        try:
            async with db.AsyncSessionLocal() as session:
                log_level_setting = await settings_service.get_setting(session, "log_level")
            if log_level_setting:
                log_level_name = log_level_setting.upper()
                logging.getLogger().setLevel(getattr(logging, log_level_name, logging.INFO))
                logger.info(f"Log level set from database: {log_level_name}")
            else:
                logger.info(f"Log level set from environment: {log_level}")
        except Exception as e:
            logger.warning(f"Could not load log level from database, using environment: {e}")
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    try:
        get_twizzit_scheduler().start()
    except Exception as e:
        logger.error(f"Failed to start Twizzit sync scheduler: {e}", exc_info=True)

    try:
        get_scheduled_report_runner().start()
    except Exception as e:
        logger.error(f"Failed to start scheduled report runner: {e}", exc_info=True)

    yield  # App is running

    # Shutdown
    logger.info("Shutting down ShotSpot API...")

    try:
        get_twizzit_scheduler().stop()
    except Exception as e:
        logger.error(f"Error stopping Twizzit sync scheduler: {e}", exc_info=True)

    try:
        get_scheduled_report_runner().stop()
    except Exception as e:
        logger.error(f"Error stopping scheduled report runner: {e}", exc_info=True)

    try:
        await settings_service.close_redis_connection()
        logger.info("Redis connection closed")
    except Exception as e:
        logger.error(f"Error closing Redis connection: {e}", exc_info=True)


app = FastAPI(
    title="ShotSpot API",
    description="API for recording korfball matches, shots and competition results",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
if not IS_TEST_ENV:
    app.add_middleware(SlowAPIMiddleware)

# Add CORS middleware; origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request validation failures are client errors (400), not 422."""
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    message = errors[0]["message"] if errors else "Validation failed"
    if message and message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return JSONResponse(status_code=400, content={"detail": message, "errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 400:
        await get_error_notification_service().notify(
            request.method,
            request.url.path,
            type(exc).__name__,
            sanitize_db_error(str(exc.detail))["message"],
            status=exc.status_code,
        )
    if isinstance(exc, TokenExpiredError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "expired": True},
            headers=exc.headers,
        )
    return await http_exception_handler(request, exc)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    sanitized = sanitize_db_error(exc)
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {sanitized['message']}")
    return JSONResponse(status_code=409, content={"detail": "Operation conflicts with existing data"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last resort: log a sanitized message, notify, and answer 500."""
    if isinstance(exc, SQLAlchemyError):
        message = sanitize_db_error(exc)["message"]
    else:
        message = str(exc)
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {message}", exc_info=True)
    await get_error_notification_service().notify(
        request.method, request.url.path, type(exc).__name__, message, status=500
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
async def root():
    """API root endpoint - frontend is served separately."""
    return {
        "name": "ShotSpot API",
        "status": "running",
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
