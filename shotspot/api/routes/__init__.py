"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error mapping, constants) lives here; every
sub-router imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shotspot.utils.db_sanitizer import sanitize_db_error
from shotspot.utils.errors import NotFoundError, ConflictError

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/15minutes")
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "10/minute")

IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address, enabled=False)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address, default_limits=[RATE_LIMIT_DEFAULT])

# ---------------------------------------------------------------------------
# Shared constants and helpers
# ---------------------------------------------------------------------------
INVALID_CREDENTIALS_RESPONSE = HTTPException(
    status_code=401, detail="Username or password is incorrect"
)


def to_http_exception(error: Exception) -> HTTPException:
    """Map a service-layer exception to the matching HTTP error."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, IntegrityError):
        return HTTPException(status_code=409, detail="Operation conflicts with existing data")
    if isinstance(error, PermissionError):
        return HTTPException(status_code=403, detail=str(error) or "Insufficient permissions")
    return HTTPException(status_code=400, detail=str(error))


SERVICE_ERRORS = (ValueError, PermissionError, IntegrityError)


def error_message(error: Exception) -> str:
    """Client- and log-safe text for an error; database errors are masked."""
    if isinstance(error, SQLAlchemyError):
        return sanitize_db_error(error)["message"]
    return str(error)


def server_error(logger: logging.Logger, action: str, error: Exception) -> HTTPException:
    """Log an unexpected error and build the 500 for it."""
    message = error_message(error)
    # Tracebacks of database errors repeat the raw statement
    logger.error(f"Error {action}: {message}", exc_info=not isinstance(error, SQLAlchemyError))
    return HTTPException(status_code=500, detail=f"Error {action}: {message}")

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from shotspot.api.routes.health import router as health_router  # noqa: E402
from shotspot.api.routes.auth import router as auth_router  # noqa: E402
from shotspot.api.routes.users import router as users_router  # noqa: E402
from shotspot.api.routes.clubs import router as clubs_router  # noqa: E402
from shotspot.api.routes.teams import router as teams_router  # noqa: E402
from shotspot.api.routes.players import router as players_router  # noqa: E402
from shotspot.api.routes.trainers import router as trainers_router  # noqa: E402
from shotspot.api.routes.games import router as games_router  # noqa: E402
from shotspot.api.routes.rosters import router as rosters_router  # noqa: E402
from shotspot.api.routes.match_data import router as match_data_router  # noqa: E402
from shotspot.api.routes.possessions import router as possessions_router  # noqa: E402
from shotspot.api.routes.analytics import router as analytics_router  # noqa: E402
from shotspot.api.routes.timer import router as timer_router  # noqa: E402
from shotspot.api.routes.competitions import router as competitions_router  # noqa: E402
from shotspot.api.routes.achievements import router as achievements_router  # noqa: E402
from shotspot.api.routes.exports import router as exports_router  # noqa: E402
from shotspot.api.routes.reports import router as reports_router  # noqa: E402
from shotspot.api.routes.twizzit import router as twizzit_router  # noqa: E402
from shotspot.api.routes.admin import router as admin_router  # noqa: E402

router = APIRouter()
router.include_router(health_router)
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(clubs_router)
router.include_router(teams_router)
router.include_router(players_router)
router.include_router(trainers_router)
router.include_router(games_router)
router.include_router(rosters_router)
router.include_router(match_data_router)
router.include_router(possessions_router)
router.include_router(analytics_router)
router.include_router(timer_router)
router.include_router(competitions_router)
router.include_router(achievements_router)
router.include_router(exports_router)
router.include_router(reports_router)
router.include_router(twizzit_router)
router.include_router(admin_router)
