"""
Authentication dependencies for FastAPI routes.
"""

from typing import Iterable, List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.services import auth_service, user_service, trainer_service
from shotspot.database.db import get_db_session
from shotspot.database.models import Game

security = HTTPBearer()

# Paths a user flagged with password_must_change may still reach
PASSWORD_CHANGE_ALLOWED_PATHS = {
    "/api/auth/change-password",
    "/api/auth/logout",
    "/api/health",
}


class TokenExpiredError(HTTPException):
    """401 raised for an expired token; rendered with an ``expired`` flag."""

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        request: Incoming request (used for the password-change gate)
        session: Database session
        credentials: HTTP Bearer token credentials

    Returns:
        User dictionary

    Raises:
        HTTPException: If token is invalid, expired or the user is unknown
    """
    token = credentials.credentials

    payload, problem = auth_service.decode_token_status(token)
    if problem == "expired":
        raise TokenExpiredError()
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await user_service.get_user_by_id(session, user_id)
    if user is None or not user.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.get("password_must_change") and request.url.path not in PASSWORD_CHANGE_ALLOWED_PATHS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Password change required before accessing this resource",
        )

    return user


async def require_user(user: dict = Depends(get_current_user)) -> dict:
    """Require any authenticated user."""
    return user


def is_admin(user: dict) -> bool:
    return (user.get("role") or "").lower() == "admin"


def make_require_roles(*roles: str):
    """Build a dependency that admits only the given (lower-case) roles."""
    allowed = {r.lower() for r in roles}

    async def _dep(user: dict = Depends(get_current_user)) -> dict:
        if (user.get("role") or "").lower() not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _dep


require_admin = make_require_roles("admin")
require_coach = make_require_roles("admin", "coach")


async def ensure_club_access(
    session: AsyncSession,
    user: dict,
    club_ids: Iterable[Optional[int]],
    team_id: Optional[int] = None,
) -> None:
    """
    Coaches with trainer assignments may only act on their own clubs.
    Coaches with no assignments at all are not restricted; admins never are.

    Raises:
        HTTPException 403 when the coach has no active assignment for any of the clubs.
    """
    if is_admin(user):
        return
    if not await trainer_service.has_any_assignment(session, user["id"]):
        return
    ids: List[int] = [c for c in club_ids if c is not None]
    if not ids or not await trainer_service.has_club_access(session, user["id"], ids, team_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No active trainer assignment for this club",
        )


def make_require_trainer_access():
    """Require admin/coach with trainer access to one of the game's clubs."""

    async def _dep(
        game_id: int,
        user: dict = Depends(require_coach),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        if is_admin(user):
            return user
        game = await session.get(Game, game_id)
        if game is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
        await ensure_club_access(session, user, [game.home_club_id, game.away_club_id])
        return user

    return _dep
