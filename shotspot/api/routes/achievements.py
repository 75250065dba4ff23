"""Achievement and leaderboard route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, require_coach
from shotspot.database.db import get_db_session
from shotspot.services import achievement_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/achievements")
async def list_achievements(user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await achievement_service.list_achievements(session)
    except Exception as e:
        raise server_error(logger, "listing achievements", e)


@router.get("/api/achievements/leaderboard")
async def season_leaderboard(
    season: Optional[str] = Query(None, pattern=r"^\d{4}-\d{4}$"),
    limit: int = Query(50, ge=1, le=200),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Season runs August to July; ``season`` looks like ``2024-2025``."""
    try:
        return await achievement_service.season_leaderboard(session, season=season, limit=limit)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "loading leaderboard", e)


@router.get("/api/achievements/team/{team_id}/leaderboard")
async def team_leaderboard(
    team_id: int,
    limit: int = Query(20, ge=1, le=100),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await achievement_service.team_leaderboard(session, team_id, limit=limit)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "loading team leaderboard", e)


@router.get("/api/achievements/player/{player_id}")
async def player_achievements(
    player_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await achievement_service.get_player_achievements(session, player_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "loading player achievements", e)


@router.post("/api/achievements/check/{player_id}")
async def check_achievements(
    player_id: int,
    game_id: Optional[int] = None,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    """Evaluate every achievement for a player and award the new ones."""
    try:
        return await achievement_service.check_achievements(session, player_id, game_id=game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "checking achievements", e)
