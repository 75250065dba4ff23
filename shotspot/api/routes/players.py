"""Player route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, require_coach, ensure_club_access
from shotspot.database.db import get_db_session
from shotspot.models.schemas import PlayerCreate, PlayerUpdate
from shotspot.services import player_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/players")
async def list_players(
    club_id: Optional[int] = None,
    team_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await player_service.list_players(session, club_id=club_id, team_id=team_id, is_active=is_active)
    except Exception as e:
        raise server_error(logger, "listing players", e)


@router.get("/api/players/{player_id}")
async def get_player(player_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await player_service.get_player(session, player_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting player", e)


@router.post("/api/players", status_code=201)
async def create_player(
    payload: PlayerCreate, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        await ensure_club_access(session, user, [payload.club_id], team_id=payload.team_id)
        return await player_service.create_player(session, **payload.model_dump())
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating player", e)


@router.put("/api/players/{player_id}")
async def update_player(
    player_id: int,
    payload: PlayerUpdate,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        player = await player_service.get_player(session, player_id)
        await ensure_club_access(session, user, [player["club_id"]], team_id=player["team_id"])
        return await player_service.update_player(session, player_id, payload.model_dump(exclude_unset=True))
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating player", e)


@router.delete("/api/players/{player_id}", status_code=204)
async def delete_player(
    player_id: int, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        player = await player_service.get_player(session, player_id)
        await ensure_club_access(session, user, [player["club_id"]], team_id=player["team_id"])
        await player_service.delete_player(session, player_id)
        return Response(status_code=204)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting player", e)
