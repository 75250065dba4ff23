"""Game route handlers."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import (
    require_user,
    require_coach,
    ensure_club_access,
    make_require_trainer_access,
)
from shotspot.database.db import get_db_session
from shotspot.models.schemas import GameCreate, GameUpdate, RescheduleRequest
from shotspot.services import game_service

logger = logging.getLogger(__name__)
router = APIRouter()

require_game_trainer = make_require_trainer_access()


@router.get("/api/games")
async def list_games(
    status: Optional[str] = None,
    club_id: Optional[int] = None,
    team_id: Optional[int] = None,
    competition_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List games, newest first, with optional filters."""
    try:
        return await game_service.list_games(
            session,
            status=status,
            club_id=club_id,
            team_id=team_id,
            competition_id=competition_id,
            date_from=date_from,
            date_to=date_to,
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing games", e)


@router.get("/api/games/{game_id}")
async def get_game(game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await game_service.get_game(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting game", e)


@router.post("/api/games", status_code=201)
async def create_game(
    payload: GameCreate, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        await ensure_club_access(session, user, [payload.home_club_id, payload.away_club_id])
        return await game_service.create_game(session, **payload.model_dump())
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating game", e)


@router.put("/api/games/{game_id}")
async def update_game(
    game_id: int,
    payload: GameUpdate,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await game_service.update_game(session, game_id, payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating game", e)


@router.post("/api/games/{game_id}/start")
async def start_game(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await game_service.start_game(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "starting game", e)


@router.post("/api/games/{game_id}/end")
async def end_game(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    """End a game; league standings and after-match reports follow automatically."""
    try:
        return await game_service.end_game(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "ending game", e)


@router.post("/api/games/{game_id}/cancel")
async def cancel_game(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await game_service.cancel_game(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "cancelling game", e)


@router.post("/api/games/{game_id}/reschedule")
async def reschedule_game(
    game_id: int,
    payload: Optional[RescheduleRequest] = None,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    """With a date the game is scheduled again; without one it is marked to_reschedule."""
    try:
        new_date = payload.date if payload else None
        return await game_service.reschedule_game(session, game_id, new_date)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "rescheduling game", e)


@router.delete("/api/games/{game_id}", status_code=204)
async def delete_game(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    try:
        await game_service.delete_game(session, game_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting game", e)
