"""Ball possession route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, make_require_trainer_access
from shotspot.database.db import get_db_session
from shotspot.models.schemas import PossessionCreate, PossessionEnd
from shotspot.services import possession_service

logger = logging.getLogger(__name__)
router = APIRouter()

require_game_trainer = make_require_trainer_access()


@router.get("/api/possessions/{game_id}")
async def list_possessions(
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await possession_service.list_possessions(session, game_id, club_id=club_id, period=period)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing possessions", e)


@router.get("/api/possessions/{game_id}/active")
async def get_active_possession(
    game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await possession_service.get_active_possession(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "fetching active possession", e)


@router.get("/api/possessions/{game_id}/stats")
async def possession_stats(
    game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await possession_service.possession_stats(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "fetching possession stats", e)


@router.post("/api/possessions/{game_id}", status_code=201)
async def start_possession(
    game_id: int,
    payload: PossessionCreate,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    """Open a possession; the game's previous open possession ends as a turnover."""
    try:
        return await possession_service.start_possession(session, game_id, payload.club_id, payload.period)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "starting possession", e)


@router.put("/api/possessions/{game_id}/{possession_id}")
async def end_possession(
    game_id: int,
    possession_id: int,
    payload: PossessionEnd,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await possession_service.end_possession(session, game_id, possession_id, payload.result)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "ending possession", e)


@router.patch("/api/possessions/{game_id}/{possession_id}/increment-shots")
async def increment_possession_shots(
    game_id: int,
    possession_id: int,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await possession_service.record_shot(session, game_id, possession_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "counting possession shot", e)
