"""Match clock route handlers."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, make_require_trainer_access
from shotspot.database.db import get_db_session
from shotspot.models.schemas import SetPeriodRequest, SetDurationRequest
from shotspot.services import clock_service

logger = logging.getLogger(__name__)
router = APIRouter()

require_game_trainer = make_require_trainer_access()


@router.get("/api/timer/{game_id}")
async def get_clock(game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await clock_service.get_clock(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "reading clock", e)


@router.post("/api/timer/{game_id}/start")
async def start_clock(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await clock_service.start_clock(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "starting clock", e)


@router.post("/api/timer/{game_id}/pause")
async def pause_clock(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await clock_service.pause_clock(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "pausing clock", e)


@router.post("/api/timer/{game_id}/stop")
async def stop_clock(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await clock_service.stop_clock(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "stopping clock", e)


@router.post("/api/timer/{game_id}/next-period")
async def next_period(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await clock_service.next_period(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "advancing period", e)


@router.post("/api/timer/{game_id}/reset-match")
async def reset_match(
    game_id: int, user: dict = Depends(require_game_trainer), session: AsyncSession = Depends(get_db_session)
):
    """Wipe recorded match data, zero the score and reset the clock to period 1."""
    try:
        return await clock_service.reset_match(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "resetting match", e)


@router.put("/api/timer/{game_id}/period")
async def set_period(
    game_id: int,
    payload: SetPeriodRequest,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await clock_service.set_period(session, game_id, payload.period)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "setting period", e)


@router.put("/api/timer/{game_id}/duration")
async def set_duration(
    game_id: int,
    payload: SetDurationRequest,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await clock_service.set_period_duration(session, game_id, payload.minutes)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "setting period duration", e)
