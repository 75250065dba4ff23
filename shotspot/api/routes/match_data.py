"""Live match data route handlers: events, shots, substitutions and timeouts."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, make_require_trainer_access
from shotspot.database.db import get_db_session
from shotspot.models.schemas import (
    EventCreate,
    EventUpdate,
    ShotCreate,
    ShotUpdate,
    SubstitutionCreate,
    TimeoutCreate,
)
from shotspot.services import event_service, shot_service, substitution_service, timeout_service

logger = logging.getLogger(__name__)
router = APIRouter()

require_game_trainer = make_require_trainer_access()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@router.get("/api/events/{game_id}")
async def list_events(
    game_id: int,
    event_type: Optional[str] = None,
    club_id: Optional[int] = None,
    player_id: Optional[int] = None,
    period: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await event_service.list_events(
            session, game_id, event_type=event_type, club_id=club_id, player_id=player_id, period=period
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing events", e)


@router.get("/api/events/{game_id}/comprehensive")
async def comprehensive_timeline(
    game_id: int,
    type: Optional[str] = None,
    period: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Events, shots, substitutions and timeouts merged into one timeline."""
    try:
        return await event_service.comprehensive_timeline(session, game_id, type_filter=type, period=period)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "building timeline", e)


@router.post("/api/events/{game_id}", status_code=201)
async def create_event(
    game_id: int,
    payload: EventCreate,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await event_service.create_event(session, game_id, **payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating event", e)


@router.put("/api/events/{game_id}/{event_id}")
async def update_event(
    game_id: int,
    event_id: int,
    payload: EventUpdate,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await event_service.update_event(session, game_id, event_id, payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating event", e)


@router.delete("/api/events/{game_id}/{event_id}", status_code=204)
async def delete_event(
    game_id: int,
    event_id: int,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await event_service.delete_event(session, game_id, event_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting event", e)


# ---------------------------------------------------------------------------
# Shots
# ---------------------------------------------------------------------------


@router.get("/api/shots/{game_id}")
async def list_shots(
    game_id: int,
    period: Optional[int] = None,
    club_id: Optional[int] = None,
    player_id: Optional[int] = None,
    result: Optional[str] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await shot_service.list_shots(
            session, game_id, period=period, club_id=club_id, player_id=player_id, result=result
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing shots", e)


@router.post("/api/shots/{game_id}", status_code=201)
async def create_shot(
    game_id: int,
    payload: ShotCreate,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await shot_service.create_shot(session, game_id, **payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "recording shot", e)


@router.put("/api/shots/{game_id}/{shot_id}")
async def update_shot(
    game_id: int,
    shot_id: int,
    payload: ShotUpdate,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await shot_service.update_shot(session, game_id, shot_id, payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating shot", e)


@router.delete("/api/shots/{game_id}/{shot_id}", status_code=204)
async def delete_shot(
    game_id: int,
    shot_id: int,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await shot_service.delete_shot(session, game_id, shot_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting shot", e)


# ---------------------------------------------------------------------------
# Substitutions
# ---------------------------------------------------------------------------


@router.get("/api/substitutions/{game_id}")
async def list_substitutions(
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
    player_id: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await substitution_service.list_substitutions(
            session, game_id, club_id=club_id, period=period, player_id=player_id
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing substitutions", e)


@router.get("/api/substitutions/{game_id}/active-players")
async def active_players(
    game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    """On-court and bench players per club, derived from roster and substitutions."""
    try:
        return await substitution_service.active_players(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "loading active players", e)


@router.post("/api/substitutions/{game_id}", status_code=201)
async def create_substitution(
    game_id: int,
    payload: SubstitutionCreate,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await substitution_service.create_substitution(session, game_id, **payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "recording substitution", e)


@router.delete("/api/substitutions/{game_id}/{substitution_id}", status_code=204)
async def delete_substitution(
    game_id: int,
    substitution_id: int,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    """Only the most recent substitution of a game can be undone."""
    try:
        await substitution_service.delete_substitution(session, game_id, substitution_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting substitution", e)


# ---------------------------------------------------------------------------
# Timeouts
# ---------------------------------------------------------------------------


@router.get("/api/timeouts/{game_id}")
async def list_timeouts(
    game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await timeout_service.list_timeouts(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing timeouts", e)


@router.post("/api/timeouts/{game_id}", status_code=201)
async def create_timeout(
    game_id: int,
    payload: TimeoutCreate,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await timeout_service.create_timeout(session, game_id, **payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "recording timeout", e)


@router.put("/api/timeouts/{game_id}/{timeout_id}/end")
async def end_timeout(
    game_id: int,
    timeout_id: int,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await timeout_service.end_timeout(session, game_id, timeout_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "ending timeout", e)
