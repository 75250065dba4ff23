"""Game roster route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, require_coach, make_require_trainer_access
from shotspot.database.db import get_db_session
from shotspot.models.schemas import RosterReplaceRequest
from shotspot.services import roster_service

logger = logging.getLogger(__name__)
router = APIRouter()

require_game_trainer = make_require_trainer_access()


@router.get("/api/game-rosters/{game_id}")
async def get_roster(
    game_id: int,
    club_id: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await roster_service.get_roster(session, game_id, club_id=club_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting roster", e)


@router.post("/api/game-rosters/{game_id}")
async def replace_roster(
    game_id: int,
    payload: RosterReplaceRequest,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Replace the roster of each club present in the payload. The response
    carries warnings for players without a synced Twizzit registration.
    """
    try:
        players = [p.model_dump() for p in payload.players]
        return await roster_service.replace_roster(session, game_id, players, user=user)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "saving roster", e)


@router.put("/api/game-rosters/{game_id}/players/{player_id}/captain")
async def set_captain(
    game_id: int,
    player_id: int,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await roster_service.set_captain(session, game_id, player_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "setting captain", e)


@router.delete("/api/game-rosters/{game_id}", status_code=204)
async def clear_roster(
    game_id: int,
    club_id: Optional[int] = None,
    user: dict = Depends(require_game_trainer),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await roster_service.clear_roster(session, game_id, club_id=club_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "clearing roster", e)
