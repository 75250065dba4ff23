"""Club route handlers."""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, require_admin, require_coach
from shotspot.database.db import get_db_session
from shotspot.models.schemas import ClubRequest
from shotspot.services import club_service, team_service, player_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/clubs")
async def list_clubs(user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await club_service.list_clubs(session)
    except Exception as e:
        raise server_error(logger, "listing clubs", e)


@router.get("/api/clubs/{club_id}")
async def get_club(club_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await club_service.get_club(session, club_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting club", e)


@router.get("/api/clubs/{club_id}/teams")
async def list_club_teams(
    club_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        await club_service.get_club(session, club_id)
        return await team_service.list_teams(session, club_id=club_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing club teams", e)


@router.get("/api/clubs/{club_id}/players")
async def list_club_players(
    club_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        await club_service.get_club(session, club_id)
        return await player_service.list_players(session, club_id=club_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing club players", e)


@router.post("/api/clubs", status_code=201)
async def create_club(
    payload: ClubRequest, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await club_service.create_club(session, payload.name)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating club", e)


@router.put("/api/clubs/{club_id}")
async def update_club(
    club_id: int,
    payload: ClubRequest,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await club_service.update_club(session, club_id, payload.name)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating club", e)


@router.delete("/api/clubs/{club_id}", status_code=204)
async def delete_club(club_id: int, user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)):
    try:
        await club_service.delete_club(session, club_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting club", e)
