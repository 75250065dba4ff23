"""Team route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, require_admin, require_coach, ensure_club_access
from shotspot.database.db import get_db_session
from shotspot.models.schemas import TeamCreate, TeamUpdate
from shotspot.services import team_service, player_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams")
async def list_teams(
    club_id: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await team_service.list_teams(session, club_id=club_id)
    except Exception as e:
        raise server_error(logger, "listing teams", e)


@router.get("/api/teams/{team_id}")
async def get_team(team_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await team_service.get_team(session, team_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting team", e)


@router.get("/api/teams/{team_id}/players")
async def list_team_players(
    team_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        await team_service.get_team(session, team_id)
        return await player_service.list_players(session, team_id=team_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing team players", e)


@router.post("/api/teams", status_code=201)
async def create_team(
    payload: TeamCreate, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        await ensure_club_access(session, user, [payload.club_id])
        return await team_service.create_team(session, **payload.model_dump())
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating team", e)


@router.put("/api/teams/{team_id}")
async def update_team(
    team_id: int,
    payload: TeamUpdate,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        team = await team_service.get_team(session, team_id)
        await ensure_club_access(session, user, [team["club_id"]], team_id=team_id)
        return await team_service.update_team(session, team_id, payload.model_dump(exclude_unset=True))
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating team", e)


@router.delete("/api/teams/{team_id}", status_code=204)
async def delete_team(team_id: int, user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)):
    try:
        await team_service.delete_team(session, team_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting team", e)
