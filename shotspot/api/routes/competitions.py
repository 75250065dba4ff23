"""Competition, bracket and standings route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, require_admin, require_coach
from shotspot.database.db import get_db_session
from shotspot.models.schemas import (
    CompetitionCreate,
    CompetitionUpdate,
    CompetitionTeamAdd,
    BracketMatchUpdate,
    StandingsUpdateRequest,
)
from shotspot.services import competition_service, bracket_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/competitions")
async def list_competitions(
    competition_type: Optional[str] = None,
    status: Optional[str] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await competition_service.list_competitions(session, competition_type=competition_type, status=status)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing competitions", e)


@router.get("/api/competitions/{competition_id}")
async def get_competition(
    competition_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await competition_service.get_competition(session, competition_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting competition", e)


@router.post("/api/competitions", status_code=201)
async def create_competition(
    payload: CompetitionCreate, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await competition_service.create_competition(session, **payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating competition", e)


@router.put("/api/competitions/{competition_id}")
async def update_competition(
    competition_id: int,
    payload: CompetitionUpdate,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await competition_service.update_competition(
            session, competition_id, payload.model_dump(exclude_unset=True)
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating competition", e)


@router.delete("/api/competitions/{competition_id}", status_code=204)
async def delete_competition(
    competition_id: int, user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    try:
        await competition_service.delete_competition(session, competition_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting competition", e)


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


@router.get("/api/competitions/{competition_id}/teams")
async def list_competition_teams(
    competition_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await competition_service.list_competition_teams(session, competition_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing competition teams", e)


@router.post("/api/competitions/{competition_id}/teams", status_code=201)
async def add_competition_team(
    competition_id: int,
    payload: CompetitionTeamAdd,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await competition_service.add_team(session, competition_id, **payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "adding competition team", e)


@router.delete("/api/competitions/{competition_id}/teams/{team_id}", status_code=204)
async def remove_competition_team(
    competition_id: int,
    team_id: int,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await competition_service.remove_team(session, competition_id, team_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "removing competition team", e)


# ---------------------------------------------------------------------------
# Bracket
# ---------------------------------------------------------------------------


@router.get("/api/competitions/{competition_id}/bracket")
async def get_bracket(
    competition_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await bracket_service.get_bracket(session, competition_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting bracket", e)


@router.post("/api/competitions/{competition_id}/bracket/generate", status_code=201)
async def generate_bracket(
    competition_id: int, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    """Seeded single-elimination bracket; replaces any existing bracket."""
    try:
        return await bracket_service.generate_bracket(session, competition_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "generating bracket", e)


@router.put("/api/competitions/{competition_id}/bracket/{bracket_id}")
async def update_bracket_match(
    competition_id: int,
    bracket_id: int,
    payload: BracketMatchUpdate,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await bracket_service.update_bracket_match(
            session, competition_id, bracket_id, payload.model_dump(exclude_unset=True)
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating bracket match", e)


# ---------------------------------------------------------------------------
# Standings
# ---------------------------------------------------------------------------


@router.get("/api/competitions/{competition_id}/standings")
async def get_standings(
    competition_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await competition_service.get_standings(session, competition_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting standings", e)


@router.post("/api/competitions/{competition_id}/standings/initialize", status_code=201)
async def initialize_standings(
    competition_id: int, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await competition_service.initialize_standings(session, competition_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "initializing standings", e)


@router.post("/api/competitions/{competition_id}/standings/update")
async def update_standings(
    competition_id: int,
    payload: StandingsUpdateRequest,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await competition_service.update_standings(session, competition_id, payload.game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating standings", e)
