"""Twizzit integration route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_admin, require_coach
from shotspot.database.db import get_db_session
from shotspot.models.schemas import TwizzitCredentialCreate, TwizzitSyncOptions, TwizzitSyncConfigUpdate
from shotspot.services import twizzit_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/twizzit/credentials", status_code=201)
async def store_credentials(
    payload: TwizzitCredentialCreate,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    """Store API credentials; the password is encrypted at rest and never returned."""
    try:
        return await twizzit_service.store_credentials(session, **payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "storing Twizzit credentials", e)


@router.get("/api/twizzit/credentials")
async def list_credentials(user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)):
    try:
        return await twizzit_service.list_credentials(session)
    except Exception as e:
        raise server_error(logger, "listing Twizzit credentials", e)


@router.delete("/api/twizzit/credentials/{credential_id}", status_code=204)
async def delete_credentials(
    credential_id: int, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        await twizzit_service.delete_credentials(session, credential_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting Twizzit credentials", e)


@router.post("/api/twizzit/verify/{credential_id}")
async def verify_credentials(
    credential_id: int, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await twizzit_service.verify_credentials(session, credential_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "verifying Twizzit credentials", e)


@router.post("/api/twizzit/sync/clubs/{credential_id}")
async def sync_clubs(
    credential_id: int,
    options: Optional[TwizzitSyncOptions] = None,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        include_players = options.include_players if options else False
        return await twizzit_service.sync_clubs(session, credential_id, include_players=include_players)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "syncing Twizzit clubs", e)


@router.post("/api/twizzit/sync/players/{credential_id}")
async def sync_players(
    credential_id: int, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await twizzit_service.sync_players(session, credential_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "syncing Twizzit players", e)


@router.get("/api/twizzit/sync/config/{credential_id}")
async def get_sync_config(
    credential_id: int, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await twizzit_service.get_sync_config(session, credential_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "loading Twizzit sync config", e)


@router.put("/api/twizzit/sync/config/{credential_id}")
async def update_sync_config(
    credential_id: int,
    payload: TwizzitSyncConfigUpdate,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await twizzit_service.update_sync_config(
            session, credential_id, payload.model_dump(exclude_unset=True)
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating Twizzit sync config", e)


@router.get("/api/twizzit/sync/history/{credential_id}")
async def get_sync_history(
    credential_id: int,
    limit: int = Query(50),
    offset: int = Query(0),
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await twizzit_service.get_sync_history(session, credential_id, limit=limit, offset=offset)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "loading Twizzit sync history", e)


@router.get("/api/twizzit/mappings/teams")
async def list_team_mappings(user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)):
    try:
        return await twizzit_service.list_team_mappings(session)
    except Exception as e:
        raise server_error(logger, "listing Twizzit team mappings", e)


@router.get("/api/twizzit/mappings/players")
async def list_player_mappings(
    club_id: Optional[int] = None,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await twizzit_service.list_player_mappings(session, club_id=club_id)
    except Exception as e:
        raise server_error(logger, "listing Twizzit player mappings", e)
