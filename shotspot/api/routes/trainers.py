"""Trainer assignment route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, require_admin
from shotspot.database.db import get_db_session
from shotspot.models.schemas import TrainerAssignmentCreate
from shotspot.services import trainer_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/trainer-assignments")
async def list_assignments(
    user_id: Optional[int] = None,
    club_id: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await trainer_service.list_assignments(session, user_id=user_id, club_id=club_id)
    except Exception as e:
        raise server_error(logger, "listing trainer assignments", e)


@router.post("/api/trainer-assignments", status_code=201)
async def create_assignment(
    payload: TrainerAssignmentCreate,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await trainer_service.create_assignment(session, **payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating trainer assignment", e)


@router.delete("/api/trainer-assignments/{assignment_id}", status_code=204)
async def delete_assignment(
    assignment_id: int, user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    try:
        await trainer_service.delete_assignment(session, assignment_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting trainer assignment", e)
