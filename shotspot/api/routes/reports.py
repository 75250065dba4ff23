"""Report template and scheduled report route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, require_coach
from shotspot.database.db import get_db_session
from shotspot.models.schemas import (
    ReportTemplateCreate,
    ReportTemplateUpdate,
    ScheduledReportCreate,
    ScheduledReportUpdate,
)
from shotspot.services import report_service

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Report templates
# ---------------------------------------------------------------------------


@router.get("/api/report-templates")
async def list_templates(
    template_type: Optional[str] = Query(None, alias="type"),
    is_default: Optional[bool] = None,
    is_active: Optional[bool] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Default templates plus the caller's own (admins see all)."""
    try:
        return await report_service.list_templates(
            session, user, template_type=template_type, is_default=is_default, is_active=is_active
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing report templates", e)


@router.get("/api/report-templates/{template_id}")
async def get_template(
    template_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await report_service.get_template(session, template_id, user)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting report template", e)


@router.post("/api/report-templates", status_code=201)
async def create_template(
    payload: ReportTemplateCreate,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await report_service.create_template(session, user, payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating report template", e)


@router.put("/api/report-templates/{template_id}")
async def update_template(
    template_id: int,
    payload: ReportTemplateUpdate,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await report_service.update_template(
            session, template_id, user, payload.model_dump(exclude_unset=True)
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating report template", e)


@router.delete("/api/report-templates/{template_id}", status_code=204)
async def delete_template(
    template_id: int, user: dict = Depends(require_coach), session: AsyncSession = Depends(get_db_session)
):
    try:
        await report_service.delete_template(session, template_id, user)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting report template", e)


# ---------------------------------------------------------------------------
# Scheduled reports
# ---------------------------------------------------------------------------


@router.get("/api/scheduled-reports")
async def list_scheduled_reports(
    is_active: Optional[bool] = None,
    schedule_type: Optional[str] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await report_service.list_scheduled_reports(
            session, user, is_active=is_active, schedule_type=schedule_type
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "listing scheduled reports", e)


@router.get("/api/scheduled-reports/{report_id}")
async def get_scheduled_report(
    report_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await report_service.get_scheduled_report(session, report_id, user)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "getting scheduled report", e)


@router.post("/api/scheduled-reports", status_code=201)
async def create_scheduled_report(
    payload: ScheduledReportCreate,
    user: dict = Depends(require_coach),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await report_service.create_scheduled_report(session, user, payload.model_dump())
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating scheduled report", e)


@router.put("/api/scheduled-reports/{report_id}")
async def update_scheduled_report(
    report_id: int,
    payload: ScheduledReportUpdate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await report_service.update_scheduled_report(
            session, report_id, user, payload.model_dump(exclude_unset=True)
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating scheduled report", e)


@router.delete("/api/scheduled-reports/{report_id}", status_code=204)
async def delete_scheduled_report(
    report_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        await report_service.delete_scheduled_report(session, report_id, user)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting scheduled report", e)
