"""Export and export-settings route handlers."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user, is_admin
from shotspot.database.db import get_db_session
from shotspot.models.schemas import ExportFromTemplateRequest, ExportSettingsUpdate
from shotspot.services import export_service, export_settings_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/api/exports/match/{game_id}/csv")
async def export_match_csv(
    game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    """
    Export one match as a sectioned CSV file.

    Sections: GAME METADATA, SHOTS, SUBSTITUTIONS, TIMEOUTS, FOULS, PLAYER PARTICIPATION
    """
    try:
        filename, content = await export_service.export_match_csv(session, game_id)
        return Response(content=content, media_type="text/csv", headers=_attachment(filename))
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "exporting match", e)


@router.get("/api/exports/match/{game_id}/json")
async def export_match_json(
    game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        summary = await export_service.export_match_json(session, game_id)
        return JSONResponse(content=summary, headers=_attachment(f"match_{game_id}.json"))
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "exporting match", e)


@router.get("/api/exports/games/csv")
async def export_games_csv(
    club_id: Optional[int] = None,
    team_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        filename, content = await export_service.export_games_csv(
            session, club_id=club_id, team_id=team_id, date_from=date_from, date_to=date_to
        )
        return Response(content=content, media_type="text/csv", headers=_attachment(filename))
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "exporting games", e)


@router.post("/api/exports/from-template", status_code=201)
async def export_from_template(
    payload: ExportFromTemplateRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Render a report from a template and keep it as a downloadable export."""
    try:
        return await export_service.create_export_from_template(
            session,
            user["id"],
            payload.template_id,
            data_type=payload.data_type,
            game_id=payload.game_id,
            team_id=payload.team_id,
            export_format=payload.format,
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "generating export", e)


@router.get("/api/exports/recent")
async def recent_exports(user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await export_service.list_recent_exports(session, user["id"])
    except Exception as e:
        raise server_error(logger, "listing exports", e)


@router.get("/api/exports/{export_id}/download")
async def download_export(
    export_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        filename, media_type, content = await export_service.get_export_download(session, user["id"], export_id)
        return Response(content=content, media_type=media_type, headers=_attachment(filename))
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "downloading export", e)


@router.delete("/api/exports/{export_id}", status_code=204)
async def delete_export(
    export_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        await export_service.delete_export(session, user["id"], export_id)
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting export", e)


# ---------------------------------------------------------------------------
# Export settings
# ---------------------------------------------------------------------------


@router.get("/api/export-settings")
async def get_export_settings(user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    """The caller's export preferences; defaults are created on first read."""
    try:
        return await export_settings_service.get_settings(session, user["id"])
    except Exception as e:
        raise server_error(logger, "loading export settings", e)


@router.put("/api/export-settings")
async def update_export_settings(
    payload: ExportSettingsUpdate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await export_settings_service.update_settings(
            session, user["id"], payload.model_dump(exclude_unset=True), is_admin=is_admin(user)
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating export settings", e)


@router.post("/api/export-settings/reset")
async def reset_export_settings(user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await export_settings_service.reset_settings(session, user["id"])
    except Exception as e:
        raise server_error(logger, "resetting export settings", e)
