"""Read-only analytics route handlers: shot analytics, live reports and the dashboard."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import require_user
from shotspot.database.db import get_db_session
from shotspot.services import analytics_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/analytics/shots/{game_id}/heatmap")
async def shot_heatmap(
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
    grid_size: int = 10,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await analytics_service.shot_heatmap(
            session, game_id, club_id=club_id, period=period, grid_size=grid_size
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "building shot heatmap", e)


@router.get("/api/analytics/shots/{game_id}/shot-chart")
async def shot_chart(
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
    player_id: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await analytics_service.shot_chart(
            session, game_id, club_id=club_id, period=period, player_id=player_id
        )
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "building shot chart", e)


@router.get("/api/analytics/shots/{game_id}/players")
async def player_shot_stats(
    game_id: int,
    club_id: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await analytics_service.player_shot_stats(session, game_id, club_id=club_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "fetching player shot stats", e)


@router.get("/api/analytics/shots/{game_id}/summary")
async def shot_summary(
    game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await analytics_service.shot_summary(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "fetching shot summary", e)


@router.get("/api/reports/live/{game_id}")
async def live_report(
    game_id: int, user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await analytics_service.live_report(session, game_id)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "generating live report", e)


@router.get("/api/reports/period/{game_id}/{period}")
async def period_report(
    game_id: int,
    period: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await analytics_service.period_report(session, game_id, period)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "generating period report", e)


@router.get("/api/reports/momentum/{game_id}")
async def momentum(
    game_id: int,
    window: int = analytics_service.MOMENTUM_DEFAULT_WINDOW,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await analytics_service.momentum(session, game_id, window=window)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "calculating momentum", e)


@router.get("/api/dashboard/summary")
async def dashboard_summary(user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)):
    try:
        return await analytics_service.dashboard_summary(session)
    except Exception as e:
        raise server_error(logger, "fetching dashboard summary", e)
