"""Runtime settings route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import server_error
from shotspot.api.auth_dependencies import require_admin
from shotspot.database.db import get_db_session
from shotspot.services import settings_service

logger = logging.getLogger(__name__)
router = APIRouter()

LOG_LEVEL_KEY = "log_level"
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@router.get("/api/settings/{key}")
async def get_setting_value(
    key: str,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a setting value (admin), falling back to the upper-cased env var."""
    try:
        value = await settings_service.resolve_setting(session, key, env_var=key.upper())
        return {"key": key, "value": value}
    except Exception as e:
        raise server_error(logger, "getting setting", e)


@router.put("/api/settings/{key}")
async def set_setting_value(
    key: str,
    request: Request,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Set a setting value (admin). Changing ``log_level`` takes effect
    immediately as well as on the next startup.
    """
    try:
        body = await request.json()
        if not isinstance(body, dict) or "value" not in body:
            raise HTTPException(status_code=400, detail="value is required")
        value = str(body["value"])

        if key == LOG_LEVEL_KEY:
            value = value.upper()
            if value not in VALID_LOG_LEVELS:
                raise HTTPException(status_code=400, detail=f"Invalid log level: {body['value']}")
            logging.getLogger().setLevel(getattr(logging, value))
            logger.info(f"Log level changed to {value} by user {user['id']}")

        await settings_service.set_setting(session, key, value)
        return {"success": True}
    except HTTPException:
        raise
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")
    except Exception as e:
        raise server_error(logger, "setting value", e)
