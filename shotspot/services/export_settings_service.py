"""
Per-user export preferences, created with defaults on first access.
"""

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import ExportFormat, ExportSettings, ReportTemplate
from shotspot.utils.constants import DEFAULT_EXPORT_FORMAT, DEFAULT_SHARE_ROLES
from shotspot.utils.datetime_utils import isoformat
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "default_format",
    "default_template_id",
    "anonymize_opponents",
    "include_sensitive_data",
    "auto_delete_after_days",
    "allow_public_sharing",
    "allowed_share_roles",
)


def _settings_to_dict(settings: ExportSettings) -> Dict:
    return {
        "id": settings.id,
        "user_id": settings.user_id,
        "default_format": settings.default_format.value,
        "default_template_id": settings.default_template_id,
        "anonymize_opponents": settings.anonymize_opponents,
        "include_sensitive_data": settings.include_sensitive_data,
        "auto_delete_after_days": settings.auto_delete_after_days,
        "allow_public_sharing": settings.allow_public_sharing,
        "allowed_share_roles": settings.allowed_share_roles,
        "updated_at": isoformat(settings.updated_at),
    }


def _apply_defaults(settings: ExportSettings) -> None:
    settings.default_format = ExportFormat(DEFAULT_EXPORT_FORMAT)
    settings.default_template_id = None
    settings.anonymize_opponents = False
    settings.include_sensitive_data = True
    settings.auto_delete_after_days = None
    settings.allow_public_sharing = False
    settings.allowed_share_roles = list(DEFAULT_SHARE_ROLES)


async def _get_or_create(session: AsyncSession, user_id: int) -> ExportSettings:
    result = await session.execute(select(ExportSettings).where(ExportSettings.user_id == user_id))
    settings = result.scalar_one_or_none()
    if settings is None:
        settings = ExportSettings(user_id=user_id)
        _apply_defaults(settings)
        session.add(settings)
        await session.flush()
        await session.commit()
        logger.debug(f"Created default export settings for user {user_id}")
    return settings


async def get_settings(session: AsyncSession, user_id: int) -> Dict:
    return _settings_to_dict(await _get_or_create(session, user_id))


async def update_settings(
    session: AsyncSession, user_id: int, updates: Dict, is_admin: bool = False
) -> Dict:
    """
    Raises:
        NotFoundError: Default template does not exist
        PermissionError: Default template belongs to someone else
        ValueError: Nothing to update or bad values
    """
    fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    if not fields:
        raise ValueError("No valid fields to update")

    template_id: Optional[int] = fields.get("default_template_id")
    if template_id is not None:
        template = await session.get(ReportTemplate, template_id)
        if template is None:
            raise NotFoundError("Template not found")
        if not template.is_default and template.created_by != user_id and not is_admin:
            raise PermissionError("You do not have access to this template")

    if "default_format" in fields:
        fields["default_format"] = ExportFormat(fields["default_format"])
    days = fields.get("auto_delete_after_days")
    if days is not None and days <= 0:
        raise ValueError("auto_delete_after_days must be a positive integer or null")

    settings = await _get_or_create(session, user_id)
    for key, value in fields.items():
        setattr(settings, key, value)
    await session.commit()
    return _settings_to_dict(settings)


async def reset_settings(session: AsyncSession, user_id: int) -> Dict:
    settings = await _get_or_create(session, user_id)
    _apply_defaults(settings)
    await session.commit()
    return _settings_to_dict(settings)
