"""
Report templates and scheduled reports.

Default templates are shared and read-only. Custom templates are visible to
their creator (and admins). Scheduled reports run on a cadence:

    weekly      next run 7 days after the last
    monthly     next run one calendar month after the last
    after_match queued when a game involving the report's team ends
    season_end  queued when a competition is completed
"""

import calendar
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    ExportFormat,
    Game,
    ReportTemplate,
    ScheduledReport,
    ScheduleType,
    Team,
    TemplateType,
    User,
    UserRole,
)
from shotspot.utils.datetime_utils import isoformat, utcnow, ensure_utc
from shotspot.utils.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = (
    "name",
    "type",
    "description",
    "sections",
    "metrics",
    "branding",
    "language",
    "date_format",
    "time_format",
    "is_active",
)

SCHEDULE_FIELDS = (
    "name",
    "template_id",
    "schedule_type",
    "is_active",
    "team_id",
    "game_filters",
    "send_email",
    "email_recipients",
    "email_subject",
    "email_body",
)


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_next_run(schedule_type: ScheduleType, from_time: datetime) -> Optional[datetime]:
    """Next run for time-based schedules; event-driven schedules return None."""
    if schedule_type == ScheduleType.WEEKLY:
        return from_time + timedelta(days=7)
    if schedule_type == ScheduleType.MONTHLY:
        return add_months(from_time, 1)
    return None


def _is_admin(user: Dict) -> bool:
    return user.get("role") == UserRole.ADMIN.value


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _template_to_dict(template: ReportTemplate, created_by_username: Optional[str] = None) -> Dict:
    return {
        "id": template.id,
        "name": template.name,
        "type": template.type.value,
        "is_default": template.is_default,
        "is_active": template.is_active,
        "created_by": template.created_by,
        "created_by_username": created_by_username,
        "description": template.description,
        "sections": template.sections,
        "metrics": template.metrics,
        "branding": template.branding,
        "language": template.language,
        "date_format": template.date_format,
        "time_format": template.time_format,
        "created_at": isoformat(template.created_at),
        "updated_at": isoformat(template.updated_at),
    }


async def _ensure_unique_template_name(session: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
    query = select(ReportTemplate.id).where(ReportTemplate.name == name)
    if exclude_id is not None:
        query = query.where(ReportTemplate.id != exclude_id)
    if (await session.execute(query)).first():
        raise ConflictError("A template with this name already exists")


async def list_templates(
    session: AsyncSession,
    user: Dict,
    template_type: Optional[str] = None,
    is_default: Optional[bool] = None,
    is_active: Optional[bool] = None,
) -> List[Dict]:
    query = select(ReportTemplate, User.username).outerjoin(User, User.id == ReportTemplate.created_by)
    if template_type:
        query = query.where(ReportTemplate.type == TemplateType(template_type))
    if is_default is not None:
        query = query.where(ReportTemplate.is_default == is_default)
    if is_active is not None:
        query = query.where(ReportTemplate.is_active == is_active)
    if not _is_admin(user):
        query = query.where(or_(ReportTemplate.is_default == True, ReportTemplate.created_by == user["id"]))  # noqa: E712
    query = query.order_by(ReportTemplate.is_default.desc(), ReportTemplate.created_at.desc())
    result = await session.execute(query)
    return [_template_to_dict(t, username) for t, username in result.all()]


async def get_template_model(session: AsyncSession, template_id: int, user: Dict) -> ReportTemplate:
    """
    Raises:
        NotFoundError: Unknown template
        PermissionError: Another user's custom template
    """
    template = await session.get(ReportTemplate, template_id)
    if template is None:
        raise NotFoundError("Report template not found")
    if not _is_admin(user) and not template.is_default and template.created_by != user["id"]:
        raise PermissionError("Access denied to this template")
    return template


async def get_template(session: AsyncSession, template_id: int, user: Dict) -> Dict:
    return _template_to_dict(await get_template_model(session, template_id, user))


async def create_template(session: AsyncSession, user: Dict, data: Dict) -> Dict:
    name = data["name"].strip()
    await _ensure_unique_template_name(session, name)
    template = ReportTemplate(
        name=name,
        type=TemplateType(data.get("type", TemplateType.CUSTOM.value)),
        is_default=False,
        is_active=data.get("is_active", True),
        created_by=user["id"],
        description=data.get("description"),
        sections=data.get("sections") or [],
        metrics=data.get("metrics") or [],
        branding=data.get("branding"),
        language=data.get("language") or "en",
        date_format=data.get("date_format") or "YYYY-MM-DD",
        time_format=data.get("time_format") or "24h",
    )
    session.add(template)
    await session.flush()
    await session.commit()
    return _template_to_dict(template)


def _ensure_template_owner(template: ReportTemplate, user: Dict, action: str) -> None:
    if template.is_default:
        raise PermissionError(f"Default templates cannot be {action}")
    if template.created_by != user["id"] and not _is_admin(user):
        verb = "update" if action == "modified" else "delete"
        raise PermissionError(f"You do not have permission to {verb} this template")


async def update_template(session: AsyncSession, template_id: int, user: Dict, updates: Dict) -> Dict:
    template = await session.get(ReportTemplate, template_id)
    if template is None:
        raise NotFoundError("Report template not found")
    _ensure_template_owner(template, user, "modified")

    fields = {k: v for k, v in updates.items() if k in TEMPLATE_FIELDS}
    if not fields:
        raise ValueError("No valid fields to update")
    if "name" in fields:
        fields["name"] = fields["name"].strip()
        await _ensure_unique_template_name(session, fields["name"], exclude_id=template_id)
    if "type" in fields:
        fields["type"] = TemplateType(fields["type"])

    for key, value in fields.items():
        setattr(template, key, value)
    await session.commit()
    return _template_to_dict(template)


async def delete_template(session: AsyncSession, template_id: int, user: Dict) -> None:
    template = await session.get(ReportTemplate, template_id)
    if template is None:
        raise NotFoundError("Report template not found")
    _ensure_template_owner(template, user, "deleted")

    scheduled = await session.execute(select(ScheduledReport).where(ScheduledReport.template_id == template_id))
    for report in scheduled.scalars().all():
        await session.delete(report)
    await session.delete(template)
    await session.commit()


# ---------------------------------------------------------------------------
# Scheduled reports
# ---------------------------------------------------------------------------


def _schedule_to_dict(report: ScheduledReport, template_name: Optional[str] = None, team_name: Optional[str] = None) -> Dict:
    return {
        "id": report.id,
        "name": report.name,
        "created_by": report.created_by,
        "template_id": report.template_id,
        "template_name": template_name,
        "schedule_type": report.schedule_type.value,
        "is_active": report.is_active,
        "team_id": report.team_id,
        "team_name": team_name,
        "game_filters": report.game_filters,
        "send_email": report.send_email,
        "email_recipients": report.email_recipients,
        "email_subject": report.email_subject,
        "email_body": report.email_body,
        "last_run_at": isoformat(report.last_run_at),
        "next_run_at": isoformat(report.next_run_at),
        "run_count": report.run_count,
        "created_at": isoformat(report.created_at),
    }


def _schedule_query():
    return (
        select(ScheduledReport, ReportTemplate.name, Team.name)
        .join(ReportTemplate, ReportTemplate.id == ScheduledReport.template_id)
        .outerjoin(Team, Team.id == ScheduledReport.team_id)
    )


async def list_scheduled_reports(
    session: AsyncSession, user: Dict, is_active: Optional[bool] = None, schedule_type: Optional[str] = None
) -> List[Dict]:
    query = _schedule_query()
    if not _is_admin(user):
        query = query.where(ScheduledReport.created_by == user["id"])
    if is_active is not None:
        query = query.where(ScheduledReport.is_active == is_active)
    if schedule_type:
        query = query.where(ScheduledReport.schedule_type == ScheduleType(schedule_type))
    result = await session.execute(query.order_by(ScheduledReport.created_at.desc(), ScheduledReport.id.desc()))
    return [_schedule_to_dict(*row) for row in result.all()]


async def _own_schedule(session: AsyncSession, report_id: int, user: Dict, action: str) -> ScheduledReport:
    report = await session.get(ScheduledReport, report_id)
    if report is None:
        raise NotFoundError("Scheduled report not found")
    if report.created_by != user["id"] and not _is_admin(user):
        if action == "view":
            raise PermissionError("Access denied to this scheduled report")
        raise PermissionError(f"You do not have permission to {action} this scheduled report")
    return report


async def get_scheduled_report(session: AsyncSession, report_id: int, user: Dict) -> Dict:
    await _own_schedule(session, report_id, user, "view")
    result = await session.execute(_schedule_query().where(ScheduledReport.id == report_id))
    return _schedule_to_dict(*result.first())


async def _validate_schedule_refs(session: AsyncSession, user: Dict, template_id: Optional[int], team_id: Optional[int]) -> None:
    if template_id is not None:
        template = await session.get(ReportTemplate, template_id)
        if template is None:
            raise NotFoundError("Template not found")
        if not template.is_default and template.created_by != user["id"] and not _is_admin(user):
            raise PermissionError("You do not have access to this template")
    if team_id is not None and await session.get(Team, team_id) is None:
        raise NotFoundError("Team not found")


async def create_scheduled_report(session: AsyncSession, user: Dict, data: Dict) -> Dict:
    """
    Raises:
        NotFoundError: Unknown template or team
        PermissionError: Template belongs to another user
        ValueError: Email requested without recipients
    """
    await _validate_schedule_refs(session, user, data["template_id"], data.get("team_id"))
    schedule_type = ScheduleType(data["schedule_type"])
    if data.get("send_email") and not data.get("email_recipients"):
        raise ValueError("Email recipients are required when send_email is enabled")

    report = ScheduledReport(
        name=data["name"].strip(),
        created_by=user["id"],
        template_id=data["template_id"],
        schedule_type=schedule_type,
        is_active=True,
        team_id=data.get("team_id"),
        game_filters=data.get("game_filters") or {},
        send_email=bool(data.get("send_email", False)),
        email_recipients=data.get("email_recipients") or [],
        email_subject=data.get("email_subject"),
        email_body=data.get("email_body"),
        next_run_at=compute_next_run(schedule_type, utcnow()),
        run_count=0,
    )
    session.add(report)
    await session.flush()
    await session.commit()
    return await get_scheduled_report(session, report.id, user)


async def update_scheduled_report(session: AsyncSession, report_id: int, user: Dict, updates: Dict) -> Dict:
    report = await _own_schedule(session, report_id, user, "update")
    fields = {k: v for k, v in updates.items() if k in SCHEDULE_FIELDS}
    if not fields:
        raise ValueError("No valid fields to update")

    await _validate_schedule_refs(session, user, fields.get("template_id"), fields.get("team_id"))
    if "schedule_type" in fields:
        fields["schedule_type"] = ScheduleType(fields["schedule_type"])
        fields["next_run_at"] = compute_next_run(fields["schedule_type"], ensure_utc(report.last_run_at) or utcnow())

    for key, value in fields.items():
        setattr(report, key, value)
    await session.commit()
    return await get_scheduled_report(session, report_id, user)


async def delete_scheduled_report(session: AsyncSession, report_id: int, user: Dict) -> None:
    report = await _own_schedule(session, report_id, user, "delete")
    await session.delete(report)
    await session.commit()


async def queue_after_match_reports(session: AsyncSession, game: Game) -> int:
    """Make after_match reports for the game's teams due now. Returns how many were queued."""
    team_ids = [t for t in (game.home_team_id, game.away_team_id) if t is not None]
    query = select(ScheduledReport).where(
        ScheduledReport.is_active == True,  # noqa: E712
        ScheduledReport.schedule_type == ScheduleType.AFTER_MATCH,
    )
    if team_ids:
        query = query.where(or_(ScheduledReport.team_id.is_(None), ScheduledReport.team_id.in_(team_ids)))
    else:
        query = query.where(ScheduledReport.team_id.is_(None))
    reports = (await session.execute(query)).scalars().all()
    now = utcnow()
    for report in reports:
        filters = dict(report.game_filters or {})
        filters["game_id"] = game.id
        report.game_filters = filters
        report.next_run_at = now
    await session.commit()
    return len(reports)


async def queue_season_end_reports(session: AsyncSession) -> int:
    reports = (
        await session.execute(
            select(ScheduledReport).where(
                ScheduledReport.is_active == True,  # noqa: E712
                ScheduledReport.schedule_type == ScheduleType.SEASON_END,
            )
        )
    ).scalars().all()
    now = utcnow()
    for report in reports:
        report.next_run_at = now
    await session.commit()
    return len(reports)


async def due_reports(session: AsyncSession, now: Optional[datetime] = None) -> List[ScheduledReport]:
    now = now or utcnow()
    result = await session.execute(
        select(ScheduledReport).where(
            ScheduledReport.is_active == True,  # noqa: E712
            ScheduledReport.next_run_at.is_not(None),
            ScheduledReport.next_run_at <= now,
        )
    )
    return list(result.scalars().all())


async def run_scheduled_report(session: AsyncSession, report: ScheduledReport) -> Dict:
    """
    Generate one scheduled report, email it when configured, and advance
    its schedule.
    """
    from shotspot.services import export_service, email_service, export_settings_service

    template = await session.get(ReportTemplate, report.template_id)
    if template is None:
        raise NotFoundError("Template not found")

    filters = report.game_filters or {}
    game_id = filters.get("game_id")
    team_id = report.team_id
    if game_id is None and team_id is None:
        raise ValueError("Scheduled report needs a team or a game to report on")

    settings = await export_settings_service.get_settings(session, report.created_by)
    export_format = ExportFormat(filters.get("format") or settings["default_format"])
    export = await export_service.store_export(
        session,
        template,
        report.created_by,
        export_format,
        data_type="game" if game_id is not None else "team",
        game_id=game_id,
        team_id=None if game_id is not None else team_id,
        report_name=f"{report.name} - {utcnow().date().isoformat()}",
    )

    now = utcnow()
    report.last_run_at = now
    report.run_count = (report.run_count or 0) + 1
    report.next_run_at = compute_next_run(report.schedule_type, now)
    if game_id is not None:
        report.game_filters = {k: v for k, v in filters.items() if k != "game_id"}
    await session.commit()

    emailed = False
    if report.send_email and report.email_recipients:
        emailed = await email_service.send_report_email(
            recipients=report.email_recipients,
            subject=report.email_subject or report.name,
            body=report.email_body or f"Your scheduled report '{report.name}' is attached.",
            filename=f"{export.report_name}.{'csv' if export_format == ExportFormat.CSV else 'json'}",
            content=export.content,
        )
    logger.info(f"Scheduled report {report.id} ran (export {export.id}, emailed={emailed})")
    return {"report_id": report.id, "export_id": export.id, "emailed": emailed}


async def defer_report(session: AsyncSession, report_id: int, reason: str) -> None:
    """Move a report that could not run to its next regular slot."""
    report = await session.get(ScheduledReport, report_id)
    if report is None:
        return
    report.next_run_at = compute_next_run(report.schedule_type, utcnow())
    await session.commit()
    logger.warning(f"Scheduled report {report_id} skipped: {reason}")
