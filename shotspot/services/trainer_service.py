"""
Trainer assignments: which coaches may act on which clubs and teams, and when.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import TrainerAssignment, User, UserRole, Club, Team
from shotspot.utils.datetime_utils import isoformat, utcnow
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)


def _assignment_to_dict(a: TrainerAssignment) -> Dict:
    return {
        "id": a.id,
        "user_id": a.user_id,
        "club_id": a.club_id,
        "team_id": a.team_id,
        "active_from": isoformat(a.active_from),
        "active_to": isoformat(a.active_to),
        "is_active": a.is_active,
    }


def _active_on(day: date):
    return (
        TrainerAssignment.is_active == True,  # noqa: E712
        TrainerAssignment.active_from <= day,
        or_(TrainerAssignment.active_to.is_(None), TrainerAssignment.active_to >= day),
    )


async def list_assignments(
    session: AsyncSession, user_id: Optional[int] = None, club_id: Optional[int] = None
) -> List[Dict]:
    query = select(TrainerAssignment)
    if user_id is not None:
        query = query.where(TrainerAssignment.user_id == user_id)
    if club_id is not None:
        query = query.where(TrainerAssignment.club_id == club_id)
    result = await session.execute(query.order_by(TrainerAssignment.active_from.desc()))
    return [_assignment_to_dict(a) for a in result.scalars().all()]


async def create_assignment(
    session: AsyncSession,
    user_id: int,
    club_id: int,
    active_from: date,
    team_id: Optional[int] = None,
    active_to: Optional[date] = None,
) -> Dict:
    """
    Assign a coach to a club (optionally a single team).

    Raises:
        NotFoundError: Unknown user, club or team
        ValueError: User is not a coach/admin, team outside club, or bad date range
    """
    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    if user.role not in (UserRole.COACH, UserRole.ADMIN):
        raise ValueError("Only coaches can be assigned as trainers")
    if await session.get(Club, club_id) is None:
        raise NotFoundError("Club not found")
    if team_id is not None:
        team = await session.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team not found")
        if team.club_id != club_id:
            raise ValueError("Team does not belong to the specified club")
    if active_to is not None and active_to < active_from:
        raise ValueError("active_to must be on or after active_from")

    assignment = TrainerAssignment(
        user_id=user_id,
        club_id=club_id,
        team_id=team_id,
        active_from=active_from,
        active_to=active_to,
    )
    session.add(assignment)
    await session.flush()
    await session.commit()
    return _assignment_to_dict(assignment)


async def delete_assignment(session: AsyncSession, assignment_id: int) -> None:
    assignment = await session.get(TrainerAssignment, assignment_id)
    if assignment is None:
        raise NotFoundError("Trainer assignment not found")
    await session.delete(assignment)
    await session.commit()


async def has_any_assignment(session: AsyncSession, user_id: int) -> bool:
    result = await session.execute(
        select(func.count()).select_from(TrainerAssignment).where(TrainerAssignment.user_id == user_id)
    )
    return (result.scalar() or 0) > 0


async def has_club_access(
    session: AsyncSession,
    user_id: int,
    club_ids: List[int],
    team_id: Optional[int] = None,
    on_day: Optional[date] = None,
) -> bool:
    """
    True if the user holds an assignment active today for one of the clubs.

    A club-wide assignment (team_id NULL) covers every team in the club;
    a team assignment only covers that team when ``team_id`` is given.
    """
    day = on_day or utcnow().date()
    query = select(TrainerAssignment).where(
        TrainerAssignment.user_id == user_id,
        TrainerAssignment.club_id.in_(club_ids),
        *_active_on(day),
    )
    result = await session.execute(query)
    for assignment in result.scalars().all():
        if assignment.team_id is None or team_id is None or assignment.team_id == team_id:
            return True
    return False
