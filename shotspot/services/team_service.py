"""
Team CRUD. Teams are age-group squads within a club.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import Club, Team, TeamGender, Player, Game
from shotspot.utils.datetime_utils import isoformat
from shotspot.utils.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "age_group", "gender", "is_active")


def _team_to_dict(team: Team, club_name: Optional[str] = None) -> Dict:
    data = {
        "id": team.id,
        "club_id": team.club_id,
        "name": team.name,
        "age_group": team.age_group,
        "gender": team.gender.value if team.gender else None,
        "is_active": team.is_active,
        "created_at": isoformat(team.created_at),
    }
    if club_name is not None:
        data["club_name"] = club_name
    return data


async def _ensure_unique_name(
    session: AsyncSession, club_id: int, name: str, exclude_id: Optional[int] = None
) -> None:
    query = select(Team.id).where(Team.club_id == club_id, func.lower(Team.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Team.id != exclude_id)
    if (await session.execute(query)).first():
        raise ConflictError("Team name already exists")


async def list_teams(session: AsyncSession, club_id: Optional[int] = None) -> List[Dict]:
    query = select(Team, Club.name).join(Club, Club.id == Team.club_id)
    if club_id is not None:
        query = query.where(Team.club_id == club_id)
    query = query.order_by(Club.name, Team.name)
    result = await session.execute(query)
    return [_team_to_dict(team, club_name) for team, club_name in result.all()]


async def get_team(session: AsyncSession, team_id: int) -> Dict:
    result = await session.execute(
        select(Team, Club.name).join(Club, Club.id == Team.club_id).where(Team.id == team_id)
    )
    row = result.first()
    if row is None:
        raise NotFoundError("Team not found")
    return _team_to_dict(row[0], row[1])


async def create_team(
    session: AsyncSession,
    club_id: int,
    name: str,
    age_group: Optional[str] = None,
    gender: Optional[str] = None,
    is_active: bool = True,
) -> Dict:
    """
    Create a team under a club.

    Raises:
        NotFoundError: Unknown club
        ConflictError: Duplicate team name within the club
    """
    if await session.get(Club, club_id) is None:
        raise NotFoundError("Club not found")
    name = name.strip()
    await _ensure_unique_name(session, club_id, name)

    team = Team(
        club_id=club_id,
        name=name,
        age_group=age_group,
        gender=TeamGender(gender) if gender else None,
        is_active=is_active,
    )
    session.add(team)
    await session.flush()
    await session.commit()
    return _team_to_dict(team)


async def update_team(session: AsyncSession, team_id: int, updates: Dict) -> Dict:
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found")

    fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    if not fields:
        raise ValueError("No valid fields to update")

    if "name" in fields:
        fields["name"] = fields["name"].strip()
        await _ensure_unique_name(session, team.club_id, fields["name"], exclude_id=team_id)
    if "gender" in fields and fields["gender"] is not None:
        fields["gender"] = TeamGender(fields["gender"])

    for key, value in fields.items():
        setattr(team, key, value)
    await session.commit()
    return _team_to_dict(team)


async def delete_team(session: AsyncSession, team_id: int) -> None:
    """
    Raises:
        NotFoundError: Unknown team
        ConflictError: Games or players still reference the team
    """
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found")

    games = await session.execute(
        select(func.count())
        .select_from(Game)
        .where(or_(Game.home_team_id == team_id, Game.away_team_id == team_id))
    )
    if games.scalar():
        raise ConflictError("Cannot delete team: it is referenced by games")

    players = await session.execute(
        select(func.count()).select_from(Player).where(Player.team_id == team_id)
    )
    if players.scalar():
        raise ConflictError("Cannot delete team: it still has players")

    await session.delete(team)
    await session.commit()
