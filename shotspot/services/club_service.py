"""
Club CRUD.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import Club, Team, Player, Game
from shotspot.utils.datetime_utils import isoformat
from shotspot.utils.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)


def _club_to_dict(club: Club) -> Dict:
    return {
        "id": club.id,
        "name": club.name,
        "created_at": isoformat(club.created_at),
    }


async def _name_taken(session: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Club.id).where(func.lower(Club.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Club.id != exclude_id)
    result = await session.execute(query)
    return result.first() is not None


async def list_clubs(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(Club).order_by(Club.name))
    return [_club_to_dict(c) for c in result.scalars().all()]


async def get_club(session: AsyncSession, club_id: int) -> Dict:
    """
    Raises:
        NotFoundError: If the club does not exist
    """
    club = await session.get(Club, club_id)
    if club is None:
        raise NotFoundError("Club not found")
    return _club_to_dict(club)


async def create_club(session: AsyncSession, name: str) -> Dict:
    """
    Create a club.

    Raises:
        ConflictError: If a club with that name exists (case-insensitive)
    """
    name = name.strip()
    if await _name_taken(session, name):
        raise ConflictError("Club name already exists")
    club = Club(name=name)
    session.add(club)
    await session.flush()
    await session.commit()
    logger.info(f"Created club {club.id} ({club.name})")
    return _club_to_dict(club)


async def update_club(session: AsyncSession, club_id: int, name: str) -> Dict:
    club = await session.get(Club, club_id)
    if club is None:
        raise NotFoundError("Club not found")
    name = name.strip()
    if await _name_taken(session, name, exclude_id=club_id):
        raise ConflictError("Club name already exists")
    club.name = name
    await session.commit()
    return _club_to_dict(club)


async def delete_club(session: AsyncSession, club_id: int) -> None:
    """
    Delete a club that nothing references.

    Raises:
        NotFoundError: Unknown club
        ConflictError: The club still has teams, players or games
    """
    club = await session.get(Club, club_id)
    if club is None:
        raise NotFoundError("Club not found")

    games = await session.execute(
        select(func.count())
        .select_from(Game)
        .where(or_(Game.home_club_id == club_id, Game.away_club_id == club_id))
    )
    if games.scalar():
        raise ConflictError("Cannot delete club: it is referenced by games")

    teams = await session.execute(select(func.count()).select_from(Team).where(Team.club_id == club_id))
    if teams.scalar():
        raise ConflictError("Cannot delete club with teams")

    players = await session.execute(
        select(func.count()).select_from(Player).where(Player.club_id == club_id)
    )
    if players.scalar():
        raise ConflictError("Cannot delete club with players")

    await session.delete(club)
    await session.commit()
    logger.info(f"Deleted club {club_id}")
