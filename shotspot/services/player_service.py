"""
Player CRUD. Jersey numbers are unique within a team.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    Club,
    Team,
    Player,
    PlayerGender,
    GameRoster,
    Shot,
    Substitution,
    PlayerAchievement,
    TwizzitPlayerMapping,
)
from shotspot.utils.datetime_utils import isoformat
from shotspot.utils.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "club_id",
    "team_id",
    "first_name",
    "last_name",
    "jersey_number",
    "gender",
    "position",
    "is_active",
)


def _player_to_dict(player: Player, club_name: Optional[str] = None, team_name: Optional[str] = None) -> Dict:
    data = {
        "id": player.id,
        "club_id": player.club_id,
        "team_id": player.team_id,
        "first_name": player.first_name,
        "last_name": player.last_name,
        "jersey_number": player.jersey_number,
        "gender": player.gender.value if player.gender else None,
        "position": player.position,
        "is_active": player.is_active,
        "created_at": isoformat(player.created_at),
    }
    if club_name is not None:
        data["club_name"] = club_name
    if team_name is not None:
        data["team_name"] = team_name
    return data


async def _validate_team(session: AsyncSession, club_id: int, team_id: Optional[int]) -> None:
    if team_id is None:
        return
    team = await session.get(Team, team_id)
    if team is None:
        raise ValueError("Team does not exist")
    if team.club_id != club_id:
        raise ValueError("Team does not belong to the player's club")


async def _ensure_jersey_free(
    session: AsyncSession,
    team_id: Optional[int],
    jersey_number: Optional[int],
    exclude_id: Optional[int] = None,
) -> None:
    if team_id is None or jersey_number is None:
        return
    query = select(Player.id).where(Player.team_id == team_id, Player.jersey_number == jersey_number)
    if exclude_id is not None:
        query = query.where(Player.id != exclude_id)
    if (await session.execute(query)).first():
        raise ConflictError("Jersey number already in use for this team")


async def list_players(
    session: AsyncSession,
    club_id: Optional[int] = None,
    team_id: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> List[Dict]:
    query = (
        select(Player, Club.name, Team.name)
        .join(Club, Club.id == Player.club_id)
        .outerjoin(Team, Team.id == Player.team_id)
    )
    if club_id is not None:
        query = query.where(Player.club_id == club_id)
    if team_id is not None:
        query = query.where(Player.team_id == team_id)
    if is_active is not None:
        query = query.where(Player.is_active == is_active)
    query = query.order_by(Player.last_name, Player.first_name)
    result = await session.execute(query)
    return [_player_to_dict(p, club_name, team_name) for p, club_name, team_name in result.all()]


async def get_player(session: AsyncSession, player_id: int) -> Dict:
    result = await session.execute(
        select(Player, Club.name, Team.name)
        .join(Club, Club.id == Player.club_id)
        .outerjoin(Team, Team.id == Player.team_id)
        .where(Player.id == player_id)
    )
    row = result.first()
    if row is None:
        raise NotFoundError("Player not found")
    return _player_to_dict(*row)


async def create_player(
    session: AsyncSession,
    club_id: int,
    first_name: str,
    last_name: str,
    jersey_number: Optional[int] = None,
    team_id: Optional[int] = None,
    gender: Optional[str] = None,
    position: Optional[str] = None,
    is_active: bool = True,
) -> Dict:
    """
    Create a player.

    Raises:
        NotFoundError: Unknown club
        ValueError: Team missing or belonging to another club
        ConflictError: Jersey number taken in the team
    """
    if await session.get(Club, club_id) is None:
        raise NotFoundError("Club not found")
    await _validate_team(session, club_id, team_id)
    await _ensure_jersey_free(session, team_id, jersey_number)

    player = Player(
        club_id=club_id,
        team_id=team_id,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        jersey_number=jersey_number,
        gender=PlayerGender(gender) if gender else None,
        position=position,
        is_active=is_active,
    )
    session.add(player)
    await session.flush()
    await session.commit()
    return _player_to_dict(player)


async def update_player(session: AsyncSession, player_id: int, updates: Dict) -> Dict:
    player = await session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player not found")

    fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    if not fields:
        raise ValueError("No valid fields to update")

    club_id = fields.get("club_id", player.club_id)
    if "club_id" in fields and await session.get(Club, club_id) is None:
        raise NotFoundError("Club not found")
    team_id = fields.get("team_id", player.team_id)
    jersey_number = fields.get("jersey_number", player.jersey_number)
    await _validate_team(session, club_id, team_id)
    await _ensure_jersey_free(session, team_id, jersey_number, exclude_id=player_id)

    if "gender" in fields and fields["gender"] is not None:
        fields["gender"] = PlayerGender(fields["gender"])
    for key, value in fields.items():
        setattr(player, key, value)
    await session.commit()
    return _player_to_dict(player)


async def delete_player(session: AsyncSession, player_id: int) -> None:
    """Delete a player with their roster entries, awards and sync mappings."""
    player = await session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player not found")

    shots = await session.execute(
        select(func.count()).select_from(Shot).where(Shot.player_id == player_id)
    )
    subs = await session.execute(
        select(func.count())
        .select_from(Substitution)
        .where(or_(Substitution.player_in_id == player_id, Substitution.player_out_id == player_id))
    )
    if shots.scalar() or subs.scalar():
        raise ConflictError("Cannot delete player with recorded shots or substitutions")

    await session.execute(delete(GameRoster).where(GameRoster.player_id == player_id))
    await session.execute(delete(PlayerAchievement).where(PlayerAchievement.player_id == player_id))
    await session.execute(
        delete(TwizzitPlayerMapping).where(TwizzitPlayerMapping.local_player_id == player_id)
    )
    await session.delete(player)
    await session.commit()
