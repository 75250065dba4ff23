"""
Game rosters: which players each club fields for a game.

A roster is replaced wholesale per club. Players without a synced Twizzit
registration are still rostered, but the response carries a warning for each.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    GameRoster,
    Player,
    StartingPosition,
    TwizzitPlayerMapping,
    MappingSyncStatus,
    UserRole,
)
from shotspot.services import game_service, trainer_service
from shotspot.utils.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)


def _entry_to_dict(entry: GameRoster, player: Optional[Player] = None, mapping=None) -> Dict:
    data = {
        "id": entry.id,
        "game_id": entry.game_id,
        "club_id": entry.club_id,
        "player_id": entry.player_id,
        "is_captain": entry.is_captain,
        "is_starting": entry.is_starting,
        "starting_position": entry.starting_position.value if entry.starting_position else None,
    }
    if player is not None:
        data.update(
            {
                "first_name": player.first_name,
                "last_name": player.last_name,
                "jersey_number": player.jersey_number,
                "gender": player.gender.value if player.gender else None,
            }
        )
    if mapping is not None:
        data["twizzit_player_id"] = mapping.twizzit_player_id
        data["sync_status"] = mapping.sync_status.value
    else:
        data["twizzit_player_id"] = None
        data["sync_status"] = None
    return data


async def _mappings_by_player(session: AsyncSession, player_ids: List[int]) -> Dict[int, TwizzitPlayerMapping]:
    if not player_ids:
        return {}
    result = await session.execute(
        select(TwizzitPlayerMapping).where(TwizzitPlayerMapping.local_player_id.in_(player_ids))
    )
    return {m.local_player_id: m for m in result.scalars().all()}


def registration_warnings(players: List[Dict], mappings: Dict[int, TwizzitPlayerMapping]) -> List[Dict]:
    """Non-blocking warnings for players whose Twizzit registration is missing or not synced."""
    warnings = []
    for player in players:
        mapping = mappings.get(player["player_id"])
        if mapping is None:
            warnings.append(
                {
                    "player_id": player["player_id"],
                    "club_id": player["club_id"],
                    "type": "twizzit_registration_missing",
                    "message": "Player has no Twizzit registration mapping; rostered anyway. Please sync to Twizzit.",
                }
            )
        elif mapping.sync_status != MappingSyncStatus.SUCCESS:
            warnings.append(
                {
                    "player_id": player["player_id"],
                    "club_id": player["club_id"],
                    "twizzit_player_id": mapping.twizzit_player_id,
                    "type": "twizzit_registration_unsynced",
                    "message": (
                        f"Player Twizzit mapping exists but status is {mapping.sync_status.value}; "
                        "rostered anyway."
                    ),
                }
            )
    return warnings


async def ensure_roster_access(session: AsyncSession, user: Dict, club_ids: List[int]) -> None:
    """
    Coaches holding trainer assignments may only set rosters for their clubs.

    Raises:
        PermissionError: Coach has assignments, none of them for a club
    """
    if user.get("role") != UserRole.COACH.value:
        return
    if not await trainer_service.has_any_assignment(session, user["id"]):
        return
    for club_id in club_ids:
        if not await trainer_service.has_club_access(session, user["id"], [club_id]):
            raise PermissionError("Trainer assignment required for this club to set roster")


async def get_roster(session: AsyncSession, game_id: int, club_id: Optional[int] = None) -> List[Dict]:
    await game_service.get_game_model(session, game_id)
    query = (
        select(GameRoster, Player, TwizzitPlayerMapping)
        .join(Player, Player.id == GameRoster.player_id)
        .outerjoin(TwizzitPlayerMapping, TwizzitPlayerMapping.local_player_id == GameRoster.player_id)
        .where(GameRoster.game_id == game_id)
    )
    if club_id is not None:
        query = query.where(GameRoster.club_id == club_id)
    query = query.order_by(GameRoster.club_id, GameRoster.is_starting.desc(), Player.jersey_number)
    result = await session.execute(query)
    return [_entry_to_dict(entry, player, mapping) for entry, player, mapping in result.all()]


async def replace_roster(session: AsyncSession, game_id: int, players: List[Dict], user: Optional[Dict] = None) -> Dict:
    """
    Replace the roster of every club present in ``players``.

    Each item carries club_id, player_id and optional is_captain, is_starting
    and starting_position.

    Returns:
        {"roster": [...], "warnings": [...]}

    Raises:
        NotFoundError: Unknown game or player
        ValueError: Club not in the game, player of another club, two captains for a club
        ConflictError: The same player listed twice
        PermissionError: Coach lacks a trainer assignment for a club
    """
    game = await game_service.get_game_model(session, game_id)
    club_ids = sorted({p["club_id"] for p in players})

    if user is not None:
        await ensure_roster_access(session, user, club_ids)

    for club_id in club_ids:
        game_service.ensure_participating_club(game, club_id)

    seen = set()
    captains = set()
    for item in players:
        if item["player_id"] in seen:
            raise ConflictError("Player already in roster for this game")
        seen.add(item["player_id"])
        if item.get("is_captain"):
            if item["club_id"] in captains:
                raise ValueError("Only one captain allowed per club")
            captains.add(item["club_id"])

    player_ids = list(seen)
    found = {}
    if player_ids:
        result = await session.execute(select(Player).where(Player.id.in_(player_ids)))
        found = {p.id: p for p in result.scalars().all()}
    for item in players:
        player = found.get(item["player_id"])
        if player is None:
            raise NotFoundError(f"Player {item['player_id']} not found")
        if player.club_id != item["club_id"]:
            raise ValueError(f"Player {player.id} does not belong to club {item['club_id']}")

    mappings = await _mappings_by_player(session, player_ids)
    warnings = registration_warnings(players, mappings)

    if club_ids:
        await session.execute(
            delete(GameRoster).where(GameRoster.game_id == game_id, GameRoster.club_id.in_(club_ids))
        )
    for item in players:
        position = item.get("starting_position")
        session.add(
            GameRoster(
                game_id=game_id,
                club_id=item["club_id"],
                player_id=item["player_id"],
                is_captain=bool(item.get("is_captain", False)),
                is_starting=item.get("is_starting") if item.get("is_starting") is not None else True,
                starting_position=StartingPosition(position) if position else None,
            )
        )
    await session.commit()

    if warnings:
        logger.warning(f"Game {game_id} roster saved with {len(warnings)} Twizzit registration warning(s)")
    return {"roster": await get_roster(session, game_id), "warnings": warnings}


async def set_captain(session: AsyncSession, game_id: int, player_id: int) -> Dict:
    """Make a rostered player captain, clearing any other captain of the same club."""
    await game_service.get_game_model(session, game_id)
    result = await session.execute(
        select(GameRoster).where(GameRoster.game_id == game_id, GameRoster.player_id == player_id)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFoundError("Player not in roster for this game")

    others = await session.execute(
        select(GameRoster).where(
            GameRoster.game_id == game_id,
            GameRoster.club_id == entry.club_id,
            GameRoster.is_captain == True,  # noqa: E712
        )
    )
    for other in others.scalars().all():
        other.is_captain = False
    await session.flush()
    entry.is_captain = True
    await session.commit()
    return _entry_to_dict(entry)


async def clear_roster(session: AsyncSession, game_id: int, club_id: Optional[int] = None) -> None:
    await game_service.get_game_model(session, game_id)
    stmt = delete(GameRoster).where(GameRoster.game_id == game_id)
    if club_id is not None:
        stmt = stmt.where(GameRoster.club_id == club_id)
    await session.execute(stmt)
    await session.commit()
