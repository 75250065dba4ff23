"""
Game events: fouls, faults, free shots, period markers and commentary.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    Club,
    Player,
    GameEvent,
    GameStatus,
    Shot,
    Substitution,
    Timeout,
)
from shotspot.services import game_service
from shotspot.utils.constants import EVENT_TYPES, FAULT_REASONS
from shotspot.utils.datetime_utils import isoformat, ensure_utc
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("event_type", "player_id", "club_id", "period", "time_remaining_seconds", "details")


def _event_to_dict(event: GameEvent, club_name: Optional[str] = None, player: Optional[Player] = None) -> Dict:
    data = {
        "id": event.id,
        "game_id": event.game_id,
        "event_type": event.event_type,
        "player_id": event.player_id,
        "club_id": event.club_id,
        "period": event.period,
        "time_remaining_seconds": event.time_remaining_seconds,
        "details": event.details,
        "created_at": isoformat(event.created_at),
        "club_name": club_name,
    }
    if player is not None:
        data["first_name"] = player.first_name
        data["last_name"] = player.last_name
        data["jersey_number"] = player.jersey_number
    return data


def validate_event_type(event_type: str) -> None:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Invalid event type: {event_type}")


def validate_fault_details(event_type: str, details: Optional[Dict]) -> None:
    """Fault events may carry a reason; it must be one of the known fault reasons."""
    if not event_type.startswith("fault_") or not details:
        return
    reason = details.get("reason")
    if reason and reason not in FAULT_REASONS:
        raise ValueError("Invalid fault reason")


async def _validate_player(session: AsyncSession, player_id: Optional[int], club_id: int) -> None:
    if player_id is None:
        return
    player = await session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player not found")
    if player.club_id != club_id:
        raise ValueError("Player does not belong to the specified club")


async def _get_event_row(session: AsyncSession, game_id: int, event_id: int) -> Dict:
    result = await session.execute(
        select(GameEvent, Club.name, Player)
        .outerjoin(Club, Club.id == GameEvent.club_id)
        .outerjoin(Player, Player.id == GameEvent.player_id)
        .where(GameEvent.id == event_id, GameEvent.game_id == game_id)
    )
    row = result.first()
    if row is None:
        raise NotFoundError("Event not found")
    return _event_to_dict(*row)


async def list_events(
    session: AsyncSession,
    game_id: int,
    event_type: Optional[str] = None,
    club_id: Optional[int] = None,
    player_id: Optional[int] = None,
    period: Optional[int] = None,
) -> List[Dict]:
    await game_service.get_game_model(session, game_id)
    query = (
        select(GameEvent, Club.name, Player)
        .outerjoin(Club, Club.id == GameEvent.club_id)
        .outerjoin(Player, Player.id == GameEvent.player_id)
        .where(GameEvent.game_id == game_id)
    )
    if event_type:
        query = query.where(GameEvent.event_type == event_type)
    if club_id is not None:
        query = query.where(GameEvent.club_id == club_id)
    if player_id is not None:
        query = query.where(GameEvent.player_id == player_id)
    if period is not None:
        query = query.where(GameEvent.period == period)
    query = query.order_by(GameEvent.created_at.desc(), GameEvent.id.desc())
    result = await session.execute(query)
    return [_event_to_dict(*row) for row in result.all()]


async def create_event(
    session: AsyncSession,
    game_id: int,
    event_type: str,
    club_id: int,
    period: int,
    player_id: Optional[int] = None,
    time_remaining_seconds: Optional[int] = None,
    details: Optional[Dict] = None,
) -> Dict:
    """
    Record an event for a game in progress.

    Raises:
        NotFoundError: Unknown game or player
        ValueError: Game not in progress, club not playing, player of another
            club, unknown event type or fault reason
    """
    validate_event_type(event_type)
    game = await game_service.get_game_model(session, game_id)
    if game.status != GameStatus.IN_PROGRESS:
        raise ValueError("Cannot add events to game that is not in progress")
    game_service.ensure_participating_club(game, club_id)
    await _validate_player(session, player_id, club_id)
    validate_fault_details(event_type, details)

    event = GameEvent(
        game_id=game_id,
        event_type=event_type,
        player_id=player_id,
        club_id=club_id,
        period=period,
        time_remaining_seconds=time_remaining_seconds,
        details=details,
    )
    session.add(event)
    await session.flush()
    await session.commit()
    logger.debug(f"Game {game_id}: {event_type} event recorded")
    return await _get_event_row(session, game_id, event.id)


async def update_event(session: AsyncSession, game_id: int, event_id: int, updates: Dict) -> Dict:
    event = await session.get(GameEvent, event_id)
    if event is None or event.game_id != game_id:
        raise NotFoundError("Event not found")

    fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    if not fields:
        raise ValueError("No fields to update")

    event_type = fields.get("event_type", event.event_type)
    club_id = fields.get("club_id", event.club_id)
    if "event_type" in fields:
        validate_event_type(event_type)
    if "club_id" in fields:
        game = await game_service.get_game_model(session, game_id)
        game_service.ensure_participating_club(game, club_id)
    if "player_id" in fields or "club_id" in fields:
        await _validate_player(session, fields.get("player_id", event.player_id), club_id)
    validate_fault_details(event_type, fields.get("details", event.details))

    for key, value in fields.items():
        setattr(event, key, value)
    await session.commit()
    return await _get_event_row(session, game_id, event_id)


async def delete_event(session: AsyncSession, game_id: int, event_id: int) -> None:
    result = await session.execute(
        delete(GameEvent).where(GameEvent.id == event_id, GameEvent.game_id == game_id)
    )
    if result.rowcount == 0:
        raise NotFoundError("Event not found")
    await session.commit()


def _timeline_entry(source: str, type_: str, row, details: Dict, club_names: Dict, players: Dict) -> Dict:
    player = players.get(getattr(row, "player_id", None))
    return {
        "source_table": source,
        "id": row.id,
        "game_id": row.game_id,
        "type": type_,
        "club_id": row.club_id,
        "club_name": club_names.get(row.club_id),
        "player_id": getattr(row, "player_id", None),
        "first_name": player.first_name if player else None,
        "last_name": player.last_name if player else None,
        "jersey_number": player.jersey_number if player else None,
        "period": row.period,
        "time_remaining_seconds": row.time_remaining_seconds,
        "details": details,
        "created_at": isoformat(row.created_at),
        "_sort": ensure_utc(row.created_at),
    }


async def comprehensive_timeline(
    session: AsyncSession, game_id: int, type_filter: Optional[str] = None, period: Optional[int] = None
) -> List[Dict]:
    """
    Merge game events, shots, substitutions and timeouts into one timeline,
    newest first. ``type_filter`` matches the merged ``type`` value
    (e.g. ``shot_goal``, ``timeout_team``, ``fault_offensive``).
    """
    game = await game_service.get_game_model(session, game_id)

    def _period(query, model):
        return query.where(model.period == period) if period is not None else query

    events = (await session.execute(_period(select(GameEvent).where(GameEvent.game_id == game_id), GameEvent))).scalars().all()
    shots = (await session.execute(_period(select(Shot).where(Shot.game_id == game_id), Shot))).scalars().all()
    subs = (await session.execute(_period(select(Substitution).where(Substitution.game_id == game_id), Substitution))).scalars().all()
    timeouts = (await session.execute(_period(select(Timeout).where(Timeout.game_id == game_id), Timeout))).scalars().all()

    clubs = await session.execute(
        select(Club.id, Club.name).where(Club.id.in_([game.home_club_id, game.away_club_id]))
    )
    club_names = {cid: name for cid, name in clubs.all()}

    player_ids = {e.player_id for e in events if e.player_id} | {s.player_id for s in shots}
    for sub in subs:
        player_ids.update((sub.player_in_id, sub.player_out_id))
    players = {}
    if player_ids:
        result = await session.execute(select(Player).where(Player.id.in_(player_ids)))
        players = {p.id: p for p in result.scalars().all()}

    timeline = []
    for e in events:
        timeline.append(_timeline_entry("game_event", e.event_type, e, e.details, club_names, players))
    for s in shots:
        details = {
            "result": s.result.value,
            "x_coord": s.x_coord,
            "y_coord": s.y_coord,
            "distance": s.distance,
            "shot_type": s.shot_type,
        }
        timeline.append(_timeline_entry("shot", f"shot_{s.result.value}", s, details, club_names, players))
    for sub in subs:
        player_in = players.get(sub.player_in_id)
        player_out = players.get(sub.player_out_id)
        details = {
            "player_in_id": sub.player_in_id,
            "player_in_name": f"{player_in.first_name} {player_in.last_name}" if player_in else None,
            "player_out_id": sub.player_out_id,
            "player_out_name": f"{player_out.first_name} {player_out.last_name}" if player_out else None,
            "reason": sub.reason.value,
        }
        timeline.append(_timeline_entry("substitution", "substitution", sub, details, club_names, players))
    for t in timeouts:
        details = {
            "duration_seconds": t.duration_seconds,
            "reason": t.reason,
            "called_by": t.called_by,
            "ended_at": isoformat(t.ended_at),
        }
        timeline.append(
            _timeline_entry("timeout", f"timeout_{t.timeout_type.value}", t, details, club_names, players)
        )

    if type_filter:
        timeline = [entry for entry in timeline if entry["type"] == type_filter]
    timeline.sort(key=lambda entry: (entry["_sort"] is not None, entry["_sort"]), reverse=True)
    for entry in timeline:
        del entry["_sort"]
    return timeline
