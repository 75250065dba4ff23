"""
Shots on goal. Goals drive the game score: recording one increments the
shooting club's score, and edits or deletions keep the score in step
(never below zero).
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import Club, Game, GameStatus, Player, Shot, ShotResult
from shotspot.services import game_service
from shotspot.utils.datetime_utils import isoformat
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("x_coord", "y_coord", "result", "period", "time_remaining_seconds", "shot_type", "distance")


def _shot_to_dict(shot: Shot, player: Optional[Player] = None, club_name: Optional[str] = None) -> Dict:
    data = {
        "id": shot.id,
        "game_id": shot.game_id,
        "player_id": shot.player_id,
        "club_id": shot.club_id,
        "x_coord": shot.x_coord,
        "y_coord": shot.y_coord,
        "result": shot.result.value,
        "period": shot.period,
        "time_remaining_seconds": shot.time_remaining_seconds,
        "shot_type": shot.shot_type,
        "distance": shot.distance,
        "created_at": isoformat(shot.created_at),
    }
    if player is not None:
        data["first_name"] = player.first_name
        data["last_name"] = player.last_name
        data["jersey_number"] = player.jersey_number
    if club_name is not None:
        data["club_name"] = club_name
    return data


def _adjust_score(game: Game, club_id: int, delta: int) -> None:
    if club_id == game.home_club_id:
        game.home_score = max(0, game.home_score + delta)
    else:
        game.away_score = max(0, game.away_score + delta)


def _shot_query():
    return (
        select(Shot, Player, Club.name)
        .join(Player, Player.id == Shot.player_id)
        .join(Club, Club.id == Shot.club_id)
    )


async def list_shots(
    session: AsyncSession,
    game_id: int,
    period: Optional[int] = None,
    club_id: Optional[int] = None,
    player_id: Optional[int] = None,
    result: Optional[str] = None,
) -> List[Dict]:
    await game_service.get_game_model(session, game_id)
    query = _shot_query().where(Shot.game_id == game_id)
    if period is not None:
        query = query.where(Shot.period == period)
    if club_id is not None:
        query = query.where(Shot.club_id == club_id)
    if player_id is not None:
        query = query.where(Shot.player_id == player_id)
    if result:
        query = query.where(Shot.result == ShotResult(result))
    rows = await session.execute(query.order_by(Shot.created_at.desc(), Shot.id.desc()))
    return [_shot_to_dict(*row) for row in rows.all()]


async def create_shot(
    session: AsyncSession,
    game_id: int,
    player_id: int,
    club_id: int,
    x_coord: float,
    y_coord: float,
    result: str,
    period: int,
    time_remaining_seconds: Optional[int] = None,
    shot_type: Optional[str] = None,
    distance: Optional[float] = None,
) -> Dict:
    """
    Record a shot and update the score on a goal.

    Raises:
        NotFoundError: Unknown game or player
        ValueError: Game not in progress, player/club mismatch, club not playing
    """
    game = await game_service.get_game_model(session, game_id)
    if game.status != GameStatus.IN_PROGRESS:
        raise ValueError("Can only record shots for games in progress")

    player = await session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player not found")
    if player.club_id != club_id:
        raise ValueError("Player does not belong to the specified club")
    game_service.ensure_participating_club(game, club_id)

    shot = Shot(
        game_id=game_id,
        player_id=player_id,
        club_id=club_id,
        x_coord=x_coord,
        y_coord=y_coord,
        result=ShotResult(result),
        period=period,
        time_remaining_seconds=time_remaining_seconds,
        shot_type=shot_type,
        distance=distance,
    )
    session.add(shot)
    if shot.result == ShotResult.GOAL:
        _adjust_score(game, club_id, 1)
    await session.flush()
    await session.commit()
    return _shot_to_dict(shot, player)


async def update_shot(session: AsyncSession, game_id: int, shot_id: int, updates: Dict) -> Dict:
    shot = await session.get(Shot, shot_id)
    if shot is None or shot.game_id != game_id:
        raise NotFoundError("Shot not found")

    fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    if not fields:
        raise ValueError("No fields to update")

    if "result" in fields:
        new_result = ShotResult(fields["result"])
        fields["result"] = new_result
        was_goal = shot.result == ShotResult.GOAL
        is_goal = new_result == ShotResult.GOAL
        if was_goal != is_goal:
            game = await game_service.get_game_model(session, game_id)
            _adjust_score(game, shot.club_id, 1 if is_goal else -1)

    for key, value in fields.items():
        setattr(shot, key, value)
    await session.commit()
    return _shot_to_dict(shot)


async def delete_shot(session: AsyncSession, game_id: int, shot_id: int) -> None:
    shot = await session.get(Shot, shot_id)
    if shot is None or shot.game_id != game_id:
        raise NotFoundError("Shot not found")
    if shot.result == ShotResult.GOAL:
        game = await game_service.get_game_model(session, game_id)
        _adjust_score(game, shot.club_id, -1)
    await session.delete(shot)
    await session.commit()
