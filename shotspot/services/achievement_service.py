"""
Achievements: badge catalogue, award checks and shooting leaderboards.

Criteria are JSON objects whose keys select the check:

    game scope (needs a game):
        min_goals_per_game                 goals in the game
        min_shots + min_fg_percentage      shots and accuracy in the game
        min_shots + min_accuracy           (alias)
        consecutive_goals                  longest run of goals in the game
        min_goals + previous_max_goals     big game right after a quiet one
    career scope:
        total_goals / min_total_goals      career goals
        total_shots / min_total_shots      career shots
        min_total_shots + min_fg_percentage
        games_played / min_games_played    games with at least one shot
        hat_tricks                         games with 3+ goals
        min_goals + min_distance           goals scored from distance

Criteria spanning runs of games (consecutive_games, fg_improvement,
distance_increase, per-zone accuracy) and any other keys are never awarded
automatically.
"""

import logging
from collections import namedtuple, OrderedDict
from typing import Dict, List, Optional

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    Achievement,
    Game,
    Player,
    PlayerAchievement,
    Shot,
    ShotResult,
    Team,
)
from shotspot.utils.constants import SEASON_LEADERBOARD_MIN_SHOTS, TEAM_LEADERBOARD_MIN_SHOTS
from shotspot.utils.datetime_utils import isoformat, season_bounds, current_season
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

ShotRecord = namedtuple("ShotRecord", ["game_id", "is_goal", "distance"])

HAT_TRICK_GOALS = 3

UNSUPPORTED_KEYS = frozenset(
    ["consecutive_games", "fg_improvement", "distance_increase", "min_fg_all_zones"]
)


def _percentage(goals: int, shots: int) -> float:
    if not shots:
        return 0.0
    return round(goals / shots * 100, 2)


def _longest_goal_streak(shots: List[ShotRecord]) -> int:
    best = run = 0
    for shot in shots:
        run = run + 1 if shot.is_goal else 0
        best = max(best, run)
    return best


def _goals_per_game(shots: List[ShotRecord]) -> "OrderedDict[int, int]":
    """Goals per game in the order games first appear in ``shots``."""
    per_game: "OrderedDict[int, int]" = OrderedDict()
    for shot in shots:
        per_game.setdefault(shot.game_id, 0)
        if shot.is_goal:
            per_game[shot.game_id] += 1
    return per_game


def player_stats(shots: List[ShotRecord], game_id: Optional[int] = None) -> Dict:
    """
    Shooting stats from a player's shots, ordered chronologically.

    Career figures always; ``game_*`` figures when ``game_id`` is given.
    """
    goals = sum(1 for s in shots if s.is_goal)
    per_game = _goals_per_game(shots)
    stats = {
        "total_shots": len(shots),
        "total_goals": goals,
        "games_played": len(per_game),
        "career_fg_percentage": _percentage(goals, len(shots)),
        "hat_tricks": sum(1 for g in per_game.values() if g >= HAT_TRICK_GOALS),
    }
    if game_id is not None:
        game_shots = [s for s in shots if s.game_id == game_id]
        game_goals = sum(1 for s in game_shots if s.is_goal)
        distances = [s.distance for s in game_shots if s.distance is not None]
        stats.update(
            {
                "game_shots": len(game_shots),
                "game_goals": game_goals,
                "game_fg_percentage": _percentage(game_goals, len(game_shots)),
                "game_avg_distance": round(sum(distances) / len(distances), 2) if distances else 0.0,
            }
        )
    return stats


def is_game_scoped(criteria: Dict) -> bool:
    keys = set(criteria)
    return bool(
        "min_goals_per_game" in keys
        or "consecutive_goals" in keys
        or "previous_max_goals" in keys
        or ("min_shots" in keys and ({"min_fg_percentage", "min_accuracy"} & keys))
    )


def criteria_met(criteria: Dict, shots: List[ShotRecord], game_id: Optional[int] = None) -> bool:
    """Evaluate one achievement's criteria against a player's chronological shots."""
    if not criteria or UNSUPPORTED_KEYS & set(criteria):
        return False
    stats = player_stats(shots, game_id)

    if is_game_scoped(criteria):
        if game_id is None:
            return False
        game_shots = [s for s in shots if s.game_id == game_id]
        if "min_goals_per_game" in criteria:
            return stats["game_goals"] >= criteria["min_goals_per_game"]
        if "consecutive_goals" in criteria:
            return _longest_goal_streak(game_shots) >= criteria["consecutive_goals"]
        if "previous_max_goals" in criteria:
            per_game = list(_goals_per_game(shots).items())
            index = next((i for i, (gid, _) in enumerate(per_game) if gid == game_id), None)
            if not index:
                return False
            return (
                per_game[index][1] >= criteria.get("min_goals", 0)
                and per_game[index - 1][1] <= criteria["previous_max_goals"]
            )
        accuracy = criteria.get("min_fg_percentage", criteria.get("min_accuracy"))
        return stats["game_shots"] >= criteria["min_shots"] and stats["game_fg_percentage"] >= accuracy

    if "min_total_shots" in criteria and "min_fg_percentage" in criteria:
        return (
            stats["total_shots"] >= criteria["min_total_shots"]
            and stats["career_fg_percentage"] >= criteria["min_fg_percentage"]
        )
    if "min_distance" in criteria:
        long_goals = sum(1 for s in shots if s.is_goal and (s.distance or 0) >= criteria["min_distance"])
        return long_goals >= criteria.get("min_goals", 1)
    for key, stat in (
        ("total_goals", "total_goals"),
        ("min_total_goals", "total_goals"),
        ("total_shots", "total_shots"),
        ("min_total_shots", "total_shots"),
        ("games_played", "games_played"),
        ("min_games_played", "games_played"),
        ("hat_tricks", "hat_tricks"),
    ):
        if key in criteria:
            return stats[stat] >= criteria[key]
    return False


def _achievement_to_dict(achievement: Achievement) -> Dict:
    return {
        "id": achievement.id,
        "name": achievement.name,
        "description": achievement.description,
        "badge_icon": achievement.badge_icon,
        "category": achievement.category.value,
        "criteria": achievement.criteria,
        "points": achievement.points,
    }


async def list_achievements(session: AsyncSession) -> List[Dict]:
    result = await session.execute(
        select(Achievement).order_by(Achievement.category, Achievement.points.desc())
    )
    return [_achievement_to_dict(a) for a in result.scalars().all()]


async def get_player_achievements(session: AsyncSession, player_id: int) -> Dict:
    result = await session.execute(
        select(PlayerAchievement, Achievement, Game.date)
        .join(Achievement, Achievement.id == PlayerAchievement.achievement_id)
        .outerjoin(Game, Game.id == PlayerAchievement.game_id)
        .where(PlayerAchievement.player_id == player_id)
        .order_by(PlayerAchievement.earned_at.desc(), PlayerAchievement.id.desc())
    )
    achievements = []
    total_points = 0
    for award, achievement, game_date in result.all():
        total_points += achievement.points
        achievements.append(
            {
                "id": award.id,
                "achievement_id": achievement.id,
                "name": achievement.name,
                "description": achievement.description,
                "badge_icon": achievement.badge_icon,
                "category": achievement.category.value,
                "points": achievement.points,
                "game_id": award.game_id,
                "game_date": isoformat(game_date),
                "earned_at": isoformat(award.earned_at),
                "metadata": award.details,
            }
        )
    return {"player_id": player_id, "achievements": achievements, "total_points": total_points}


async def _player_shots(session: AsyncSession, player_id: int) -> List[ShotRecord]:
    result = await session.execute(
        select(Shot.game_id, Shot.result, Shot.distance)
        .join(Game, Game.id == Shot.game_id)
        .where(Shot.player_id == player_id)
        .order_by(Game.date, Shot.game_id, Shot.created_at, Shot.id)
    )
    return [ShotRecord(game_id, res == ShotResult.GOAL, distance) for game_id, res, distance in result.all()]


async def check_achievements(session: AsyncSession, player_id: int, game_id: Optional[int] = None) -> Dict:
    """
    Award every achievement the player now qualifies for.

    Game-scoped achievements are awarded once per game; career achievements
    once per player.

    Returns:
        {"checked": <catalogue size>, "new_achievements": [...]}
    """
    if await session.get(Player, player_id) is None:
        raise NotFoundError("Player not found")
    if game_id is not None and await session.get(Game, game_id) is None:
        raise NotFoundError("Game not found")

    shots = await _player_shots(session, player_id)
    stats = player_stats(shots, game_id)
    achievements = (await session.execute(select(Achievement))).scalars().all()
    earned = await session.execute(
        select(PlayerAchievement.achievement_id, PlayerAchievement.game_id).where(
            PlayerAchievement.player_id == player_id
        )
    )
    earned_pairs = {(a, g) for a, g in earned.all()}
    earned_ids = {a for a, _ in earned_pairs}

    new_awards = []
    for achievement in achievements:
        criteria = achievement.criteria or {}
        game_scoped = is_game_scoped(criteria)
        if game_scoped and (achievement.id, game_id) in earned_pairs:
            continue
        if not game_scoped and achievement.id in earned_ids:
            continue
        if not criteria_met(criteria, shots, game_id):
            continue

        award = PlayerAchievement(
            player_id=player_id,
            achievement_id=achievement.id,
            game_id=game_id if game_scoped else None,
            details=stats,
        )
        session.add(award)
        await session.flush()
        new_awards.append({**_achievement_to_dict(achievement), "earned_at": isoformat(award.earned_at)})

    await session.commit()
    if new_awards:
        logger.info(f"Player {player_id} earned {len(new_awards)} achievement(s)")
    return {"checked": len(achievements), "new_achievements": new_awards}


async def _achievement_points(session: AsyncSession, player_ids: List[int]) -> Dict[int, Dict]:
    if not player_ids:
        return {}
    result = await session.execute(
        select(
            PlayerAchievement.player_id,
            func.coalesce(func.sum(Achievement.points), 0),
            func.count(func.distinct(PlayerAchievement.achievement_id)),
        )
        .join(Achievement, Achievement.id == PlayerAchievement.achievement_id)
        .where(PlayerAchievement.player_id.in_(player_ids))
        .group_by(PlayerAchievement.player_id)
    )
    return {pid: {"points": int(points), "earned": int(count)} for pid, points, count in result.all()}


def _shooting_columns():
    goals = func.sum(case((Shot.result == ShotResult.GOAL, 1), else_=0))
    return (
        func.count(func.distinct(Shot.game_id)).label("games_played"),
        func.count(Shot.id).label("total_shots"),
        goals.label("total_goals"),
    )


def _rank_rows(rows, points: Dict[int, Dict], limit: int, include_earned: bool = False) -> List[Dict]:
    board = []
    for row in rows:
        shots = int(row.total_shots)
        goals = int(row.total_goals or 0)
        entry = {
            "id": row.id,
            "first_name": row.first_name,
            "last_name": row.last_name,
            "jersey_number": row.jersey_number,
            "games_played": int(row.games_played),
            "total_shots": shots,
            "total_goals": goals,
            "fg_percentage": _percentage(goals, shots),
            "achievement_points": points.get(row.id, {}).get("points", 0),
        }
        if hasattr(row, "team_name"):
            entry["team_name"] = row.team_name
        if include_earned:
            entry["achievements_earned"] = points.get(row.id, {}).get("earned", 0)
        board.append(entry)
    board.sort(key=lambda e: (-e["fg_percentage"], -e["total_goals"], e["id"]))
    board = board[:limit]
    for rank, entry in enumerate(board, start=1):
        entry["rank"] = rank
    return board


async def season_leaderboard(session: AsyncSession, season: Optional[str] = None, limit: int = 50) -> Dict:
    """Best shooters of a season (August to July), minimum 10 shots."""
    season = season or current_season()
    start, end = season_bounds(season)
    result = await session.execute(
        select(Player.id, Player.first_name, Player.last_name, Player.jersey_number, Team.name.label("team_name"), *_shooting_columns())
        .join(Shot, Shot.player_id == Player.id)
        .join(Game, Game.id == Shot.game_id)
        .outerjoin(Team, Team.id == Player.team_id)
        .where(Game.date >= start, Game.date <= end)
        .group_by(Player.id, Player.first_name, Player.last_name, Player.jersey_number, Team.name)
        .having(func.count(Shot.id) >= SEASON_LEADERBOARD_MIN_SHOTS)
    )
    rows = result.all()
    points = await _achievement_points(session, [r.id for r in rows])
    return {"season": season, "leaderboard": _rank_rows(rows, points, limit)}


async def team_leaderboard(session: AsyncSession, team_id: int, limit: int = 20) -> Dict:
    """Best shooters among a team's active players, minimum 5 shots."""
    if await session.get(Team, team_id) is None:
        raise NotFoundError("Team not found")
    result = await session.execute(
        select(Player.id, Player.first_name, Player.last_name, Player.jersey_number, *_shooting_columns())
        .join(Shot, Shot.player_id == Player.id)
        .where(Player.team_id == team_id, Player.is_active == True)  # noqa: E712
        .group_by(Player.id, Player.first_name, Player.last_name, Player.jersey_number)
        .having(func.count(Shot.id) >= TEAM_LEADERBOARD_MIN_SHOTS)
    )
    rows = result.all()
    points = await _achievement_points(session, [r.id for r in rows])
    return {"team_id": team_id, "leaderboard": _rank_rows(rows, points, limit, include_earned=True)}
