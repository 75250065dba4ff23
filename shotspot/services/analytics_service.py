"""
Game analytics built from recorded shots and events: location heatmap, shot
chart, per-player shooting figures, a summary, live and per-period reports,
a momentum tracker and the dashboard counts.

Court coordinates run 0-100 on both axes; the court is split into three
zones along x (left, center, right).
"""

import logging
import math
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import Club, Game, Player, Shot, ShotResult, Team
from shotspot.services import clock_service, event_service, game_service
from shotspot.utils.datetime_utils import isoformat, utcnow

logger = logging.getLogger(__name__)

MIN_GRID_SIZE = 5
MAX_GRID_SIZE = 20
ZONES = ("left", "center", "right")

MOMENTUM_DEFAULT_WINDOW = 10
MOMENTUM_MIN_WINDOW = 5
MOMENTUM_MAX_WINDOW = 20
MOMENTUM_SCORES = {ShotResult.GOAL: 3, ShotResult.MISS: -1, ShotResult.BLOCKED: -2}


def fg_percentage(goals: int, shots: int) -> float:
    """Goals per shot as a percentage, 2 decimals; 0.0 without shots."""
    return round(goals / shots * 100, 2) if shots else 0.0


def court_zone(x_coord: float) -> str:
    if x_coord < 100 / 3:
        return "left"
    if x_coord < 200 / 3:
        return "center"
    return "right"


def _average(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _result_counts(shots: List[Shot]) -> Dict[str, int]:
    return {
        "goals": sum(1 for s in shots if s.result == ShotResult.GOAL),
        "misses": sum(1 for s in shots if s.result == ShotResult.MISS),
        "blocked": sum(1 for s in shots if s.result == ShotResult.BLOCKED),
    }


async def _load_shots(
    session: AsyncSession,
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
    player_id: Optional[int] = None,
):
    await game_service.get_game_model(session, game_id)
    query = (
        select(Shot, Player, Club.name)
        .join(Player, Player.id == Shot.player_id)
        .join(Club, Club.id == Shot.club_id)
        .where(Shot.game_id == game_id)
    )
    if club_id is not None:
        query = query.where(Shot.club_id == club_id)
    if period is not None:
        query = query.where(Shot.period == period)
    if player_id is not None:
        query = query.where(Shot.player_id == player_id)
    result = await session.execute(query.order_by(Shot.created_at, Shot.id))
    return result.all()


async def shot_heatmap(
    session: AsyncSession,
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
    grid_size: int = 10,
) -> Dict:
    """
    Bucket shots into a grid_size x grid_size grid over the court.

    Each cell is keyed by its lower-left corner; shots on the far edge (100)
    fall in the last cell. Only cells with shots are returned.

    Raises:
        ValueError: grid_size outside 5-20
    """
    if not MIN_GRID_SIZE <= grid_size <= MAX_GRID_SIZE:
        raise ValueError(f"Grid size must be between {MIN_GRID_SIZE} and {MAX_GRID_SIZE}")
    cell = 100.0 / grid_size

    cells: Dict[tuple, List[Shot]] = {}
    for shot, _, _ in await _load_shots(session, game_id, club_id=club_id, period=period):
        column = min(int(math.floor(shot.x_coord / cell)), grid_size - 1)
        row = min(int(math.floor(shot.y_coord / cell)), grid_size - 1)
        cells.setdefault((column, row), []).append(shot)

    data = []
    for (column, row), shots in sorted(cells.items()):
        counts = _result_counts(shots)
        data.append(
            {
                "x": round(column * cell, 2),
                "y": round(row * cell, 2),
                "count": len(shots),
                **counts,
                "success_rate": fg_percentage(counts["goals"], len(shots)),
            }
        )
    return {"grid_size": grid_size, "data": data}


async def shot_chart(
    session: AsyncSession,
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
    player_id: Optional[int] = None,
) -> List[Dict]:
    """Every shot with its location and shooter, in the order taken."""
    rows = await _load_shots(session, game_id, club_id=club_id, period=period, player_id=player_id)
    return [
        {
            "id": shot.id,
            "x_coord": shot.x_coord,
            "y_coord": shot.y_coord,
            "result": shot.result.value,
            "period": shot.period,
            "shot_type": shot.shot_type,
            "distance": shot.distance,
            "time_remaining_seconds": shot.time_remaining_seconds,
            "player_id": shot.player_id,
            "first_name": player.first_name,
            "last_name": player.last_name,
            "jersey_number": player.jersey_number,
            "club_id": shot.club_id,
            "club_name": club_name,
            "created_at": isoformat(shot.created_at),
        }
        for shot, player, club_name in rows
    ]


async def player_shot_stats(session: AsyncSession, game_id: int, club_id: Optional[int] = None) -> List[Dict]:
    """Shooting figures per player, best scorers first."""
    grouped: Dict[int, Dict] = {}
    for shot, player, club_name in await _load_shots(session, game_id, club_id=club_id):
        entry = grouped.setdefault(
            player.id, {"player": player, "club_id": shot.club_id, "club_name": club_name, "shots": []}
        )
        entry["shots"].append(shot)

    stats = []
    for player_id, entry in grouped.items():
        player, shots = entry["player"], entry["shots"]
        counts = _result_counts(shots)
        zones = {}
        for zone in ZONES:
            zone_shots = [s for s in shots if court_zone(s.x_coord) == zone]
            zone_goals = sum(1 for s in zone_shots if s.result == ShotResult.GOAL)
            zones[zone] = {
                "shots": len(zone_shots),
                "goals": zone_goals,
                "success_rate": fg_percentage(zone_goals, len(zone_shots)),
            }
        stats.append(
            {
                "player_id": player_id,
                "first_name": player.first_name,
                "last_name": player.last_name,
                "jersey_number": player.jersey_number,
                "club_id": entry["club_id"],
                "club_name": entry["club_name"],
                "total_shots": len(shots),
                **counts,
                "field_goal_percentage": fg_percentage(counts["goals"], len(shots)),
                "avg_distance": _average([s.distance for s in shots if s.distance is not None]),
                "avg_x_coord": _average([s.x_coord for s in shots]),
                "avg_y_coord": _average([s.y_coord for s in shots]),
                "zone_performance": zones,
            }
        )
    stats.sort(key=lambda r: (-r["goals"], -r["total_shots"], r["player_id"]))
    return stats


async def shot_summary(session: AsyncSession, game_id: int) -> Dict:
    """Game-wide shooting totals plus a per-club breakdown."""
    rows = await _load_shots(session, game_id)
    shots = [shot for shot, _, _ in rows]
    counts = _result_counts(shots)

    by_club: Dict[int, Dict] = {}
    for shot, _, club_name in rows:
        entry = by_club.setdefault(
            shot.club_id, {"club_id": shot.club_id, "club_name": club_name, "total_shots": 0, "goals": 0}
        )
        entry["total_shots"] += 1
        if shot.result == ShotResult.GOAL:
            entry["goals"] += 1
    for entry in by_club.values():
        entry["fg_percentage"] = fg_percentage(entry["goals"], entry["total_shots"])

    return {
        "overall": {
            "total_shots": len(shots),
            "total_goals": counts["goals"],
            "total_misses": counts["misses"],
            "total_blocked": counts["blocked"],
            "overall_fg_percentage": fg_percentage(counts["goals"], len(shots)),
            "avg_shot_distance": _average([s.distance for s in shots if s.distance is not None]),
        },
        "by_club": sorted(by_club.values(), key=lambda r: r["club_id"]),
    }


def _club_line(club_id: int, club_name: Optional[str], shots: List[Shot]) -> Dict:
    counts = _result_counts(shots)
    return {
        "club_id": club_id,
        "club_name": club_name,
        "total_shots": len(shots),
        **counts,
        "fg_percentage": fg_percentage(counts["goals"], len(shots)),
    }


def _scorer_lines(rows) -> List[Dict]:
    grouped: Dict[int, Dict] = {}
    for shot, player, club_name in rows:
        entry = grouped.setdefault(
            player.id,
            {
                "player_id": player.id,
                "name": f"{player.first_name} {player.last_name}",
                "jersey_number": player.jersey_number,
                "club_name": club_name,
                "shots": 0,
                "goals": 0,
            },
        )
        entry["shots"] += 1
        if shot.result == ShotResult.GOAL:
            entry["goals"] += 1
    lines = sorted(grouped.values(), key=lambda r: (-r["goals"], -r["shots"], r["player_id"]))
    for line in lines:
        line["fg_percentage"] = fg_percentage(line["goals"], line["shots"])
    return lines


async def live_report(session: AsyncSession, game_id: int) -> Dict:
    """Score, clock, per-club shooting, the last 10 events and the top 5 scorers."""
    game = await game_service.get_game(session, game_id)
    model = await game_service.get_game_model(session, game_id)
    rows = await _load_shots(session, game_id)

    shot_summary = []
    for side in ("home", "away"):
        club_id = game[f"{side}_club_id"]
        shot_summary.append(
            _club_line(club_id, game[f"{side}_club_name"], [s for s, _, _ in rows if s.club_id == club_id])
        )

    events = await event_service.list_events(session, game_id)
    scorers = [line for line in _scorer_lines(rows) if line["goals"] > 0]
    return {
        "game": {
            "id": game["id"],
            "home_club": game["home_club_name"],
            "away_club": game["away_club_name"],
            "home_score": game["home_score"],
            "away_score": game["away_score"],
            "status": game["status"],
            "current_period": game["current_period"],
            "time_remaining_seconds": clock_service.remaining_for_game(model),
            "timer_state": game["timer_state"],
            "date": game["date"],
        },
        "shot_summary": shot_summary,
        "recent_events": events[:10],
        "top_scorers": scorers[:5],
        "generated_at": isoformat(utcnow()),
    }


async def period_report(session: AsyncSession, game_id: int, period: int) -> Dict:
    """Shooting per club and player plus the events of one period."""
    if period < 1:
        raise ValueError("Period must be a positive integer")
    rows = await _load_shots(session, game_id, period=period)

    club_stats: Dict[int, Dict] = {}
    for shot, _, club_name in rows:
        club_stats.setdefault(shot.club_id, {"club_name": club_name, "shots": []})["shots"].append(shot)
    team_stats = []
    for club_id in sorted(club_stats):
        shots = club_stats[club_id]["shots"]
        line = _club_line(club_id, club_stats[club_id]["club_name"], shots)
        line["avg_distance"] = _average([s.distance for s in shots if s.distance is not None])
        team_stats.append(line)

    events = await event_service.list_events(session, game_id, period=period)
    return {
        "game_id": game_id,
        "period": period,
        "team_stats": team_stats,
        "events": list(reversed(events)),
        "player_stats": _scorer_lines(rows),
        "generated_at": isoformat(utcnow()),
    }


async def momentum(session: AsyncSession, game_id: int, window: int = MOMENTUM_DEFAULT_WINDOW) -> Dict:
    """
    Momentum of each club over the last ``window`` shots.

    Goals score +3, misses -1 and blocked shots -2; the newest shot weighs
    1 and each older one 1/window less. Each club's total is scaled to
    -100..100 against a window of goals at full weight.

    Raises:
        ValueError: window outside 5-20
    """
    if not MOMENTUM_MIN_WINDOW <= window <= MOMENTUM_MAX_WINDOW:
        raise ValueError(f"Window must be between {MOMENTUM_MIN_WINDOW} and {MOMENTUM_MAX_WINDOW}")
    game = await game_service.get_game_model(session, game_id)
    result = await session.execute(
        select(Shot, Club.name)
        .join(Club, Club.id == Shot.club_id)
        .where(Shot.game_id == game_id)
        .order_by(Shot.created_at.desc(), Shot.id.desc())
        .limit(window)
    )
    recent = result.all()
    if not recent:
        return {"message": "No shots data available yet", "momentum": {"home": 0, "away": 0}}

    totals = {game.home_club_id: 0.0, game.away_club_id: 0.0}
    for index, (shot, _) in enumerate(recent):
        weight = (window - index) / window
        totals[shot.club_id] = totals.get(shot.club_id, 0.0) + MOMENTUM_SCORES[shot.result] * weight

    scale = MOMENTUM_SCORES[ShotResult.GOAL] * window
    home = round(totals[game.home_club_id] / scale * 100)
    away = round(totals[game.away_club_id] / scale * 100)
    trend = "home" if home > away else "away" if away > home else "even"
    return {
        "window_size": window,
        "recent_shots_analyzed": len(recent),
        "momentum": {"home": home, "away": away, "trend": trend},
        "recent_shots": [
            {"club_name": club_name, "result": shot.result.value, "time": isoformat(shot.created_at)}
            for shot, club_name in recent[:5]
        ],
    }


async def dashboard_summary(session: AsyncSession) -> Dict[str, int]:
    """Row counts for the landing page."""
    counts = {}
    for key, model in (("clubs", Club), ("teams", Team), ("players", Player), ("games", Game)):
        result = await session.execute(select(func.count()).select_from(model))
        counts[key] = result.scalar() or 0
    return counts
