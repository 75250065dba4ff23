"""
Database tests for ball possessions, per-game shot analytics, live and
period reports, momentum and the dashboard counts.
"""

from datetime import datetime

import pytest
import pytest_asyncio
import pytz

from shotspot.services import (
    analytics_service,
    club_service,
    game_service,
    player_service,
    possession_service,
    shot_service,
)
from shotspot.utils.errors import NotFoundError


@pytest_asyncio.fixture
async def live_game(db_session):
    """A game in progress between two clubs with one shooter each."""
    home = await club_service.create_club(db_session, "Fortuna Delft")
    away = await club_service.create_club(db_session, "PKC Papendrecht")
    outsider = await club_service.create_club(db_session, "DOS'46")
    home_player = await player_service.create_player(db_session, home["id"], "Anna", "Jansen", jersey_number=9)
    away_player = await player_service.create_player(db_session, away["id"], "Bram", "de Vries", jersey_number=4)
    game = await game_service.create_game(
        db_session, home["id"], away["id"], pytz.UTC.localize(datetime(2025, 3, 1, 14, 0))
    )
    return {
        "game": game,
        "home": home,
        "away": away,
        "outsider": outsider,
        "home_player": home_player,
        "away_player": away_player,
    }


@pytest.mark.asyncio
async def test_possession_flow(db_session, live_game):
    game_id = live_game["game"]["id"]
    home_id, away_id = live_game["home"]["id"], live_game["away"]["id"]

    with pytest.raises(ValueError, match="not in progress"):
        await possession_service.start_possession(db_session, game_id, home_id, 1)
    await game_service.start_game(db_session, game_id)
    with pytest.raises(ValueError, match="not participating"):
        await possession_service.start_possession(db_session, game_id, live_game["outsider"]["id"], 1)
    with pytest.raises(NotFoundError, match="No active possession"):
        await possession_service.get_active_possession(db_session, game_id)

    first = await possession_service.start_possession(db_session, game_id, home_id, 1)
    assert first["ended_at"] is None
    assert first["shots_taken"] == 0

    second = await possession_service.start_possession(db_session, game_id, away_id, 1)
    active = await possession_service.get_active_possession(db_session, game_id)
    assert active["id"] == second["id"]
    assert active["club_name"] == "PKC Papendrecht"
    assert active["current_duration_seconds"] >= 0

    # Taking over closes the previous possession as a turnover
    home_rows = await possession_service.list_possessions(db_session, game_id, club_id=home_id)
    assert [p["result"] for p in home_rows] == ["turnover"]
    assert home_rows[0]["duration_seconds"] >= 0

    await possession_service.record_shot(db_session, game_id, second["id"])
    await possession_service.record_shot(db_session, game_id, second["id"])
    ended = await possession_service.end_possession(db_session, game_id, second["id"], "goal")
    assert ended["result"] == "goal"
    assert ended["shots_taken"] == 2

    with pytest.raises(NotFoundError, match="already ended"):
        await possession_service.end_possession(db_session, game_id, second["id"], "turnover")
    with pytest.raises(NotFoundError):
        await possession_service.record_shot(db_session, game_id + 1, second["id"])

    listed = await possession_service.list_possessions(db_session, game_id)
    assert [p["id"] for p in listed] == [second["id"], first["id"]]
    assert await possession_service.list_possessions(db_session, game_id, period=2) == []

    stats = {s["club_id"]: s for s in await possession_service.possession_stats(db_session, game_id)}
    assert stats[home_id]["total_possessions"] == 1
    assert stats[home_id]["turnovers"] == 1
    assert stats[home_id]["possessions_with_goal"] == 0
    assert stats[away_id]["possessions_with_goal"] == 1
    assert stats[away_id]["avg_shots_per_possession"] == 2.0


@pytest.mark.asyncio
async def test_open_possession_is_left_out_of_stats(db_session, live_game):
    game_id = live_game["game"]["id"]
    await game_service.start_game(db_session, game_id)
    await possession_service.start_possession(db_session, game_id, live_game["home"]["id"], 1)
    assert await possession_service.possession_stats(db_session, game_id) == []


@pytest_asyncio.fixture
async def shots(db_session, live_game):
    game_id = live_game["game"]["id"]
    home_id, away_id = live_game["home"]["id"], live_game["away"]["id"]
    home_player, away_player = live_game["home_player"]["id"], live_game["away_player"]["id"]
    await game_service.start_game(db_session, game_id)
    for x, y, result, period, distance in (
        (10, 10, "goal", 1, 4.0),
        (10, 12, "miss", 1, 6.0),
        (50, 50, "goal", 2, None),
        (100, 100, "blocked", 2, 8.0),
    ):
        await shot_service.create_shot(db_session, game_id, home_player, home_id, x, y, result, period, distance=distance)
    await shot_service.create_shot(db_session, game_id, away_player, away_id, 80, 20, "miss", 1, distance=10.0)
    return live_game


@pytest.mark.asyncio
async def test_shot_heatmap(db_session, shots):
    game_id = shots["game"]["id"]
    heatmap = await analytics_service.shot_heatmap(db_session, game_id)
    assert heatmap["grid_size"] == 10
    cells = [(c["x"], c["y"], c["count"]) for c in heatmap["data"]]
    # The far edge of the court lands in the last cell
    assert cells == [(10.0, 10.0, 2), (50.0, 50.0, 1), (80.0, 20.0, 1), (90.0, 90.0, 1)]
    first = heatmap["data"][0]
    assert (first["goals"], first["misses"], first["blocked"]) == (1, 1, 0)
    assert first["success_rate"] == 50.0

    home_only = await analytics_service.shot_heatmap(db_session, game_id, club_id=shots["home"]["id"], period=2)
    assert [c["count"] for c in home_only["data"]] == [1, 1]

    with pytest.raises(ValueError, match="between 5 and 20"):
        await analytics_service.shot_heatmap(db_session, game_id, grid_size=4)
    with pytest.raises(NotFoundError):
        await analytics_service.shot_heatmap(db_session, game_id + 100)


@pytest.mark.asyncio
async def test_shot_chart_filters(db_session, shots):
    game_id = shots["game"]["id"]
    chart = await analytics_service.shot_chart(db_session, game_id)
    assert len(chart) == 5
    assert chart[0]["first_name"] == "Anna"
    assert chart[0]["club_name"] == "Fortuna Delft"

    away = await analytics_service.shot_chart(db_session, game_id, player_id=shots["away_player"]["id"])
    assert [(s["x_coord"], s["result"]) for s in away] == [(80, "miss")]
    assert len(await analytics_service.shot_chart(db_session, game_id, period=2)) == 2


@pytest.mark.asyncio
async def test_player_shot_stats(db_session, shots):
    stats = await analytics_service.player_shot_stats(db_session, shots["game"]["id"])
    assert [s["first_name"] for s in stats] == ["Anna", "Bram"]

    anna = stats[0]
    assert (anna["total_shots"], anna["goals"], anna["misses"], anna["blocked"]) == (4, 2, 1, 1)
    assert anna["field_goal_percentage"] == 50.0
    assert anna["avg_distance"] == 6.0
    assert anna["zone_performance"]["left"] == {"shots": 2, "goals": 1, "success_rate": 50.0}
    assert anna["zone_performance"]["center"] == {"shots": 1, "goals": 1, "success_rate": 100.0}
    assert anna["zone_performance"]["right"] == {"shots": 1, "goals": 0, "success_rate": 0.0}

    away_only = await analytics_service.player_shot_stats(db_session, shots["game"]["id"], club_id=shots["away"]["id"])
    assert [s["field_goal_percentage"] for s in away_only] == [0.0]


@pytest.mark.asyncio
async def test_shot_summary(db_session, shots):
    summary = await analytics_service.shot_summary(db_session, shots["game"]["id"])
    assert summary["overall"] == {
        "total_shots": 5,
        "total_goals": 2,
        "total_misses": 2,
        "total_blocked": 1,
        "overall_fg_percentage": 40.0,
        "avg_shot_distance": 7.0,
    }
    by_club = {c["club_id"]: c for c in summary["by_club"]}
    assert by_club[shots["home"]["id"]]["fg_percentage"] == 50.0
    assert by_club[shots["away"]["id"]]["goals"] == 0


@pytest.mark.asyncio
async def test_summary_without_shots(db_session, live_game):
    summary = await analytics_service.shot_summary(db_session, live_game["game"]["id"])
    assert summary["overall"]["total_shots"] == 0
    assert summary["overall"]["overall_fg_percentage"] == 0.0
    assert summary["by_club"] == []


def test_court_zone_boundaries():
    assert analytics_service.court_zone(0) == "left"
    assert analytics_service.court_zone(33.3) == "left"
    assert analytics_service.court_zone(33.34) == "center"
    assert analytics_service.court_zone(66.67) == "right"
    assert analytics_service.fg_percentage(1, 3) == 33.33


@pytest.mark.asyncio
async def test_live_report(db_session, shots):
    report = await analytics_service.live_report(db_session, shots["game"]["id"])
    assert report["game"]["status"] == "in_progress"
    assert (report["game"]["home_score"], report["game"]["away_score"]) == (2, 0)
    assert report["game"]["home_club"] == "Fortuna Delft"

    home, away = report["shot_summary"]
    assert (home["total_shots"], home["goals"], home["fg_percentage"]) == (4, 2, 50.0)
    assert (away["total_shots"], away["misses"]) == (1, 1)

    # Only players who scored are listed
    assert [s["name"] for s in report["top_scorers"]] == ["Anna Jansen"]
    assert len(report["recent_events"]) <= 10
    assert report["generated_at"]


@pytest.mark.asyncio
async def test_period_report(db_session, shots):
    report = await analytics_service.period_report(db_session, shots["game"]["id"], 1)
    assert report["period"] == 1
    home, away = report["team_stats"]
    assert (home["club_name"], home["total_shots"], home["avg_distance"]) == ("Fortuna Delft", 2, 5.0)
    assert (away["total_shots"], away["fg_percentage"]) == (1, 0.0)
    assert [(p["name"], p["shots"], p["goals"]) for p in report["player_stats"]] == [
        ("Anna Jansen", 2, 1),
        ("Bram de Vries", 1, 0),
    ]

    with pytest.raises(ValueError, match="positive"):
        await analytics_service.period_report(db_session, shots["game"]["id"], 0)


@pytest.mark.asyncio
async def test_momentum_weights_recent_shots(db_session, shots):
    result = await analytics_service.momentum(db_session, shots["game"]["id"], window=5)
    assert result["recent_shots_analyzed"] == 5
    # home: -2*0.8 + 3*0.6 - 1*0.4 + 3*0.2 = 0.4; away: -1*1.0; both scaled by 3*5
    assert result["momentum"] == {"home": 3, "away": -7, "trend": "home"}
    assert result["recent_shots"][0]["club_name"] == "PKC Papendrecht"
    assert len(result["recent_shots"]) == 5

    with pytest.raises(ValueError, match="between 5 and 20"):
        await analytics_service.momentum(db_session, shots["game"]["id"], window=4)


@pytest.mark.asyncio
async def test_momentum_without_shots(db_session, live_game):
    result = await analytics_service.momentum(db_session, live_game["game"]["id"])
    assert result["momentum"] == {"home": 0, "away": 0}
    assert result["message"] == "No shots data available yet"


@pytest.mark.asyncio
async def test_dashboard_summary(db_session, live_game):
    assert await analytics_service.dashboard_summary(db_session) == {
        "clubs": 3,
        "teams": 0,
        "players": 2,
        "games": 1,
    }
