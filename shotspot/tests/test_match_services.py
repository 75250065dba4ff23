"""
Database tests for games and live match data: lifecycle, shots, rosters,
substitutions, timeouts, the clock and league standings.
"""

from datetime import date, datetime

import pytest
import pytest_asyncio
import pytz

from shotspot.services import (
    clock_service,
    club_service,
    competition_service,
    event_service,
    game_service,
    player_service,
    roster_service,
    shot_service,
    substitution_service,
    team_service,
    timeout_service,
)
from shotspot.utils.errors import ConflictError, NotFoundError

KICKOFF = pytz.UTC.localize(datetime(2025, 2, 15, 14, 30))


@pytest_asyncio.fixture
async def match(db_session):
    """Two clubs with one team and four players each, and a scheduled league game."""
    home_club = await club_service.create_club(db_session, "Fortuna Delft")
    away_club = await club_service.create_club(db_session, "PKC Papendrecht")
    home_team = await team_service.create_team(db_session, home_club["id"], "Fortuna 1")
    away_team = await team_service.create_team(db_session, away_club["id"], "PKC 1")

    home_players = [
        await player_service.create_player(db_session, home_club["id"], f"Home{i}", "Player", jersey_number=i, team_id=home_team["id"])
        for i in range(1, 5)
    ]
    away_players = [
        await player_service.create_player(db_session, away_club["id"], f"Away{i}", "Player", jersey_number=i, team_id=away_team["id"])
        for i in range(1, 5)
    ]

    league = await competition_service.create_competition(db_session, "Korfbal League", "league", date(2024, 9, 1))
    await competition_service.add_team(db_session, league["id"], home_team["id"])
    await competition_service.add_team(db_session, league["id"], away_team["id"])

    game = await game_service.create_game(
        db_session,
        home_club["id"],
        away_club["id"],
        KICKOFF,
        home_team_id=home_team["id"],
        away_team_id=away_team["id"],
        competition_id=league["id"],
    )
    return {
        "home_club": home_club,
        "away_club": away_club,
        "home_team": home_team,
        "away_team": away_team,
        "home_players": home_players,
        "away_players": away_players,
        "league": league,
        "game": game,
    }


@pytest.mark.asyncio
async def test_create_game_defaults(db_session, match):
    game = match["game"]
    assert game["status"] == "scheduled"
    assert game["home_score"] == 0
    assert game["current_period"] == 1
    assert game["number_of_periods"] == 4
    assert game["time_remaining_seconds"] == 600
    assert game["home_club_name"] == "Fortuna Delft"
    assert game["away_team_name"] == "PKC 1"


@pytest.mark.asyncio
async def test_create_game_validation(db_session, match):
    home, away = match["home_club"]["id"], match["away_club"]["id"]
    with pytest.raises(ValueError, match="must be different"):
        await game_service.create_game(db_session, home, home, KICKOFF)
    with pytest.raises(NotFoundError):
        await game_service.create_game(db_session, home, 9999, KICKOFF)
    with pytest.raises(ValueError, match="does not belong"):
        await game_service.create_game(db_session, home, away, KICKOFF, home_team_id=match["away_team"]["id"])


@pytest.mark.asyncio
async def test_game_lifecycle_transitions(db_session, match):
    game_id = match["game"]["id"]

    started = await game_service.start_game(db_session, game_id)
    assert started["status"] == "in_progress"
    with pytest.raises(ValueError, match="already in progress"):
        await game_service.start_game(db_session, game_id)
    with pytest.raises(ValueError, match="Cannot reschedule a game in progress"):
        await game_service.reschedule_game(db_session, game_id)

    ended = await game_service.end_game(db_session, game_id)
    assert ended["status"] == "completed"
    with pytest.raises(ValueError, match="already completed"):
        await game_service.end_game(db_session, game_id)
    with pytest.raises(ValueError, match="Cannot start a completed game"):
        await game_service.start_game(db_session, game_id)
    with pytest.raises(ValueError, match="Cannot cancel a completed game"):
        await game_service.cancel_game(db_session, game_id)


@pytest.mark.asyncio
async def test_cancel_and_reschedule(db_session, match):
    game_id = match["game"]["id"]

    cancelled = await game_service.cancel_game(db_session, game_id)
    assert cancelled["status"] == "cancelled"
    with pytest.raises(ValueError, match="Cannot start a cancelled game"):
        await game_service.start_game(db_session, game_id)

    pending = await game_service.reschedule_game(db_session, game_id)
    assert pending["status"] == "to_reschedule"

    new_date = pytz.UTC.localize(datetime(2025, 3, 1, 15, 0))
    rescheduled = await game_service.reschedule_game(db_session, game_id, new_date)
    assert rescheduled["status"] == "scheduled"
    assert rescheduled["date"].startswith("2025-03-01")


@pytest.mark.asyncio
async def test_shots_drive_the_score(db_session, match):
    game_id = match["game"]["id"]
    home_club_id = match["home_club"]["id"]
    away_club_id = match["away_club"]["id"]
    shooter = match["home_players"][0]

    with pytest.raises(ValueError, match="games in progress"):
        await shot_service.create_shot(db_session, game_id, shooter["id"], home_club_id, 50, 50, "goal", 1)

    await game_service.start_game(db_session, game_id)
    goal = await shot_service.create_shot(db_session, game_id, shooter["id"], home_club_id, 40.0, 30.0, "goal", 1)
    await shot_service.create_shot(db_session, game_id, shooter["id"], home_club_id, 45.0, 35.0, "miss", 1)
    await shot_service.create_shot(
        db_session, game_id, match["away_players"][0]["id"], away_club_id, 60.0, 30.0, "goal", 1
    )

    game = await game_service.get_game(db_session, game_id)
    assert (game["home_score"], game["away_score"]) == (1, 1)

    await shot_service.update_shot(db_session, game_id, goal["id"], {"result": "blocked"})
    game = await game_service.get_game(db_session, game_id)
    assert game["home_score"] == 0

    await shot_service.update_shot(db_session, game_id, goal["id"], {"result": "goal"})
    await shot_service.delete_shot(db_session, game_id, goal["id"])
    game = await game_service.get_game(db_session, game_id)
    assert game["home_score"] == 0

    shots = await shot_service.list_shots(db_session, game_id, club_id=home_club_id)
    assert [s["result"] for s in shots] == ["miss"]


@pytest.mark.asyncio
async def test_shot_player_must_match_club(db_session, match):
    game_id = match["game"]["id"]
    await game_service.start_game(db_session, game_id)
    with pytest.raises(ValueError, match="does not belong"):
        await shot_service.create_shot(
            db_session, game_id, match["away_players"][0]["id"], match["home_club"]["id"], 10, 10, "goal", 1
        )


def _roster(club, players, starters=2):
    return [
        {"club_id": club["id"], "player_id": p["id"], "is_starting": i < starters, "is_captain": i == 0}
        for i, p in enumerate(players)
    ]


@pytest.mark.asyncio
async def test_roster_replace_and_captain(db_session, match):
    game_id = match["game"]["id"]
    home = match["home_players"]

    result = await roster_service.replace_roster(db_session, game_id, _roster(match["home_club"], home))
    assert len(result["roster"]) == 4
    assert sum(1 for r in result["roster"] if r["is_captain"]) == 1
    # No Twizzit mapping for any player
    assert len(result["warnings"]) == 4

    updated = await roster_service.set_captain(db_session, game_id, home[2]["id"])
    assert updated["is_captain"] is True
    roster = await roster_service.get_roster(db_session, game_id, club_id=match["home_club"]["id"])
    captains = [r["player_id"] for r in roster if r["is_captain"]]
    assert captains == [home[2]["id"]]

    # Replacing one club leaves the other club's roster alone
    await roster_service.replace_roster(db_session, game_id, _roster(match["away_club"], match["away_players"]))
    await roster_service.replace_roster(db_session, game_id, _roster(match["home_club"], home[:2]))
    assert len(await roster_service.get_roster(db_session, game_id)) == 6


@pytest.mark.asyncio
async def test_roster_validation(db_session, match):
    game_id = match["game"]["id"]
    home_club = match["home_club"]
    home = match["home_players"]

    duplicate = [
        {"club_id": home_club["id"], "player_id": home[0]["id"]},
        {"club_id": home_club["id"], "player_id": home[0]["id"]},
    ]
    with pytest.raises(ConflictError):
        await roster_service.replace_roster(db_session, game_id, duplicate)

    two_captains = [
        {"club_id": home_club["id"], "player_id": home[0]["id"], "is_captain": True},
        {"club_id": home_club["id"], "player_id": home[1]["id"], "is_captain": True},
    ]
    with pytest.raises(ValueError, match="Only one captain"):
        await roster_service.replace_roster(db_session, game_id, two_captains)

    wrong_club = [{"club_id": home_club["id"], "player_id": match["away_players"][0]["id"]}]
    with pytest.raises(ValueError, match="does not belong"):
        await roster_service.replace_roster(db_session, game_id, wrong_club)

    with pytest.raises(NotFoundError):
        await roster_service.set_captain(db_session, game_id, home[0]["id"])


@pytest.mark.asyncio
async def test_substitutions_track_active_players(db_session, match):
    game_id = match["game"]["id"]
    club_id = match["home_club"]["id"]
    home = match["home_players"]
    await roster_service.replace_roster(db_session, game_id, _roster(match["home_club"], home))
    await game_service.start_game(db_session, game_id)

    await substitution_service.create_substitution(db_session, game_id, club_id, home[2]["id"], home[0]["id"], 1)

    players = await substitution_service.active_players(db_session, game_id)
    active = {p["id"] for p in players["home_team"]["active"]}
    bench = {p["id"] for p in players["home_team"]["bench"]}
    assert active == {home[1]["id"], home[2]["id"]}
    assert bench == {home[0]["id"], home[3]["id"]}

    with pytest.raises(ValueError, match="already on the court"):
        await substitution_service.create_substitution(db_session, game_id, club_id, home[1]["id"], home[2]["id"], 1)
    with pytest.raises(ValueError, match="must be different"):
        await substitution_service.create_substitution(db_session, game_id, club_id, home[1]["id"], home[1]["id"], 1)


@pytest.mark.asyncio
async def test_timeouts(db_session, match):
    game_id = match["game"]["id"]
    await game_service.start_game(db_session, game_id)

    with pytest.raises(ValueError, match="club_id is required"):
        await timeout_service.create_timeout(db_session, game_id, "team", 1)
    with pytest.raises(ValueError, match="should not have a club_id"):
        await timeout_service.create_timeout(db_session, game_id, "official", 1, club_id=match["home_club"]["id"])

    timeout = await timeout_service.create_timeout(db_session, game_id, "team", 2, club_id=match["home_club"]["id"])
    assert timeout["duration_seconds"] == 60
    ended = await timeout_service.end_timeout(db_session, game_id, timeout["id"])
    assert ended["ended_at"] is not None
    assert len(await timeout_service.list_timeouts(db_session, game_id)) == 1


@pytest.mark.asyncio
async def test_events_require_known_type_and_running_game(db_session, match):
    game_id = match["game"]["id"]
    club_id = match["home_club"]["id"]

    with pytest.raises(ValueError, match="not in progress"):
        await event_service.create_event(db_session, game_id, "foul", club_id, 1)

    await game_service.start_game(db_session, game_id)
    event = await event_service.create_event(
        db_session,
        game_id,
        "fault_offensive",
        club_id,
        1,
        player_id=match["home_players"][0]["id"],
        details={"reason": "running_with_ball"},
    )
    assert event["event_type"] == "fault_offensive"
    assert event["first_name"] == "Home1"

    with pytest.raises(ValueError, match="Invalid event type"):
        await event_service.create_event(db_session, game_id, "dunk", club_id, 1)


@pytest.mark.asyncio
async def test_clock_flow(db_session, match):
    game_id = match["game"]["id"]

    with pytest.raises(ValueError, match="not in progress"):
        await clock_service.start_clock(db_session, game_id)

    await game_service.start_game(db_session, game_id)
    running = await clock_service.start_clock(db_session, game_id)
    assert running["timer_state"] == "running"
    with pytest.raises(ValueError, match="already running"):
        await clock_service.start_clock(db_session, game_id)

    with pytest.raises(ValueError, match="while the timer is running"):
        await clock_service.set_period_duration(db_session, game_id, 8)

    paused = await clock_service.pause_clock(db_session, game_id)
    assert paused["timer_state"] == "paused"
    assert 0 < paused["time_remaining_seconds"] <= 600

    moved = await clock_service.next_period(db_session, game_id)
    assert moved["current_period"] == 2
    assert moved["timer_state"] == "stopped"
    assert moved["time_remaining_seconds"] == 600

    events = await event_service.list_events(db_session, game_id)
    assert {e["event_type"] for e in events} == {"period_end", "period_start"}

    resized = await clock_service.set_period_duration(db_session, game_id, 8)
    assert resized["time_remaining_seconds"] == 480

    await clock_service.set_period(db_session, game_id, 4)
    with pytest.raises(ValueError, match="final period"):
        await clock_service.next_period(db_session, game_id)


@pytest.mark.asyncio
async def test_reset_match_wipes_activity(db_session, match):
    game_id = match["game"]["id"]
    home_club_id = match["home_club"]["id"]
    shooter = match["home_players"][0]
    await game_service.start_game(db_session, game_id)
    await clock_service.start_clock(db_session, game_id)
    await shot_service.create_shot(db_session, game_id, shooter["id"], home_club_id, 40, 30, "goal", 1, distance=6.0)
    await event_service.create_event(db_session, game_id, "foul", home_club_id, 1, player_id=shooter["id"])
    await timeout_service.create_timeout(db_session, game_id, "team", 1, club_id=home_club_id)
    await clock_service.next_period(db_session, game_id)

    clock = await clock_service.reset_match(db_session, game_id)
    assert clock["current_period"] == 1
    assert clock["timer_state"] == "stopped"
    assert clock["time_remaining_seconds"] == 600

    game = await game_service.get_game(db_session, game_id)
    assert (game["home_score"], game["away_score"]) == (0, 0)
    assert await shot_service.list_shots(db_session, game_id) == []
    assert await event_service.list_events(db_session, game_id) == []
    assert await timeout_service.list_timeouts(db_session, game_id) == []
    assert await substitution_service.list_substitutions(db_session, game_id) == []


@pytest.mark.asyncio
async def test_ending_league_game_updates_standings(db_session, match):
    game_id = match["game"]["id"]
    await game_service.start_game(db_session, game_id)
    shooter = match["home_players"][0]
    for _ in range(2):
        await shot_service.create_shot(db_session, game_id, shooter["id"], match["home_club"]["id"], 40, 30, "goal", 1)

    await game_service.end_game(db_session, game_id)

    standings = await competition_service.get_standings(db_session, match["league"]["id"])
    by_team = {s["team_id"]: s for s in standings}
    home = by_team[match["home_team"]["id"]]
    away = by_team[match["away_team"]["id"]]

    assert home["rank"] == 1
    assert home["points"] == 3
    assert home["home_wins"] == 1
    assert home["form"] == "W"
    assert away["losses"] == 1
    assert away["goal_difference"] == -2


@pytest.mark.asyncio
async def test_update_standings_requires_completed_game(db_session, match):
    with pytest.raises(ValueError, match="must be completed"):
        await competition_service.update_standings(db_session, match["league"]["id"], match["game"]["id"])


@pytest.mark.asyncio
async def test_ended_game_is_not_counted_twice(db_session, match):
    game_id = match["game"]["id"]
    league_id = match["league"]["id"]
    await game_service.start_game(db_session, game_id)
    await shot_service.create_shot(
        db_session, game_id, match["home_players"][0]["id"], match["home_club"]["id"], 40, 30, "goal", 1
    )
    await game_service.end_game(db_session, game_id)

    with pytest.raises(ValueError, match="already been counted"):
        await competition_service.update_standings(db_session, league_id, game_id)

    home = {s["team_id"]: s for s in await competition_service.get_standings(db_session, league_id)}[
        match["home_team"]["id"]
    ]
    assert home["games_played"] == 1
    assert home["points"] == 3
    assert home["form"] == "W"


@pytest.mark.asyncio
async def test_initialize_standings_resets_played_results(db_session, match):
    game_id = match["game"]["id"]
    league_id = match["league"]["id"]
    await game_service.start_game(db_session, game_id)
    await shot_service.create_shot(
        db_session, game_id, match["home_players"][0]["id"], match["home_club"]["id"], 40, 30, "goal", 1
    )
    await game_service.end_game(db_session, game_id)

    standings = await competition_service.initialize_standings(db_session, league_id)
    assert [s["rank"] for s in standings] == [1, 2]
    assert all(s["points"] == 0 and s["games_played"] == 0 for s in standings)
    assert all(s["form"] is None for s in standings)

    # After a reset the finished game may be counted again
    standings = await competition_service.update_standings(db_session, league_id, game_id)
    assert {s["team_id"]: s["points"] for s in standings}[match["home_team"]["id"]] == 3
