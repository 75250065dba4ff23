"""
Database tests for tournaments, achievements, report templates, scheduled
reports and exports.
"""

import json
from datetime import date, datetime

import pytest
import pytest_asyncio
import pytz

from shotspot.database.init_defaults import seed_achievements, seed_report_templates
from shotspot.services import (
    achievement_service,
    auth_service,
    bracket_service,
    club_service,
    competition_service,
    export_service,
    game_service,
    player_service,
    report_service,
    shot_service,
    team_service,
    user_service,
)
from shotspot.utils.errors import ConflictError, NotFoundError


@pytest_asyncio.fixture
async def users(db_session):
    password_hash = auth_service.hash_password("Korfball#2024")
    coach = await user_service.create_user(db_session, "coach1", "coach1@example.com", password_hash, role="coach")
    other = await user_service.create_user(db_session, "coach2", "coach2@example.com", password_hash, role="coach")
    admin = await user_service.create_user(db_session, "admin1", "admin1@example.com", password_hash, role="admin")
    return {"coach": coach, "other": other, "admin": admin}


@pytest_asyncio.fixture
async def teams(db_session):
    result = []
    for name in ("Fortuna", "PKC", "DOS'46", "TOP"):
        club = await club_service.create_club(db_session, name)
        result.append(await team_service.create_team(db_session, club["id"], f"{name} 1"))
    return result


@pytest_asyncio.fixture
async def played_game(db_session, teams):
    """A completed game between the first two teams with a few shots."""
    home, away = teams[0], teams[1]
    game = await game_service.create_game(
        db_session,
        home["club_id"],
        away["club_id"],
        pytz.UTC.localize(datetime(2025, 1, 18, 15, 0)),
        home_team_id=home["id"],
        away_team_id=away["id"],
    )
    shooter = await player_service.create_player(
        db_session, home["club_id"], "Anna", "Jansen", jersey_number=9, team_id=home["id"]
    )
    await game_service.start_game(db_session, game["id"])
    for _ in range(5):
        await shot_service.create_shot(db_session, game["id"], shooter["id"], home["club_id"], 40, 30, "goal", 1, distance=6.0)
    await shot_service.create_shot(db_session, game["id"], shooter["id"], home["club_id"], 45, 30, "miss", 2, distance=7.0)
    return {"game": game, "shooter": shooter}


@pytest.mark.asyncio
async def test_tournament_bracket_generation_and_results(db_session, teams):
    tournament = await competition_service.create_competition(db_session, "Cup", "tournament", date(2025, 1, 1))
    for seed, team in enumerate(teams[:3], start=1):
        await competition_service.add_team(db_session, tournament["id"], team["id"], seed=seed)

    with pytest.raises(ConflictError):
        await competition_service.add_team(db_session, tournament["id"], teams[0]["id"])

    bracket = await bracket_service.generate_bracket(db_session, tournament["id"])
    semis, final = bracket["rounds"]
    assert semis["round_name"] == "Semi Finals"
    bye = semis["matches"][0]
    assert bye["home_team_id"] == teams[0]["id"]
    assert bye["away_team_id"] is None
    assert bye["status"] == "completed"
    assert final["matches"][0]["home_team_id"] == teams[0]["id"]

    contested = semis["matches"][1]
    with pytest.raises(ValueError, match="Winner must be one of the teams"):
        await bracket_service.update_bracket_match(
            db_session, tournament["id"], contested["id"], {"winner_team_id": teams[3]["id"]}
        )

    winner = contested["away_team_id"]
    updated = await bracket_service.update_bracket_match(
        db_session, tournament["id"], contested["id"], {"winner_team_id": winner}
    )
    assert updated["status"] == "completed"

    bracket = await bracket_service.get_bracket(db_session, tournament["id"])
    assert bracket["rounds"][1]["matches"][0]["away_team_id"] == winner

    entries = {e["team_id"]: e for e in await competition_service.list_competition_teams(db_session, tournament["id"])}
    assert entries[contested["home_team_id"]]["is_eliminated"] is True



@pytest.mark.asyncio
async def test_corrected_bracket_winner_is_reinstated(db_session, teams):
    tournament = await competition_service.create_competition(db_session, "Cup", "tournament", date(2025, 1, 1))
    for seed, team in enumerate(teams, start=1):
        await competition_service.add_team(db_session, tournament["id"], team["id"], seed=seed)
    bracket = await bracket_service.generate_bracket(db_session, tournament["id"])
    first, second = bracket["rounds"][0]["matches"]
    final = bracket["rounds"][1]["matches"][0]

    home, away = first["home_team_id"], first["away_team_id"]
    await bracket_service.update_bracket_match(db_session, tournament["id"], first["id"], {"winner_team_id": home})
    await bracket_service.update_bracket_match(db_session, tournament["id"], first["id"], {"winner_team_id": away})

    entries = {e["team_id"]: e for e in await competition_service.list_competition_teams(db_session, tournament["id"])}
    assert entries[away]["is_eliminated"] is False
    assert entries[away]["elimination_round"] is None
    assert entries[home]["is_eliminated"] is True
    bracket = await bracket_service.get_bracket(db_session, tournament["id"])
    assert bracket["rounds"][1]["matches"][0]["home_team_id"] == away

    await bracket_service.update_bracket_match(
        db_session, tournament["id"], second["id"], {"winner_team_id": second["home_team_id"]}
    )
    await bracket_service.update_bracket_match(db_session, tournament["id"], final["id"], {"winner_team_id": away})
    with pytest.raises(ValueError, match="next match has been completed"):
        await bracket_service.update_bracket_match(db_session, tournament["id"], first["id"], {"winner_team_id": home})


@pytest.mark.asyncio
async def test_bracket_only_for_tournaments(db_session, teams):
    league = await competition_service.create_competition(db_session, "League", "league", date(2025, 1, 1))
    with pytest.raises(ValueError, match="tournament"):
        await bracket_service.generate_bracket(db_session, league["id"])


@pytest.mark.asyncio
async def test_initialize_standings(db_session, teams):
    league = await competition_service.create_competition(db_session, "League", "league", date(2025, 1, 1))
    with pytest.raises(ValueError, match="No teams"):
        await competition_service.initialize_standings(db_session, league["id"])

    for team in teams:
        await competition_service.add_team(db_session, league["id"], team["id"])
    standings = await competition_service.initialize_standings(db_session, league["id"])
    assert len(standings) == 4
    assert [s["rank"] for s in standings] == [1, 2, 3, 4]
    assert all(s["points"] == 0 for s in standings)


@pytest.mark.asyncio
async def test_competition_end_before_start(db_session):
    with pytest.raises(ValueError, match="End date"):
        await competition_service.create_competition(
            db_session, "Bad", "league", date(2025, 5, 1), end_date=date(2025, 4, 1)
        )


@pytest.mark.asyncio
async def test_check_achievements_awards_once_per_game(db_session, played_game):
    await seed_achievements(db_session)
    game_id = played_game["game"]["id"]
    player_id = played_game["shooter"]["id"]

    first = await achievement_service.check_achievements(db_session, player_id, game_id)
    names = {a["name"] for a in first["new_achievements"]}
    assert "Hot Hand" in names
    assert "Sharpshooter" not in names

    second = await achievement_service.check_achievements(db_session, player_id, game_id)
    assert second["new_achievements"] == []

    earned = await achievement_service.get_player_achievements(db_session, player_id)
    assert "Hot Hand" in {a["name"] for a in earned["achievements"]}


@pytest.mark.asyncio
async def test_custom_template_ownership(db_session, users):
    await seed_report_templates(db_session)
    coach, other, admin = users["coach"], users["other"], users["admin"]

    template = await report_service.create_template(
        db_session, coach, {"name": "My Report", "sections": ["game_info", "final_score"]}
    )
    assert template["type"] == "custom"
    assert template["is_default"] is False

    with pytest.raises(ConflictError):
        await report_service.create_template(db_session, other, {"name": "My Report"})
    with pytest.raises(PermissionError):
        await report_service.get_template(db_session, template["id"], other)
    with pytest.raises(PermissionError):
        await report_service.update_template(db_session, template["id"], other, {"description": "mine now"})

    visible_to_other = {t["name"] for t in await report_service.list_templates(db_session, other)}
    assert "My Report" not in visible_to_other
    assert "Summary Report" in visible_to_other

    visible_to_admin = {t["name"] for t in await report_service.list_templates(db_session, admin)}
    assert "My Report" in visible_to_admin

    defaults = await report_service.list_templates(db_session, coach, is_default=True)
    with pytest.raises(PermissionError, match="Default templates cannot be deleted"):
        await report_service.delete_template(db_session, defaults[0]["id"], admin)

    await report_service.delete_template(db_session, template["id"], coach)
    with pytest.raises(NotFoundError):
        await report_service.get_template(db_session, template["id"], coach)


@pytest.mark.asyncio
async def test_scheduled_report_cadence_and_validation(db_session, users, teams):
    await seed_report_templates(db_session)
    coach = users["coach"]
    template_id = (await report_service.list_templates(db_session, coach, is_default=True))[0]["id"]

    weekly = await report_service.create_scheduled_report(
        db_session,
        coach,
        {"name": "Weekly", "template_id": template_id, "schedule_type": "weekly", "team_id": teams[0]["id"]},
    )
    assert weekly["next_run_at"] is not None
    assert weekly["team_name"] == "Fortuna 1"

    after_match = await report_service.create_scheduled_report(
        db_session, coach, {"name": "After", "template_id": template_id, "schedule_type": "after_match"}
    )
    assert after_match["next_run_at"] is None

    with pytest.raises(ValueError, match="Email recipients are required"):
        await report_service.create_scheduled_report(
            db_session,
            coach,
            {"name": "Mail", "template_id": template_id, "schedule_type": "weekly", "send_email": True},
        )

    with pytest.raises(PermissionError):
        await report_service.update_scheduled_report(db_session, weekly["id"], users["other"], {"name": "x"})
    assert await report_service.list_scheduled_reports(db_session, users["other"]) == []


@pytest.mark.asyncio
async def test_after_match_report_runs_when_game_ends(db_session, users, teams):
    await seed_report_templates(db_session)
    coach = users["coach"]
    template_id = (await report_service.list_templates(db_session, coach, is_default=True))[0]["id"]
    scheduled = await report_service.create_scheduled_report(
        db_session,
        coach,
        {"name": "After", "template_id": template_id, "schedule_type": "after_match", "team_id": teams[0]["id"]},
    )

    game = await game_service.create_game(
        db_session,
        teams[0]["club_id"],
        teams[1]["club_id"],
        pytz.UTC.localize(datetime(2025, 1, 25, 15, 0)),
        home_team_id=teams[0]["id"],
        away_team_id=teams[1]["id"],
    )
    await game_service.start_game(db_session, game["id"])
    await game_service.end_game(db_session, game["id"])

    due = await report_service.due_reports(db_session)
    assert [r.id for r in due] == [scheduled["id"]]

    result = await report_service.run_scheduled_report(db_session, due[0])
    assert result["emailed"] is False

    refreshed = await report_service.get_scheduled_report(db_session, scheduled["id"], coach)
    assert refreshed["run_count"] == 1
    assert refreshed["next_run_at"] is None
    assert "game_id" not in refreshed["game_filters"]

    exports = await export_service.list_recent_exports(db_session, coach["id"])
    assert exports[0]["id"] == result["export_id"]
    assert exports[0]["game_id"] == game["id"]


@pytest.mark.asyncio
async def test_export_from_template_and_download(db_session, users, played_game):
    await seed_report_templates(db_session)
    coach = users["coach"]
    template = (await report_service.list_templates(db_session, coach, is_default=True))[0]

    export = await export_service.create_export_from_template(
        db_session, coach["id"], template["id"], "game", game_id=played_game["game"]["id"], export_format="json"
    )
    assert export["status"] == "completed"
    assert export["downloadUrl"] == f"/api/exports/{export['id']}/download"

    filename, media_type, content = await export_service.get_export_download(db_session, coach["id"], export["id"])
    assert filename.endswith(".json")
    assert media_type == "application/json"
    report = json.loads(content)
    assert report["template"]["id"] == template["id"]
    assert set(report["sections"]) <= set(template["sections"])

    with pytest.raises(NotFoundError):
        await export_service.get_export_download(db_session, users["other"]["id"], export["id"])

    await export_service.delete_export(db_session, coach["id"], export["id"])
    assert await export_service.list_recent_exports(db_session, coach["id"]) == []


@pytest.mark.asyncio
async def test_export_needs_game_or_team(db_session, users):
    await seed_report_templates(db_session)
    coach = users["coach"]
    template = (await report_service.list_templates(db_session, coach, is_default=True))[0]
    with pytest.raises(ValueError, match="game or team is required"):
        await export_service.create_export_from_template(db_session, coach["id"], template["id"], "game")


@pytest.mark.asyncio
async def test_match_csv_export(db_session, played_game):
    filename, content = await export_service.export_match_csv(db_session, played_game["game"]["id"])
    assert filename.endswith(".csv")
    assert "Anna" in content
