"""
Database tests for clubs, teams, players and users.
"""

import pytest
import pytest_asyncio
from fastapi import HTTPException

from shotspot.api.auth_dependencies import ensure_club_access
from shotspot.services import (
    auth_service,
    club_service,
    export_settings_service,
    player_service,
    team_service,
    trainer_service,
    user_service,
)
from shotspot.utils.datetime_utils import utcnow
from shotspot.utils.errors import ConflictError, NotFoundError


@pytest_asyncio.fixture
async def club(db_session):
    return await club_service.create_club(db_session, "Fortuna Delft")


@pytest_asyncio.fixture
async def team(db_session, club):
    return await team_service.create_team(db_session, club["id"], "Fortuna 1", age_group="senior", gender="mixed")


@pytest.mark.asyncio
async def test_create_club_trims_and_rejects_duplicates(db_session):
    created = await club_service.create_club(db_session, "  PKC  ")
    assert created["name"] == "PKC"

    with pytest.raises(ConflictError, match="Club name already exists"):
        await club_service.create_club(db_session, "pkc")


@pytest.mark.asyncio
async def test_update_club_name_conflict(db_session, club):
    other = await club_service.create_club(db_session, "DOS Kampen")
    with pytest.raises(ConflictError):
        await club_service.update_club(db_session, other["id"], "Fortuna Delft")

    renamed = await club_service.update_club(db_session, other["id"], "DOS'46")
    assert renamed["name"] == "DOS'46"


@pytest.mark.asyncio
async def test_get_missing_club(db_session):
    with pytest.raises(NotFoundError, match="Club not found"):
        await club_service.get_club(db_session, 9999)


@pytest.mark.asyncio
async def test_delete_club_with_teams_is_refused(db_session, club, team):
    with pytest.raises(ConflictError):
        await club_service.delete_club(db_session, club["id"])


@pytest.mark.asyncio
async def test_team_names_unique_within_club(db_session, club, team):
    with pytest.raises(ConflictError):
        await team_service.create_team(db_session, club["id"], "Fortuna 1")

    other_club = await club_service.create_club(db_session, "TOP Sassenheim")
    elsewhere = await team_service.create_team(db_session, other_club["id"], "Fortuna 1")
    assert elsewhere["club_id"] == other_club["id"]


@pytest.mark.asyncio
async def test_create_player_with_team(db_session, club, team):
    player = await player_service.create_player(
        db_session, club["id"], " Anna ", "de Vries", jersey_number=7, team_id=team["id"], gender="female"
    )
    assert player["first_name"] == "Anna"
    assert player["jersey_number"] == 7

    fetched = await player_service.get_player(db_session, player["id"])
    assert fetched["club_name"] == "Fortuna Delft"
    assert fetched["team_name"] == "Fortuna 1"


@pytest.mark.asyncio
async def test_jersey_number_unique_per_team(db_session, club, team):
    await player_service.create_player(db_session, club["id"], "Anna", "de Vries", jersey_number=7, team_id=team["id"])

    with pytest.raises(ConflictError, match="Jersey number already in use"):
        await player_service.create_player(db_session, club["id"], "Bram", "Bakker", jersey_number=7, team_id=team["id"])

    # Without a team the number is free
    loose = await player_service.create_player(db_session, club["id"], "Bram", "Bakker", jersey_number=7)
    assert loose["team_id"] is None


@pytest.mark.asyncio
async def test_player_team_must_belong_to_club(db_session, team):
    other_club = await club_service.create_club(db_session, "KV Groen Geel")
    with pytest.raises(ValueError, match="does not belong"):
        await player_service.create_player(db_session, other_club["id"], "Cas", "Smit", team_id=team["id"])


@pytest.mark.asyncio
async def test_update_player_jersey_conflict(db_session, club, team):
    await player_service.create_player(db_session, club["id"], "Anna", "de Vries", jersey_number=7, team_id=team["id"])
    bram = await player_service.create_player(
        db_session, club["id"], "Bram", "Bakker", jersey_number=8, team_id=team["id"]
    )

    with pytest.raises(ConflictError):
        await player_service.update_player(db_session, bram["id"], {"jersey_number": 7})

    updated = await player_service.update_player(db_session, bram["id"], {"jersey_number": 8, "position": "attack"})
    assert updated["position"] == "attack"


@pytest.mark.asyncio
async def test_list_players_filters(db_session, club, team):
    await player_service.create_player(db_session, club["id"], "Anna", "de Vries", team_id=team["id"])
    await player_service.create_player(db_session, club["id"], "Bram", "Bakker", is_active=False)

    assert len(await player_service.list_players(db_session, club_id=club["id"])) == 2
    assert [p["first_name"] for p in await player_service.list_players(db_session, team_id=team["id"])] == ["Anna"]
    assert [p["first_name"] for p in await player_service.list_players(db_session, is_active=False)] == ["Bram"]


@pytest.mark.asyncio
async def test_create_user_and_login_lookup(db_session):
    password_hash = auth_service.hash_password("Korfball#2024")
    user = await user_service.create_user(db_session, "coach_anna", "anna@example.com", password_hash, role="coach")

    assert user["role"] == "coach"
    assert "password_hash" not in user

    by_name = await user_service.get_user_by_login(db_session, "coach_anna")
    by_email = await user_service.get_user_by_login(db_session, "anna@example.com")
    assert by_name["id"] == by_email["id"] == user["id"]
    assert auth_service.verify_password("Korfball#2024", by_name["password_hash"])

    with pytest.raises(ConflictError):
        await user_service.create_user(db_session, "coach_anna", "other@example.com", password_hash)


@pytest.mark.asyncio
async def test_deactivated_user_is_not_returned(db_session):
    password_hash = auth_service.hash_password("Korfball#2024")
    admin = await user_service.create_user(db_session, "admin1", "admin1@example.com", password_hash, role="admin")
    user = await user_service.create_user(db_session, "player1", "player1@example.com", password_hash)

    await user_service.deactivate_user(db_session, user["id"], acting_user_id=admin["id"])

    assert await user_service.get_user_by_id(db_session, user["id"]) is None


@pytest.mark.asyncio
async def test_last_admin_cannot_be_deleted(db_session):
    password_hash = auth_service.hash_password("Korfball#2024")
    admin = await user_service.create_user(db_session, "admin1", "admin1@example.com", password_hash, role="admin")
    other = await user_service.create_user(db_session, "admin2", "admin2@example.com", password_hash, role="admin")

    assert await user_service.count_admins(db_session) == 2
    await user_service.deactivate_user(db_session, other["id"], acting_user_id=admin["id"])
    assert await user_service.count_admins(db_session) == 1

    with pytest.raises(PermissionError, match="last admin"):
        await user_service.deactivate_user(db_session, admin["id"], acting_user_id=other["id"])


@pytest_asyncio.fixture
async def accounts(db_session):
    password_hash = auth_service.hash_password("Korfball#2024")
    admin = await user_service.create_user(db_session, "admin1", "admin1@example.com", password_hash, role="admin")
    coach = await user_service.create_user(db_session, "coach1", "coach1@example.com", password_hash, role="coach")
    user = await user_service.create_user(db_session, "fan1", "fan1@example.com", password_hash)
    return {"admin": admin, "coach": coach, "user": user}


@pytest.mark.asyncio
async def test_admin_cannot_demote_self(db_session, accounts):
    admin = accounts["admin"]
    with pytest.raises(PermissionError, match="Cannot demote yourself"):
        await user_service.update_user_role(db_session, admin["id"], "coach", acting_user_id=admin["id"])

    kept = await user_service.update_user_role(db_session, admin["id"], "admin", acting_user_id=admin["id"])
    assert kept["role"] == "admin"
    promoted = await user_service.update_user_role(
        db_session, accounts["user"]["id"], "coach", acting_user_id=admin["id"]
    )
    assert promoted["role"] == "coach"


@pytest.mark.asyncio
async def test_bulk_role_change_excludes_caller(db_session, accounts):
    admin = accounts["admin"]
    targets = [accounts["coach"]["id"], accounts["user"]["id"]]

    with pytest.raises(PermissionError, match="your own role"):
        await user_service.bulk_change_roles(db_session, targets + [admin["id"]], "user", acting_user_id=admin["id"])
    assert (await user_service.get_user_by_id(db_session, accounts["coach"]["id"]))["role"] == "coach"

    assert await user_service.bulk_change_roles(db_session, targets, "user", acting_user_id=admin["id"]) == 2
    assert (await user_service.get_user_by_id(db_session, accounts["coach"]["id"]))["role"] == "user"


@pytest.mark.asyncio
async def test_profile_update_clash_is_conflict(db_session, accounts):
    coach = accounts["coach"]
    with pytest.raises(ConflictError, match="already taken"):
        await user_service.update_user_profile(db_session, coach["id"], username="fan1")
    with pytest.raises(ConflictError):
        await user_service.update_user_profile(db_session, coach["id"], email="admin1@example.com")
    with pytest.raises(ValueError, match="No fields"):
        await user_service.update_user_profile(db_session, coach["id"])

    updated = await user_service.update_user_profile(db_session, coach["id"], username="coach_one")
    assert updated["username"] == "coach_one"


@pytest.mark.asyncio
async def test_password_update_clears_must_change(db_session):
    password_hash = auth_service.hash_password("Korfball#2024")
    user = await user_service.create_user(
        db_session, "newbie", "newbie@example.com", password_hash, password_must_change=True
    )
    assert user["password_must_change"] is True

    new_hash = auth_service.hash_password("Korfball#2025")
    assert await user_service.update_user_password(db_session, user["id"], new_hash, must_change=False)

    stored = await user_service.get_user_with_password(db_session, user["id"])
    assert stored["password_must_change"] is False
    assert auth_service.verify_password("Korfball#2025", stored["password_hash"])
    assert not auth_service.verify_password("Korfball#2024", stored["password_hash"])


@pytest.mark.asyncio
async def test_login_attempts_are_recorded(db_session, accounts):
    coach = accounts["coach"]
    await user_service.record_login_attempt(
        db_session, "coach1", success=False, user_id=coach["id"], ip_address="10.0.0.1",
        error_message="Invalid credentials",
    )
    assert (await user_service.get_user_by_id(db_session, coach["id"]))["last_login"] is None

    await user_service.record_login_attempt(
        db_session, "coach1", success=True, user_id=coach["id"], ip_address="10.0.0.1", user_agent="pytest"
    )
    await user_service.record_login_attempt(db_session, "nobody", success=False, error_message="Invalid credentials")

    history = await user_service.get_login_history(db_session, coach["id"])
    assert [h["success"] for h in history] == [True, False]
    assert history[1]["error_message"] == "Invalid credentials"
    assert history[0]["user_agent"] == "pytest"
    assert (await user_service.get_user_by_id(db_session, coach["id"]))["last_login"] is not None


@pytest.mark.asyncio
async def test_assigned_coach_limited_to_own_club(db_session, accounts, club):
    other_club = await club_service.create_club(db_session, "PKC Papendrecht")
    coach = {"id": accounts["coach"]["id"], "role": "coach"}

    # No assignments yet, so no restriction
    await ensure_club_access(db_session, coach, [other_club["id"]])

    await trainer_service.create_assignment(db_session, coach["id"], club["id"], utcnow().date())
    await ensure_club_access(db_session, coach, [club["id"]])
    await ensure_club_access(db_session, coach, [other_club["id"], club["id"]])
    with pytest.raises(HTTPException) as exc_info:
        await ensure_club_access(db_session, coach, [other_club["id"]])
    assert exc_info.value.status_code == 403

    await ensure_club_access(db_session, {"id": accounts["admin"]["id"], "role": "admin"}, [other_club["id"]])


@pytest.mark.asyncio
async def test_export_settings_created_with_defaults(db_session, accounts):
    user_id = accounts["coach"]["id"]
    settings = await export_settings_service.get_settings(db_session, user_id)
    assert settings["user_id"] == user_id
    assert settings["default_format"] == "pdf"
    assert settings["anonymize_opponents"] is False
    assert settings["include_sensitive_data"] is True
    assert settings["allow_public_sharing"] is False
    assert settings["allowed_share_roles"] == ["coach", "admin"]

    again = await export_settings_service.get_settings(db_session, user_id)
    assert again["id"] == settings["id"]
