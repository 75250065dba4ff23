"""
HTTP-level tests for the API: authentication gates, role checks and error
mapping. Service functions are monkeypatched so no database is needed.
"""

import jwt
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from shotspot.api.main import app
from shotspot.database import db
from shotspot.services.error_notification_service import get_error_notification_service
from shotspot.services import (
    analytics_service,
    auth_service,
    club_service,
    export_service,
    game_service,
    settings_service,
    user_service,
)
from shotspot.utils.errors import ConflictError, NotFoundError


def make_client_with_auth(monkeypatch, role="admin", user_id=1, must_change=False):
    def fake_decode_token_status(token):
        return {"user_id": user_id, "username": "tester", "role": role}, None

    async def fake_get_user_by_id(session, uid):
        return {
            "id": user_id,
            "username": "tester",
            "email": "tester@example.com",
            "role": role,
            "is_active": True,
            "password_must_change": must_change,
            "created_at": "2024-01-01T00:00:00Z",
        }

    monkeypatch.setattr(auth_service, "decode_token_status", fake_decode_token_status, raising=True)
    monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)
    return TestClient(app), {"Authorization": "Bearer dummy"}


def test_root():
    response = TestClient(app).get("/")
    assert response.status_code == 200
    assert response.json()["name"] == "ShotSpot API"


class TestHealth:
    def test_healthy(self, monkeypatch):
        async def fake_ping():
            return True

        monkeypatch.setattr(db, "ping_database", fake_ping, raising=True)
        response = TestClient(app).get("/api/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    def test_database_down(self, monkeypatch):
        async def fake_ping():
            raise ConnectionError("refused")

        monkeypatch.setattr(db, "ping_database", fake_ping, raising=True)
        response = TestClient(app).get("/api/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestAuthentication:
    """Token and account gates applied by get_current_user."""

    def test_missing_token(self):
        response = TestClient(app).get("/api/clubs")
        assert response.status_code in (401, 403)

    def test_expired_token_is_flagged(self, monkeypatch):
        monkeypatch.setattr(auth_service, "decode_token_status", lambda token: (None, "expired"), raising=True)
        response = TestClient(app).get("/api/clubs", headers={"Authorization": "Bearer old"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Token expired", "expired": True}

    def test_invalid_token(self, monkeypatch):
        monkeypatch.setattr(auth_service, "decode_token_status", lambda token: (None, "invalid"), raising=True)
        response = TestClient(app).get("/api/clubs", headers={"Authorization": "Bearer junk"})
        assert response.status_code == 401
        assert "expired" not in response.json()

    def test_password_change_required(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="coach", must_change=True)

        response = client.get("/api/clubs", headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Password change required before accessing this resource"

        response = client.post("/api/auth/logout", headers=headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_me_returns_caller(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user", user_id=42)
        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["id"] == 42

    def test_login_attempts_are_recorded(self, monkeypatch):
        password_hash = auth_service.hash_password("Korfball#2024")
        attempts = []

        async def fake_get_user_by_login(session, identifier):
            if identifier != "coach1":
                return None
            return {"id": 7, "username": "coach1", "email": "coach1@example.com", "role": "coach",
                    "password_hash": password_hash, "password_must_change": False}

        async def fake_record_login_attempt(session, username, success, user_id=None, **kwargs):
            attempts.append((username, success, user_id))

        monkeypatch.setattr(user_service, "get_user_by_login", fake_get_user_by_login, raising=True)
        monkeypatch.setattr(user_service, "record_login_attempt", fake_record_login_attempt, raising=True)
        client = TestClient(app)

        assert client.post("/api/auth/login", json={"username": "ghost", "password": "x"}).status_code == 401
        assert client.post("/api/auth/login", json={"username": "coach1", "password": "wrong"}).status_code == 401
        response = client.post("/api/auth/login", json={"username": "coach1", "password": "Korfball#2024"})
        assert response.status_code == 200
        assert "password_hash" not in response.json()["user"]
        assert attempts == [("ghost", False, None), ("coach1", False, 7), ("coach1", True, 7)]

    def test_change_password(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="coach", user_id=7, must_change=True)
        account = {"password_hash": auth_service.hash_password("Korfball#2024"), "password_must_change": True}

        async def fake_get_user_with_password(session, uid):
            return {"id": uid, "username": "tester", "role": "coach", **account}

        async def fake_update_user_password(session, uid, password_hash, must_change=False):
            account.update(password_hash=password_hash, password_must_change=must_change)
            return True

        async def fake_get_user_by_id(session, uid):
            return {"id": uid, "username": "tester", "role": "coach", "is_active": True,
                    "password_must_change": account["password_must_change"]}

        monkeypatch.setattr(user_service, "get_user_with_password", fake_get_user_with_password, raising=True)
        monkeypatch.setattr(user_service, "update_user_password", fake_update_user_password, raising=True)

        same = {"current_password": "Korfball#2024", "new_password": "Korfball#2024"}
        response = client.post("/api/auth/change-password", json=same, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "New password must be different from the current password"

        wrong = {"current_password": "nope", "new_password": "Korfball#2025"}
        assert client.post("/api/auth/change-password", json=wrong, headers=headers).status_code == 401

        # Later lookups see the updated account
        monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)
        payload = {"current_password": "Korfball#2024", "new_password": "Korfball#2025"}
        response = client.post("/api/auth/change-password", json=payload, headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["password_must_change"] is False
        assert account["password_must_change"] is False
        assert auth_service.verify_password("Korfball#2025", account["password_hash"])
        claims = jwt.decode(body["access_token"], auth_service.JWT_SECRET_KEY, algorithms=[auth_service.JWT_ALGORITHM])
        assert claims["user_id"] == 7


class TestClubs:
    def test_list_clubs(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")

        async def fake_list_clubs(session):
            return [{"id": 1, "name": "Fortuna Delft"}]

        monkeypatch.setattr(club_service, "list_clubs", fake_list_clubs, raising=True)
        response = client.get("/api/clubs", headers=headers)
        assert response.status_code == 200
        assert response.json() == [{"id": 1, "name": "Fortuna Delft"}]

    def test_user_role_cannot_create_club(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")
        response = client.post("/api/clubs", json={"name": "PKC"}, headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Insufficient permissions"

    def test_create_club(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="coach")

        async def fake_create_club(session, name):
            return {"id": 5, "name": name}

        monkeypatch.setattr(club_service, "create_club", fake_create_club, raising=True)
        response = client.post("/api/clubs", json={"name": "PKC"}, headers=headers)
        assert response.status_code == 201
        assert response.json()["name"] == "PKC"

    def test_duplicate_club_is_conflict(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_create_club(session, name):
            raise ConflictError("Club name already exists")

        monkeypatch.setattr(club_service, "create_club", fake_create_club, raising=True)
        response = client.post("/api/clubs", json={"name": "PKC"}, headers=headers)
        assert response.status_code == 409
        assert response.json()["detail"] == "Club name already exists"

    def test_missing_club_is_not_found(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")

        async def fake_get_club(session, club_id):
            raise NotFoundError("Club not found")

        monkeypatch.setattr(club_service, "get_club", fake_get_club, raising=True)
        response = client.get("/api/clubs/99", headers=headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Club not found"

    def test_unexpected_error_is_500(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")

        async def fake_list_clubs(session):
            raise RuntimeError("boom")

        monkeypatch.setattr(club_service, "list_clubs", fake_list_clubs, raising=True)
        response = client.get("/api/clubs", headers=headers)
        assert response.status_code == 500
        assert "boom" in response.json()["detail"]

    def test_database_error_is_masked(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")
        notified = []

        async def fake_list_clubs(session):
            raise OperationalError(
                "UPDATE users SET password='hunter2' WHERE id=1",
                {},
                Exception("password authentication failed for 'hunter2'"),
            )

        async def fake_notify(method, path, error_type, message, status=500):
            notified.append(message)
            return False

        monkeypatch.setattr(club_service, "list_clubs", fake_list_clubs, raising=True)
        monkeypatch.setattr(get_error_notification_service(), "notify", fake_notify)
        response = client.get("/api/clubs", headers=headers)

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail.startswith("Error listing clubs:")
        assert "hunter2" not in detail
        assert "UPDATE users" not in detail
        assert notified and all("hunter2" not in m for m in notified)


class TestValidation:
    """Body validation failures answer 400 with the first message."""

    def test_same_clubs_rejected(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        payload = {"home_club_id": 1, "away_club_id": 1, "date": "2025-01-18T15:00:00Z"}
        response = client.post("/api/games", json=payload, headers=headers)
        assert response.status_code == 400
        body = response.json()
        assert body["detail"] == "Home and away clubs must be different"
        assert body["errors"]

    def test_missing_field_rejected(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        response = client.post("/api/clubs", json={}, headers=headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "name"

    def test_game_service_value_error_is_bad_request(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_start_game(session, game_id):
            raise ValueError("Only scheduled games can be started")

        monkeypatch.setattr(game_service, "start_game", fake_start_game, raising=True)
        response = client.post("/api/games/3/start", headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Only scheduled games can be started"


class TestSettings:
    def test_invalid_log_level(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        response = client.put("/api/settings/log_level", json={"value": "LOUD"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid log level: LOUD"

    def test_missing_value(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        response = client.put("/api/settings/log_level", json={"level": "DEBUG"}, headers=headers)
        assert response.status_code == 400

    def test_store_setting(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        stored = {}

        async def fake_set_setting(session, key, value):
            stored[key] = value

        monkeypatch.setattr(settings_service, "set_setting", fake_set_setting, raising=True)
        response = client.put("/api/settings/report_footer", json={"value": "ShotSpot"}, headers=headers)
        assert response.status_code == 200
        assert stored == {"report_footer": "ShotSpot"}

    def test_read_setting_falls_back_to_environment(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_get_setting(session, key):
            return None

        monkeypatch.setattr(settings_service, "get_setting", fake_get_setting, raising=True)
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        response = client.get("/api/settings/log_level", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"key": "log_level", "value": "WARNING"}

    def test_settings_are_admin_only(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="coach")
        response = client.get("/api/settings/log_level", headers=headers)
        assert response.status_code == 403


class TestExports:
    def test_match_csv_download(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")

        async def fake_export_match_csv(session, game_id):
            return f"match_{game_id}.csv", "GAME METADATA\nGame ID,7\n"

        monkeypatch.setattr(export_service, "export_match_csv", fake_export_match_csv, raising=True)
        response = client.get("/api/exports/match/7/csv", headers=headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="match_7.csv"' in response.headers["content-disposition"]
        assert response.text.startswith("GAME METADATA")


class TestPossessionsAndAnalytics:
    def test_shot_summary(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")

        async def fake_shot_summary(session, game_id):
            return {"overall": {"total_shots": 0}, "by_club": []}

        monkeypatch.setattr(analytics_service, "shot_summary", fake_shot_summary, raising=True)
        response = client.get("/api/analytics/shots/3/summary", headers=headers)
        assert response.status_code == 200
        assert response.json()["overall"]["total_shots"] == 0

    def test_bad_grid_size_is_bad_request(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")

        async def fake_shot_heatmap(session, game_id, club_id=None, period=None, grid_size=10):
            raise ValueError("Grid size must be between 5 and 20")

        monkeypatch.setattr(analytics_service, "shot_heatmap", fake_shot_heatmap, raising=True)
        response = client.get("/api/analytics/shots/3/heatmap?grid_size=50", headers=headers)
        assert response.status_code == 400

    def test_user_role_cannot_start_possession(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="user")
        response = client.post("/api/possessions/3", json={"club_id": 1, "period": 1}, headers=headers)
        assert response.status_code == 403

    def test_invalid_possession_result(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, role="admin")
        response = client.put("/api/possessions/3/8", json={"result": "dunk"}, headers=headers)
        assert response.status_code == 400
