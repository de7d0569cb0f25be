"""
Route tests with services and token verification mocked out.

No database is touched: each test replaces the service calls a route makes.
"""

import pytest
from fastapi.testclient import TestClient

from league_backend.api.main import app
from league_backend.services import (
    auth_service,
    free_agent_service,
    invite_service,
    person_service,
    registration_service,
    session_service,
    team_service,
)
from league_backend.services.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

IDENTITY = {"subject_id": "sub-captain", "email": "captain@example.com", "name": "Casey Captain"}


def make_client_with_auth(monkeypatch, subject_id="sub-captain", email="captain@example.com"):
    """Helper to create an authenticated test client."""

    def fake_verify_token(token):
        return {"sub": subject_id, "email": email, "name": "Casey Captain"}

    monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
    return TestClient(app), {"Authorization": "Bearer dummy"}


# ============================================================================
# Health and sessions
# ============================================================================


class TestSessionEndpoints:
    """Tests for the public session catalog endpoints."""

    def test_health(self):
        client = TestClient(app)
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ensure_upcoming_default_weeks(self, monkeypatch):
        calls = {}

        async def fake_ensure(session, weeks_ahead=3, today=None):
            calls["weeks_ahead"] = weeks_ahead
            return {"inserted": 9}

        monkeypatch.setattr(session_service, "ensure_upcoming_sessions", fake_ensure)
        client = TestClient(app)

        response = client.post("/api/sessions/ensure-upcoming")
        assert response.status_code == 200
        assert response.json() == {"inserted": 9}
        assert calls["weeks_ahead"] == 3

        response = client.post("/api/sessions/ensure-upcoming", json={"weeks_ahead": 5})
        assert response.status_code == 200
        assert calls["weeks_ahead"] == 5

    def test_list_upcoming(self, monkeypatch):
        async def fake_list(session, today=None):
            return [
                {
                    "id": 1,
                    "date": "2024-06-04",
                    "weekday": "tuesday",
                    "week_of": "2024-06-03",
                    "max_teams": 24,
                    "team_count": 2,
                    "spots_remaining": 22,
                }
            ]

        monkeypatch.setattr(session_service, "list_upcoming", fake_list)
        response = TestClient(app).get("/api/sessions/upcoming")
        assert response.status_code == 200
        assert response.json()[0]["spots_remaining"] == 22

    def test_get_session_not_found(self, monkeypatch):
        async def fake_get(session, session_id):
            return None

        monkeypatch.setattr(session_service, "get_session", fake_get)
        response = TestClient(app).get("/api/sessions/77")
        assert response.status_code == 404


# ============================================================================
# Auth
# ============================================================================


class TestAuthentication:
    """Tests for the bearer token dependency."""

    def test_missing_token_rejected(self):
        response = TestClient(app).get("/api/teams/mine")
        assert response.status_code in (401, 403)

    def test_invalid_token_rejected(self, monkeypatch):
        monkeypatch.setattr(auth_service, "verify_token", lambda token: None)
        response = TestClient(app).get(
            "/api/teams/mine", headers={"Authorization": "Bearer bad"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid authentication token"

    def test_token_without_subject_rejected(self, monkeypatch):
        monkeypatch.setattr(auth_service, "verify_token", lambda token: {"email": "a@b.co"})
        response = TestClient(app).get(
            "/api/teams/mine", headers={"Authorization": "Bearer x"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token payload"

    def test_people_me(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        class FakePerson:
            id = 7
            name = "Casey Captain"
            email = "captain@example.com"
            subject_id = "sub-captain"

        async def fake_get_or_create(session, identity):
            assert identity["subject_id"] == "sub-captain"
            return FakePerson()

        monkeypatch.setattr(person_service, "get_or_create_person_from_identity", fake_get_or_create)

        response = client.post("/api/people/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["id"] == 7


# ============================================================================
# Teams
# ============================================================================


class TestTeamEndpoints:
    """Tests for team endpoints and error mapping."""

    def test_create_team(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        captured = {}

        async def fake_create(session, identity, name, players, session_id=None):
            captured.update(identity=identity, name=name, players=players, session_id=session_id)
            return {"id": 1, "name": name, "registration_id": 3}

        monkeypatch.setattr(team_service, "create_team", fake_create)
        response = client.post(
            "/api/teams",
            json={
                "name": "Set to Win",
                "players": [
                    {"name": "Pat One", "email": "p1@example.com"},
                    {"name": "Pat Two", "email": "p2@example.com"},
                ],
                "session_id": 12,
            },
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["registration_id"] == 3
        assert captured["identity"] == IDENTITY
        assert captured["session_id"] == 12
        assert captured["players"][0] == {"name": "Pat One", "email": "p1@example.com"}

    @pytest.mark.parametrize(
        "error,status",
        [
            (ValidationError("Team name must be at least 2 characters."), 400),
            (ConflictError("Pat One is already active for Team A on 2024-06-04."), 409),
            (NotFoundError("Session not found."), 404),
            (AuthorizationError("Authentication required."), 403),
        ],
    )
    def test_create_team_error_mapping(self, monkeypatch, error, status):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_create(session, identity, name, players, session_id=None):
            raise error

        monkeypatch.setattr(team_service, "create_team", fake_create)
        response = client.post(
            "/api/teams", json={"name": "X", "players": []}, headers=headers
        )
        assert response.status_code == status
        assert response.json()["detail"] == str(error)

    def test_list_my_teams_with_roster(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_with_roster(session, identity):
            return [{"id": 1, "name": "Set to Win", "roster": []}]

        async def fake_plain(session, identity):
            return [{"id": 1, "name": "Set to Win"}]

        monkeypatch.setattr(team_service, "list_my_teams_with_roster", fake_with_roster)
        monkeypatch.setattr(team_service, "list_my_teams", fake_plain)

        assert "roster" in client.get("/api/teams/mine?include_roster=true", headers=headers).json()[0]
        assert "roster" not in client.get("/api/teams/mine", headers=headers).json()[0]

    def test_get_team_hidden(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_get(session, team_id, identity):
            return None

        monkeypatch.setattr(team_service, "get_team", fake_get)
        assert client.get("/api/teams/5", headers=headers).status_code == 404

    def test_remove_captain_is_bad_request(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_remove(session, team_id, member_id, identity):
            raise ValidationError("Cannot remove captain.")

        monkeypatch.setattr(team_service, "remove_member", fake_remove)
        response = client.delete("/api/teams/1/members/2", headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot remove captain."


# ============================================================================
# Registrations
# ============================================================================


class TestRegistrationEndpoints:
    """Tests for registration endpoints."""

    def test_register_conflict_is_409(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_register(session, team_id, session_id, identity, member_selections=None):
            assert member_selections == [{"person_id": 4, "weekly_status": "inactive"}]
            raise ConflictError("Pat One is already active for Team A on 2024-06-04.")

        monkeypatch.setattr(registration_service, "register_team_for_session", fake_register)
        response = client.post(
            "/api/registrations",
            json={
                "team_id": 1,
                "session_id": 2,
                "member_selections": [{"person_id": 4, "weekly_status": "inactive"}],
            },
            headers=headers,
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Pat One is already active for Team A on 2024-06-04."

    def test_register_not_captain_is_403(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_register(session, team_id, session_id, identity, member_selections=None):
            raise AuthorizationError("Only captains can manage session registrations.")

        monkeypatch.setattr(registration_service, "register_team_for_session", fake_register)
        response = client.post(
            "/api/registrations", json={"team_id": 1, "session_id": 2}, headers=headers
        )
        assert response.status_code == 403

    def test_update_members_rejects_duplicate_people(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        response = client.put(
            "/api/registrations/1/members",
            json={
                "selections": [
                    {"person_id": 4, "weekly_status": "active"},
                    {"person_id": 4, "weekly_status": "inactive"},
                ]
            },
            headers=headers,
        )
        assert response.status_code == 422

    def test_update_members(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_update(session, registration_id, identity, selections):
            return {"id": registration_id, "status": "forming", "members": []}

        monkeypatch.setattr(registration_service, "update_registration_members", fake_update)
        response = client.put(
            "/api/registrations/9/members",
            json={"selections": [{"person_id": 4, "weekly_status": "inactive"}]},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "forming"

    def test_leave_session(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_leave(session, registration_id, identity):
            return {"ok": True}

        monkeypatch.setattr(registration_service, "leave_session", fake_leave)
        response = client.post("/api/registrations/9/leave", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_unexpected_leave_error_is_logged(self, monkeypatch, caplog):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_leave(session, registration_id, identity):
            raise RuntimeError("database went away")

        monkeypatch.setattr(registration_service, "leave_session", fake_leave)
        with caplog.at_level("ERROR", logger="league_backend.api.routes.registrations"):
            response = client.post("/api/registrations/9/leave", headers=headers)
        assert response.status_code == 500
        assert "Error leaving session: database went away" in caplog.text

    def test_team_session_registration_anonymous(self, monkeypatch):
        captured = {}

        async def fake_get(session, team_id, session_id, identity):
            captured["identity"] = identity
            return {"id": 1, "members": []}

        monkeypatch.setattr(
            registration_service, "get_registration_for_team_and_session", fake_get
        )
        response = TestClient(app).get("/api/teams/1/sessions/2/registration")
        assert response.status_code == 200
        assert captured["identity"] is None


# ============================================================================
# Invites and free agents
# ============================================================================


class TestInviteEndpoints:
    """Tests for invite endpoints."""

    def test_pending_route_not_shadowed_by_token_route(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_pending(session, identity):
            return [{"invite_token": "abc"}]

        monkeypatch.setattr(invite_service, "list_my_pending_invites", fake_pending)
        response = client.get("/api/invites/pending", headers=headers)
        assert response.status_code == 200
        assert response.json() == [{"invite_token": "abc"}]

    def test_unknown_invite(self, monkeypatch):
        async def fake_get(session, token):
            return None

        monkeypatch.setattr(invite_service, "get_invite_by_token", fake_get)
        assert TestClient(app).get("/api/invites/missing").status_code == 404

    def test_unexpected_lookup_error_is_logged(self, monkeypatch, caplog):
        async def fake_get(session, token):
            raise RuntimeError("database went away")

        monkeypatch.setattr(invite_service, "get_invite_by_token", fake_get)
        with caplog.at_level("ERROR", logger="league_backend.api.routes.invites"):
            response = TestClient(app).get("/api/invites/abc")
        assert response.status_code == 500
        assert "Error retrieving invite: database went away" in caplog.text

    def test_respond_twice_is_409(self, monkeypatch):
        async def fake_respond(session, token, response, name=None, identity=None):
            raise ConflictError("This invite has already been responded to.")

        monkeypatch.setattr(invite_service, "respond_to_invite", fake_respond)
        response = TestClient(app).post(
            "/api/invites/tok/respond", json={"response": "confirmed"}
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "This invite has already been responded to."

    def test_respond_passes_identity_when_signed_in(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        captured = {}

        async def fake_respond(session, token, response, name=None, identity=None):
            captured.update(token=token, response=response, name=name, identity=identity)
            return {"ok": True, "invite_status": response}

        monkeypatch.setattr(invite_service, "respond_to_invite", fake_respond)
        response = client.post(
            "/api/invites/tok/respond",
            json={"response": "declined", "name": "Pat"},
            headers=headers,
        )
        assert response.status_code == 200
        assert captured == {
            "token": "tok",
            "response": "declined",
            "name": "Pat",
            "identity": IDENTITY,
        }


class TestFreeAgentEndpoints:
    """Tests for free agent endpoints."""

    def test_duplicate_signup_is_409(self, monkeypatch):
        async def fake_sign_up(session, session_id, name, email, phone=None, identity=None):
            raise ConflictError("You are already signed up as a free agent for this session.")

        monkeypatch.setattr(free_agent_service, "sign_up_free_agent", fake_sign_up)
        response = TestClient(app).post(
            "/api/sessions/3/free-agents", json={"name": "A", "email": "A@x.com"}
        )
        assert response.status_code == 409

    def test_list_free_agents(self, monkeypatch):
        async def fake_list(session, session_id):
            return [{"id": 1, "name": "A", "session_id": session_id}]

        monkeypatch.setattr(free_agent_service, "list_free_agents", fake_list)
        response = TestClient(app).get("/api/sessions/3/free-agents")
        assert response.status_code == 200
        assert response.json()[0]["session_id"] == 3

    def test_withdraw_requires_auth(self):
        response = TestClient(app).post("/api/free-agents/1/withdraw")
        assert response.status_code in (401, 403)
