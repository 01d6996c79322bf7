"""Tests for FastAPI endpoints."""

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from supersteaks import config
from supersteaks.api.dependencies import get_cache_service, get_db
from supersteaks.main import RateLimiter, app
from supersteaks.models import ASSIGNMENTS, TOURNAMENTS
from supersteaks.services.tournament_service import TournamentService
from supersteaks.storage.exceptions import QueryError


ADMIN = {'X-Admin-Token': 'secret'}


def user(user_id: str) -> dict:
    return {'X-User-Id': user_id}


@pytest.fixture
def client(memory_db, sample_tournament_data):
    """Test client over a fresh in-memory store holding tournament T1."""
    memory_db.put_document(TOURNAMENTS, 'T1', sample_tournament_data)
    app.dependency_overrides[get_db] = lambda: memory_db
    get_cache_service().clear()
    app.state.join_rate_limiter.reset()

    with patch.object(config, 'ADMIN_TOKEN', 'secret'):
        yield TestClient(app)

    app.dependency_overrides.clear()
    get_cache_service().clear()
    app.state.join_rate_limiter.reset()


class TestHealthEndpoint:
    """Tests for health endpoint."""

    def test_health_ok(self, client):
        """Healthy store reports ok."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": True}

    def test_health_degraded(self, client, memory_db):
        """Unreachable store reports 503."""
        with patch.object(memory_db, 'health_check', return_value=False):
            response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"


class TestTournamentEndpoints:
    """Tests for tournament read endpoints."""

    def test_list_tournaments(self, client):
        """GET /api/tournaments returns summaries."""
        response = client.get("/api/tournaments")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["id"] == "T1"
        assert data[0]["teamCount"] == 2
        assert data[0]["status"] == "active"

    def test_list_tournaments_by_status(self, client):
        """Status filter narrows the listing."""
        assert client.get("/api/tournaments", params={"status": "closed"}).json() == []

    def test_list_tournaments_error(self, client):
        """Handle service errors."""
        with patch.object(TournamentService, 'list_tournaments', side_effect=Exception("DB Error")):
            response = client.get("/api/tournaments")

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to list tournaments"

    def test_get_tournament(self, client):
        """GET /api/tournaments/{id} returns one tournament."""
        response = client.get("/api/tournaments/T1")
        assert response.status_code == 200
        assert response.json()["name"] == "Test Cup"

    def test_get_tournament_not_found(self, client):
        """Unknown tournament returns 404."""
        response = client.get("/api/tournaments/nope")
        assert response.status_code == 404
        assert response.json()["error"] == "not-found"


class TestJoinEndpoint:
    """Tests for POST /api/tournaments/{id}/join."""

    def test_join(self, client):
        """Join returns the team and lobby."""
        response = client.post("/api/tournaments/T1/join", headers=user("u1"))

        assert response.status_code == 200
        data = response.json()
        assert data["team"] in ("Ajax", "Arsenal")
        assert data["lobbyId"] == "T1_lobby_1"
        assert data["lobbyStatus"] == "open"
        assert data["currentCount"] == 1
        assert data["capacity"] == 2

    def test_join_requires_authentication(self, client):
        """No user header, no join."""
        response = client.post("/api/tournaments/T1/join")
        assert response.status_code == 401
        assert response.json()["detail"] == "User must be authenticated"

    def test_join_malformed_user(self, client):
        """Malformed user ids are invalid arguments."""
        response = client.post("/api/tournaments/T1/join", headers=user("bad id"))
        assert response.status_code == 400
        assert response.json()["error"] == "invalid-argument"

    def test_join_unknown_tournament(self, client):
        """Unknown tournament returns 404."""
        response = client.post("/api/tournaments/nope/join", headers=user("u1"))
        assert response.status_code == 404
        assert response.json()["error"] == "not-found"

    def test_join_twice(self, client):
        """Second join by the same user is a conflict."""
        client.post("/api/tournaments/T1/join", headers=user("u1"))
        response = client.post("/api/tournaments/T1/join", headers=user("u1"))

        assert response.status_code == 409
        assert response.json() == {
            "error": "already-exists",
            "detail": "User already assigned in this tournament",
        }

    def test_join_fills_then_overflows(self, client):
        """Third user in a two-team tournament lands in lobby 2."""
        first = client.post("/api/tournaments/T1/join", headers=user("u1")).json()
        second = client.post("/api/tournaments/T1/join", headers=user("u2")).json()
        third = client.post("/api/tournaments/T1/join", headers=user("u3")).json()

        assert {first["team"], second["team"]} == {"Ajax", "Arsenal"}
        assert second["lobbyStatus"] == "full"
        assert third["lobbyId"] == "T1_lobby_2"

    def test_join_misconfigured_tournament(self, client, memory_db, sample_tournament_data):
        """Bad teamCount returns failed-precondition."""
        memory_db.put_document(TOURNAMENTS, 'T1', {**sample_tournament_data, 'teamCount': 0})
        response = client.post("/api/tournaments/T1/join", headers=user("u1"))
        assert response.status_code == 422
        assert response.json()["error"] == "failed-precondition"

    def test_join_store_failure(self, client, memory_db):
        """Store errors map to a generic internal error."""
        with patch.object(memory_db, '_read_document', side_effect=QueryError("disk full")):
            response = client.post("/api/tournaments/T1/join", headers=user("u1"))
        assert response.status_code == 500
        assert response.json() == {"error": "internal", "detail": "Failed to join tournament"}

    def test_join_rate_limited(self, client):
        """Joins beyond the per-user limit get 429 with Retry-After."""
        original = app.state.join_rate_limiter
        app.state.join_rate_limiter = RateLimiter(max_requests=2, window_seconds=60)
        try:
            client.post("/api/tournaments/T1/join", headers=user("u1"))
            client.post("/api/tournaments/T1/join", headers=user("u1"))
            response = client.post("/api/tournaments/T1/join", headers=user("u1"))
            other = client.post("/api/tournaments/T1/join", headers=user("u2"))
        finally:
            app.state.join_rate_limiter = original

        assert response.status_code == 429
        assert response.json()["error"] == "rate-limited"
        assert int(response.headers["Retry-After"]) > 0
        assert other.status_code == 200


class TestVisibilityEndpoints:
    """Tests for visibility and assignment endpoints."""

    def test_visibility_before_join(self, client):
        """Unassigned users cannot view."""
        response = client.get("/api/tournaments/T1/visibility", headers=user("u1"))
        assert response.status_code == 200
        assert response.json()["canView"] is False

    def test_visibility_after_join(self, client):
        """Users see their lobby's teams."""
        joined = client.post("/api/tournaments/T1/join", headers=user("u1")).json()
        response = client.get("/api/tournaments/T1/visibility", headers=user("u1"))

        data = response.json()
        assert data["canView"] is True
        assert data["userTeam"] == joined["team"]
        assert data["visibleTeams"] == [joined["team"]]

    def test_visibility_requires_authentication(self, client):
        """No user header, no visibility."""
        assert client.get("/api/tournaments/T1/visibility").status_code == 401

    def test_my_assignments(self, client):
        """Lists the caller's active assignments only."""
        client.post("/api/tournaments/T1/join", headers=user("u1"))
        client.post("/api/tournaments/T1/join", headers=user("u2"))

        data = client.get("/api/me/assignments", headers=user("u1")).json()
        assert len(data) == 1
        assert data[0]["userId"] == "u1"
        assert data[0]["tournamentId"] == "T1"


class TestAdminEndpoints:
    """Tests for admin endpoints."""

    def test_requires_token(self, client):
        """Missing or wrong token is forbidden."""
        body = {"action": "create", "tournaments": [{"name": "Cup", "teamCount": 2}]}
        assert client.post("/api/admin/tournaments", json=body).status_code == 403
        response = client.post("/api/admin/tournaments", json=body, headers={'X-Admin-Token': 'wrong'})
        assert response.status_code == 403
        assert response.json()["detail"] == "Invalid admin token"

    def test_disabled_without_configured_token(self, client):
        """An empty ADMIN_TOKEN turns the admin API off."""
        with patch.object(config, 'ADMIN_TOKEN', ''):
            response = client.post("/api/admin/cleanup-duplicates", headers=ADMIN)
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin API is disabled"

    def test_create_tournaments(self, client):
        """Create invalidates the listing cache."""
        assert len(client.get("/api/tournaments").json()) == 1

        response = client.post("/api/admin/tournaments", headers=ADMIN, json={
            "action": "create",
            "tournaments": [{"id": "CL", "name": "Champions", "teamCount": 8}],
        })

        assert response.status_code == 200
        assert response.json()["ids"] == ["CL"]
        assert len(client.get("/api/tournaments").json()) == 2

    def test_create_invalid_configuration(self, client):
        """Unusable tournaments are refused with 422."""
        response = client.post("/api/admin/tournaments", headers=ADMIN, json={
            "action": "create",
            "tournaments": [{"name": "Broken", "teams": ["A"], "teamCount": 2}],
        })
        assert response.status_code == 422
        assert response.json()["error"] == "failed-precondition"

    def test_delete_tournaments(self, client):
        """Delete removes tournaments by name."""
        response = client.post("/api/admin/tournaments", headers=ADMIN, json={
            "action": "delete", "tournaments": ["Test Cup"],
        })
        assert response.json()["deleted"] == 1
        assert client.get("/api/tournaments").json() == []

    def test_refresh_tournaments(self, client):
        """Refresh swaps old tournaments for new ones."""
        response = client.post("/api/admin/tournaments", headers=ADMIN, json={
            "action": "refresh",
            "remove": ["Test Cup"],
            "tournaments": [{"name": "Next Cup", "teamCount": 4}],
        })
        data = response.json()
        assert data["deleted"] == 1
        assert len(data["ids"]) == 1
        assert [t["name"] for t in client.get("/api/tournaments").json()] == ["Next Cup"]

    def test_invalid_action(self, client):
        """Unknown actions are bad requests."""
        response = client.post("/api/admin/tournaments", headers=ADMIN, json={"action": "explode"})
        assert response.status_code == 400

    def test_update_tournament(self, client):
        """PATCH edits tournament fields."""
        response = client.patch("/api/admin/tournaments/T1", headers=ADMIN, json={"name": "Renamed"})
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"

    def test_update_roster_after_join(self, client):
        """Roster is frozen once a lobby exists."""
        client.post("/api/tournaments/T1/join", headers=user("u1"))
        response = client.patch("/api/admin/tournaments/T1", headers=ADMIN, json={"teamCount": 1})
        assert response.status_code == 422

    def test_close_tournament(self, client):
        """Closed tournaments refuse joins with 503."""
        response = client.post("/api/admin/tournaments/T1/close", headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["status"] == "closed"

        joined = client.post("/api/tournaments/T1/join", headers=user("u1"))
        assert joined.status_code == 503
        assert joined.json()["error"] == "unavailable"

    def test_cleanup_duplicates(self, client, memory_db):
        """Duplicate active assignments are retired."""
        for doc_id, minute in (('a', '00'), ('b', '05')):
            memory_db.put_document(ASSIGNMENTS, doc_id, {
                'id': doc_id, 'userId': 'u1', 'tournamentId': 'T1', 'lobbyId': 'T1_lobby_1',
                'team': 'Ajax', 'status': 'active', 'assignedAt': f'2025-09-01T10:{minute}:00Z',
            })

        response = client.post("/api/admin/cleanup-duplicates", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["deleted"] == 1
        assert memory_db.get_document(ASSIGNMENTS, 'b')['status'] == 'forfeited'

    def test_storage_error_handler(self, client):
        """Store failures escaping a service become a generic 500."""
        with patch.object(TournamentService, 'cleanup_duplicate_assignments',
                          side_effect=QueryError("connection reset")):
            response = client.post("/api/admin/cleanup-duplicates", headers=ADMIN)

        assert response.status_code == 500
        assert response.json() == {"error": "internal", "detail": "Storage failure, please try again"}
