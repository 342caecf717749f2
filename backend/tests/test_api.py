import pytest
from fastapi.testclient import TestClient

from linkstation.exceptions import BackendFailureException
from linkstation.main import create_app


@pytest.fixture
def client(config):
    with TestClient(create_app(config)) as client:
        yield client


def create_lounge(client, username="alice", **extra):
    response = client.post("/api/create-room", json={
        "room_name": "Lounge", "member_limit": 4, "username": username, **extra,
    })
    assert response.status_code == 200
    return response.json()


def admin_headers(client) -> dict:
    token = client.post("/api/admin-login", json={"password": "letmein"}).json()["token"]
    return {"X-Admin-Token": token}


# -----------------------------
# Health
# -----------------------------

def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["store"] == {"backend": "memory", "connected": True}
    assert client.get("/ready").json()["store_connected"] is True


# -----------------------------
# Game endpoints
# -----------------------------

def test_full_round_over_http(client):
    alice = create_lounge(client)
    assert alice["success"] is True
    assert alice["is_master"] is True

    bob = client.post("/api/join-room", json={"room_name": "LOUNGE", "username": "bob"}).json()
    assert [u["username"] for u in bob["users"]] == ["alice", "bob"]

    room_id = alice["room_id"]
    started = client.post("/api/start-game", json={"room_id": room_id, "user_id": alice["user_id"]})
    assert started.json()["room"]["game_state"] == "linking"

    client.post("/api/select", json={
        "room_id": room_id, "user_id": alice["user_id"], "selected_user_id": bob["user_id"],
    })
    result = client.post("/api/select", json={
        "room_id": room_id, "user_id": bob["user_id"], "selected_user_id": alice["user_id"],
    }).json()
    assert result["completed"] is True
    assert result["room_deleted"] is True
    assert len(result["match_result"]["matches"]) == 1

    gone = client.get(f"/api/room/{room_id}", params={"username": "bob"})
    assert gone.status_code == 404
    assert gone.json()["details"]["room_deleted"] is True


def test_error_envelope_for_duplicate_room(client):
    create_lounge(client)
    response = client.post("/api/create-room", json={
        "room_name": "lounge", "member_limit": 4, "username": "bob",
    })
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "CONF_002"
    assert body["status_code"] == 409


def test_request_validation_error(client):
    response = client.post("/api/create-room", json={
        "room_name": "Tiny", "member_limit": 1, "username": "alice",
    })
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "VAL_001"
    assert body["details"]["validation_errors"][0]["field"] == "member_limit"


def test_password_flow(client):
    create_lounge(client, room_password="hunter2")

    first = client.post("/api/join-room", json={"room_name": "Lounge", "username": "bob"})
    assert first.status_code == 403
    assert first.json()["details"] == {"requires_password": True}

    wrong = client.post("/api/check-password", json={"room_name": "Lounge", "username": "bob"})
    assert wrong.json()["error"] == "AUTH_004"

    ok = client.post("/api/check-password", json={
        "room_name": "Lounge", "username": "bob", "password": "hunter2",
    })
    assert ok.status_code == 200


def test_availability_checks(client):
    create_lounge(client)
    assert client.post("/api/check-username", json={"username": "alice"}).json()["duplicate"] is True
    assert client.post("/api/check-roomname", json={"room_name": "LOUNGE"}).json()["duplicate"] is True
    assert client.post("/api/check-roomname", json={"room_name": "Other"}).json()["duplicate"] is False


def test_heartbeat_endpoints(client):
    alice = create_lounge(client)
    assert client.post("/api/ping", json={"username": "alice", "user_id": alice["user_id"]}).json()["success"]
    assert client.post("/api/keep-alive-user", json={"username": "alice"}).json()["updated"] is True
    assert client.post("/api/keep-alive-room", json={"room_id": alice["room_id"]}).json()["success"]

    warning = client.post("/api/check-warning", json={
        "username": "alice", "user_id": alice["user_id"], "room_id": alice["room_id"],
    }).json()
    assert warning["user_warning"] is False
    assert warning["kick_reason"] is None


def test_backend_failure_is_502(client, monkeypatch):
    services = client.app.state.services

    async def broken(name_lower):
        raise BackendFailureException("rest", "get", "timeout")

    monkeypatch.setattr(services.rooms, "get_by_name", broken)
    response = client.post("/api/check-roomname", json={"room_name": "Lounge"})
    assert response.status_code == 502
    assert response.json()["error"] == "STORE_001"


# -----------------------------
# Admin endpoints
# -----------------------------

def test_admin_requires_token(client):
    response = client.post("/api/admin-status", json={})
    assert response.status_code == 401
    assert response.json()["error"] == "AUTH_006"

    bad_login = client.post("/api/admin-login", json={"password": "nope"})
    assert bad_login.status_code == 403


def test_admin_status_with_header_or_body_token(client):
    create_lounge(client)
    headers = admin_headers(client)

    status = client.post("/api/admin-status", headers=headers).json()
    assert status["room_counts"]["total"] == 1
    assert status["admin_sessions"] == 1

    body_token = {"token": headers["X-Admin-Token"]}
    rooms = client.post("/api/admin-rooms", json={**body_token, "filter": "waiting"}).json()
    assert [r["room_name"] for r in rooms["rooms"]] == ["Lounge"]

    token_status = client.get("/api/admin-token-status", headers=headers).json()
    assert token_status["remaining_seconds"] > 0


def test_admin_shutdown_blocks_room_creation(client):
    headers = admin_headers(client)
    client.post("/api/admin-shutdown", json={"shutdown": True}, headers=headers)
    assert client.get("/api/admin-shutdown-status").json()["shutdown"] is True

    response = client.post("/api/create-room", json={
        "room_name": "Lounge", "member_limit": 4, "username": "alice",
    })
    assert response.status_code == 503
    assert response.json()["error"] == "AUTH_007"


def test_admin_delete_room_and_logout(client):
    alice = create_lounge(client)
    headers = admin_headers(client)

    deleted = client.post("/api/admin-delete-room", json={"room_id": alice["room_id"]}, headers=headers)
    assert deleted.json()["room_name"] == "Lounge"

    status = client.get(f"/api/room/{alice['room_id']}", params={"username": "alice"}).json()
    assert status["details"]["room_deleted_by_admin"] is True

    client.post("/api/admin-logout", headers=headers)
    assert client.post("/api/admin-users", json={}, headers=headers).status_code == 401
