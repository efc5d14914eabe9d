import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import MemoryBackend


@pytest.fixture
def client():
    app = create_app(store=MemoryBackend(), janitor_enabled=False)
    with TestClient(app) as client:
        yield client


def call(client, **body):
    return client.post("/signaling", json=body)


def poll(client, room_id, player_id):
    response = client.get("/signaling", params={"action": "poll_notifications", "roomId": room_id, "playerId": player_id})
    assert response.status_code == 200
    return response.json()["notifications"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_room(client):
    response = call(client, action="create_room", roomId="R1", playerId="host1")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Room created", "roomId": "R1"}


def test_create_room_twice_fails(client):
    call(client, action="create_room", roomId="R1", playerId="host1")
    response = call(client, action="create_room", roomId="R1", playerId="host2")

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Room already exists"}


def test_join_then_host_polls_new_player(client):
    call(client, action="create_room", roomId="R1", playerId="host1")
    response = call(client, action="join_room", roomId="R1", playerId="p2")

    assert response.json() == {"success": True, "message": "Joined room", "hostId": "host1", "roomId": "R1"}
    assert poll(client, "R1", "host1") == [{"type": "new_player", "playerId": "p2"}]
    assert poll(client, "R1", "host1") == []


def test_join_missing_room(client):
    response = call(client, action="join_room", roomId="nope", playerId="p2")

    assert response.status_code == 400
    assert response.json()["message"] == "Room not found"


def test_join_full_room(client):
    call(client, action="create_room", roomId="R1", playerId="host1")
    for i in range(2, 9):
        assert call(client, action="join_room", roomId="R1", playerId=f"p{i}").status_code == 200

    response = call(client, action="join_room", roomId="R1", playerId="p9")
    assert response.status_code == 400
    assert response.json()["message"] == "Room is full"


def test_host_leaves_and_new_host_is_told(client):
    call(client, action="create_room", roomId="R1", playerId="host1")
    call(client, action="join_room", roomId="R1", playerId="p2")

    response = call(client, action="leave_room", roomId="R1", playerId="host1")

    assert response.json() == {"success": True, "message": "Left room"}
    assert poll(client, "R1", "p2") == [{"type": "player_left", "playerId": "host1"}]
    # p2 is host now, so an offer from p2 to a newcomer is allowed
    call(client, action="join_room", roomId="R1", playerId="p3")
    assert call(client, action="offer", roomId="R1", playerId="p2", targetId="p3", data={"sdp": "x"}).status_code == 200


def test_last_player_leaving_closes_room(client):
    call(client, action="create_room", roomId="R1", playerId="host1")

    response = call(client, action="leave_room", roomId="R1", playerId="host1")

    assert response.json() == {"success": True, "message": "Room closed (last player left)"}
    assert call(client, action="join_room", roomId="R1", playerId="p2").json()["message"] == "Room not found"


def test_full_negotiation_round(client):
    offer = {"type": "offer", "sdp": "v=0 offer"}
    answer = {"type": "answer", "sdp": "v=0 answer"}
    candidates = [{"candidate": "candidate:1 1 udp 1 10.0.0.1 5000 typ host", "sdpMid": "0", "sdpMLineIndex": 0}]
    call(client, action="create_room", roomId="R1", playerId="host1")
    call(client, action="join_room", roomId="R1", playerId="p2")
    poll(client, "R1", "host1")

    assert call(client, action="offer", roomId="R1", playerId="host1", targetId="p2", data=offer).json() == {"success": True, "message": "Offer sent"}
    assert call(client, action="answer", roomId="R1", playerId="p2", targetId="host1", data=answer).json() == {"success": True, "message": "Answer sent"}
    assert call(client, action="ice_candidates", roomId="R1", playerId="p2", targetId="host1", data=candidates).json() == {"success": True, "message": "ICE candidates sent"}

    assert poll(client, "R1", "p2") == [{"type": "offer", "from": "host1", "offer": offer}]
    assert poll(client, "R1", "host1") == [
        {"type": "answer", "from": "p2", "answer": answer},
        {"type": "new_ice_candidates", "from": "p2", "candidates": candidates},
    ]


def test_offer_between_clients_rejected(client):
    call(client, action="create_room", roomId="R1", playerId="host1")
    call(client, action="join_room", roomId="R1", playerId="p2")
    call(client, action="join_room", roomId="R1", playerId="p3")

    response = call(client, action="offer", roomId="R1", playerId="p2", targetId="p3", data={"sdp": "x"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid offer direction"}


def test_invalid_action(client):
    response = call(client, action="teleport", roomId="R1", playerId="p1")

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid action: teleport"}


def test_get_without_action(client):
    response = client.get("/signaling")

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid action: None"


def test_missing_required_field(client):
    call(client, action="create_room", roomId="R1", playerId="host1")
    response = call(client, action="offer", roomId="R1", playerId="host1", data={"sdp": "x"})

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required field: targetId"


def test_get_ignores_body_only_fields(client):
    call(client, action="create_room", roomId="R1", playerId="host1")
    response = client.get("/signaling", params={"action": "offer", "roomId": "R1", "playerId": "host1", "targetId": "p2"})

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required field: targetId"


def test_invalid_identifier(client):
    response = call(client, action="create_room", roomId="a/b", playerId="host1")

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["message"].startswith("Invalid roomId")


def test_non_json_body(client):
    response = client.post("/signaling", content=b"not json", headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Request body must be valid JSON"}


def test_wrongly_typed_field(client):
    response = call(client, action="create_room", roomId=12, playerId="host1")

    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid request field roomId")


def test_store_failures_use_failure_envelope(client):
    call(client, action="create_room", roomId="R1", playerId="host1")

    response = call(client, action="offer", roomId="R1", playerId="host1", targetId="p2", data={"bad.key": 1})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "bad.key" in response.json()["message"]


def test_cors_preflight(client):
    response = client.options(
        "/signaling",
        headers={"Origin": "https://game.example", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in ("*", "https://game.example")
