import json

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from main import app, close_idle_rooms
from watchparty.constants import ERROR_MESSAGES

@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client

def create_room(ws, name="Alice"):
    ws.send_json({"type": "create", "username": name})
    created = ws.receive_json()
    assert created["type"] == "created"
    return created

def join_room(ws, room_code, name="Bob"):
    ws.send_json({"type": "join", "username": name, "room_code": room_code})
    return ws.receive_json()

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "total_rooms" in data["rooms"]

def test_stats(client):
    response = client.get("/stats")
    assert response.status_code == 200
    assert response.json()["server"] == "Watch Party Room Server"

def test_create_room(client):
    with client.websocket_connect("/ws") as host:
        created = create_room(host)
        assert len(created["room_code"]) == 8
        assert created["participant_id"]
        assert created["host_token"]

def test_handshake_rejects_invalid_json(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["message"] == ERROR_MESSAGES["invalid_json"]

def test_handshake_must_create_or_join(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "message", "message": "hi"})
        frame = ws.receive_json()
        assert frame["type"] == "error"

def test_create_with_invalid_name(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "create", "username": "<script>alert(1)</script>"})
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["message"] == ERROR_MESSAGES["invalid_username"]

def test_join_unknown_room(client):
    with client.websocket_connect("/ws") as ws:
        frame = join_room(ws, "ZZZZ0000")
        assert frame["type"] == "error"
        assert frame["message"] == ERROR_MESSAGES["room_not_found"]

def test_admission_flow_and_chat(client):
    with client.websocket_connect("/ws") as host:
        created = create_room(host)

        with client.websocket_connect("/ws") as guest:
            pending = join_room(guest, created["room_code"])
            assert pending["type"] == "pending"
            bob_id = pending["participant_id"]

            request = host.receive_json()
            assert request["type"] == "join_request"
            assert request["participant"]["name"] == "Bob"
            assert request["participant"]["status"] == "pending"

            # Pending participants cannot chat or admit
            guest.send_json({"type": "message", "message": "let me in"})
            assert guest.receive_json()["message"] == ERROR_MESSAGES["not_admitted"]
            guest.send_json({"type": "admit", "participant_id": bob_id})
            assert guest.receive_json()["message"] == ERROR_MESSAGES["not_host"]

            host.send_json({"type": "admit", "participant_id": bob_id})
            admitted = guest.receive_json()
            assert admitted["type"] == "admitted"
            history = [entry["message"] for entry in admitted["history"]]
            assert history == [f"Welcome to room {created['room_code']}!", "Bob joined the room"]

            notice = host.receive_json()
            assert notice["type"] == "message"
            assert notice["is_system"] is True
            roster = host.receive_json()
            assert roster["type"] == "roster"
            assert [p["name"] for p in roster["admitted"]] == ["Alice", "Bob"]

            guest.send_json({"type": "message", "message": "<b>hello</b>"})
            chat = guest.receive_json()
            assert chat["type"] == "message"
            assert chat["message"] == "hello"
            assert chat["username"] == "Bob"
            ack = guest.receive_json()
            assert ack["type"] == "ack"
            assert ack["recipients"] == 2
            assert host.receive_json()["message"] == "hello"

def test_reject_flow(client):
    with client.websocket_connect("/ws") as host:
        created = create_room(host)

        with client.websocket_connect("/ws") as guest:
            bob_id = join_room(guest, created["room_code"])["participant_id"]
            host.receive_json()  # join_request

            host.send_json({"type": "reject", "participant_id": bob_id})
            assert guest.receive_json()["type"] == "rejected"
            with pytest.raises(WebSocketDisconnect):
                guest.receive_json()
            roster = host.receive_json()
            assert roster["type"] == "roster"
            assert roster["pending"] == []

            host.send_json({"type": "reject", "participant_id": bob_id})
            assert host.receive_json()["message"] == ERROR_MESSAGES["participant_not_found"]

def test_set_video(client):
    with client.websocket_connect("/ws") as host:
        create_room(host)

        host.send_json({"type": "set_video", "url": "javascript:alert(1)"})
        assert host.receive_json()["message"] == ERROR_MESSAGES["invalid_url"]

        host.send_json({"type": "set_video", "url": "https://example.com/movie.mp4"})
        frame = host.receive_json()
        assert frame["type"] == "video"
        assert frame["url"] == "https://example.com/movie.mp4"

def test_chat_rate_limit(client):
    with client.websocket_connect("/ws") as host:
        create_room(host)

        for i in range(10):
            host.send_json({"type": "message", "message": f"m{i}"})
            assert host.receive_json()["type"] == "message"
            assert host.receive_json()["type"] == "ack"

        host.send_json({"type": "message", "message": "one too many"})
        frame = host.receive_json()
        assert frame["type"] == "error"
        assert frame["message"].startswith(ERROR_MESSAGES["rate_limit"])

def test_heartbeat_and_unknown_frames(client):
    with client.websocket_connect("/ws") as host:
        create_room(host)

        host.send_json({"type": "heartbeat"})
        assert host.receive_json()["type"] == "heartbeat"

        host.send_json({"type": "dance"})
        assert host.receive_json()["type"] == "error"

def test_host_leaving_closes_room(client):
    with client.websocket_connect("/ws") as host:
        created = create_room(host)

        with client.websocket_connect("/ws") as guest:
            bob_id = join_room(guest, created["room_code"])["participant_id"]
            host.receive_json()  # join_request
            host.send_json({"type": "admit", "participant_id": bob_id})
            assert guest.receive_json()["type"] == "admitted"

            host.send_json({"type": "leave"})
            assert host.receive_json()["type"] == "message"  # admit notice
            assert host.receive_json()["type"] == "roster"
            assert host.receive_json()["type"] == "left"
            closed = guest.receive_json()
            assert closed["type"] == "room_closed"
            assert closed["reason"] == "host_left"
            with pytest.raises(WebSocketDisconnect):
                guest.receive_json()

def test_frame_size_counts_bytes(client):
    with client.websocket_connect("/ws") as host:
        create_room(host)

        # Under the limit in characters, over it in UTF-8 bytes
        padding = "é" * 6000
        host.send_text(json.dumps({"type": "heartbeat", "pad": padding}, ensure_ascii=False))
        frame = host.receive_json()
        assert frame["type"] == "error"
        assert frame["message"] == ERROR_MESSAGES["invalid_message"]

        host.send_text(json.dumps({"type": "heartbeat", "pad": "e" * 6000}))
        assert host.receive_json()["type"] == "heartbeat"

def test_idle_rooms_are_closed_with_notice(client):
    with client.websocket_connect("/ws") as host:
        create_room(host)

        assert client.portal.call(close_idle_rooms, -1) >= 1
        closed = host.receive_json()
        assert closed["type"] == "room_closed"
        assert closed["reason"] == "idle"
        with pytest.raises(WebSocketDisconnect):
            host.receive_json()
