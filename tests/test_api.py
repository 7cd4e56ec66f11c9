import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from watchsync.core import settings
from watchsync.main import create_app


ROOM = "movie-night"


@pytest.fixture
def client():
    with TestClient(create_app()) as c:
        yield c


def _presence_join(ws, user_id, **meta):
    ws.send_json({"type": "presence-join", "data": {"roomId": ROOM, "user": {"id": user_id, **meta}}})


def test_two_viewers_stay_in_sync(client):
    with client.websocket_connect(settings.SOCKET_PATH) as a, client.websocket_connect(settings.SOCKET_PATH) as b:
        _presence_join(a, "alice", name="Alice")
        assert a.receive_json() == {"type": "room-presence", "data": [{"id": "alice", "name": "Alice"}]}

        _presence_join(b, "bob")
        both = [{"id": "alice", "name": "Alice"}, {"id": "bob"}]
        assert a.receive_json() == {"type": "room-presence", "data": both}
        assert b.receive_json() == {"type": "room-presence", "data": both}

        a.send_json({"type": "sync-command", "data": {"roomId": ROOM, "cmd": "play", "timestamp": 1000, "seekTime": 42}})
        assert b.receive_json() == {"type": "sync-command", "data": {"cmd": "play", "timestamp": 1000, "seekTime": 42}}

        b.send_json({"type": "change-video", "data": {"roomId": ROOM, "newVideoId": "xyz"}})
        assert a.receive_json() == {"type": "video-changed", "data": "xyz"}
        assert b.receive_json() == {"type": "video-changed", "data": "xyz"}

        # a's next message is the pong, so the sync-command was not echoed back
        a.send_json({"type": "sync-ping", "data": 1})
        pong = a.receive_json()
        assert pong["type"] == "sync-pong"
        assert isinstance(pong["data"], int)

        relay = client.app.state.relay
        assert relay.presence.count(ROOM, "alice") == 1

    # both sockets closed: presence emptied and room purged
    assert ROOM not in client.app.state.relay.presence


def test_disconnect_broadcasts_updated_presence(client):
    with client.websocket_connect(settings.SOCKET_PATH) as a:
        _presence_join(a, "alice")
        a.receive_json()

        with client.websocket_connect(settings.SOCKET_PATH) as b:
            _presence_join(b, "bob")
            a.receive_json()
            b.receive_json()

        assert a.receive_json() == {"type": "room-presence", "data": [{"id": "alice"}]}


def test_non_member_commands_are_dropped(client):
    with client.websocket_connect(settings.SOCKET_PATH) as member, client.websocket_connect(settings.SOCKET_PATH) as outsider:
        member.send_json({"type": "join-room", "data": ROOM})
        outsider.send_json({"type": "change-video", "data": {"roomId": ROOM, "newVideoId": "evil"}})
        outsider.send_text("garbage")

        # outsider's ping is answered only after its earlier events were handled
        outsider.send_json({"type": "sync-ping"})
        assert outsider.receive_json()["type"] == "sync-pong"

        member.send_json({"type": "sync-ping"})
        assert member.receive_json()["type"] == "sync-pong"


def test_rejects_disallowed_origin(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(settings.SOCKET_PATH, headers={"origin": "https://evil.example"}):
            pass
    assert exc.value.code == 1008


def test_allowed_origin_connects(client):
    origin = settings.cors_origins[0]
    with client.websocket_connect(settings.SOCKET_PATH, headers={"origin": origin}) as ws:
        ws.send_json({"type": "sync-ping"})
        assert ws.receive_json()["type"] == "sync-pong"


def test_room_stats_endpoint(client):
    with client.websocket_connect(settings.SOCKET_PATH) as a:
        _presence_join(a, "alice", image="a.png")
        a.receive_json()

        resp = client.get(f"/v1/rooms/{ROOM}/stats")
        assert resp.status_code == 200
        assert resp.json() == {
            "roomId": ROOM,
            "roomSize": 1,
            "connectedClients": 1,
            "presence": [{"id": "alice", "image": "a.png"}],
        }


def test_room_stats_for_unknown_room(client):
    resp = client.get("/v1/rooms/nobody-here/stats")
    assert resp.json() == {"roomId": "nobody-here", "roomSize": 0, "connectedClients": 0, "presence": []}


def test_invalid_utf8_binary_frame_is_dropped(client):
    with client.websocket_connect(settings.SOCKET_PATH) as ws:
        ws.send_bytes(b'{"type": "join-room", "data": "room-\xff"}')
        ws.send_bytes(b'{"type": "sync-ping"}')
        assert ws.receive_json()["type"] == "sync-pong"

        relay = client.app.state.relay
        assert relay.connections.room_size("room-\ufffd") == 0
