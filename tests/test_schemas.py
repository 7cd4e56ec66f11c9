import json

import pytest
from pydantic import ValidationError

from watchsync.schemas.ws import (
    PresenceJoinIn,
    SyncCommandIn,
    SyncPingIn,
    client_event_adapter,
)


def _parse(frame):
    return client_event_adapter.validate_json(json.dumps(frame))


def test_parses_camel_case_payload():
    event = _parse(
        {"type": "sync-command", "data": {"roomId": "r", "cmd": "pause", "timestamp": 5.5, "seekTime": 10}}
    )
    assert isinstance(event, SyncCommandIn)
    assert event.data.room_id == "r"
    assert event.data.seek_time == 10


def test_presence_user_metadata_optional():
    event = _parse({"type": "presence-join", "data": {"roomId": "r", "user": {"id": "u"}}})
    assert isinstance(event, PresenceJoinIn)
    assert event.data.user.name is None


@pytest.mark.parametrize(
    "frame",
    [
        {"type": "join-room", "data": 42},
        {"type": "join-room"},
        {"type": "presence-join", "data": {"roomId": "r", "user": {}}},
        {"type": "leave-room", "data": {"roomId": "r"}},
        {"type": "queue-updated", "data": {"roomId": "r", "item": {"videoId": "v"}}},
        {"type": "queue-removed", "data": {"roomId": "r", "itemId": 7}},
        {"data": "r"},
    ],
)
def test_rejects_bad_shapes(frame):
    with pytest.raises(ValidationError):
        _parse(frame)


def test_sync_ping_accepts_client_timestamp():
    assert isinstance(_parse({"type": "sync-ping", "data": 1700}), SyncPingIn)
    event = _parse({"type": "sync-ping", "data": {"clientTimestamp": 1700}})
    assert event.data.client_timestamp == 1700
