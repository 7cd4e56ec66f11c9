import pytest

from tests.helpers import SERVER_NOW_MS, FakeChannel
from watchsync.services.relay import RoomRelay


@pytest.fixture
def relay() -> RoomRelay:
    return RoomRelay(clock=lambda: SERVER_NOW_MS)


@pytest.fixture
def connect(relay):
    """connect("a") registers a fake channel under conn id "a" and returns it."""

    def _connect(conn_id: str) -> FakeChannel:
        ch = FakeChannel()
        relay.connect(conn_id, ch)
        return ch

    return _connect
