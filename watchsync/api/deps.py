from starlette.requests import HTTPConnection

from watchsync.services.relay import RoomRelay


def get_relay(conn: HTTPConnection) -> RoomRelay:
    """The relay owned by the running app (works for HTTP and websocket routes)."""
    return conn.app.state.relay
