from __future__ import annotations

from watchsync.runtime.connections import ConnectionTable
from watchsync.schemas.ws import GATED_EVENTS


class MembershipGate:
    """Authorizes room-scoped events by the sender's recorded membership."""

    def __init__(self, connections: ConnectionTable):
        self.connections = connections

    def is_member(self, conn_id: str, room_id: str) -> bool:
        return self.connections.is_member(conn_id, room_id)

    def allows(self, conn_id: str, event) -> bool:
        if event.type not in GATED_EVENTS:
            return True
        return self.is_member(conn_id, event.data.room_id)
