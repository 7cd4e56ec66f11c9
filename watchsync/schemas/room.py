from __future__ import annotations

from typing import List

from watchsync.schemas.ws import PresenceMember, WireModel


class RoomStatsOut(WireModel):
    room_id: str
    room_size: int = 0          # connections joined to the room
    connected_clients: int = 0  # connections on this server
    presence: List[PresenceMember] = []
