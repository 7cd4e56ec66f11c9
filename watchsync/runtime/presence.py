from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from watchsync.schemas.ws import PresenceMember


@dataclass
class PresenceEntry:
    user_id: str
    name: Optional[str] = None
    image: Optional[str] = None
    count: int = 1  # connections this user contributes to the room


class RoomPresenceTable:
    """
    Ref-counted presence per room.

    room_id -> user_id -> PresenceEntry. A room exists only while it has at
    least one entry; entries exist only while count > 0.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, Dict[str, PresenceEntry]] = {}

    def increment(
        self,
        room_id: str,
        user_id: str,
        *,
        name: Optional[str] = None,
        image: Optional[str] = None,
    ) -> PresenceEntry:
        users = self._rooms.setdefault(room_id, {})
        entry = users.get(user_id)
        if entry is None:
            entry = PresenceEntry(user_id=user_id, name=name, image=image)
            users[user_id] = entry
        else:
            # first writer keeps the metadata
            entry.count += 1
        return entry

    def decrement(self, room_id: str, user_id: str) -> bool:
        """Returns False when there was nothing to decrement."""
        users = self._rooms.get(room_id)
        if users is None:
            return False
        entry = users.get(user_id)
        if entry is None:
            return False

        entry.count -= 1
        if entry.count <= 0:
            del users[user_id]
            if not users:
                del self._rooms[room_id]
        return True

    def snapshot(self, room_id: str) -> list[PresenceMember]:
        users = self._rooms.get(room_id, {})
        return [
            PresenceMember(id=e.user_id, name=e.name, image=e.image)
            for e in users.values()
        ]

    def count(self, room_id: str, user_id: str) -> int:
        entry = self._rooms.get(room_id, {}).get(user_id)
        return entry.count if entry is not None else 0

    def rooms(self) -> Iterator[str]:
        return iter(list(self._rooms))

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
