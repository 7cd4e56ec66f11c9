from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Tuple


PresenceKey = Tuple[str, str]  # (room_id, user_id)


@dataclass
class ConnectionState:
    conn_id: str
    user_id: Optional[str] = None
    rooms: Set[str] = field(default_factory=set)
    # presence increments made by this connection, released on disconnect
    presence: Counter[PresenceKey] = field(default_factory=Counter)


@dataclass(frozen=True)
class ConnectionSnapshot:
    user_id: Optional[str] = None
    rooms: frozenset[str] = frozenset()
    presence: Tuple[Tuple[PresenceKey, int], ...] = ()


class ConnectionTable:
    """
    Per-connection state plus a room -> connections index.

    Both sides are updated together; a room disappears from the index once
    its last connection leaves.
    """

    def __init__(self) -> None:
        self._conns: Dict[str, ConnectionState] = {}
        self._room_members: Dict[str, Set[str]] = {}

    # ---------- lifecycle ----------

    def connect(self, conn_id: str) -> ConnectionState:
        state = self._conns.get(conn_id)
        if state is None:
            state = ConnectionState(conn_id=conn_id)
            self._conns[conn_id] = state
        return state

    def disconnect(self, conn_id: str) -> ConnectionSnapshot:
        state = self._conns.pop(conn_id, None)
        if state is None:
            return ConnectionSnapshot()

        for room_id in state.rooms:
            self._unindex(room_id, conn_id)

        return ConnectionSnapshot(
            user_id=state.user_id,
            rooms=frozenset(state.rooms),
            presence=tuple(state.presence.items()),
        )

    # ---------- membership ----------

    def join_room(self, conn_id: str, room_id: str) -> None:
        state = self.connect(conn_id)
        state.rooms.add(room_id)
        self._room_members.setdefault(room_id, set()).add(conn_id)

    def leave_room(self, conn_id: str, room_id: str) -> None:
        state = self._conns.get(conn_id)
        if state is None:
            return
        state.rooms.discard(room_id)
        self._unindex(room_id, conn_id)

    def is_member(self, conn_id: str, room_id: str) -> bool:
        state = self._conns.get(conn_id)
        return state is not None and room_id in state.rooms

    def members(self, room_id: str) -> Set[str]:
        return set(self._room_members.get(room_id, ()))

    def room_size(self, room_id: str) -> int:
        return len(self._room_members.get(room_id, ()))

    # ---------- identity / presence ----------

    def set_user(self, conn_id: str, user_id: str) -> None:
        self.connect(conn_id).user_id = user_id

    def add_presence(self, conn_id: str, room_id: str, user_id: str) -> None:
        self.connect(conn_id).presence[(room_id, user_id)] += 1

    def release_presence(self, conn_id: str, room_id: str, user_id: str) -> bool:
        state = self._conns.get(conn_id)
        if state is None:
            return False
        key = (room_id, user_id)
        if state.presence[key] <= 0:
            state.presence.pop(key, None)
            return False
        state.presence[key] -= 1
        if state.presence[key] == 0:
            del state.presence[key]
        return True

    def get(self, conn_id: str) -> Optional[ConnectionState]:
        return self._conns.get(conn_id)

    def _unindex(self, room_id: str, conn_id: str) -> None:
        members = self._room_members.get(room_id)
        if members is None:
            return
        members.discard(conn_id)
        if not members:
            del self._room_members[room_id]

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self._conns

    def __len__(self) -> int:
        return len(self._conns)
