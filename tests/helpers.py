from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from watchsync.services.relay import RoomRelay

SERVER_NOW_MS = 1_700_000_000_000


@dataclass
class FakeChannel:
    """Records everything sent to one connection."""

    sent: List[Dict[str, Any]] = field(default_factory=list)
    closed: Optional[int] = None
    fail: bool = False

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket already closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.closed = code

    def events(self, event_type: str) -> List[Any]:
        return [m["data"] for m in self.sent if m["type"] == event_type]

    def clear(self) -> None:
        self.sent.clear()


async def send(relay: RoomRelay, conn_id: str, event_type: str, data: Any = None) -> None:
    frame: Dict[str, Any] = {"type": event_type}
    if data is not None:
        frame["data"] = data
    await relay.handle_raw(conn_id, json.dumps(frame))


async def presence_join(relay: RoomRelay, conn_id: str, room_id: str, user_id: str, **meta: str) -> None:
    await send(relay, conn_id, "presence-join", {"roomId": room_id, "user": {"id": user_id, **meta}})
