from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from watchsync.runtime.broadcast import Broadcaster, Channel
from watchsync.runtime.connections import ConnectionTable
from watchsync.runtime.gate import MembershipGate
from watchsync.runtime.presence import RoomPresenceTable
from watchsync.schemas.room import RoomStatsOut
from watchsync.schemas.ws import (
    ChangeVideoIn,
    ClientToServer,
    JoinRoomIn,
    LeaveRoomIn,
    PresenceJoinIn,
    QueueRemovedIn,
    QueueRemovedOut,
    QueueUpdatedIn,
    QueueUpdatedOut,
    RoomPresenceOut,
    ServerToClient,
    SyncCommandIn,
    SyncCommandOut,
    SyncCommandRelay,
    SyncPingIn,
    SyncPongOut,
    VideoChangedOut,
    client_event_adapter,
)


logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class RoomRelay:
    """
    Routes inbound events from connections to the right recipients.

    Owns the connection table, the presence table and the emitter. Every
    handler finishes mutating the tables before its first await, so handlers
    are atomic on the event loop and need no locks.
    """

    def __init__(
        self,
        *,
        send_timeout: Optional[float] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.connections = ConnectionTable()
        self.presence = RoomPresenceTable()
        self.gate = MembershipGate(self.connections)
        self.emitter = Broadcaster(self.connections.members, send_timeout=send_timeout)
        self._clock = clock

        self._handlers = {
            "join-room": self._on_join_room,
            "presence-join": self._on_presence_join,
            "leave-room": self._on_leave_room,
            "sync-ping": self._on_sync_ping,
            "sync-command": self._on_sync_command,
            "change-video": self._on_change_video,
            "queue-updated": self._on_queue_updated,
            "queue-removed": self._on_queue_removed,
        }

    # ---------- connection lifecycle ----------

    def connect(self, conn_id: str, channel: Channel) -> None:
        self.connections.connect(conn_id)
        self.emitter.register(conn_id, channel)
        logger.info("client connected %s (total: %d)", conn_id, self.emitter.connected_count)

    async def disconnect(self, conn_id: str) -> None:
        # Only the (room, user) increments this connection made are released.
        # Rooms joined with join-room alone hold no presence of ours, so they get
        # no decrement or broadcast; decrementing there could remove another
        # tab of the same user.
        self.emitter.unregister(conn_id)
        snapshot = self.connections.disconnect(conn_id)

        affected: list[str] = []
        for (room_id, user_id), n in snapshot.presence:
            for _ in range(n):
                self.presence.decrement(room_id, user_id)
            if room_id not in affected:
                affected.append(room_id)

        updates = [(room_id, self.presence.snapshot(room_id)) for room_id in affected]
        logger.info(
            "client disconnected %s user=%s rooms=%s",
            conn_id, snapshot.user_id, sorted(snapshot.rooms),
        )

        for room_id, members in updates:
            await self.emitter.send_to_room(room_id, RoomPresenceOut(data=members))

    # ---------- inbound ----------

    async def handle_raw(self, conn_id: str, raw: str | bytes) -> None:
        """Parse one frame and dispatch it. Malformed frames are dropped."""
        try:
            event = client_event_adapter.validate_json(raw)
        except ValidationError as e:
            logger.debug("dropping malformed event from %s: %d error(s)", conn_id, e.error_count())
            return
        await self.dispatch(conn_id, event)

    async def dispatch(self, conn_id: str, event: ClientToServer) -> None:
        if not self.gate.allows(conn_id, event):
            # no reply, so membership can't be probed
            logger.debug("dropping %s from %s: not in room %s", event.type, conn_id, event.data.room_id)
            return

        handler = self._handlers[event.type]
        try:
            await handler(conn_id, event)
        except Exception:
            logger.exception("error handling %s from %s", event.type, conn_id)

    # ---------- handlers ----------

    async def _on_join_room(self, conn_id: str, event: JoinRoomIn) -> None:
        room_id = event.data
        self.connections.join_room(conn_id, room_id)
        logger.info("%s joined room %s (%d clients)", conn_id, room_id, self.connections.room_size(room_id))

    async def _on_presence_join(self, conn_id: str, event: PresenceJoinIn) -> None:
        room_id = event.data.room_id
        user = event.data.user

        self.connections.join_room(conn_id, room_id)
        self.connections.set_user(conn_id, user.id)
        self.connections.add_presence(conn_id, room_id, user.id)
        entry = self.presence.increment(room_id, user.id, name=user.name, image=user.image)
        members = self.presence.snapshot(room_id)

        logger.info("presence-join room:%s user:%s count:%d", room_id, user.id, entry.count)
        await self.emitter.send_to_room(room_id, RoomPresenceOut(data=members))

    async def _on_leave_room(self, conn_id: str, event: LeaveRoomIn) -> None:
        room_id = event.data.room_id
        user_id = event.data.user_id

        self.connections.leave_room(conn_id, room_id)
        self.connections.release_presence(conn_id, room_id, user_id)
        self.presence.decrement(room_id, user_id)
        members = self.presence.snapshot(room_id)

        logger.info("leave-room room:%s user:%s by %s", room_id, user_id, conn_id)
        await self.emitter.send_to_room(room_id, RoomPresenceOut(data=members))

    async def _on_sync_ping(self, conn_id: str, event: SyncPingIn) -> None:
        await self.emitter.send_to(conn_id, SyncPongOut(data=self._clock()))

    async def _on_sync_command(self, conn_id: str, event: SyncCommandIn) -> None:
        data = event.data
        logger.info("sync-command room:%s cmd:%s seek:%s", data.room_id, data.cmd, data.seek_time)
        relay = SyncCommandRelay(cmd=data.cmd, timestamp=data.timestamp, seek_time=data.seek_time)
        await self.emitter.send_to_room(data.room_id, SyncCommandOut(data=relay), exclude=conn_id)

    async def _on_change_video(self, conn_id: str, event: ChangeVideoIn) -> None:
        data = event.data
        n = await self.emitter.send_to_room(data.room_id, VideoChangedOut(data=data.new_video_id))
        logger.info("video-changed room:%s videoId:%s -> %d clients", data.room_id, data.new_video_id, n)

    async def _on_queue_updated(self, conn_id: str, event: QueueUpdatedIn) -> None:
        data = event.data
        n = await self.emitter.send_to_room(data.room_id, QueueUpdatedOut(data=data.item))
        logger.info("queue-updated room:%s item:%s -> %d clients", data.room_id, data.item.title, n)

    async def _on_queue_removed(self, conn_id: str, event: QueueRemovedIn) -> None:
        data = event.data
        n = await self.emitter.send_to_room(data.room_id, QueueRemovedOut(data=data.item_id))
        logger.info("queue-removed room:%s itemId:%s -> %d clients", data.room_id, data.item_id, n)

    # ---------- public helpers ----------

    def room_stats(self, room_id: str) -> RoomStatsOut:
        return RoomStatsOut(
            room_id=room_id,
            room_size=self.connections.room_size(room_id),
            connected_clients=self.emitter.connected_count,
            presence=self.presence.snapshot(room_id),
        )

    async def broadcast_to_room(self, room_id: str, model: ServerToClient) -> int:
        return await self.emitter.send_to_room(room_id, model)

    async def broadcast_to_all(self, model: ServerToClient) -> int:
        return await self.emitter.send_to_all(model)

    async def shutdown(self, *, grace_seconds: Optional[float] = None) -> None:
        """Close every connection; presence cleanup runs as each socket loop exits."""
        logger.info("shutting down relay, closing %d connection(s)", self.emitter.connected_count)
        await self.emitter.close_all(reason="server shutting down", timeout=grace_seconds)
