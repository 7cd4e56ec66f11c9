from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Set

from fastapi.encoders import jsonable_encoder

from watchsync.schemas.ws import ServerToClient


logger = logging.getLogger(__name__)


class Channel(Protocol):
    """Outbound side of one connection (a starlette WebSocket fits)."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None: ...


class Broadcaster:
    """
    Delivers messages to one connection, a room, or everyone.

    Room recipients are resolved through `members`, so the emitter never
    keeps its own copy of room membership.
    """

    def __init__(
        self,
        members: Callable[[str], Set[str]],
        *,
        send_timeout: Optional[float] = None,
    ):
        self._members = members
        self._channels: Dict[str, Channel] = {}
        self.send_timeout = send_timeout
        self._closing: Set[asyncio.Task] = set()

    def register(self, conn_id: str, channel: Channel) -> None:
        self._channels[conn_id] = channel

    def unregister(self, conn_id: str) -> Optional[Channel]:
        return self._channels.pop(conn_id, None)

    @property
    def connected_count(self) -> int:
        return len(self._channels)

    async def send_to(self, conn_id: str, model: ServerToClient) -> int:
        return await self._emit([conn_id], model)

    async def send_to_room(self, room_id: str, model: ServerToClient, *, exclude: Optional[str] = None) -> int:
        recipients = [cid for cid in self._members(room_id) if cid != exclude]
        return await self._emit(recipients, model)

    async def send_to_all(self, model: ServerToClient) -> int:
        return await self._emit(list(self._channels), model)

    async def _emit(self, conn_ids: Iterable[str], model: ServerToClient) -> int:
        """
        Serialize once and send to every recipient concurrently.
        A failing recipient is dropped and closed; the rest still get the message.
        """
        payload = jsonable_encoder(model, exclude_none=True)
        targets = [(cid, self._channels[cid]) for cid in conn_ids if cid in self._channels]
        if not targets:
            return 0

        results = await asyncio.gather(*(self._deliver(cid, ch, payload) for cid, ch in targets))
        return sum(results)

    async def _deliver(self, conn_id: str, channel: Channel, payload: Any) -> bool:
        try:
            if self.send_timeout:
                await asyncio.wait_for(channel.send_json(payload), timeout=self.send_timeout)
            else:
                await channel.send_json(payload)
            return True
        except Exception as e:
            logger.warning("send to %s failed (%s): %r", conn_id, payload.get("type"), e)
            # only drop it if it was not replaced in the meantime
            if self._channels.get(conn_id) is channel:
                self._channels.pop(conn_id, None)
            self._close_in_background(conn_id, channel)
            return False

    def _close_in_background(self, conn_id: str, channel: Channel) -> None:
        """
        Close a failed channel without holding up the broadcast.
        Its socket loop then ends and the relay cleans up membership and presence.
        """

        async def _close() -> None:
            try:
                await asyncio.wait_for(channel.close(code=1011, reason="send failed"), timeout=self.send_timeout)
            except Exception as e:
                logger.debug("close %s after failed send: %r", conn_id, e)

        task = asyncio.create_task(_close())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def close_all(self, *, reason: str = "server shutting down", timeout: Optional[float] = None) -> None:
        """Close every registered channel, bounded by `timeout` seconds overall."""
        channels = list(self._channels.items())
        self._channels.clear()
        if not channels:
            return

        async def _close(conn_id: str, channel: Channel) -> None:
            try:
                await channel.close(code=1001, reason=reason)
            except Exception as e:
                logger.debug("close %s failed: %r", conn_id, e)  # already gone

        closing = asyncio.gather(*(_close(cid, ch) for cid, ch in channels))
        try:
            await asyncio.wait_for(closing, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("timed out closing %d connection(s) after %.1fs", len(channels), timeout)
