from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, TypeAdapter
from pydantic.alias_generators import to_camel


RoomId = Annotated[str, Field(min_length=1, max_length=256)]
Number = Union[int, FiniteFloat]


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InboundModel(WireModel):
    # no str -> number coercion, no NaN/Infinity (not valid JSON on the way out)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True, allow_inf_nan=False)


# ---- payloads ----

class PresenceUser(InboundModel):
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    image: Optional[str] = None


class PresenceMember(WireModel):
    id: str
    name: Optional[str] = None
    image: Optional[str] = None


class QueueItem(InboundModel):
    video_id: str
    title: str
    thumbnail: Optional[str] = None


class PresenceJoinData(InboundModel):
    room_id: RoomId
    user: PresenceUser


class LeaveRoomData(InboundModel):
    room_id: RoomId
    user_id: str = Field(..., min_length=1)


class SyncPingData(InboundModel):
    client_timestamp: Optional[Number] = None


class SyncCommandData(InboundModel):
    room_id: RoomId
    cmd: Literal["play", "pause"]
    timestamp: Number
    seek_time: Number


class ChangeVideoData(InboundModel):
    room_id: RoomId
    new_video_id: str


class QueueUpdatedData(InboundModel):
    room_id: RoomId
    item: QueueItem


class QueueRemovedData(InboundModel):
    room_id: RoomId
    item_id: str


# ---- client -> server ----

class JoinRoomIn(InboundModel):
    type: Literal["join-room"] = "join-room"
    data: RoomId


class PresenceJoinIn(InboundModel):
    type: Literal["presence-join"] = "presence-join"
    data: PresenceJoinData


class LeaveRoomIn(InboundModel):
    type: Literal["leave-room"] = "leave-room"
    data: LeaveRoomData


class SyncPingIn(InboundModel):
    type: Literal["sync-ping"] = "sync-ping"
    data: Optional[Union[SyncPingData, Number]] = None


class SyncCommandIn(InboundModel):
    type: Literal["sync-command"] = "sync-command"
    data: SyncCommandData


class ChangeVideoIn(InboundModel):
    type: Literal["change-video"] = "change-video"
    data: ChangeVideoData


class QueueUpdatedIn(InboundModel):
    type: Literal["queue-updated"] = "queue-updated"
    data: QueueUpdatedData


class QueueRemovedIn(InboundModel):
    type: Literal["queue-removed"] = "queue-removed"
    data: QueueRemovedData


ClientToServer = Annotated[
    Union[
        JoinRoomIn,
        PresenceJoinIn,
        LeaveRoomIn,
        SyncPingIn,
        SyncCommandIn,
        ChangeVideoIn,
        QueueUpdatedIn,
        QueueRemovedIn,
    ],
    Field(discriminator="type"),
]

client_event_adapter: TypeAdapter[ClientToServer] = TypeAdapter(ClientToServer)

# Events that only members of data.room_id may send
GATED_EVENTS = frozenset({"sync-command", "change-video", "queue-updated", "queue-removed"})


# ---- server -> clients ----

class SyncCommandRelay(WireModel):
    cmd: Literal["play", "pause"]
    timestamp: Number
    seek_time: Number


class SyncPongOut(WireModel):
    type: Literal["sync-pong"] = "sync-pong"
    data: int  # server epoch ms


class SyncCommandOut(WireModel):
    type: Literal["sync-command"] = "sync-command"
    data: SyncCommandRelay


class VideoChangedOut(WireModel):
    type: Literal["video-changed"] = "video-changed"
    data: str


class QueueUpdatedOut(WireModel):
    type: Literal["queue-updated"] = "queue-updated"
    data: QueueItem


class QueueRemovedOut(WireModel):
    type: Literal["queue-removed"] = "queue-removed"
    data: str


class RoomPresenceOut(WireModel):
    type: Literal["room-presence"] = "room-presence"
    data: List[PresenceMember] = []


ServerToClient = Union[
    SyncPongOut,
    SyncCommandOut,
    VideoChangedOut,
    QueueUpdatedOut,
    QueueRemovedOut,
    RoomPresenceOut,
]
