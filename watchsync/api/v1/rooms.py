from __future__ import annotations

from fastapi import APIRouter, Depends

from watchsync.api.deps import get_relay
from watchsync.schemas.room import RoomStatsOut
from watchsync.services.relay import RoomRelay

router = APIRouter()


@router.get("/{room_id}/stats", response_model=RoomStatsOut, response_model_exclude_none=True)
async def room_stats(
    room_id: str,
    relay: RoomRelay = Depends(get_relay),
) -> RoomStatsOut:
    """Connection count and current presence for a room. Unknown rooms report zeros."""
    return relay.room_stats(room_id)
