from fastapi import APIRouter
from watchsync.api.v1 import rooms

router = APIRouter()
router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
