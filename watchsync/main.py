from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from watchsync.api import ws_rooms
from watchsync.api.v1.router import router as v1_router
from watchsync.core import configure_logging, settings
from watchsync.services.relay import RoomRelay


def create_app() -> FastAPI:
    """Build the app with a fresh relay on app.state."""
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="watchsync relay", version="0.1.0")
    app.state.relay = RoomRelay(send_timeout=settings.SEND_TIMEOUT_SECONDS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
    )
    app.include_router(ws_rooms.router)
    app.include_router(v1_router, prefix="/v1")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close all sockets within the grace period."""
        await app.state.relay.shutdown(grace_seconds=settings.SHUTDOWN_GRACE_SECONDS)

    return app


app = create_app()
