import asyncio
import logging

import uvicorn

from watchsync.core import configure_logging, settings


logger = logging.getLogger("watchsync")


async def serve() -> None:
    config = uvicorn.Config(
        "watchsync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_graceful_shutdown=int(settings.SHUTDOWN_GRACE_SECONDS),
    )
    server = uvicorn.Server(config)

    def on_fatal(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        # unhandled error anywhere on the loop: drain and exit
        logger.error("unhandled error: %s", context.get("message"), exc_info=context.get("exception"))
        server.should_exit = True

    asyncio.get_running_loop().set_exception_handler(on_fatal)
    logger.info("starting relay on %s:%s (socket path %s, env %s)", settings.HOST, settings.PORT, settings.SOCKET_PATH, settings.ENV)
    await server.serve()


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(serve())


if __name__ == "__main__":
    main()
