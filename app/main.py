import logging

import uvicorn

from app.core.app_factory import create_app
from app.core.config import settings

logger = logging.getLogger(__name__)

app = create_app()


def run() -> None:
    """Serve the app until interrupted.

    On SIGINT/SIGTERM uvicorn stops accepting connections, lets in-flight
    requests finish (up to ``APP_GRACEFUL_SHUTDOWN_SECONDS``) and then runs the
    lifespan shutdown, which drains and closes the connection pool.
    """

    logger.info("server.starting", extra={"port": settings.app.port})
    uvicorn.run(
        app,
        host=settings.app.host,
        port=settings.app.port,
        log_config=None,
        timeout_graceful_shutdown=settings.app.graceful_shutdown_seconds,
    )
    logger.info("server.stopped")


if __name__ == "__main__":
    run()
