# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
import os
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from chat_relay.logging import logger
from chat_relay.managers.connection_registry import ConnectionRegistry
from chat_relay.managers.websocket_connection_manager import ConnectionManager
from chat_relay.routing import MessageRouter, collect_subrouters
from chat_relay.settings import app_settings
from chat_relay.utils.metrics import app_info

WS_GOING_AWAY_CODE = 1001


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application startup and shutdown handler.

    On shutdown every connection still open is closed, so that clients see
    a proper close frame instead of a dropped socket.
    """
    app_info.labels(
        version=app.version,
        python_version=f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        environment=app_settings.ENVIRONMENT,
    ).set(1)
    logger.info(
        f"Chat relay (with typing + delivery) running at "
        f"http://{app_settings.HOST}:{app_settings.PORT}"
    )

    yield

    logger.info("Application shutdown initiated")
    message_router: MessageRouter = app.state.message_router
    sessions = list(message_router.connections.connections.values())
    if sessions:
        logger.info(f"Closing {len(sessions)} open connections")
    for session in sessions:
        await session.close(
            code=WS_GOING_AWAY_CODE, reason="Server shutting down"
        )
    logger.info("Application shutdown complete")


def application() -> FastAPI:
    """
    Initializes and configures the FastAPI application.

    Creates the single message router of the process, with its connection
    registry and connection manager, and stores it on ``app.state`` where
    the WebSocket consumer and the health endpoint pick it up. Then includes
    the routers collected by `collect_subrouters()` and, if the directory
    exists, serves the static client UI from ``STATIC_DIR`` on the same
    port.
    """
    app = FastAPI(
        title="Chat relay",
        description="Real-time private messaging relay over WebSocket",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.message_router = MessageRouter(
        ConnectionRegistry(), ConnectionManager()
    )

    app.include_router(collect_subrouters())

    # Mounted last, routes above take precedence
    if os.path.isdir(app_settings.STATIC_DIR):
        app.mount(
            "/",
            StaticFiles(directory=app_settings.STATIC_DIR, html=True),
            name="static",
        )
    else:
        logger.warning(
            f"Static directory {app_settings.STATIC_DIR} not found, "
            "client UI will not be served"
        )

    return app


app = application()  # Need for fastapi cli
