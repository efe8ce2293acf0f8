"""chatsync application.

Runs the realtime chat synchronization engine inside a small FastAPI app
that a presentation layer (browser page, desktop shell, TUI) talks to.

Modules:
    - realtime: the synchronization engine (connection, routing, state)
    - users: REST client for user creation/listing
    - bridge: HTTP/WebSocket endpoints over the engine

Run with:
    chatsync                 (host/port from the bridge settings)
    python -m chatsync.main
"""
import logging
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatsync.bridge.router import router as bridge_router, set_engine, set_users_client
from chatsync.config import AppSettings, get_config
from chatsync.realtime.engine import ChatEngine
from chatsync.realtime.transport import SocketIOSession
from chatsync.users.client import UsersClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# engineio/socketio log every packet; httpx/httpcore every request.
for _noisy in (
    "socketio",
    "engineio",
    "aiohttp",
    "httpx",
    "httpcore",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def build_engine(config: AppSettings) -> ChatEngine:
    """Create a ChatEngine whose sessions connect over Socket.IO."""
    factory = partial(
        SocketIOSession,
        config.backend.url,
        socketio_path=config.realtime.socketio_path,
        transports=config.realtime.transports,
        wait_timeout=config.realtime.connect_timeout,
    )
    return ChatEngine(factory, display_seconds=config.realtime.notification_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    engine = build_engine(config)
    users_client = UsersClient(config.backend.url, timeout=config.backend.request_timeout)
    set_engine(engine)
    set_users_client(users_client)
    logger.info(f"Chat engine ready for backend {config.backend.url}")

    yield

    # Shutdown
    await engine.leave()
    users_client.close()
    set_engine(None)
    set_users_client(None)
    logger.info("Chat engine stopped")


app = FastAPI(
    title="chatsync",
    description="Realtime chat client synchronization engine",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().bridge.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(bridge_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the bridge is running.
    """
    return {"status": "ok"}


def run() -> None:
    """Serve the bridge on the configured host and port."""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "chatsync.main:app",
        host=config.bridge.host,
        port=config.bridge.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    run()
