"""
FastAPI application bootstrap with: \n
- Lifespan-managed initialization of the tutor (tables, oracle, turn store, lifecycle controller) \n
- CORS configured for the frontend \n
- Authenticated WebSocket chat channel (cookie-based token) \n

Environment contract (from `settings`): \n
- INIT_MODE: if 'runtime', create the database tables during app startup. \n
- FRONTEND_URL: allowed CORS origin. \n
- LOG_LEVEL: root logging level. \n
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Cookie, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from tutorbot.api.fast_api import router
from tutorbot.api.lifecycle import ChannelSession, MessageLifecycleController
from tutorbot.api.llm_pipeline import TutorOracle
from tutorbot.api.models import ChannelRequest, ErrorFrame
from tutorbot.api.utils import verify_token
from tutorbot.database.config.config import settings
from tutorbot.database.config.connection_engine import connection_engine, metadata
from tutorbot.database.core.turn_store import TurnStore

logging.basicConfig(level=settings.LOG_LEVEL)

logger = logging.getLogger("uvicorn")
"""Logger instance for capturing and emitting Uvicorn server logs."""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    App lifespan manager.

    Notes
    ------------
    - On startup (before yielding):
        * If INIT_MODE == 'runtime': create every table registered on `metadata`.
        * Attach `store`, `oracle` and `controller` to `app.state`, keeping any
          that were set beforehand (tests inject doubles this way).
    - On shutdown (after yielding): dispose of the connection pool.
    """
    if settings.INIT_MODE == "runtime":
        metadata.create_all(connection_engine)
        logger.info("Database tables ready.")
    else:
        logger.info("Skipping table creation (INIT_MODE=%s).", settings.INIT_MODE)

    if getattr(app.state, "store", None) is None:
        app.state.store = TurnStore()
    if getattr(app.state, "oracle", None) is None:
        app.state.oracle = TutorOracle()
    if getattr(app.state, "controller", None) is None:
        app.state.controller = MessageLifecycleController(app.state.store, app.state.oracle)
    logger.info("Tutor ready.")

    try:
        yield
    finally:
        connection_engine.dispose()
        logger.info("App shutting down.")


app = FastAPI(lifespan=lifespan)
"""Instatiates a FastAPI application object
    The lifespan=lifespan argument registers the startup/shutdown manager that wires the
    turn store, the oracle and the lifecycle controller. \n
"""

# -----------------------
# CORS configuration
# -----------------------
url = settings.FRONTEND_URL
"""The allowed frontend origin (URL) used for CORS configuration."""

app.add_middleware(
    CORSMiddleware,
    allow_origins=[url],      # Frontend origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------
# API routes
# -----------------------
app.include_router(router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = Cookie(None)):
    """
    Authenticated chat channel.

    Auth
    ----
    - Expects a cookie named `token`.
    - `verify_token(token)` returns the owner on success; otherwise the connection is closed.

    Protocol
    --------
    - Each text message is one JSON `ChannelRequest`; replies are JSON frames.
    - Malformed messages get an ``error`` frame and the channel stays open.
    - Exchanges on one connection are processed one at a time.

    Close Codes
    -----------
    - 1008: Policy Violation (used when auth fails).
    """
    await websocket.accept()
    owner = verify_token(token)
    if not owner:
        await websocket.close(code=1008)
        return

    controller: MessageLifecycleController = websocket.app.state.controller
    session = ChannelSession(owner, websocket.send_json)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                request = ChannelRequest.model_validate_json(data)
            except ValidationError as e:
                logger.info("Malformed channel message from %s: %s", owner, e.errors(include_url=False))
                await session.send(ErrorFrame(message="Malformed message"))
                continue
            await controller.handle(session, request)
    except WebSocketDisconnect:
        logger.info("%s disconnected", owner)
