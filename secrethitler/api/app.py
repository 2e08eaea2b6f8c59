"""
FastAPI Application - WebSocket game server plus a small REST surface.

Endpoints:
    GET    /health                      Health check
    GET    /                            API info
    GET    /api/v1/sessions             List session ids
    GET    /api/v1/sessions/{id}        Public lobby summary of a session
    WS     /ws                          Game protocol (JSON, tagged by "type")

One socket is one player. The socket sends HostGame or JoinGame first;
everything after that is routed to the session it joined. Outbound
messages go through a per-socket queue drained by a sender task, so a
slow client never holds a session lock.
"""

from contextlib import asynccontextmanager
from typing import Union
import asyncio
import logging
import os

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..session.manager import DEFAULT_IDLE_SECONDS
from .schemas import (
    ErrorCode,
    ErrorResponse,
    HealthResponse,
    SessionListResponse,
    SessionSummary,
)
from .service import APIService, ConnectionContext

logger = logging.getLogger(__name__)

# Environment configuration
SH_ENV = os.getenv("SH_ENV", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
SH_SESSION_IDLE_SECONDS = float(os.getenv("SH_SESSION_IDLE_SECONDS", DEFAULT_IDLE_SECONDS))
SH_SWEEP_INTERVAL_SECONDS = float(os.getenv("SH_SWEEP_INTERVAL_SECONDS", "30"))


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    api_service = service or APIService()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(
            api_service.session_manager.sweep_forever(
                SH_SWEEP_INTERVAL_SECONDS, SH_SESSION_IDLE_SECONDS
            )
        )
        logger.info("server starting (env=%s)", SH_ENV)
        try:
            yield
        finally:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
            logger.info("server stopped")

    app = FastAPI(
        title="Secret Hitler Server",
        description="""
Multiplayer game server for Secret Hitler.

## Protocol

Connect to `/ws` and send JSON objects tagged by `type`.
Start with `HostGame` or `JoinGame`; keep the `SetIdentifiers` reply
to reconnect later with `JoinGame` + `player_id` + `secret`.

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist or was reclaimed |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service = api_service

    def make_error_response(code: ErrorCode, message: str, status_code: int = 400) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=message, error_code=code).model_dump(mode="json"),
        )

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List sessions",
    )
    async def list_sessions() -> SessionListResponse:
        return api_service.list_sessions()

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionSummary,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session summary",
    )
    async def get_session(session_id: str) -> Union[SessionSummary, JSONResponse]:
        """Lobby summary of a session. Hidden game state is never exposed here."""
        response = api_service.get_session_summary(session_id)
        if isinstance(response, ErrorResponse):
            return make_error_response(response.error_code, response.error, status_code=404)
        return response

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        Game protocol socket.

        Messages from client:
        - HostGame, JoinGame, StartGame, ChooseChancellor, VoteChancellor,
          PickCard, VetoCard, PresidentialPower, SendChat, GetChatLog,
          Leave, Ping

        Messages from server:
        - SetIdentifiers, Alert, ReceiveChat, GameState, ChatLog, Pong
        """
        await websocket.accept()
        connection_id, queue = api_service.connections.open()
        ctx = ConnectionContext(connection_id)

        async def pump():
            while True:
                message = await queue.get()
                await websocket.send_json(message)

        sender = asyncio.create_task(pump())
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    logger.debug("socket %s closed by client", connection_id)
                    break
                data = frame.get("text")
                if data is None:
                    data = frame.get("bytes")
                await api_service.handle_raw(ctx, data)
        finally:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("sender for %s failed", connection_id)
            await api_service.disconnect(ctx)
            api_service.connections.close(connection_id)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="secrethitler",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Secret Hitler Server",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
            "websocket": "/ws",
        }

    return app


# For running directly: uvicorn secrethitler.api.app:app
app = create_app()
