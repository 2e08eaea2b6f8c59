"""
API Service - Protocol layer between the socket and the sessions.

The service:
1. Parses client messages
2. Finds the session and takes its lock
3. Runs the operation on the session engine
4. Converts the resulting deliveries to wire messages and queues them
   on the connection table after the lock is released

This layer is framework-agnostic (the FastAPI app is a thin shell).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import json
import logging

from pydantic import ValidationError

from .connections import ConnectionTable
from .schemas import (
    # Client messages
    HostGame,
    JoinGame,
    StartGame,
    ChooseChancellor,
    VoteChancellor,
    PickCard,
    VetoCard,
    UsePresidentialPower,
    SendChat,
    GetChatLog,
    Leave,
    Ping,
    client_message_adapter,
    # Server messages
    SetIdentifiers,
    Alert,
    ReceiveChat,
    ChatEntry,
    GameStateMessage,
    GameView,
    ChatLog,
    Pong,
    # HTTP
    ErrorCode,
    ErrorResponse,
    LobbyPlayer,
    SessionListResponse,
    SessionSummary,
)
from ..engine_core.action import Action, RejectionCode
from ..engine_core.state import Lobby, Ended
from ..session import (
    SessionManager,
    Session,
    Delivery,
    Identifiers,
    Alert as AlertEvent,
    ChatMessage,
    StateView,
    ChatLogSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """What one socket is currently attached to."""
    connection_id: str
    session_id: str | None = None
    player_id: str | None = None

    @property
    def attached(self) -> bool:
        return self.session_id is not None and self.player_id is not None


@dataclass
class APIService:
    """
    Main protocol service.

    Usage:
        service = APIService()
        connection_id, queue = service.connections.open()
        ctx = ConnectionContext(connection_id)
        await service.handle_raw(ctx, '{"type": "HostGame", "nickname": "Alice"}')
        message = queue.get_nowait()  # SetIdentifiers
    """
    session_manager: SessionManager = field(default_factory=SessionManager)
    connections: ConnectionTable = field(default_factory=ConnectionTable)

    # =========================================================================
    # Inbound
    # =========================================================================

    async def handle_raw(
        self, ctx: ConnectionContext, data: str | bytes | dict[str, Any] | None
    ) -> None:
        """Parse and handle one inbound frame (text or binary). Malformed input yields an Alert."""
        try:
            if isinstance(data, (str, bytes)):
                data = json.loads(data)
            message = client_message_adapter.validate_python(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.debug("malformed message on %s: %s", ctx.connection_id, e)
            self._alert(ctx.connection_id, "Malformed message!", RejectionCode.MALFORMED_MESSAGE)
            return
        await self.handle(ctx, message)

    async def handle(self, ctx: ConnectionContext, message: Any) -> None:
        """Dispatch a parsed client message."""
        if isinstance(message, Ping):
            self.connections.send(ctx.connection_id, Pong())
        elif isinstance(message, HostGame):
            await self.host_game(ctx, message)
        elif isinstance(message, JoinGame):
            await self.join_game(ctx, message)
        elif isinstance(message, SendChat):
            await self.send_chat(ctx, message.message)
        elif isinstance(message, GetChatLog):
            await self.get_chat_log(ctx)
        elif isinstance(message, Leave):
            await self.leave(ctx)
        else:
            action = self._to_action(ctx, message)
            await self.act(ctx, action)

    def _to_action(self, ctx: ConnectionContext, message: Any) -> Action:
        player_id = ctx.player_id
        if isinstance(message, StartGame):
            return Action.start(player_id)
        if isinstance(message, ChooseChancellor):
            return Action.choose_chancellor(player_id, message.target_id)
        if isinstance(message, VoteChancellor):
            return Action.vote_chancellor(player_id, message.vote)
        if isinstance(message, PickCard):
            return Action.pick_card(player_id, message.color)
        if isinstance(message, VetoCard):
            return Action.veto(player_id)
        if isinstance(message, UsePresidentialPower):
            return Action.presidential_power(player_id, message.target_id)
        raise TypeError(f"Unsupported client message: {type(message).__name__}")

    # =========================================================================
    # Session entry
    # =========================================================================

    async def host_game(self, ctx: ConnectionContext, message: HostGame) -> None:
        """Create a session and seat the caller as host."""
        if not message.nickname.strip():
            self._alert(ctx.connection_id, "Your nickname cannot be empty.",
                        RejectionCode.INVALID_NICKNAME)
            return
        if not await self._detach_for_new_game(ctx):
            return

        session = self.session_manager.create_session()
        async with session.lock.write():
            deliveries = session.engine.join(message.nickname, ctx.connection_id)
            self._attach(ctx, session, deliveries)
            session.touch()
        self._deliver(deliveries)

    async def join_game(self, ctx: ConnectionContext, message: JoinGame) -> None:
        """Join a session as a new player, or reconnect as an existing one."""
        session = self.session_manager.get_session(message.session_id)
        if session is None:
            self._alert(ctx.connection_id, "The game that you are looking for does not exist!",
                        RejectionCode.SESSION_NOT_FOUND)
            return
        rejoining_own_seat = (
            ctx.session_id == message.session_id and message.player_id == ctx.player_id
        )
        if not rejoining_own_seat and not await self._detach_for_new_game(ctx):
            return

        async with session.lock.write():
            if message.player_id is not None:
                deliveries = session.engine.reconnect(
                    message.player_id, message.secret, ctx.connection_id
                )
            else:
                deliveries = session.engine.join(message.nickname, ctx.connection_id)
            self._attach(ctx, session, deliveries)
            session.touch()
        self._deliver(deliveries)

    def _attach(self, ctx: ConnectionContext, session: Session, deliveries: list[Delivery]) -> None:
        """Bind the socket to the player that the session just admitted, if any."""
        for delivery in deliveries:
            if delivery.connection_id != ctx.connection_id:
                continue
            event = delivery.event
            if isinstance(event, Identifiers):
                ctx.session_id, ctx.player_id = session.session_id, event.player_id
                return
            if isinstance(event, StateView):
                ctx.session_id, ctx.player_id = session.session_id, event.view.observer_id
                return

    async def _detach_for_new_game(self, ctx: ConnectionContext) -> bool:
        """
        Release the socket's current seat before it enters another session.

        Refused while the current game is in progress.
        """
        session = self.session_manager.get_session(ctx.session_id)
        participant = session.engine.participants.get(ctx.player_id) if session else None
        if participant is None or participant.connection_id != ctx.connection_id:
            ctx.session_id = ctx.player_id = None
            return True

        phase = session.engine.state.phase
        if not isinstance(phase, (Lobby, Ended)):
            self._alert(ctx.connection_id,
                        "You cannot join another game while you are currently in a game!",
                        RejectionCode.GAME_IN_PROGRESS)
            return False

        async with session.lock.write():
            deliveries = session.engine.leave(ctx.player_id)
            session.engine.disconnect(ctx.player_id, ctx.connection_id)
        self._deliver(deliveries)
        ctx.session_id = ctx.player_id = None
        return True

    # =========================================================================
    # In-session operations
    # =========================================================================

    async def act(self, ctx: ConnectionContext, action: Action) -> None:
        """Apply a game action under the session's write lock."""
        session = self._session_for(ctx)
        if session is None:
            return
        async with session.lock.write():
            before = session.engine.state
            deliveries = session.engine.act(ctx.player_id, action)
            if session.engine.state is not before:
                session.touch()
        self._deliver(deliveries)

    async def send_chat(self, ctx: ConnectionContext, text: str) -> None:
        session = self._session_for(ctx)
        if session is None:
            return
        async with session.lock.write():
            deliveries = session.engine.chat(ctx.player_id, text)
        self._deliver(deliveries)

    async def get_chat_log(self, ctx: ConnectionContext) -> None:
        session = self._session_for(ctx)
        if session is None:
            return
        async with session.lock.read():
            deliveries = session.engine.chat_log_for(ctx.player_id)
        self._deliver(deliveries)

    async def leave(self, ctx: ConnectionContext) -> None:
        session = self._session_for(ctx)
        if session is None:
            return
        async with session.lock.write():
            deliveries = session.engine.leave(ctx.player_id)
            session.touch()
        self._deliver(deliveries)
        ctx.session_id = ctx.player_id = None

    async def disconnect(self, ctx: ConnectionContext) -> None:
        """The socket closed: mark the player inactive, keep their seat."""
        session = self.session_manager.get_session(ctx.session_id)
        if session is None or ctx.player_id is None:
            return
        async with session.lock.write():
            session.engine.disconnect(ctx.player_id, ctx.connection_id)

    def _session_for(self, ctx: ConnectionContext) -> Session | None:
        if not ctx.attached:
            self._alert(ctx.connection_id, "You are not currently in a game!",
                        RejectionCode.SESSION_NOT_FOUND)
            return None
        session = self.session_manager.get_session(ctx.session_id)
        if session is None:
            ctx.session_id = ctx.player_id = None
            self._alert(ctx.connection_id, "The game that you are looking for does not exist!",
                        RejectionCode.SESSION_NOT_FOUND)
            return None
        participant = session.engine.participants.get(ctx.player_id)
        if participant is None or participant.connection_id != ctx.connection_id:
            # the seat was given up or taken over by a reconnect elsewhere
            ctx.session_id = ctx.player_id = None
            self._alert(ctx.connection_id, "You are not currently in a game!",
                        RejectionCode.NOT_AUTHORIZED)
            return None
        return session

    # =========================================================================
    # Queries (HTTP)
    # =========================================================================

    def list_sessions(self) -> SessionListResponse:
        sessions = self.session_manager.list_sessions()
        return SessionListResponse(
            sessions=sessions,
            count=len(sessions),
            active=len(self.session_manager.list_active_sessions()),
        )

    def get_session_summary(self, session_id: str) -> SessionSummary | ErrorResponse:
        """Public lobby summary; never includes hidden state."""
        session = self.session_manager.get_session(session_id)
        if session is None:
            return ErrorResponse(
                error=f"Session {session_id} not found",
                error_code=ErrorCode.SESSION_NOT_FOUND,
            )
        engine = session.engine
        return SessionSummary(
            session_id=session.session_id,
            phase=engine.state.phase.name,
            host_id=engine.state.host_id,
            players=[
                LobbyPlayer(
                    player_id=p.player_id,
                    name=p.name,
                    connected=(
                        p.player_id in engine.participants
                        and engine.participants[p.player_id].connected
                    ),
                )
                for p in engine.state.players
            ],
            created_at=session.created_at,
        )

    # =========================================================================
    # Outbound
    # =========================================================================

    def _alert(self, connection_id: str, message: str, code: RejectionCode | None = None) -> None:
        self.connections.send(connection_id, Alert(message=message, code=code))

    def _deliver(self, deliveries: list[Delivery]) -> None:
        for delivery in deliveries:
            self.connections.send(delivery.connection_id, _to_message(delivery.event))


def _chat_entry(entry: ChatMessage) -> dict[str, Any]:
    return {
        "sender_id": entry.sender_id,
        "sender_name": entry.sender_name,
        "message": entry.text,
        "timestamp": entry.timestamp,
    }


def _to_message(event: Any):
    """Convert a session event to its wire message."""
    if isinstance(event, Identifiers):
        return SetIdentifiers(
            player_id=event.player_id,
            session_id=event.session_id,
            secret=event.secret,
        )
    if isinstance(event, AlertEvent):
        return Alert(message=event.message, code=event.code)
    if isinstance(event, ChatMessage):
        return ReceiveChat(**_chat_entry(event))
    if isinstance(event, StateView):
        return GameStateMessage(state=GameView.model_validate(event.view))
    if isinstance(event, ChatLogSnapshot):
        return ChatLog(messages=[ChatEntry(**_chat_entry(e)) for e in event.entries])
    raise TypeError(f"Unknown session event: {type(event).__name__}")
