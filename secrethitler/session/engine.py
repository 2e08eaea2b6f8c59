"""
Session Engine - The player-facing facade of one running game.

The engine owns:
- The canonical GameState and the Reducer that advances it
- The roster of participants (secret token, connection id, connected flag)
- A bounded chat log

Every operation returns a list of Delivery records addressed by
connection id. The engine never touches the transport: the caller
hands deliveries to whatever owns the connections, after releasing
the session lock.

Usage:
    engine = SessionEngine("session-1")
    deliveries = engine.join("Alice", connection_id="conn-1")
    deliveries = engine.act(alice_id, Action.start(alice_id))
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Union
import logging
import random
import secrets
import time
import uuid

from ..engine_core.action import Action, ActionResult, RejectionCode
from ..engine_core.deck import Deck
from ..engine_core.reducer import Reducer
from ..engine_core.state import GameState, Lobby
from ..engine_core.view import PlayerView, project

logger = logging.getLogger(__name__)

CHAT_LOG_LIMIT = 250
CHAT_MESSAGE_MAX_LENGTH = 500


@dataclass
class Participant:
    """A player's seat at the session, as the transport sees it."""
    player_id: str
    secret: str
    connection_id: str | None = None
    connected: bool = True


# =============================================================================
# Outbound events
# =============================================================================

@dataclass
class Identifiers:
    player_id: str
    session_id: str
    secret: str


@dataclass
class Alert:
    message: str
    code: RejectionCode | None = None


@dataclass
class ChatMessage:
    """A chat entry. System messages have no sender."""
    text: str
    sender_id: str | None = None
    sender_name: str | None = None
    timestamp: float = 0.0


@dataclass
class StateView:
    view: PlayerView


@dataclass
class ChatLogSnapshot:
    entries: list[ChatMessage]


Event = Union[Identifiers, Alert, ChatMessage, StateView, ChatLogSnapshot]


@dataclass
class Delivery:
    """One event bound for one connection."""
    connection_id: str
    event: Event


class SessionEngine:
    """
    Facade over one game.

    Not thread-safe and not lock-aware: callers serialize mutating
    operations (see SessionManager and ReadWriteLock).
    """

    def __init__(self, session_id: str, rng: random.Random | None = None):
        self.session_id = session_id
        self.reducer = Reducer(rng=rng or random.Random())
        self.state = GameState(game_id=session_id, deck=Deck.fresh(self.reducer.rng))
        self.participants: dict[str, Participant] = {}
        self.chat_log: deque[ChatMessage] = deque(maxlen=CHAT_LOG_LIMIT)

    # =========================================================================
    # Roster
    # =========================================================================

    @property
    def has_connections(self) -> bool:
        return any(p.connected for p in self.participants.values())

    def connected_ids(self) -> list[str]:
        return [pid for pid, p in self.participants.items() if p.connected]

    def join(self, nickname: str, connection_id: str) -> list[Delivery]:
        """Seat a new player. The first player to join becomes the host."""
        player_id = str(uuid.uuid4())
        result = self.reducer.apply(self.state, Action.add_player(player_id, nickname))
        if not result.success:
            return [Delivery(connection_id, Alert(result.error, result.error_code))]

        secret = secrets.token_urlsafe(16)
        self.participants[player_id] = Participant(
            player_id=player_id,
            secret=secret,
            connection_id=connection_id,
        )
        logger.info("[%s] %s joined as %s", self.session_id, nickname.strip(), player_id)

        deliveries = [Delivery(connection_id, Identifiers(player_id, self.session_id, secret))]
        deliveries.extend(self._commit(result))
        return deliveries

    def reconnect(
        self,
        player_id: str,
        secret: str | None,
        connection_id: str,
    ) -> list[Delivery]:
        """Re-attach an existing player to a new connection. Game state is untouched."""
        participant = self.participants.get(player_id)
        if participant is None:
            return [Delivery(connection_id, Alert(
                "The player you are trying to join as does not exist!",
                RejectionCode.PLAYER_NOT_FOUND,
            ))]
        if not secret:
            return [Delivery(connection_id, Alert(
                "No player secret passed to server!", RejectionCode.INVALID_SECRET,
            ))]
        if not secrets.compare_digest(participant.secret, secret):
            return [Delivery(connection_id, Alert(
                "Invalid player secret passed to server!", RejectionCode.INVALID_SECRET,
            ))]

        participant.connection_id = connection_id
        participant.connected = True
        logger.info("[%s] %s reconnected", self.session_id, player_id)
        return [Delivery(connection_id, StateView(project(self.state, player_id)))]

    def leave(self, player_id: str) -> list[Delivery]:
        """
        Leave the session.

        In the lobby the seat is given up; once the game has started the
        player only disconnects and keeps their seat.
        """
        if player_id not in self.participants:
            return []
        if not isinstance(self.state.phase, Lobby):
            self.disconnect(player_id)
            return []

        result = self.reducer.apply(self.state, Action.remove_player(player_id))
        if not result.success:
            return self._reject(player_id, result)
        del self.participants[player_id]
        return self._commit(result)

    def disconnect(self, player_id: str, connection_id: str | None = None) -> None:
        """
        Mark a participant's connection inactive.

        A connection_id that no longer matches (the player already
        reconnected elsewhere) is ignored.
        """
        participant = self.participants.get(player_id)
        if participant is None:
            return
        if connection_id is not None and participant.connection_id != connection_id:
            return
        participant.connected = False
        participant.connection_id = None
        logger.info("[%s] %s disconnected", self.session_id, player_id)

    # =========================================================================
    # Game
    # =========================================================================

    def act(self, player_id: str, action: Action) -> list[Delivery]:
        """Apply a player's move; views on success, one alert on failure."""
        result = self.reducer.apply(self.state, action)
        if not result.success:
            return self._reject(player_id, result)
        return self._commit(result)

    def views(self) -> list[Delivery]:
        """One freshly projected view per connected participant."""
        return [
            Delivery(p.connection_id, StateView(project(self.state, p.player_id)))
            for p in self.participants.values()
            if p.connected and p.connection_id is not None
        ]

    # =========================================================================
    # Chat
    # =========================================================================

    def chat(self, player_id: str, text: str) -> list[Delivery]:
        """Post a player's chat message to everyone connected."""
        text = text.strip()[:CHAT_MESSAGE_MAX_LENGTH]
        player = self.state.get_player(player_id)
        if not text or player is None:
            return []
        entry = ChatMessage(
            text=text,
            sender_id=player_id,
            sender_name=player.name,
            timestamp=time.time(),
        )
        self.chat_log.append(entry)
        return self._broadcast(entry)

    def chat_log_for(self, player_id: str) -> list[Delivery]:
        participant = self.participants.get(player_id)
        if participant is None or participant.connection_id is None:
            return []
        return [Delivery(participant.connection_id, ChatLogSnapshot(list(self.chat_log)))]

    # =========================================================================
    # Internals
    # =========================================================================

    def _reject(self, player_id: str, result: ActionResult) -> list[Delivery]:
        participant = self.participants.get(player_id)
        if participant is None or participant.connection_id is None:
            return []
        return [Delivery(participant.connection_id, Alert(result.error, result.error_code))]

    def _commit(self, result: ActionResult) -> list[Delivery]:
        self.state = result.new_state
        deliveries = []
        now = time.time()
        for change in result.state_changes:
            entry = ChatMessage(text=change, timestamp=now)
            self.chat_log.append(entry)
            deliveries.extend(self._broadcast(entry))
        deliveries.extend(self.views())
        return deliveries

    def _broadcast(self, event: Event) -> list[Delivery]:
        return [
            Delivery(p.connection_id, event)
            for p in self.participants.values()
            if p.connected and p.connection_id is not None
        ]
