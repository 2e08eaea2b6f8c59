"""
Pydantic Schemas for API - The wire contract between clients and the server.

WebSocket messages are JSON objects tagged by a "type" field.

Client → server:
    HostGame, JoinGame, StartGame, ChooseChancellor, VoteChancellor,
    PickCard, VetoCard, PresidentialPower, SendChat, GetChatLog, Leave, Ping

Server → client:
    SetIdentifiers, Alert, ReceiveChat, GameState, ChatLog, Pong

HTTP error codes:
- SESSION_NOT_FOUND: Session does not exist or has been reclaimed
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter

from ..engine_core.action import RejectionCode
from ..engine_core.deck import Policy
from ..engine_core.state import PowerKind, Role


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured HTTP error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"


# =============================================================================
# Client → server
# =============================================================================

class HostGame(BaseModel):
    """Create a session and join it as host."""
    type: Literal["HostGame"] = "HostGame"
    nickname: str = Field(..., description="Display name")


class JoinGame(BaseModel):
    """Join a session, or reconnect when player_id and secret are given."""
    type: Literal["JoinGame"] = "JoinGame"
    session_id: str
    nickname: str = ""
    player_id: Optional[str] = Field(None, description="Set to reconnect as an existing player")
    secret: Optional[str] = Field(None, description="Secret issued with SetIdentifiers")


class StartGame(BaseModel):
    type: Literal["StartGame"] = "StartGame"


class ChooseChancellor(BaseModel):
    type: Literal["ChooseChancellor"] = "ChooseChancellor"
    target_id: str


class VoteChancellor(BaseModel):
    type: Literal["VoteChancellor"] = "VoteChancellor"
    vote: bool


class PickCard(BaseModel):
    type: Literal["PickCard"] = "PickCard"
    color: Policy


class VetoCard(BaseModel):
    type: Literal["VetoCard"] = "VetoCard"


class UsePresidentialPower(BaseModel):
    """Resolve the pending power. Policy peek takes no target."""
    type: Literal["PresidentialPower"] = "PresidentialPower"
    target_id: Optional[str] = None


class SendChat(BaseModel):
    type: Literal["SendChat"] = "SendChat"
    message: str


class GetChatLog(BaseModel):
    type: Literal["GetChatLog"] = "GetChatLog"


class Leave(BaseModel):
    type: Literal["Leave"] = "Leave"


class Ping(BaseModel):
    type: Literal["Ping"] = "Ping"


ClientMessage = Annotated[
    Union[
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
    ],
    Field(discriminator="type"),
]

client_message_adapter: TypeAdapter = TypeAdapter(ClientMessage)


# =============================================================================
# Game view
# =============================================================================

class PlayerInfo(BaseModel):
    """One player's public record as seen by the receiving player."""
    player_id: str
    name: str
    is_dead: bool = False
    has_voted: bool = False
    vote: Optional[bool] = Field(None, description="null while hidden or not cast")
    role: Optional[Role] = Field(None, description="null while hidden")
    party: Optional[Policy] = Field(None, description="Known party membership")

    model_config = {"from_attributes": True}


class GameView(BaseModel):
    """The receiving player's view of the game."""
    observer_id: str
    phase: str = Field(description="Lobby, Electing, Voting, PresidentSelect, "
                                   "ChancellorSelect, PresidentialPower, Ended")
    power: Optional[PowerKind] = None
    winner: Optional[Policy] = None

    host_id: Optional[str] = None
    president_id: Optional[str] = None
    chancellor_id: Optional[str] = None
    last_president_id: Optional[str] = None
    last_chancellor_id: Optional[str] = None
    turn_order: list[str] = Field(default_factory=list)

    liberal_policies: int = 0
    fascist_policies: int = 0
    election_tracker: int = 0
    draw_pile: dict[str, int] = Field(default_factory=dict, description="Cards left per colour")
    discard_count: int = 0

    veto_unlocked: bool = False
    president_veto: bool = False
    chancellor_veto: bool = False

    players: list[PlayerInfo] = Field(default_factory=list)

    role: Optional[Role] = None
    hand: list[Policy] = Field(default_factory=list)
    investigated: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


# =============================================================================
# Server → client
# =============================================================================

class SetIdentifiers(BaseModel):
    type: Literal["SetIdentifiers"] = "SetIdentifiers"
    player_id: str
    session_id: str
    secret: str


class Alert(BaseModel):
    type: Literal["Alert"] = "Alert"
    message: str
    code: Optional[RejectionCode] = None


class ChatEntry(BaseModel):
    sender_id: Optional[str] = Field(None, description="null for system messages")
    sender_name: Optional[str] = None
    message: str
    timestamp: float = 0.0


class ReceiveChat(ChatEntry):
    type: Literal["ReceiveChat"] = "ReceiveChat"


class GameStateMessage(BaseModel):
    type: Literal["GameState"] = "GameState"
    state: GameView


class ChatLog(BaseModel):
    type: Literal["ChatLog"] = "ChatLog"
    messages: list[ChatEntry] = Field(default_factory=list)


class Pong(BaseModel):
    type: Literal["Pong"] = "Pong"


# =============================================================================
# HTTP responses
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    api_version: str = Field("v1", description="API version")


class LobbyPlayer(BaseModel):
    player_id: str
    name: str
    connected: bool = False


class SessionSummary(BaseModel):
    """Public lobby summary of a session."""
    session_id: str
    phase: str
    host_id: Optional[str] = None
    players: list[LobbyPlayer] = Field(default_factory=list)
    created_at: float = 0.0
    api_version: str = "v1"


class SessionListResponse(BaseModel):
    sessions: list[str]
    count: int
    active: int = 0  # sessions with a connected participant


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
