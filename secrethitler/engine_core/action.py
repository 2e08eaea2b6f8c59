"""
Action System - Actions, payloads, results and rejection codes.

Actions represent:
1. Roster changes while in the lobby (join, leave)
2. Player moves (start, nominate, vote, pick a card, veto, use a power)

All state changes flow through actions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .deck import Policy


class ActionType(Enum):
    """Types of actions in the system."""
    # Roster
    ADD_PLAYER = "add_player"
    REMOVE_PLAYER = "remove_player"

    # Game
    START_GAME = "start_game"
    CHOOSE_CHANCELLOR = "choose_chancellor"
    VOTE_CHANCELLOR = "vote_chancellor"
    PICK_CARD = "pick_card"
    VETO = "veto"
    PRESIDENTIAL_POWER = "presidential_power"


class RejectionCode(str, Enum):
    """Why an action was refused. Always user-facing, never fatal."""
    WRONG_PHASE = "WRONG_PHASE"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    INVALID_TARGET = "INVALID_TARGET"
    INVALID_CHOICE = "INVALID_CHOICE"
    POWER_LOCKED = "POWER_LOCKED"
    INVALID_PLAYER_COUNT = "INVALID_PLAYER_COUNT"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"

    # Roster
    NICKNAME_TAKEN = "NICKNAME_TAKEN"
    INVALID_NICKNAME = "INVALID_NICKNAME"
    SESSION_FULL = "SESSION_FULL"
    GAME_IN_PROGRESS = "GAME_IN_PROGRESS"
    INVALID_SECRET = "INVALID_SECRET"

    # Transport
    MALFORMED_MESSAGE = "MALFORMED_MESSAGE"


@dataclass
class ActionPayload:
    """
    Payload for an action - contains the action parameters.

    Different action types use different fields.
    Validation happens in the reducer.
    """
    player_id: str | None = None  # the actor
    target_player_id: str | None = None
    vote: bool | None = None
    color: Policy | None = None
    name: str | None = None  # nickname for ADD_PLAYER


@dataclass
class Action:
    """
    A complete action to be applied to the game state.

    Actions are validated in full before any mutation, then
    applied atomically by the reducer.
    """
    action_type: ActionType
    payload: ActionPayload

    @classmethod
    def add_player(cls, player_id: str, name: str) -> Action:
        return cls(
            action_type=ActionType.ADD_PLAYER,
            payload=ActionPayload(player_id=player_id, name=name),
        )

    @classmethod
    def remove_player(cls, player_id: str) -> Action:
        return cls(
            action_type=ActionType.REMOVE_PLAYER,
            payload=ActionPayload(player_id=player_id),
        )

    @classmethod
    def start(cls, player_id: str) -> Action:
        return cls(
            action_type=ActionType.START_GAME,
            payload=ActionPayload(player_id=player_id),
        )

    @classmethod
    def choose_chancellor(cls, player_id: str, target_player_id: str | None) -> Action:
        return cls(
            action_type=ActionType.CHOOSE_CHANCELLOR,
            payload=ActionPayload(player_id=player_id, target_player_id=target_player_id),
        )

    @classmethod
    def vote_chancellor(cls, player_id: str, vote: bool) -> Action:
        return cls(
            action_type=ActionType.VOTE_CHANCELLOR,
            payload=ActionPayload(player_id=player_id, vote=vote),
        )

    @classmethod
    def pick_card(cls, player_id: str, color: Policy) -> Action:
        return cls(
            action_type=ActionType.PICK_CARD,
            payload=ActionPayload(player_id=player_id, color=color),
        )

    @classmethod
    def veto(cls, player_id: str) -> Action:
        return cls(
            action_type=ActionType.VETO,
            payload=ActionPayload(player_id=player_id),
        )

    @classmethod
    def presidential_power(cls, player_id: str, target_player_id: str | None = None) -> Action:
        return cls(
            action_type=ActionType.PRESIDENTIAL_POWER,
            payload=ActionPayload(player_id=player_id, target_player_id=target_player_id),
        )


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether action succeeded
    - New state (if succeeded)
    - Error message and code (if failed)
    - Human-readable changes, posted to the chat log as system messages
    """
    success: bool
    new_state: Any | None = None  # GameState
    error: str | None = None
    error_code: RejectionCode | None = None

    state_changes: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, error_code: RejectionCode) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def success_with_state(
        cls,
        state: Any,
        changes: list[str] | None = None,
    ) -> ActionResult:
        """Create a success result with new state."""
        return cls(
            success=True,
            new_state=state,
            state_changes=changes or [],
        )
