"""
Engine Core - Authoritative game state management for one session.

The engine is the runtime that:
1. Holds the GameState (roster, phase, deck, counters)
2. Deals roles and shuffles the policy deck
3. Applies actions via the reducer
4. Enumerates legal actions
5. Projects the state into per-player views
"""

from .deck import Deck, Policy, build_deck
from .errors import EngineInvariantError
from .state import (
    GameState, PlayerState, Role, PowerKind,
    TurnPhase, Lobby, Electing, Voting, PresidentSelect, ChancellorSelect,
    PresidentialPower, Ended,
)
from .roles import RoleAssignment, assign_roles, fascist_count
from .action import Action, ActionType, ActionPayload, ActionResult, RejectionCode
from .reducer import Reducer, apply_action, power_for
from .action_generator import legal_actions
from .view import PlayerView, PlayerSummary, project

__all__ = [
    "Deck",
    "Policy",
    "build_deck",
    "EngineInvariantError",
    "GameState",
    "PlayerState",
    "Role",
    "PowerKind",
    "TurnPhase",
    "Lobby",
    "Electing",
    "Voting",
    "PresidentSelect",
    "ChancellorSelect",
    "PresidentialPower",
    "Ended",
    "RoleAssignment",
    "assign_roles",
    "fascist_count",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "RejectionCode",
    "Reducer",
    "apply_action",
    "power_for",
    "legal_actions",
    "PlayerView",
    "PlayerSummary",
    "project",
]
