"""
Game State - The aggregate root of one session's game.

Design principles:
- One canonical state per session; all changes go through the reducer
- The reducer validates against a state and mutates only a clone of it
- Turn phases are a closed set of variants, some carrying data
- Hidden information lives here; only the view projector decides who sees it
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from .deck import Deck, Policy


MIN_PLAYERS = 5
MAX_PLAYERS = 10

LIBERAL_POLICIES_TO_WIN = 5
FASCIST_POLICIES_TO_WIN = 6
HITLER_ELECTION_THRESHOLD = 3  # fascist policies before electing Hitler wins
VETO_THRESHOLD = 5
ELECTION_TRACKER_LIMIT = 3


class Role(Enum):
    """Secret role of a player."""
    LIBERAL = "Liberal"
    FASCIST = "Fascist"
    HITLER = "Hitler"

    @property
    def party(self) -> Policy:
        """Party membership, the only thing an investigation reveals."""
        return Policy.LIBERAL if self is Role.LIBERAL else Policy.FASCIST


class PowerKind(Enum):
    """Presidential powers granted by fascist policies."""
    INVESTIGATE_LOYALTY = "InvestigateLoyalty"
    CALL_SPECIAL_ELECTION = "CallSpecialElection"
    POLICY_PEEK = "PolicyPeek"
    EXECUTION = "Execution"

    @property
    def needs_target(self) -> bool:
        return self is not PowerKind.POLICY_PEEK


# =============================================================================
# Turn phases
# =============================================================================

@dataclass(frozen=True)
class TurnPhase:
    """Base of the turn-phase variants."""
    name: ClassVar[str] = "TurnPhase"


@dataclass(frozen=True)
class Lobby(TurnPhase):
    name: ClassVar[str] = "Lobby"


@dataclass(frozen=True)
class Electing(TurnPhase):
    """President must nominate a chancellor."""
    name: ClassVar[str] = "Electing"


@dataclass(frozen=True)
class Voting(TurnPhase):
    """Ballots are open on the nominated government."""
    name: ClassVar[str] = "Voting"


@dataclass(frozen=True)
class PresidentSelect(TurnPhase):
    """President discards one of three drawn policies."""
    name: ClassVar[str] = "PresidentSelect"


@dataclass(frozen=True)
class ChancellorSelect(TurnPhase):
    """Chancellor enacts one of the two remaining policies."""
    name: ClassVar[str] = "ChancellorSelect"


@dataclass(frozen=True)
class PresidentialPower(TurnPhase):
    name: ClassVar[str] = "PresidentialPower"
    kind: PowerKind = PowerKind.POLICY_PEEK


@dataclass(frozen=True)
class Ended(TurnPhase):
    name: ClassVar[str] = "Ended"
    winner: Policy = Policy.LIBERAL


# =============================================================================
# Players and game
# =============================================================================

@dataclass
class PlayerState:
    """
    State for a single player.

    The role defaults to Liberal until the game starts.
    Players are never removed once the game has started, only killed.
    """
    player_id: str
    name: str
    role: Role = Role.LIBERAL
    is_dead: bool = False
    vote: bool | None = None  # None = not voted

    @property
    def is_alive(self) -> bool:
        return not self.is_dead


@dataclass
class GameState:
    """
    Complete game state at a point in time.

    This is the canonical state that the reducer operates on.
    """
    game_id: str

    phase: TurnPhase = field(default_factory=Lobby)
    host_id: str | None = None

    # Roster in join order; role seats are assigned in this order
    players: list[PlayerState] = field(default_factory=list)

    # Succession
    turn_order: list[str] = field(default_factory=list)
    turn_pointer: int = 0
    president_id: str | None = None
    chancellor_id: str | None = None

    # Term-limit memory (last elected government)
    last_president_id: str | None = None
    last_chancellor_id: str | None = None

    election_tracker: int = 0
    liberal_policies: int = 0
    fascist_policies: int = 0

    # Cards
    deck: Deck = field(default_factory=Deck)
    hand: list[Policy] = field(default_factory=list)  # cards drawn for legislation
    president_discard: int | None = None  # index into hand set aside by the president

    # investigator id -> investigated ids, in investigation order
    investigations: dict[str, list[str]] = field(default_factory=dict)

    president_veto: bool = False
    chancellor_veto: bool = False

    @property
    def num_players(self) -> int:
        return len(self.players)

    @property
    def alive_players(self) -> list[PlayerState]:
        return [p for p in self.players if p.is_alive]

    @property
    def veto_unlocked(self) -> bool:
        return self.fascist_policies >= VETO_THRESHOLD

    @property
    def is_over(self) -> bool:
        return isinstance(self.phase, Ended)

    def get_player(self, player_id: str | None) -> PlayerState | None:
        """Get player by ID."""
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    def remaining_hand(self) -> list[Policy]:
        """The cards passed to the chancellor (hand minus the president's discard)."""
        if self.president_discard is None:
            return list(self.hand)
        return [c for i, c in enumerate(self.hand) if i != self.president_discard]

    def has_investigated(self, investigator_id: str, target_id: str) -> bool:
        return target_id in self.investigations.get(investigator_id, [])

    def term_limited_ids(self) -> set[str]:
        """
        Players barred from the chancellorship by the last elected government.

        Waived when honouring it would leave the president no nominee.
        """
        limited = {
            pid for pid in (self.last_president_id, self.last_chancellor_id)
            if pid is not None
        }
        eligible = [
            p for p in self.alive_players
            if p.player_id != self.president_id and p.player_id not in limited
        ]
        return limited if eligible else set()

    def cards_in_play(self) -> int:
        """draw + discard + hand; 17 whenever the engine is correct."""
        return self.deck.total + len(self.hand)

    def clone(self) -> GameState:
        """Deep copy the state."""
        return deepcopy(self)
