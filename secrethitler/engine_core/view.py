"""
Player View - Role-and-phase-filtered projection of the game for one observer.

project() is pure: it reads a GameState and returns a fresh PlayerView.
It is called once per connected player after every successful action
and is never cached.

Visibility rules:
- Roles: revealed to an observer when the game is over, for themselves,
  to fascists, to Hitler at tables of 6 or fewer. An investigation
  reveals party membership only (Hitler shows as Fascist).
- Votes: hidden from others while the ballot is open.
- Hand: the president sees the three drawn cards while discarding and
  the top three during a policy peek; the chancellor sees the two
  passed cards while enacting.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .deck import Policy, HAND_SIZE
from .state import (
    GameState, PlayerState, Role, PowerKind,
    Voting, PresidentSelect, ChancellorSelect, PresidentialPower, Ended,
)


HITLER_KNOWS_TEAM_MAX_PLAYERS = 6


@dataclass
class PlayerSummary:
    """Public record of one player, as seen by the observer."""
    player_id: str
    name: str
    is_dead: bool = False
    has_voted: bool = False
    vote: bool | None = None  # None = hidden or not voted
    role: Role | None = None  # None = hidden
    party: Policy | None = None  # known party membership, if any


@dataclass
class PlayerView:
    """Snapshot of the game for one observer."""
    observer_id: str
    phase: str
    power: PowerKind | None = None
    winner: Policy | None = None

    host_id: str | None = None
    president_id: str | None = None
    chancellor_id: str | None = None
    last_president_id: str | None = None
    last_chancellor_id: str | None = None
    turn_order: list[str] = field(default_factory=list)

    liberal_policies: int = 0
    fascist_policies: int = 0
    election_tracker: int = 0
    draw_pile: dict[str, int] = field(default_factory=dict)  # colour -> count
    discard_count: int = 0

    veto_unlocked: bool = False
    president_veto: bool = False
    chancellor_veto: bool = False

    players: list[PlayerSummary] = field(default_factory=list)

    # Private to the observer
    role: Role | None = None
    hand: list[Policy] = field(default_factory=list)
    investigated: list[str] = field(default_factory=list)


def can_see_role(state: GameState, observer: PlayerState | None, target: PlayerState) -> bool:
    """Full role knowledge of target held by observer."""
    if isinstance(state.phase, Ended):
        return True
    if observer is None:
        return False
    if observer.player_id == target.player_id:
        return True
    if observer.role is Role.FASCIST:
        return True
    if observer.role is Role.HITLER and state.num_players <= HITLER_KNOWS_TEAM_MAX_PLAYERS:
        return True
    return False


def visible_hand(state: GameState, observer_id: str) -> list[Policy]:
    """Policy cards the observer may see right now."""
    phase = state.phase
    if isinstance(phase, PresidentSelect) and observer_id == state.president_id:
        return list(state.hand)
    if isinstance(phase, ChancellorSelect) and observer_id == state.chancellor_id:
        return state.remaining_hand()
    if (
        isinstance(phase, PresidentialPower)
        and phase.kind is PowerKind.POLICY_PEEK
        and observer_id == state.president_id
    ):
        return state.deck.peek(HAND_SIZE)
    return []


def _summarize(state: GameState, observer: PlayerState | None, target: PlayerState) -> PlayerSummary:
    is_self = observer is not None and observer.player_id == target.player_id

    vote = target.vote
    if isinstance(state.phase, Voting) and not is_self:
        vote = None

    role = target.role if can_see_role(state, observer, target) else None
    party = role.party if role is not None else None
    if party is None and observer is not None and state.has_investigated(
        observer.player_id, target.player_id
    ):
        party = target.role.party

    return PlayerSummary(
        player_id=target.player_id,
        name=target.name,
        is_dead=target.is_dead,
        has_voted=target.vote is not None,
        vote=vote,
        role=role,
        party=party,
    )


def project(state: GameState, observer_id: str) -> PlayerView:
    """Build the view of state held by observer_id."""
    observer = state.get_player(observer_id)
    phase = state.phase

    return PlayerView(
        observer_id=observer_id,
        phase=phase.name,
        power=phase.kind if isinstance(phase, PresidentialPower) else None,
        winner=phase.winner if isinstance(phase, Ended) else None,
        host_id=state.host_id,
        president_id=state.president_id,
        chancellor_id=state.chancellor_id,
        last_president_id=state.last_president_id,
        last_chancellor_id=state.last_chancellor_id,
        turn_order=list(state.turn_order),
        liberal_policies=state.liberal_policies,
        fascist_policies=state.fascist_policies,
        election_tracker=state.election_tracker,
        draw_pile={color.value: n for color, n in state.deck.color_counts().items()},
        discard_count=len(state.deck.discard_pile),
        veto_unlocked=state.veto_unlocked,
        president_veto=state.president_veto,
        chancellor_veto=state.chancellor_veto,
        players=[_summarize(state, observer, p) for p in state.players],
        role=observer.role if observer is not None else None,
        hand=visible_hand(state, observer_id),
        investigated=list(state.investigations.get(observer_id, [])),
    )
