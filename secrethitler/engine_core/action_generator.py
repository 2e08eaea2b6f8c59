"""
Action Generator - Generates all legal actions for a player.

The action generator is used by:
1. The simulate command to play random games
2. Property tests that drive the engine through whole games
3. Validation (is this action in legal_actions?)

Design: Generates Action objects, not just action types.
Every generated action is one the reducer accepts.
"""

from __future__ import annotations

from .action import Action
from .deck import Policy
from .state import (
    GameState, PowerKind,
    Lobby, Electing, Voting, PresidentSelect, ChancellorSelect, PresidentialPower,
    MIN_PLAYERS, MAX_PLAYERS,
)


def legal_actions(state: GameState, player_id: str) -> list[Action]:
    """
    Generate all legal game actions for one player.

    Roster actions (joining, leaving) are not included.
    """
    player = state.get_player(player_id)
    if player is None or state.is_over:
        return []

    phase = state.phase

    if isinstance(phase, Lobby):
        if player_id == state.host_id and MIN_PLAYERS <= state.num_players <= MAX_PLAYERS:
            return [Action.start(player_id)]
        return []

    if isinstance(phase, Electing):
        if player_id != state.president_id:
            return []
        limited = state.term_limited_ids()
        return [
            Action.choose_chancellor(player_id, p.player_id)
            for p in state.alive_players
            if p.player_id != player_id and p.player_id not in limited
        ]

    if isinstance(phase, Voting):
        if player.is_dead:
            return []
        return [Action.vote_chancellor(player_id, True), Action.vote_chancellor(player_id, False)]

    if isinstance(phase, PresidentSelect):
        if player_id != state.president_id:
            return []
        return [Action.pick_card(player_id, color) for color in _distinct(state.hand)]

    if isinstance(phase, ChancellorSelect):
        actions = []
        if player_id == state.chancellor_id:
            actions.extend(
                Action.pick_card(player_id, color)
                for color in _distinct(state.remaining_hand())
            )
        if state.veto_unlocked and player_id in (state.president_id, state.chancellor_id):
            actions.append(Action.veto(player_id))
        return actions

    if isinstance(phase, PresidentialPower):
        if player_id != state.president_id:
            return []
        if phase.kind is PowerKind.POLICY_PEEK:
            return [Action.presidential_power(player_id)]
        return [
            Action.presidential_power(player_id, p.player_id)
            for p in state.players
            if p.player_id != player_id
            and (phase.kind is PowerKind.INVESTIGATE_LOYALTY or p.is_alive)
        ]

    return []


def _distinct(cards: list[Policy]) -> list[Policy]:
    return [color for color in Policy if color in cards]
