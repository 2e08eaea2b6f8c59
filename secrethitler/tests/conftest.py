"""
Pytest fixtures for Secret Hitler tests.

Arranged games are dealt by the reducer and then pinned down: turn order
follows join order (p1, p2, ...), p1 is president, and roles are set
explicitly so tests know who Hitler is.
"""

import random

import pytest

from ..engine_core.action import Action
from ..engine_core.deck import Deck, Policy, LIBERAL_CARDS, FASCIST_CARDS
from ..engine_core.reducer import Reducer
from ..engine_core.state import GameState, Role


def ok(result):
    """Assert an action succeeded and return its new state."""
    assert result.success, result.error
    return result.new_state


def make_lobby(reducer: Reducer, num_players: int) -> GameState:
    """Lobby with players p1..pN; p1 is host."""
    state = GameState(game_id="test_game", deck=Deck.fresh(reducer.rng))
    for i in range(1, num_players + 1):
        state = ok(reducer.apply(state, Action.add_player(f"p{i}", f"Player {i}")))
    return state


def arrange(state: GameState, hitler: str, fascists=()) -> GameState:
    """Pin roles and a join-order turn order onto a started game (in place)."""
    for p in state.players:
        if p.player_id == hitler:
            p.role = Role.HITLER
        elif p.player_id in fascists:
            p.role = Role.FASCIST
        else:
            p.role = Role.LIBERAL
    state.turn_order = [p.player_id for p in state.players]
    state.turn_pointer = 0
    state.president_id = state.turn_order[0]
    return state


def make_game(reducer: Reducer, num_players: int, hitler: str, fascists=()) -> GameState:
    state = make_lobby(reducer, num_players)
    state = ok(reducer.apply(state, Action.start("p1")))
    return arrange(state, hitler, fascists)


def stack_deck(state: GameState, top: list[Policy]) -> GameState:
    """
    Put the given cards on top of the draw pile (in place).

    The rest of the 17-card stock follows; the discard pile is emptied.
    Only valid while no hand is out.
    """
    assert not state.hand
    rest = [Policy.LIBERAL] * LIBERAL_CARDS + [Policy.FASCIST] * FASCIST_CARDS
    for card in top:
        rest.remove(card)
    state.deck = Deck(draw_pile=list(top) + rest, discard_pile=[])
    return state


def elect(reducer: Reducer, state: GameState, chancellor_id: str, vote: bool = True) -> GameState:
    """Current president nominates; every living player casts the same vote."""
    state = ok(reducer.apply(state, Action.choose_chancellor(state.president_id, chancellor_id)))
    for p in list(state.alive_players):
        state = ok(reducer.apply(state, Action.vote_chancellor(p.player_id, vote)))
    return state


def legislate(reducer: Reducer, state: GameState, enact: Policy) -> GameState:
    """President discards so that the chancellor can enact the given colour."""
    hand = list(state.hand)
    discard = next(c for c in Policy if c in hand and (c is not enact or hand.count(c) > 1))
    state = ok(reducer.apply(state, Action.pick_card(state.president_id, discard)))
    return ok(reducer.apply(state, Action.pick_card(state.chancellor_id, enact)))


@pytest.fixture
def reducer() -> Reducer:
    """Reducer with a fixed seed."""
    return Reducer(rng=random.Random(1234))


@pytest.fixture
def lobby5(reducer) -> GameState:
    return make_lobby(reducer, 5)


@pytest.fixture
def game5(reducer) -> GameState:
    """5 players: p5 is Hitler, p4 is the fascist."""
    return make_game(reducer, 5, hitler="p5", fascists=("p4",))


@pytest.fixture
def game7(reducer) -> GameState:
    """7 players: p7 is Hitler, p5 and p6 are fascists."""
    return make_game(reducer, 7, hitler="p7", fascists=("p5", "p6"))
