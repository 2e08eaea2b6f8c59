"""
Tests for the reducer (state transitions).

Tests:
- Lobby roster and game start
- Nomination, voting and the election tracker
- Legislation, term limits, veto
- Presidential powers and win conditions
"""

import random

import pytest

from ..engine_core.action import Action, RejectionCode
from ..engine_core.deck import Deck, Policy
from ..engine_core.reducer import Reducer, apply_action, power_for
from ..engine_core.state import (
    Role, PowerKind,
    Lobby, Electing, Voting, PresidentSelect, ChancellorSelect, PresidentialPower, Ended,
)
from .conftest import ok, make_lobby, stack_deck, elect, legislate


L, F = Policy.LIBERAL, Policy.FASCIST


def kill(state, player_id):
    """Mark a player dead the way an execution leaves them."""
    state.get_player(player_id).is_dead = True
    state.turn_order.remove(player_id)
    return state


class TestRoster:
    """Tests for lobby join/leave."""

    def test_first_player_is_host(self, lobby5):
        assert lobby5.host_id == "p1"
        assert isinstance(lobby5.phase, Lobby)
        assert lobby5.num_players == 5

    def test_duplicate_nickname_rejected(self, reducer, lobby5):
        """Nicknames are unique, ignoring case."""
        result = reducer.apply(lobby5, Action.add_player("p6", "PLAYER 1"))
        assert not result.success
        assert result.error_code == RejectionCode.NICKNAME_TAKEN

    def test_empty_nickname_rejected(self, reducer, lobby5):
        result = reducer.apply(lobby5, Action.add_player("p6", "   "))
        assert result.error_code == RejectionCode.INVALID_NICKNAME

    def test_nickname_is_stripped(self, reducer, lobby5):
        state = ok(reducer.apply(lobby5, Action.add_player("p6", "  Zed ")))
        assert state.get_player("p6").name == "Zed"

    def test_lobby_is_capped_at_ten(self, reducer):
        state = make_lobby(reducer, 10)
        result = reducer.apply(state, Action.add_player("p11", "Player 11"))
        assert result.error_code == RejectionCode.SESSION_FULL

    def test_cannot_join_started_game(self, reducer, game5):
        result = reducer.apply(game5, Action.add_player("p6", "Late"))
        assert result.error_code == RejectionCode.GAME_IN_PROGRESS

    def test_host_leaving_passes_host(self, reducer, lobby5):
        result = reducer.apply(lobby5, Action.remove_player("p1"))
        state = ok(result)
        assert state.host_id == "p2"
        assert state.get_player("p1") is None
        assert "Player 2 is now the host" in result.state_changes

    def test_cannot_leave_started_game(self, reducer, game5):
        result = reducer.apply(game5, Action.remove_player("p2"))
        assert result.error_code == RejectionCode.GAME_IN_PROGRESS
        assert game5.get_player("p2") is not None


class TestStart:
    """Lobby → Electing."""

    def test_non_host_cannot_start(self, reducer, lobby5):
        result = reducer.apply(lobby5, Action.start("p2"))
        assert not result.success
        assert result.error_code == RejectionCode.NOT_AUTHORIZED
        assert isinstance(lobby5.phase, Lobby)

    def test_too_few_players(self, reducer):
        state = make_lobby(reducer, 4)
        result = reducer.apply(state, Action.start("p1"))
        assert result.error_code == RejectionCode.INVALID_PLAYER_COUNT

    def test_host_starts_game(self, reducer, lobby5):
        state = ok(reducer.apply(lobby5, Action.start("p1")))

        assert isinstance(state.phase, Electing)
        assert sorted(state.turn_order) == ["p1", "p2", "p3", "p4", "p5"]
        assert state.president_id == state.turn_order[0]
        roles = [p.role for p in state.players]
        assert roles.count(Role.HITLER) == 1
        assert roles.count(Role.FASCIST) == 1
        assert state.cards_in_play() == 17

    def test_cannot_start_twice(self, reducer, game5):
        result = reducer.apply(game5, Action.start("p1"))
        assert result.error_code == RejectionCode.WRONG_PHASE

    def test_game_actions_rejected_in_lobby(self, reducer, lobby5):
        result = reducer.apply(lobby5, Action.choose_chancellor("p1", "p2"))
        assert result.error_code == RejectionCode.WRONG_PHASE

    def test_unknown_player_rejected(self, reducer, game5):
        result = reducer.apply(game5, Action.vote_chancellor("ghost", True))
        assert result.error_code == RejectionCode.PLAYER_NOT_FOUND


class TestElection:
    """Nomination and voting."""

    def test_nominate(self, reducer, game5):
        state = ok(reducer.apply(game5, Action.choose_chancellor("p1", "p2")))

        assert isinstance(state.phase, Voting)
        assert state.chancellor_id == "p2"
        # input state untouched
        assert isinstance(game5.phase, Electing)
        assert game5.chancellor_id is None

    @pytest.mark.parametrize("target", ["p1", "ghost"])
    def test_invalid_nominee(self, reducer, game5, target):
        result = reducer.apply(game5, Action.choose_chancellor("p1", target))
        assert result.error_code == RejectionCode.INVALID_TARGET

    def test_dead_nominee(self, reducer, game5):
        kill(game5, "p3")
        result = reducer.apply(game5, Action.choose_chancellor("p1", "p3"))
        assert result.error_code == RejectionCode.INVALID_TARGET

    def test_only_president_nominates(self, reducer, game5):
        result = reducer.apply(game5, Action.choose_chancellor("p2", "p3"))
        assert result.error_code == RejectionCode.NOT_AUTHORIZED

    def test_unanimous_yes_elects(self, reducer, game5):
        state = elect(reducer, game5, "p2")

        assert isinstance(state.phase, PresidentSelect)
        assert len(state.hand) == 3
        assert state.election_tracker == 0
        assert state.cards_in_play() == 17

    def test_ballot_stays_open_until_everyone_votes(self, reducer, game5):
        state = ok(reducer.apply(game5, Action.choose_chancellor("p1", "p2")))
        for pid in ("p1", "p2", "p3", "p4"):
            state = ok(reducer.apply(state, Action.vote_chancellor(pid, True)))
        assert isinstance(state.phase, Voting)
        assert state.get_player("p4").vote is True
        assert state.get_player("p5").vote is None

    def test_rejected_government_advances(self, reducer, game5):
        state = elect(reducer, game5, "p2", vote=False)

        assert isinstance(state.phase, Electing)
        assert state.election_tracker == 1
        assert state.president_id == "p2"
        assert state.chancellor_id is None
        assert state.last_president_id is None
        assert state.last_chancellor_id is None

    def test_dead_players_cannot_vote(self, reducer, game5):
        kill(game5, "p3")
        state = ok(reducer.apply(game5, Action.choose_chancellor("p1", "p2")))
        result = reducer.apply(state, Action.vote_chancellor("p3", True))
        assert result.error_code == RejectionCode.NOT_AUTHORIZED

    def test_tie_is_rejection(self, reducer, game5):
        kill(game5, "p3")
        state = ok(reducer.apply(game5, Action.choose_chancellor("p1", "p2")))
        for pid, vote in (("p1", True), ("p2", True), ("p4", False), ("p5", False)):
            state = ok(reducer.apply(state, Action.vote_chancellor(pid, vote)))
        assert isinstance(state.phase, Electing)
        assert state.election_tracker == 1

    def test_three_failures_force_top_policy(self, reducer, game5):
        """The third failed government enacts the top card and resets the tracker."""
        state = stack_deck(game5, [L])
        state = elect(reducer, state, "p2", vote=False)
        state = elect(reducer, state, "p3", vote=False)
        assert state.election_tracker == 2

        state = elect(reducer, state, "p4", vote=False)

        assert state.election_tracker == 0
        assert state.liberal_policies == 1
        assert state.fascist_policies == 0
        assert isinstance(state.phase, Electing)
        assert state.president_id == "p4"
        assert state.last_president_id is None
        assert state.cards_in_play() == 17


class TestLegislation:
    """President discards, chancellor enacts."""

    def test_enact(self, reducer, game5):
        state = stack_deck(game5, [L, F, F])
        state = elect(reducer, state, "p2")

        state = ok(reducer.apply(state, Action.pick_card("p1", F)))
        assert isinstance(state.phase, ChancellorSelect)
        assert sorted(c.value for c in state.remaining_hand()) == ["Fascist", "Liberal"]

        state = ok(reducer.apply(state, Action.pick_card("p2", L)))
        assert state.liberal_policies == 1
        assert state.hand == []
        assert len(state.deck.discard_pile) == 3
        assert state.deck.count == 14
        assert isinstance(state.phase, Electing)
        assert state.president_id == "p2"
        assert (state.last_president_id, state.last_chancellor_id) == ("p1", "p2")

    def test_president_must_discard_card_in_hand(self, reducer, game5):
        state = elect(reducer, stack_deck(game5, [F, F, F]), "p2")
        result = reducer.apply(state, Action.pick_card("p1", L))
        assert result.error_code == RejectionCode.INVALID_CHOICE

    def test_chancellor_waits_for_president(self, reducer, game5):
        state = elect(reducer, stack_deck(game5, [L, F, F]), "p2")
        result = reducer.apply(state, Action.pick_card("p2", L))
        assert result.error_code == RejectionCode.NOT_AUTHORIZED

    def test_chancellor_cannot_pick_discarded_color(self, reducer, game5):
        state = elect(reducer, stack_deck(game5, [L, F, F]), "p2")
        state = ok(reducer.apply(state, Action.pick_card("p1", L)))
        result = reducer.apply(state, Action.pick_card("p2", L))
        assert result.error_code == RejectionCode.INVALID_CHOICE

    def test_pick_outside_legislation(self, reducer, game5):
        result = reducer.apply(game5, Action.pick_card("p1", L))
        assert result.error_code == RejectionCode.WRONG_PHASE

    def test_reshuffle_after_enactment(self, reducer, game5):
        """A short draw pile is reshuffled with the discards after enactment."""
        game5.deck = Deck(draw_pile=[L, F, F, L], discard_pile=[L] * 4 + [F] * 9)
        state = elect(reducer, game5, "p2")
        assert state.deck.count == 1

        result = reducer.apply(ok(reducer.apply(state, Action.pick_card("p1", F))),
                               Action.pick_card("p2", L))
        state = ok(result)

        assert "The policy deck was reshuffled" in result.state_changes
        assert state.deck.count == 17
        assert state.deck.discard_pile == []
        assert state.cards_in_play() == 17

    def test_reshuffle_before_draw(self, reducer, game5):
        game5.deck = Deck(draw_pile=[L, F], discard_pile=[L] * 5 + [F] * 10)
        state = elect(reducer, game5, "p2")
        assert len(state.hand) == 3
        assert state.cards_in_play() == 17


class TestTermLimits:
    """The last elected government cannot be nominated."""

    def _after_government(self, reducer, game5):
        state = elect(reducer, stack_deck(game5, [L, F, F]), "p2")
        return legislate(reducer, state, L)

    def test_last_president_is_term_limited(self, reducer, game5):
        state = self._after_government(reducer, game5)
        result = reducer.apply(state, Action.choose_chancellor("p2", "p1"))
        assert result.error_code == RejectionCode.INVALID_TARGET

    def test_last_chancellor_is_term_limited(self, reducer, game5):
        state = self._after_government(reducer, game5)
        state = elect(reducer, state, "p3", vote=False)
        # a failed nomination leaves the memory alone
        assert (state.last_president_id, state.last_chancellor_id) == ("p1", "p2")

        result = reducer.apply(state, Action.choose_chancellor("p3", "p2"))
        assert result.error_code == RejectionCode.INVALID_TARGET
        assert reducer.apply(state, Action.choose_chancellor("p3", "p4")).success

    def test_waived_when_nobody_else_is_eligible(self, reducer, game5):
        kill(game5, "p3")
        kill(game5, "p4")
        game5.last_president_id = "p2"
        game5.last_chancellor_id = "p5"

        assert game5.term_limited_ids() == set()
        assert reducer.apply(game5, Action.choose_chancellor("p1", "p2")).success


class TestVeto:
    """Joint discard of the agenda once veto power is unlocked."""

    def _chancellor_select(self, reducer, state, top):
        state = elect(reducer, stack_deck(state, top), "p2")
        return ok(reducer.apply(state, Action.pick_card("p1", F)))

    def test_veto_needs_both(self, reducer, game5):
        game5.fascist_policies = 5
        state = self._chancellor_select(reducer, game5, [F, F, F])

        state = ok(reducer.apply(state, Action.veto("p2")))
        assert state.chancellor_veto
        assert isinstance(state.phase, ChancellorSelect)

        state = ok(reducer.apply(state, Action.veto("p1")))
        assert isinstance(state.phase, Electing)
        assert state.election_tracker == 1
        assert state.hand == []
        assert len(state.deck.discard_pile) == 3
        assert state.president_id == "p2"
        assert state.fascist_policies == 5
        assert state.cards_in_play() == 17

    def test_veto_locked(self, reducer, game5):
        game5.fascist_policies = 4
        state = self._chancellor_select(reducer, game5, [F, F, F])
        result = reducer.apply(state, Action.veto("p2"))
        assert result.error_code == RejectionCode.POWER_LOCKED

    def test_only_government_can_veto(self, reducer, game5):
        game5.fascist_policies = 5
        state = self._chancellor_select(reducer, game5, [F, F, F])
        result = reducer.apply(state, Action.veto("p3"))
        assert result.error_code == RejectionCode.NOT_AUTHORIZED

    def test_veto_outside_chancellor_select(self, reducer, game5):
        game5.fascist_policies = 5
        state = elect(reducer, game5, "p2")
        result = reducer.apply(state, Action.veto("p1"))
        assert result.error_code == RejectionCode.WRONG_PHASE

    def test_veto_can_force_enactment(self, reducer, game5):
        game5.fascist_policies = 5
        state = self._chancellor_select(reducer, game5, [F, F, F, L])
        state.election_tracker = 2

        state = ok(reducer.apply(state, Action.veto("p1")))
        state = ok(reducer.apply(state, Action.veto("p2")))

        assert state.election_tracker == 0
        assert state.liberal_policies == 1
        assert state.cards_in_play() == 17


class TestPowers:
    """Presidential powers."""

    @pytest.mark.parametrize("num_players, fascist, expected", [
        (5, 1, None),
        (5, 2, None),
        (5, 3, PowerKind.POLICY_PEEK),
        (6, 3, PowerKind.POLICY_PEEK),
        (5, 4, PowerKind.EXECUTION),
        (6, 5, PowerKind.EXECUTION),
        (7, 1, None),
        (7, 2, PowerKind.INVESTIGATE_LOYALTY),
        (8, 3, PowerKind.CALL_SPECIAL_ELECTION),
        (9, 1, PowerKind.INVESTIGATE_LOYALTY),
        (10, 2, PowerKind.INVESTIGATE_LOYALTY),
        (10, 3, PowerKind.CALL_SPECIAL_ELECTION),
        (10, 4, PowerKind.EXECUTION),
    ])
    def test_power_table(self, num_players, fascist, expected):
        assert power_for(num_players, fascist) is expected

    def test_policy_peek(self, reducer, game5):
        game5.fascist_policies = 2
        state = elect(reducer, stack_deck(game5, [F, F, F]), "p2")
        state = legislate(reducer, state, F)

        assert state.phase == PresidentialPower(kind=PowerKind.POLICY_PEEK)
        assert state.president_id == "p1"

        result = reducer.apply(state, Action.presidential_power("p2"))
        assert result.error_code == RejectionCode.NOT_AUTHORIZED

        state = ok(reducer.apply(state, Action.presidential_power("p1")))
        assert isinstance(state.phase, Electing)
        assert state.president_id == "p2"
        assert (state.last_president_id, state.last_chancellor_id) == ("p1", "p2")

    def test_power_outside_power_phase(self, reducer, game5):
        result = reducer.apply(game5, Action.presidential_power("p1", "p2"))
        assert result.error_code == RejectionCode.WRONG_PHASE

    def test_fourth_fascist_policy_grants_execution(self, reducer, game5):
        game5.fascist_policies = 3
        state = elect(reducer, stack_deck(game5, [F, F, F]), "p2")
        state = legislate(reducer, state, F)
        assert state.phase == PresidentialPower(kind=PowerKind.EXECUTION)

    def test_executing_hitler_ends_game(self, reducer, game5):
        game5.phase = PresidentialPower(kind=PowerKind.EXECUTION)
        state = ok(reducer.apply(game5, Action.presidential_power("p1", "p5")))

        assert state.phase == Ended(winner=Policy.LIBERAL)
        assert state.get_player("p5").is_dead
        assert state.liberal_policies == 0

    def test_execution(self, reducer, game5):
        game5.phase = PresidentialPower(kind=PowerKind.EXECUTION)
        state = ok(reducer.apply(game5, Action.presidential_power("p1", "p3")))

        assert state.get_player("p3").is_dead
        assert "p3" not in state.turn_order
        assert isinstance(state.phase, Electing)
        assert state.president_id == "p2"

    @pytest.mark.parametrize("target", ["p1", "ghost", None])
    def test_execution_needs_valid_target(self, reducer, game5, target):
        game5.phase = PresidentialPower(kind=PowerKind.EXECUTION)
        result = reducer.apply(game5, Action.presidential_power("p1", target))
        assert result.error_code == RejectionCode.INVALID_TARGET

    def test_cannot_execute_dead_player(self, reducer, game5):
        kill(game5, "p3")
        game5.phase = PresidentialPower(kind=PowerKind.EXECUTION)
        result = reducer.apply(game5, Action.presidential_power("p1", "p3"))
        assert result.error_code == RejectionCode.INVALID_TARGET

    def test_execution_before_pointer_keeps_succession(self, reducer, game5):
        """Removing an earlier seat does not skip the next living president."""
        game5.phase = PresidentialPower(kind=PowerKind.EXECUTION)
        game5.turn_pointer = 2
        game5.president_id = "p3"

        state = ok(reducer.apply(game5, Action.presidential_power("p3", "p1")))

        assert state.turn_order == ["p2", "p3", "p4", "p5"]
        assert state.president_id == "p4"

    def test_investigation(self, reducer, game7):
        game7.fascist_policies = 1
        state = elect(reducer, stack_deck(game7, [F, F, F]), "p2")
        state = legislate(reducer, state, F)
        assert state.phase == PresidentialPower(kind=PowerKind.INVESTIGATE_LOYALTY)

        state = ok(reducer.apply(state, Action.presidential_power("p1", "p7")))

        assert state.investigations == {"p1": ["p7"]}
        assert state.has_investigated("p1", "p7")
        assert isinstance(state.phase, Electing)
        assert state.president_id == "p2"

    def test_reinvestigation_is_allowed(self, reducer, game7):
        game7.investigations = {"p1": ["p7"]}
        game7.phase = PresidentialPower(kind=PowerKind.INVESTIGATE_LOYALTY)
        state = ok(reducer.apply(game7, Action.presidential_power("p1", "p7")))
        assert state.investigations == {"p1": ["p7"]}

    def test_special_election(self, reducer, game7):
        game7.phase = PresidentialPower(kind=PowerKind.CALL_SPECIAL_ELECTION)
        game7.chancellor_id = "p2"

        state = ok(reducer.apply(game7, Action.presidential_power("p1", "p4")))

        assert isinstance(state.phase, Electing)
        assert state.president_id == "p4"
        assert state.chancellor_id is None
        assert state.turn_pointer == 0
        assert (state.last_president_id, state.last_chancellor_id) == ("p1", "p2")

        # regular succession resumes after the seat that called the election
        state = elect(reducer, stack_deck(state, [L, L, F]), "p3")
        state = legislate(reducer, state, L)
        assert state.president_id == "p2"

    def test_special_election_on_dead_player(self, reducer, game7):
        kill(game7, "p4")
        game7.phase = PresidentialPower(kind=PowerKind.CALL_SPECIAL_ELECTION)
        result = reducer.apply(game7, Action.presidential_power("p1", "p4"))
        assert result.error_code == RejectionCode.INVALID_TARGET


class TestWinConditions:
    """Ended{winner} and what follows it."""

    def test_hitler_elected_after_three_fascist_policies(self, reducer, game5):
        game5.fascist_policies = 3
        state = elect(reducer, game5, "p5")
        assert state.phase == Ended(winner=Policy.FASCIST)
        assert state.cards_in_play() == 17

    def test_hitler_elected_early_is_just_a_chancellor(self, reducer, game5):
        game5.fascist_policies = 2
        state = elect(reducer, game5, "p5")
        assert isinstance(state.phase, PresidentSelect)

    def test_fifth_liberal_policy_wins(self, reducer, game5):
        game5.liberal_policies = 4
        state = elect(reducer, stack_deck(game5, [L, L, F]), "p2")
        state = legislate(reducer, state, L)
        assert state.phase == Ended(winner=Policy.LIBERAL)

    def test_sixth_fascist_policy_wins_without_power(self, reducer, game5):
        game5.fascist_policies = 5
        state = elect(reducer, stack_deck(game5, [F, F, F]), "p2")
        state = legislate(reducer, state, F)
        assert state.phase == Ended(winner=Policy.FASCIST)

    @pytest.mark.parametrize("action", [
        Action.choose_chancellor("p1", "p2"),
        Action.vote_chancellor("p2", True),
        Action.pick_card("p1", Policy.FASCIST),
        Action.veto("p1"),
        Action.presidential_power("p1", "p3"),
        Action.start("p1"),
        Action.add_player("p9", "Late"),
    ])
    def test_nothing_changes_after_the_end(self, reducer, game5, action):
        game5.fascist_policies = 3
        ended = elect(reducer, game5, "p5")

        result = reducer.apply(ended, action)

        assert not result.success
        assert result.error_code == RejectionCode.WRONG_PHASE
        assert ended.phase == Ended(winner=Policy.FASCIST)


class TestApplyAction:
    """Tests for the module-level convenience function."""

    def test_apply_action(self, lobby5):
        result = apply_action(lobby5, Action.start("p1"), rng=random.Random(0))
        assert result.success
        assert isinstance(result.new_state.phase, Electing)

    def test_seeded_reducers_deal_identically(self, reducer):
        lobby = make_lobby(reducer, 7)
        a = Reducer(rng=random.Random(42)).apply(lobby, Action.start("p1")).new_state
        b = Reducer(rng=random.Random(42)).apply(lobby, Action.start("p1")).new_state
        assert a.turn_order == b.turn_order
        assert [p.role for p in a.players] == [p.role for p in b.players]
