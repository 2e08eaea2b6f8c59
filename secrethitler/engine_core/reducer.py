"""
Reducer - Applies actions to game state.

The reducer is the single point of state mutation.
All state changes must go through apply_action().

Design principles:
- (state, action) -> ActionResult; the input state is never mutated
- Every check runs against the input state before anything changes
- Mutations happen on a clone, which becomes ActionResult.new_state
- Invariant violations raise EngineInvariantError and are not caught here
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import random

from .action import Action, ActionType, ActionResult, RejectionCode
from .deck import Policy, HAND_SIZE
from .errors import EngineInvariantError
from .roles import assign_roles
from .state import (
    GameState, PlayerState, Role, PowerKind,
    Lobby, Electing, Voting, PresidentSelect, ChancellorSelect,
    PresidentialPower, Ended,
    MIN_PLAYERS, MAX_PLAYERS,
    LIBERAL_POLICIES_TO_WIN, FASCIST_POLICIES_TO_WIN,
    HITLER_ELECTION_THRESHOLD, ELECTION_TRACKER_LIMIT,
)

logger = logging.getLogger(__name__)


def power_for(num_players: int, fascist_policies: int) -> PowerKind | None:
    """
    Presidential power unlocked by the given fascist policy on a table of num_players.

    Returns None when the policy grants nothing.
    """
    if fascist_policies in (4, 5):
        return PowerKind.EXECUTION
    if num_players <= 6:
        if fascist_policies == 3:
            return PowerKind.POLICY_PEEK
        return None
    if fascist_policies == 3:
        return PowerKind.CALL_SPECIAL_ELECTION
    if fascist_policies == 2:
        return PowerKind.INVESTIGATE_LOYALTY
    if fascist_policies == 1 and num_players >= 9:
        return PowerKind.INVESTIGATE_LOYALTY
    return None


@dataclass
class Reducer:
    """
    Reducer applies actions to game state.

    Holds only the random source used for shuffles; all game data is in GameState.
    """
    rng: random.Random = field(default_factory=random.Random)

    def apply(self, state: GameState, action: Action) -> ActionResult:
        """
        Apply an action to the game state.

        Returns ActionResult with new state or a rejection.
        """
        validation_error = self._validate_action(state, action)
        if validation_error:
            logger.debug(
                "[%s] rejected %s: %s",
                state.game_id, action.action_type.value, validation_error.error,
            )
            return validation_error

        handler = self._get_handler(action.action_type)
        result = handler(state, action)
        if not result.success:
            logger.debug(
                "[%s] rejected %s: %s",
                state.game_id, action.action_type.value, result.error,
            )
        return result

    def _validate_action(self, state: GameState, action: Action) -> ActionResult | None:
        """Checks shared by every action. Returns a failure or None."""
        if action.action_type == ActionType.ADD_PLAYER:
            return None

        if state.get_player(action.payload.player_id) is None:
            return ActionResult.failure(
                "You are not a player in this game!",
                RejectionCode.PLAYER_NOT_FOUND,
            )

        if state.is_over:
            return ActionResult.failure(
                "The game is over!",
                RejectionCode.WRONG_PHASE,
            )

        if isinstance(state.phase, Lobby) and action.action_type not in {
            ActionType.REMOVE_PLAYER,
            ActionType.START_GAME,
        }:
            return ActionResult.failure(
                "The game has not started yet!",
                RejectionCode.WRONG_PHASE,
            )

        return None

    def _get_handler(self, action_type: ActionType):
        """Get the handler function for an action type."""
        handlers = {
            ActionType.ADD_PLAYER: self._handle_add_player,
            ActionType.REMOVE_PLAYER: self._handle_remove_player,
            ActionType.START_GAME: self._handle_start,
            ActionType.CHOOSE_CHANCELLOR: self._handle_choose_chancellor,
            ActionType.VOTE_CHANCELLOR: self._handle_vote,
            ActionType.PICK_CARD: self._handle_pick_card,
            ActionType.VETO: self._handle_veto,
            ActionType.PRESIDENTIAL_POWER: self._handle_presidential_power,
        }
        return handlers[action_type]

    # =========================================================================
    # Roster
    # =========================================================================

    def _handle_add_player(self, state: GameState, action: Action) -> ActionResult:
        """Seat a new player in the lobby."""
        player_id = action.payload.player_id
        name = (action.payload.name or "").strip()

        if state.is_over:
            return ActionResult.failure("This game has already ended!", RejectionCode.WRONG_PHASE)
        if not isinstance(state.phase, Lobby):
            return ActionResult.failure(
                "This game has already started!", RejectionCode.GAME_IN_PROGRESS
            )
        if not player_id or state.get_player(player_id) is not None:
            return ActionResult.failure("Invalid player id!", RejectionCode.INVALID_TARGET)
        if not name:
            return ActionResult.failure(
                "Your nickname cannot be empty.", RejectionCode.INVALID_NICKNAME
            )
        if any(p.name.casefold() == name.casefold() for p in state.players):
            return ActionResult.failure(
                "The nickname you are using is already taken!", RejectionCode.NICKNAME_TAKEN
            )
        if state.num_players >= MAX_PLAYERS:
            return ActionResult.failure(
                f"This game is full! There can be at most {MAX_PLAYERS} players.",
                RejectionCode.SESSION_FULL,
            )

        new_state = state.clone()
        new_state.players.append(PlayerState(player_id=player_id, name=name))
        if new_state.host_id is None:
            new_state.host_id = player_id

        return ActionResult.success_with_state(new_state, changes=[f"{name} joined the game"])

    def _handle_remove_player(self, state: GameState, action: Action) -> ActionResult:
        """Remove a player from the lobby. Host authority passes to the next joiner."""
        if not isinstance(state.phase, Lobby):
            return ActionResult.failure(
                "Players cannot leave a game in progress.", RejectionCode.GAME_IN_PROGRESS
            )

        player_id = action.payload.player_id
        new_state = state.clone()
        player = new_state.get_player(player_id)
        new_state.players = [p for p in new_state.players if p.player_id != player_id]
        changes = [f"{player.name} left the game"]

        if new_state.host_id == player_id:
            new_state.host_id = new_state.players[0].player_id if new_state.players else None
            if new_state.host_id is not None:
                changes.append(f"{new_state.players[0].name} is now the host")

        return ActionResult.success_with_state(new_state, changes=changes)

    # =========================================================================
    # Game actions
    # =========================================================================

    def _handle_start(self, state: GameState, action: Action) -> ActionResult:
        """Deal roles and turn order, then open the first election."""
        player_id = action.payload.player_id

        if not isinstance(state.phase, Lobby):
            return ActionResult.failure("The game has already started!", RejectionCode.WRONG_PHASE)
        if player_id != state.host_id:
            return ActionResult.failure(
                "Only the host can start the game!", RejectionCode.NOT_AUTHORIZED
            )
        if state.num_players < MIN_PLAYERS:
            return ActionResult.failure(
                f"There are too few players! You need {MIN_PLAYERS} players to start a game.",
                RejectionCode.INVALID_PLAYER_COUNT,
            )
        if state.num_players > MAX_PLAYERS:
            return ActionResult.failure(
                f"There are too many players! There can be at most {MAX_PLAYERS} players.",
                RejectionCode.INVALID_PLAYER_COUNT,
            )

        assignment = assign_roles(state.num_players, self.rng)

        new_state = state.clone()
        for player, role in zip(new_state.players, assignment.roles):
            player.role = role
            player.vote = None
        new_state.turn_order = [new_state.players[seat].player_id for seat in assignment.turn_order]
        new_state.turn_pointer = 0
        new_state.president_id = new_state.turn_order[0]
        new_state.phase = Electing()

        logger.info("[%s] game started with %d players", state.game_id, state.num_players)
        president = new_state.get_player(new_state.president_id)
        return ActionResult.success_with_state(
            new_state,
            changes=["The game has started", f"{president.name} is the first president"],
        )

    def _handle_choose_chancellor(self, state: GameState, action: Action) -> ActionResult:
        """President nominates a chancellor candidate."""
        player_id = action.payload.player_id
        target_id = action.payload.target_player_id

        if not isinstance(state.phase, Electing):
            return ActionResult.failure(
                "A chancellor cannot be nominated right now.", RejectionCode.WRONG_PHASE
            )
        if player_id != state.president_id:
            return ActionResult.failure(
                "Only the president can nominate a chancellor!", RejectionCode.NOT_AUTHORIZED
            )
        target = state.get_player(target_id)
        if target is None:
            return ActionResult.failure("That player does not exist!", RejectionCode.INVALID_TARGET)
        if target_id == player_id:
            return ActionResult.failure(
                "You cannot nominate yourself!", RejectionCode.INVALID_TARGET
            )
        if target.is_dead:
            return ActionResult.failure(
                "You cannot nominate a dead player!", RejectionCode.INVALID_TARGET
            )
        if target_id in state.term_limited_ids():
            return ActionResult.failure(
                f"{target.name} is term-limited and cannot be chancellor!",
                RejectionCode.INVALID_TARGET,
            )

        new_state = state.clone()
        new_state.chancellor_id = target_id
        new_state.phase = Voting()
        for p in new_state.players:
            p.vote = None

        president = state.get_player(player_id)
        return ActionResult.success_with_state(
            new_state,
            changes=[f"{president.name} nominated {target.name} for chancellor"],
        )

    def _handle_vote(self, state: GameState, action: Action) -> ActionResult:
        """Record a ballot; tally once every living player has voted."""
        player_id = action.payload.player_id
        vote = action.payload.vote

        if not isinstance(state.phase, Voting):
            return ActionResult.failure("There is no vote right now.", RejectionCode.WRONG_PHASE)
        if state.get_player(player_id).is_dead:
            return ActionResult.failure("Dead players cannot vote!", RejectionCode.NOT_AUTHORIZED)
        if vote is None:
            return ActionResult.failure("A vote must be yes or no.", RejectionCode.INVALID_CHOICE)

        new_state = state.clone()
        new_state.get_player(player_id).vote = vote
        changes: list[str] = []

        alive = new_state.alive_players
        if all(p.vote is not None for p in alive):
            self._tally_votes(new_state, changes)

        return ActionResult.success_with_state(new_state, changes=changes)

    def _tally_votes(self, state: GameState, changes: list[str]) -> None:
        alive = state.alive_players
        yes = sum(1 for p in alive if p.vote)
        no = len(alive) - yes
        president = state.get_player(state.president_id)
        chancellor = state.get_player(state.chancellor_id)

        if yes > no:
            changes.append(
                f"The government of {president.name} and {chancellor.name} "
                f"was elected ({yes} yes, {no} no)"
            )
            if (
                chancellor.role is Role.HITLER
                and state.fascist_policies >= HITLER_ELECTION_THRESHOLD
            ):
                changes.append(f"{chancellor.name} is Hitler and was elected chancellor!")
                self._end_game(state, Policy.FASCIST, changes)
                return
            state.election_tracker = 0
            state.hand = state.deck.draw(HAND_SIZE, self.rng)
            state.president_discard = None
            state.president_veto = False
            state.chancellor_veto = False
            state.phase = PresidentSelect()
        else:
            changes.append(
                f"The government of {president.name} and {chancellor.name} "
                f"was rejected ({yes} yes, {no} no)"
            )
            state.chancellor_id = None
            self._fail_government(state, changes)

    def _handle_pick_card(self, state: GameState, action: Action) -> ActionResult:
        """President discards one of three, or chancellor enacts one of two."""
        player_id = action.payload.player_id
        color = action.payload.color

        if isinstance(state.phase, PresidentSelect):
            if player_id != state.president_id:
                return ActionResult.failure(
                    "Only the president can discard a policy now!", RejectionCode.NOT_AUTHORIZED
                )
            if color is None or color not in state.hand:
                return ActionResult.failure(
                    "That policy is not in your hand!", RejectionCode.INVALID_CHOICE
                )

            new_state = state.clone()
            new_state.president_discard = new_state.hand.index(color)
            new_state.president_veto = False
            new_state.chancellor_veto = False
            new_state.phase = ChancellorSelect()
            return ActionResult.success_with_state(
                new_state,
                changes=["The president passed two policies to the chancellor"],
            )

        if isinstance(state.phase, ChancellorSelect):
            if player_id != state.chancellor_id:
                return ActionResult.failure(
                    "Only the chancellor can enact a policy now!", RejectionCode.NOT_AUTHORIZED
                )
            if color is None or color not in state.remaining_hand():
                return ActionResult.failure(
                    "That policy is not in your hand!", RejectionCode.INVALID_CHOICE
                )

            new_state = state.clone()
            leftovers = new_state.remaining_hand()
            leftovers.remove(color)
            new_state.deck.discard([new_state.hand[new_state.president_discard]] + leftovers)
            new_state.hand = []
            new_state.president_discard = None
            changes: list[str] = []
            self._enact_policy(new_state, color, changes)
            return ActionResult.success_with_state(new_state, changes=changes)

        return ActionResult.failure("There are no policies to pick right now.", RejectionCode.WRONG_PHASE)

    def _handle_veto(self, state: GameState, action: Action) -> ActionResult:
        """Record veto consent; both halves of the government discard the agenda."""
        player_id = action.payload.player_id

        if not isinstance(state.phase, ChancellorSelect):
            return ActionResult.failure(
                "A veto can only be called while the chancellor is choosing.",
                RejectionCode.WRONG_PHASE,
            )
        if not state.veto_unlocked:
            return ActionResult.failure(
                "Veto power has not been unlocked yet!", RejectionCode.POWER_LOCKED
            )
        if player_id not in (state.president_id, state.chancellor_id):
            return ActionResult.failure(
                "Only the president or chancellor can veto!", RejectionCode.NOT_AUTHORIZED
            )

        new_state = state.clone()
        if player_id == new_state.president_id:
            new_state.president_veto = True
        else:
            new_state.chancellor_veto = True
        changes = [f"{new_state.get_player(player_id).name} agreed to a veto"]

        if new_state.president_veto and new_state.chancellor_veto:
            changes.append("The agenda was vetoed")
            new_state.deck.discard(new_state.hand)
            new_state.hand = []
            new_state.president_discard = None
            self._fail_government(new_state, changes)

        return ActionResult.success_with_state(new_state, changes=changes)

    def _handle_presidential_power(self, state: GameState, action: Action) -> ActionResult:
        """Resolve the pending presidential power."""
        player_id = action.payload.player_id
        target_id = action.payload.target_player_id

        if not isinstance(state.phase, PresidentialPower):
            return ActionResult.failure(
                "There is no presidential power to use.", RejectionCode.WRONG_PHASE
            )
        if player_id != state.president_id:
            return ActionResult.failure(
                "Only the president can use this power!", RejectionCode.NOT_AUTHORIZED
            )

        kind = state.phase.kind
        target = state.get_player(target_id)
        if kind.needs_target:
            if target is None:
                return ActionResult.failure(
                    "You must choose a player!", RejectionCode.INVALID_TARGET
                )
            if target_id == player_id:
                return ActionResult.failure(
                    "You cannot target yourself!", RejectionCode.INVALID_TARGET
                )
            if kind is not PowerKind.INVESTIGATE_LOYALTY and target.is_dead:
                return ActionResult.failure(
                    f"{target.name} is already dead!", RejectionCode.INVALID_TARGET
                )

        new_state = state.clone()
        president = new_state.get_player(player_id)
        changes: list[str] = []

        if kind is PowerKind.INVESTIGATE_LOYALTY:
            investigated = new_state.investigations.setdefault(player_id, [])
            if target_id not in investigated:
                investigated.append(target_id)
            changes.append(f"{president.name} investigated {target.name}")
            self._advance_presidency(new_state)

        elif kind is PowerKind.CALL_SPECIAL_ELECTION:
            changes.append(f"{president.name} called a special election: {target.name} is president")
            self._record_government(new_state)
            new_state.chancellor_id = None
            new_state.president_id = target_id
            new_state.phase = Electing()

        elif kind is PowerKind.EXECUTION:
            victim = new_state.get_player(target_id)
            victim.is_dead = True
            self._remove_from_turn_order(new_state, target_id)
            changes.append(f"{president.name} executed {victim.name}")
            if victim.role is Role.HITLER:
                changes.append(f"{victim.name} was Hitler!")
                self._end_game(new_state, Policy.LIBERAL, changes)
            else:
                self._advance_presidency(new_state)

        elif kind is PowerKind.POLICY_PEEK:
            changes.append(f"{president.name} looked at the top three policies")
            self._advance_presidency(new_state)

        else:
            raise EngineInvariantError(f"Unhandled presidential power {kind}")

        return ActionResult.success_with_state(new_state, changes=changes)

    # =========================================================================
    # Shared transitions (operate in place on an already cloned state)
    # =========================================================================

    def _fail_government(self, state: GameState, changes: list[str]) -> None:
        """Advance the election tracker; the third failure enacts the top policy."""
        state.election_tracker += 1
        if state.election_tracker >= ELECTION_TRACKER_LIMIT:
            state.election_tracker = 0
            card = state.deck.draw(1, self.rng)[0]
            changes.append("Three governments failed: the top policy is enacted")
            self._enact_policy(state, card, changes)
        else:
            changes.append(f"The election tracker is at {state.election_tracker}")
            self._advance_presidency(state)

    def _enact_policy(self, state: GameState, card: Policy, changes: list[str]) -> None:
        """
        Enact a policy and choose the next phase.

        The card itself is recycled into the discard pile; the board is the counters.
        """
        state.deck.discard([card])
        if state.deck.needs_reshuffle(HAND_SIZE):
            state.deck.reshuffle(self.rng)
            changes.append("The policy deck was reshuffled")

        if card is Policy.LIBERAL:
            state.liberal_policies += 1
        else:
            state.fascist_policies += 1
        changes.append(f"A {card.value} policy was enacted")

        if state.liberal_policies >= LIBERAL_POLICIES_TO_WIN:
            self._end_game(state, Policy.LIBERAL, changes)
            return
        if state.fascist_policies >= FASCIST_POLICIES_TO_WIN:
            self._end_game(state, Policy.FASCIST, changes)
            return

        if card is Policy.FASCIST:
            power = power_for(state.num_players, state.fascist_policies)
            if power is not None:
                state.phase = PresidentialPower(kind=power)
                changes.append(f"The president has been granted a power: {power.value}")
                return

        self._advance_presidency(state)

    def _record_government(self, state: GameState) -> None:
        """Remember a seated government for term limits."""
        if state.chancellor_id is not None:
            state.last_president_id = state.president_id
            state.last_chancellor_id = state.chancellor_id

    def _advance_presidency(self, state: GameState) -> None:
        """Pass the presidency to the next seat in turn order."""
        self._record_government(state)
        state.chancellor_id = None
        state.turn_pointer = (state.turn_pointer + 1) % len(state.turn_order)
        state.president_id = state.turn_order[state.turn_pointer]
        state.hand = []
        state.president_discard = None
        state.president_veto = False
        state.chancellor_veto = False
        state.phase = Electing()

    def _remove_from_turn_order(self, state: GameState, player_id: str) -> None:
        """Drop a dead player, keeping the pointer on the same living seat."""
        index = state.turn_order.index(player_id)
        state.turn_order.pop(index)
        if index <= state.turn_pointer:
            state.turn_pointer -= 1

    def _end_game(self, state: GameState, winner: Policy, changes: list[str]) -> None:
        state.phase = Ended(winner=winner)
        if state.hand:
            state.deck.discard(state.hand)
        state.hand = []
        state.president_discard = None
        changes.append(f"The {winner.value}s win!")
        logger.info("[%s] game ended: %s win", state.game_id, winner.value)


def apply_action(state: GameState, action: Action, rng: random.Random | None = None) -> ActionResult:
    """
    Convenience function to apply an action.

    Creates a Reducer and applies the action.
    """
    reducer = Reducer(rng=rng) if rng is not None else Reducer()
    return reducer.apply(state, action)
