"""
Role Assignment - One-shot shuffle of hidden roles and turn order.

Two independent uniform permutations are produced: one deals roles to
seats, the other orders the seats for presidential succession. The
caller installs both into the game in one step.
"""

from __future__ import annotations
from dataclasses import dataclass
import random

from .state import Role, MIN_PLAYERS, MAX_PLAYERS


# player count -> fascists (not counting Hitler)
FASCIST_COUNT = {5: 1, 6: 1, 7: 2, 8: 2, 9: 3, 10: 3}


@dataclass(frozen=True)
class RoleAssignment:
    """roles[seat] is that seat's role; turn_order lists seats in succession order."""
    roles: tuple[Role, ...]
    turn_order: tuple[int, ...]


def fascist_count(num_players: int) -> int:
    if num_players not in FASCIST_COUNT:
        raise ValueError(
            f"Secret Hitler needs {MIN_PLAYERS}-{MAX_PLAYERS} players, got {num_players}"
        )
    return FASCIST_COUNT[num_players]


def assign_roles(num_players: int, rng: random.Random | None = None) -> RoleAssignment:
    """
    Deal roles for num_players seats.

    Exactly one Hitler, FASCIST_COUNT[n] fascists, the rest liberals.
    """
    rng = rng or random.Random()
    fascists = fascist_count(num_players)
    liberals = num_players - fascists - 1

    roles = [Role.LIBERAL] * liberals + [Role.FASCIST] * fascists + [Role.HITLER]
    rng.shuffle(roles)

    turn_order = list(range(num_players))
    rng.shuffle(turn_order)

    return RoleAssignment(roles=tuple(roles), turn_order=tuple(turn_order))
