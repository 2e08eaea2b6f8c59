"""
Policy Deck - The 17-card policy stock.

The deck is two piles:
- draw_pile: ordered, top of the deck is index 0
- discard_pile: unordered until it is shuffled back in

Cards never leave the deck's universe. Cards drawn into a legislative
hand are tracked by GameState until they are discarded again, so
draw + discard + hand is always 17 (6 Liberal / 11 Fascist).
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
import random

from .errors import EngineInvariantError


class Policy(Enum):
    """Colour of a policy card. Also names a party and a winning team."""
    LIBERAL = "Liberal"
    FASCIST = "Fascist"


LIBERAL_CARDS = 6
FASCIST_CARDS = 11
DECK_SIZE = LIBERAL_CARDS + FASCIST_CARDS
HAND_SIZE = 3


def build_deck(rng: random.Random | None = None) -> list[Policy]:
    """Return a uniformly shuffled 17-card policy stock."""
    rng = rng or random.Random()
    cards = [Policy.LIBERAL] * LIBERAL_CARDS + [Policy.FASCIST] * FASCIST_CARDS
    rng.shuffle(cards)
    return cards


@dataclass
class Deck:
    """
    Draw pile plus discard pile.

    Mutates in place. The reducer only ever mutates the deck of a cloned
    GameState, so a rejected action never touches a live deck.
    """
    draw_pile: list[Policy] = field(default_factory=build_deck)
    discard_pile: list[Policy] = field(default_factory=list)

    @classmethod
    def fresh(cls, rng: random.Random | None = None) -> Deck:
        return cls(draw_pile=build_deck(rng))

    @property
    def count(self) -> int:
        """Cards left in the draw pile."""
        return len(self.draw_pile)

    @property
    def total(self) -> int:
        return self.count + len(self.discard_pile)

    def needs_reshuffle(self, n: int = HAND_SIZE) -> bool:
        return self.count < n

    def reshuffle(self, rng: random.Random) -> None:
        """Shuffle the discard pile back together with the remaining draw pile."""
        merged = self.draw_pile + self.discard_pile
        rng.shuffle(merged)
        self.draw_pile = merged
        self.discard_pile = []

    def draw(self, n: int, rng: random.Random) -> list[Policy]:
        """Remove and return the top n cards, reshuffling first if short."""
        if self.needs_reshuffle(n):
            self.reshuffle(rng)
        if self.count < n:
            raise EngineInvariantError(
                f"Cannot draw {n} cards: only {self.count} left after reshuffle"
            )
        drawn = self.draw_pile[:n]
        self.draw_pile = self.draw_pile[n:]
        return drawn

    def peek(self, n: int = HAND_SIZE) -> list[Policy]:
        """Top n cards without removing them."""
        return self.draw_pile[:n]

    def discard(self, cards: list[Policy]) -> None:
        self.discard_pile.extend(cards)

    def color_counts(self) -> dict[Policy, int]:
        """Per-colour tally of the draw pile (never its order)."""
        counts = Counter(self.draw_pile)
        return {color: counts.get(color, 0) for color in Policy}
