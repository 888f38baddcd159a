"""
AI opponent card selection.

Reactive strategy: when the human plays an attack card and the catalog holds
at least one defense card, defend 70% of the time with a uniformly chosen
defense card. In every other case pick uniformly from the whole catalog.
No lookahead.
"""

import random
from collections.abc import Sequence
from enum import Enum

from battle.logic.enums import CardType
from battle.logic.state import Card

DEFEND_PROBABILITY = 0.7


class AIPlayerStrategy(Enum):
    """Available AI player strategies."""

    REACTIVE = "reactive"


class AIPlayer:
    """
    AI opponent with an injectable random source.

    Pass a seeded random.Random to make choices reproducible in tests.
    """

    def __init__(
        self,
        strategy: AIPlayerStrategy = AIPlayerStrategy.REACTIVE,
        rng: random.Random | None = None,
    ) -> None:
        self.strategy = strategy
        self._rng = rng or random.Random()  # noqa: S311

    def choose_card(self, catalog: Sequence[Card], player_card: Card) -> Card:
        """Pick the opponent's card in response to the human's card."""
        if not catalog:
            raise ValueError("cannot choose a card from an empty catalog")

        if player_card.type == CardType.ATTACK:
            defense_cards = [card for card in catalog if card.type == CardType.DEFENSE]
            if defense_cards and self._rng.random() < DEFEND_PROBABILITY:
                return self._rng.choice(defense_cards)

        return self._rng.choice(list(catalog))
