"""
Static card catalog.

Every game gets the same six cards. A played card is a reference into this
catalog; cards are frozen and never mutated.
"""

from battle.logic.enums import CardType, StatusEffectType
from battle.logic.state import Card, StatusEffectTemplate

FIRE_STRIKE = Card(
    id="fire-strike",
    name="Fire Strike",
    type=CardType.ATTACK,
    damage=25,
    description="Deal 25 damage. Gets +10 damage if crypto goes up.",
)

ICE_SHARD = Card(
    id="ice-shard",
    name="Ice Shard",
    type=CardType.ATTACK,
    damage=20,
    status_effect=StatusEffectTemplate(type=StatusEffectType.WEAKNESS, value=5, duration=2),
    description="Deal 20 damage and apply weakness (-5 damage) for 2 turns.",
)

SHIELD_WALL = Card(
    id="shield-wall",
    name="Shield Wall",
    type=CardType.DEFENSE,
    armor=15,
    description="Gain 15 armor to block incoming damage.",
)

POISON_DART = Card(
    id="poison-dart",
    name="Poison Dart",
    type=CardType.SPECIAL,
    damage=10,
    status_effect=StatusEffectTemplate(type=StatusEffectType.POISON, value=8, duration=3),
    description="Deal 10 damage and poison for 8 damage per turn for 3 turns.",
)

BERSERKER_RAGE = Card(
    id="berserker-rage",
    name="Berserker Rage",
    type=CardType.SPECIAL,
    damage=15,
    status_effect=StatusEffectTemplate(type=StatusEffectType.STRENGTH, value=10, duration=2),
    description="Deal 15 damage and gain +10 attack damage for 2 turns.",
)

HEALING_POTION = Card(
    id="healing-potion",
    name="Healing Potion",
    type=CardType.DEFENSE,
    armor=5,
    description="Gain 5 armor and remove all negative status effects.",
)

CARD_CATALOG: tuple[Card, ...] = (
    FIRE_STRIKE,
    ICE_SHARD,
    SHIELD_WALL,
    POISON_DART,
    BERSERKER_RAGE,
    HEALING_POTION,
)

CARD_IDS: frozenset[str] = frozenset(card.id for card in CARD_CATALOG)
