"""
String enum definitions for battle concepts.
"""

from enum import StrEnum


class CardType(StrEnum):
    """Category of a card; drives market multipliers and the AI policy."""

    ATTACK = "attack"
    DEFENSE = "defense"
    SPECIAL = "special"


class StatusEffectType(StrEnum):
    """Timed modifiers that can be attached to a combatant."""

    POISON = "poison"
    SHIELD = "shield"
    STRENGTH = "strength"
    WEAKNESS = "weakness"


class MarketDirection(StrEnum):
    UP = "up"
    DOWN = "down"


class GameStatus(StrEnum):
    PLAYING = "playing"
    FINISHED = "finished"


class Side(StrEnum):
    """The two seats of a battle. Also used as the combatant id and the winner value."""

    PLAYER = "player"
    OPPONENT = "opponent"


class InvalidTurnReason(StrEnum):
    """Why a turn request was rejected. Reported on the event channel only."""

    GAME_NOT_FOUND = "game_not_found"
    GAME_NOT_PLAYING = "game_not_playing"
    INVALID_CARD = "invalid_card"
