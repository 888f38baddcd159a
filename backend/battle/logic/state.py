"""
Battle state models.

Cards, effect templates, market signals and turn records are frozen; they are
created once and only ever referenced afterwards. Combatant and Game are the
mutable parts of a battle and are only changed by the turn orchestrator while
it holds the game's lock, on a working copy that is committed at the end of
the turn.

All models serialise to camelCase on the wire (``model_dump(by_alias=True)``)
and accept either spelling on input.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from battle.logic.enums import CardType, GameStatus, MarketDirection, Side, StatusEffectType

MAX_HP = 100


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenWireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class StatusEffectTemplate(_FrozenWireModel):
    """Effect a card applies to its player's opponent."""

    type: StatusEffectType
    value: int = Field(ge=0)
    duration: int = Field(ge=1)


class StatusEffect(_WireModel):
    """An active effect on a combatant. Removed as soon as duration reaches 0."""

    type: StatusEffectType
    value: int = Field(ge=0)
    duration: int = Field(ge=1)

    @classmethod
    def from_template(cls, template: StatusEffectTemplate) -> StatusEffect:
        return cls(type=template.type, value=template.value, duration=template.duration)


class Card(_FrozenWireModel):
    id: str
    name: str
    type: CardType
    damage: int | None = None
    armor: int | None = None
    status_effect: StatusEffectTemplate | None = None
    description: str


class Combatant(_WireModel):
    id: Side
    name: str
    hp: int = MAX_HP
    max_hp: int = MAX_HP
    armor: int = 0
    status_effects: list[StatusEffect] = Field(default_factory=list)

    def find_effect(self, effect_type: StatusEffectType) -> StatusEffect | None:
        """Return the first active effect of the given type, if any."""
        return next((effect for effect in self.status_effects if effect.type == effect_type), None)

    def reset(self) -> None:
        self.hp = self.max_hp
        self.armor = 0
        self.status_effects = []


class GameEffect(_FrozenWireModel):
    """How a market move changes this turn's damage."""

    multiplier: float
    bonus_damage: int
    description: str


class MarketQuote(_FrozenWireModel):
    """Raw price movement for one asset, as produced by a market provider."""

    symbol: str
    display_name: str
    price: float
    change_24h: float = 0.0
    change_percent: float
    direction: MarketDirection
    volume: float = 0.0
    timestamp: int  # epoch milliseconds


class MarketSignal(_FrozenWireModel):
    """The market input of one turn (``CryptoResult`` on the wire)."""

    symbol: str
    display_name: str
    direction: MarketDirection
    change_percent: float
    price: float
    timestamp: int
    game_effect: GameEffect


class TurnRecord(_FrozenWireModel):
    """Snapshot of one resolved turn. Damage fields are the gross damage directed at that side."""

    turn_number: int
    player_card: Card
    opponent_card: Card
    crypto_result: MarketSignal
    player_damage: int
    opponent_damage: int
    player_hp_after: int
    opponent_hp_after: int
    result: str


class Game(_WireModel):
    id: str
    player: Combatant
    opponent: Combatant
    current_turn: int = 1
    game_status: GameStatus = GameStatus.PLAYING
    winner: Side | None = None
    turn_history: list[TurnRecord] = Field(default_factory=list)
    available_cards: tuple[Card, ...]
    created_at: int  # epoch milliseconds

    @property
    def is_playing(self) -> bool:
        return self.game_status == GameStatus.PLAYING

    def find_card(self, card_id: str) -> Card | None:
        return next((card for card in self.available_cards if card.id == card_id), None)

    def snapshot(self) -> Game:
        """Deep copy detached from the stored instance."""
        return self.model_copy(deep=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
