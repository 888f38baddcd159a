"""Builders and test doubles shared by the battle tests."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from battle.logic.enums import MarketDirection, Side
from battle.logic.state import Combatant, GameEffect, MarketQuote, MarketSignal, StatusEffect

if TYPE_CHECKING:
    from collections.abc import Sequence

    from battle.logic.enums import StatusEffectType
    from battle.logic.state import Card


def make_signal(
    *,
    direction: MarketDirection = MarketDirection.UP,
    change_percent: float = 1.0,
    multiplier: float = 1.0,
    bonus_damage: int = 5,
    description: str = "Stable market. 1.00% - Small bonus.",
) -> MarketSignal:
    """A market signal with an explicit game effect (no tier derivation)."""
    return MarketSignal(
        symbol="BTC",
        display_name="Bitcoin",
        direction=direction,
        change_percent=change_percent,
        price=45000.0,
        timestamp=1_700_000_000_000,
        game_effect=GameEffect(multiplier=multiplier, bonus_damage=bonus_damage, description=description),
    )


def make_quote(change_percent: float, symbol: str = "ETH") -> MarketQuote:
    return MarketQuote(
        symbol=symbol,
        display_name=symbol.title(),
        price=2500.0,
        change_percent=change_percent,
        direction=MarketDirection.UP if change_percent >= 0 else MarketDirection.DOWN,
        timestamp=1_700_000_000_000,
    )


def create_combatant(
    side: Side = Side.PLAYER,
    *,
    hp: int = 100,
    armor: int = 0,
    effects: Sequence[tuple[StatusEffectType, int, int]] = (),
) -> Combatant:
    """Combatant with (type, value, duration) effects attached in order."""
    return Combatant(
        id=side,
        name="Tester" if side == Side.PLAYER else "AI Opponent",
        hp=hp,
        armor=armor,
        status_effects=[StatusEffect(type=t, value=v, duration=d) for t, v, d in effects],
    )


class FakeClock:
    """Manually advanced clock, usable wherever a time.time-style callable is expected."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedSignalSource:
    """Signal source returning queued signals, then repeating the last one."""

    def __init__(self, *signals: MarketSignal) -> None:
        self._signals = list(signals) or [make_signal()]
        self.calls = 0

    async def next_signal(self) -> MarketSignal:
        self.calls += 1
        if len(self._signals) > 1:
            return self._signals.pop(0)
        return self._signals[0]


class ScriptedAIPlayer:
    """AI stand-in that plays the given cards in order, then repeats the last one."""

    def __init__(self, *cards: Card) -> None:
        self._cards = list(cards)

    def choose_card(self, catalog: Sequence[Card], player_card: Card) -> Card:  # noqa: ARG002
        if len(self._cards) > 1:
            return self._cards.pop(0)
        return self._cards[0]


class ExplodingAIPlayer:
    def choose_card(self, catalog: Sequence[Card], player_card: Card) -> Card:
        raise RuntimeError("ai exploded")


class StaticMarketProvider:
    """Provider that always returns the same quote."""

    def __init__(self, quote: MarketQuote) -> None:
        self.quote = quote
        self.calls = 0

    async def fetch_quote(self) -> MarketQuote:
        self.calls += 1
        return self.quote


class FailingMarketProvider:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ConnectionError("exchange unreachable")

    async def fetch_quote(self) -> MarketQuote:
        raise self.error


class SlowMarketProvider:
    def __init__(self, delay: float, quote: MarketQuote) -> None:
        self.delay = delay
        self.quote = quote

    async def fetch_quote(self) -> MarketQuote:
        await asyncio.sleep(self.delay)
        return self.quote
