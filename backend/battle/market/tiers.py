"""
Market move tiers.

The absolute percent change of the turn's asset selects a damage multiplier
and a flat bonus. Boundaries are inclusive on the lower edge:

    |change| >= 10  ->  x2.0, +20
    |change| >= 5   ->  x1.5, +15
    |change| >= 2   ->  x1.2, +10
    otherwise       ->  x1.0, +5
"""

from battle.logic.state import GameEffect, MarketQuote, MarketSignal

MASSIVE_MOVE_PERCENT = 10.0
BIG_MOVE_PERCENT = 5.0
TREND_PERCENT = 2.0


def derive_game_effect(quote: MarketQuote) -> GameEffect:
    change = quote.change_percent
    abs_change = abs(change)
    direction = quote.direction.value.upper()

    if abs_change >= MASSIVE_MOVE_PERCENT:
        return GameEffect(
            multiplier=2.0,
            bonus_damage=20,
            description=f"MASSIVE {direction} MOVE! {change:.2f}% - Double damage!",
        )
    if abs_change >= BIG_MOVE_PERCENT:
        return GameEffect(
            multiplier=1.5,
            bonus_damage=15,
            description=f"BIG {direction} MOVE! {change:.2f}% - 1.5x damage!",
        )
    if abs_change >= TREND_PERCENT:
        return GameEffect(
            multiplier=1.2,
            bonus_damage=10,
            description=f"{direction} trend! {change:.2f}% - Bonus damage!",
        )
    return GameEffect(
        multiplier=1.0,
        bonus_damage=5,
        description=f"Stable market. {change:.2f}% - Small bonus.",
    )


def volatility_bonus(quote: MarketQuote) -> int:
    """Flat bonus by volatility band, reported alongside the current quote."""
    abs_change = abs(quote.change_percent)
    if abs_change >= 15:  # noqa: PLR2004
        return 30
    if abs_change >= MASSIVE_MOVE_PERCENT:
        return 25
    if abs_change >= BIG_MOVE_PERCENT:
        return 15
    if abs_change >= TREND_PERCENT:
        return 10
    return 5


def build_signal(quote: MarketQuote) -> MarketSignal:
    """Attach the tiered game effect to a raw quote."""
    return MarketSignal(
        symbol=quote.symbol,
        display_name=quote.display_name,
        direction=quote.direction,
        change_percent=quote.change_percent,
        price=quote.price,
        timestamp=quote.timestamp,
        game_effect=derive_game_effect(quote),
    )
