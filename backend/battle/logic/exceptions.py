"""Typed domain exceptions for the battle engine.

Expected rejections (unknown game, finished game, unknown card) are not
exceptions: the engine returns None and reports the reason on the event
channel. These classes cover the failures that do propagate.
"""


class BattleError(Exception):
    """Base exception for battle engine failures."""


class GameIdAllocationError(BattleError):
    """No unused game id could be generated. Fatal to the create request only."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"could not allocate a unique game id after {attempts} attempts")


class MarketDataError(BattleError):
    """The market provider returned no usable quote.

    Raised inside battle.market and always recovered there or by the turn
    orchestrator's fallback; it never reaches the engine's callers.
    """

    def __init__(self, symbol: str, reason: str) -> None:
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"market data unavailable for {symbol}: {reason}")
