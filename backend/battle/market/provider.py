"""
Market data for the battle engine.

Two layers:

- MarketProvider implementations fetch a raw MarketQuote for a randomly chosen
  asset. BinanceMarketProvider reads the public 24h ticker, caches each pair
  for a short time and substitutes a synthetic quote when the exchange is
  unreachable, slow or returns garbage.
- MarketSignalSource is what the turn orchestrator consumes. It makes a single
  bounded call to a provider and falls back to a locally generated signal if
  that call fails for any reason, so a turn never observes a provider error.

Neither layer retries.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from http import HTTPStatus
from typing import TYPE_CHECKING, Protocol

import httpx
import structlog

from battle.logic.enums import MarketDirection
from battle.logic.exceptions import MarketDataError
from battle.logic.state import GameEffect, MarketQuote, MarketSignal
from battle.market.tiers import build_signal

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger()

DEFAULT_TICKER_URL = "https://api.binance.com/api/v3/ticker/24hr"
DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_CACHE_SECONDS = 30.0

# Synthetic moves stay within +/-5%, a realistic daily range.
SYNTHETIC_SWING_PERCENT = 5.0

# The per-turn deadline outlasts the provider's own request timeout, so a hung
# exchange still yields the provider's cached per-pair fallback.
SIGNAL_TIMEOUT_MARGIN_SECONDS = 1.0


@dataclass(frozen=True)
class CryptoPair:
    symbol: str
    display_name: str
    exchange_symbol: str
    base_price: float

    def to_wire(self) -> dict[str, str]:
        return {"symbol": self.symbol, "displayName": self.display_name, "binanceSymbol": self.exchange_symbol}


CRYPTO_PAIRS: tuple[CryptoPair, ...] = (
    CryptoPair("BTC", "Bitcoin", "BTCUSDT", 45000.0),
    CryptoPair("ETH", "Ethereum", "ETHUSDT", 2500.0),
    CryptoPair("BNB", "Binance Coin", "BNBUSDT", 300.0),
    CryptoPair("ADA", "Cardano", "ADAUSDT", 0.5),
    CryptoPair("SOL", "Solana", "SOLUSDT", 100.0),
    CryptoPair("MATIC", "Polygon", "MATICUSDT", 0.8),
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _swing(rng: random.Random) -> float:
    return (rng.random() * 2 - 1) * SYNTHETIC_SWING_PERCENT


def synthetic_quote(pair: CryptoPair, rng: random.Random) -> MarketQuote:
    """Generate a plausible quote around the pair's base price."""
    change_percent = _swing(rng)
    price = pair.base_price * (1 + change_percent / 100)
    return MarketQuote(
        symbol=pair.symbol,
        display_name=pair.display_name,
        price=round(price, 2),
        change_24h=round(pair.base_price * change_percent / 100, 2),
        change_percent=round(change_percent, 2),
        direction=MarketDirection.UP if change_percent >= 0 else MarketDirection.DOWN,
        volume=float(rng.randrange(100_000, 1_100_000)),
        timestamp=_now_ms(),
    )


def fallback_signal(rng: random.Random) -> MarketSignal:
    """Signal used when no provider answer is available: BTC, flat x1.0 / +5 effect."""
    change_percent = _swing(rng)
    direction = MarketDirection.UP if change_percent >= 0 else MarketDirection.DOWN
    return MarketSignal(
        symbol="BTC",
        display_name="Bitcoin",
        direction=direction,
        change_percent=change_percent,
        price=45000.0,
        timestamp=_now_ms(),
        game_effect=GameEffect(
            multiplier=1.0,
            bonus_damage=5,
            description=f"Market {direction.value} {change_percent:.2f}%",
        ),
    )


class MarketProvider(Protocol):
    """Source of raw price movements."""

    async def fetch_quote(self) -> MarketQuote: ...


def parse_ticker(pair: CryptoPair, payload: object) -> MarketQuote:
    """Convert a 24h ticker payload into a MarketQuote.

    Raises MarketDataError when the payload is missing fields or not numeric.
    """
    if not isinstance(payload, dict):
        raise MarketDataError(pair.symbol, "ticker payload is not an object")
    try:
        change_percent = float(payload["priceChangePercent"])
        return MarketQuote(
            symbol=pair.symbol,
            display_name=pair.display_name,
            price=float(payload["lastPrice"]),
            change_24h=float(payload["priceChange"]),
            change_percent=change_percent,
            direction=MarketDirection.UP if change_percent >= 0 else MarketDirection.DOWN,
            volume=float(payload["volume"]),
            timestamp=_now_ms(),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MarketDataError(pair.symbol, f"malformed ticker payload: {e}") from e


class BinanceMarketProvider:
    """Live quotes from the exchange's public 24h ticker endpoint.

    Quotes (live or synthetic) are cached per pair for cache_seconds, so
    consecutive turns within that window see the same move for an asset.
    """

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_TICKER_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        cache_seconds: float = DEFAULT_CACHE_SECONDS,
        client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        pairs: tuple[CryptoPair, ...] = CRYPTO_PAIRS,
    ) -> None:
        self._api_url = api_url
        self._timeout_seconds = timeout_seconds
        self._cache_seconds = cache_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._rng = rng or random.Random()  # noqa: S311
        self._clock = clock
        self._pairs = pairs
        self._cache: dict[str, tuple[MarketQuote, float]] = {}  # exchange_symbol -> (quote, expiry)

    @property
    def pairs(self) -> tuple[CryptoPair, ...]:
        return self._pairs

    async def fetch_quote(self) -> MarketQuote:
        """Quote for a uniformly chosen pair."""
        return await self.get_quote(self._rng.choice(self._pairs))

    async def get_quote(self, pair: CryptoPair) -> MarketQuote:
        cached = self._cache.get(pair.exchange_symbol)
        if cached is not None and cached[1] > self._clock():
            return cached[0]

        try:
            quote = await self._request_quote(pair)
        except MarketDataError as e:
            logger.info("market data unavailable, using synthetic quote", symbol=pair.symbol, reason=e.reason)
            quote = synthetic_quote(pair, self._rng)

        self._cache[pair.exchange_symbol] = (quote, self._clock() + self._cache_seconds)
        return quote

    async def _request_quote(self, pair: CryptoPair) -> MarketQuote:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                response = await self._client.get(self._api_url, params={"symbol": pair.exchange_symbol})
        except TimeoutError as e:
            raise MarketDataError(pair.symbol, f"timed out after {self._timeout_seconds}s") from e
        except httpx.HTTPError as e:
            raise MarketDataError(pair.symbol, f"request failed: {e}") from e

        if response.status_code != HTTPStatus.OK:
            raise MarketDataError(pair.symbol, f"status {response.status_code}")
        try:
            payload = response.json()
        except ValueError as e:
            raise MarketDataError(pair.symbol, "response is not JSON") from e
        return parse_ticker(pair, payload)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def signal_timeout_for(provider_timeout_seconds: float) -> float:
    """Deadline for one turn's market fetch when the provider times out after provider_timeout_seconds."""
    return provider_timeout_seconds + SIGNAL_TIMEOUT_MARGIN_SECONDS


class MarketSignalSource:
    """Per-turn market signal with a bounded wait and a local fallback."""

    def __init__(
        self,
        provider: MarketProvider,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        rng: random.Random | None = None,
    ) -> None:
        self._provider = provider
        self._timeout_seconds = timeout_seconds
        self._rng = rng or random.Random()  # noqa: S311

    @property
    def provider(self) -> MarketProvider:
        return self._provider

    async def next_signal(self) -> MarketSignal:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                quote = await self._provider.fetch_quote()
        except Exception as e:  # any provider failure degrades to the local signal
            logger.warning("market provider failed, using fallback signal", error=repr(e))
            return fallback_signal(self._rng)
        return build_signal(quote)
