"""In-memory game store with a read-through snapshot cache and periodic eviction.

The store owns three maps keyed by game id:

- _games: the authoritative Game objects.
- _cache: short-lived snapshots served by get(); refreshed on every write.
- _locks: one asyncio.Lock per game. Every mutation of a stored game
  (a turn, a restart, eviction) happens while holding that game's lock.

Everything handed out by the store is a deep copy, so callers can never
mutate stored state outside the lock.

Call start_evictor() on app startup and stop_evictor() on shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import secrets
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from battle.logic.cards import CARD_CATALOG
from battle.logic.enums import GameStatus, Side
from battle.logic.exceptions import GameIdAllocationError
from battle.logic.state import Combatant, Game

if TYPE_CHECKING:
    from collections.abc import Callable

    from battle.logic.state import Card

logger = structlog.get_logger()

DEFAULT_CACHE_TTL_SECONDS = 30
DEFAULT_CACHE_MAX_AGE_SECONDS = 300  # 5 minutes
DEFAULT_GAME_MAX_AGE_SECONDS = 86400  # 24 hours
DEFAULT_EVICTION_INTERVAL_SECONDS = 60
OPPONENT_NAME = "AI Opponent"

_ID_ALLOCATION_ATTEMPTS = 5
_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(length))


def generate_game_id(now_ms: int) -> str:
    """Time component followed by two independent random components (lowercase base36)."""
    return f"{_to_base36(now_ms)}{_random_base36(13)}{_random_base36(6)}"


@dataclass
class _CacheEntry:
    game: Game
    cached_at: float


@dataclass(frozen=True)
class EvictionReport:
    games_removed: int
    cache_entries_removed: int


class GameStore:
    """Authoritative in-memory mapping from game id to Game."""

    def __init__(
        self,
        *,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        cache_max_age_seconds: float = DEFAULT_CACHE_MAX_AGE_SECONDS,
        game_max_age_seconds: float = DEFAULT_GAME_MAX_AGE_SECONDS,
        eviction_interval_seconds: float = DEFAULT_EVICTION_INTERVAL_SECONDS,
        catalog: tuple[Card, ...] = CARD_CATALOG,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[int], str] = generate_game_id,
    ) -> None:
        self._cache_ttl_seconds = cache_ttl_seconds
        self._cache_max_age_seconds = cache_max_age_seconds
        self._game_max_age_seconds = game_max_age_seconds
        self._eviction_interval_seconds = eviction_interval_seconds
        self._catalog = catalog
        self._clock = clock
        self._id_factory = id_factory
        self._games: dict[str, Game] = {}
        self._cache: dict[str, _CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._evictor_task: asyncio.Task[None] | None = None

    # --- Public API ---

    @property
    def game_count(self) -> int:
        return len(self._games)

    def active_count(self) -> int:
        """Number of stored games still being played."""
        return sum(1 for game in self._games.values() if game.game_status == GameStatus.PLAYING)

    def create(self, player_name: str) -> Game:
        """Create, store and cache a new game. Returns a snapshot of it."""
        now = self._clock()
        now_ms = int(now * 1000)
        game_id = self._allocate_id(now_ms)

        game = Game(
            id=game_id,
            player=Combatant(id=Side.PLAYER, name=player_name),
            opponent=Combatant(id=Side.OPPONENT, name=OPPONENT_NAME),
            available_cards=self._catalog,
            created_at=now_ms,
        )
        self._games[game_id] = game
        self._locks[game_id] = asyncio.Lock()
        self._refresh_cache(game, now)
        logger.info("game stored", game_id=game_id, total_games=len(self._games))
        return game.snapshot()

    def get(self, game_id: str) -> Game | None:
        """Read-through lookup: a fresh cache entry wins, otherwise the store is read and cached."""
        now = self._clock()
        entry = self._cache.get(game_id)
        if entry is not None and now - entry.cached_at < self._cache_ttl_seconds:
            return entry.game.snapshot()

        game = self._games.get(game_id)
        if game is None:
            return None
        self._refresh_cache(game, now)
        return game.snapshot()

    def lock_for(self, game_id: str) -> asyncio.Lock | None:
        """The per-game lock, or None if the game does not exist (or was evicted)."""
        return self._locks.get(game_id)

    def load(self, game_id: str) -> Game | None:
        """Working copy of the authoritative game for a caller holding its lock."""
        game = self._games.get(game_id)
        return game.snapshot() if game is not None else None

    def commit(self, game: Game) -> Game:
        """Replace the stored game with a resolved working copy. Caller must hold the lock."""
        if game.id not in self._games:
            raise KeyError(f"cannot commit unknown game {game.id}")
        stored = game.snapshot()
        self._games[game.id] = stored
        self._refresh_cache(stored, self._clock())
        return stored.snapshot()

    async def restart(self, game_id: str) -> Game | None:
        """Reset a game to its initial state in place, keeping its id."""
        lock = self._locks.get(game_id)
        if lock is None:
            return None
        async with lock:
            game = self._games.get(game_id)
            if game is None:
                return None
            game.player.reset()
            game.opponent.reset()
            game.current_turn = 1
            game.game_status = GameStatus.PLAYING
            game.winner = None
            game.turn_history = []
            self._refresh_cache(game, self._clock())
            return game.snapshot()

    # --- Eviction ---

    async def evict(self) -> EvictionReport:
        """Drop games past their max age and cache entries past the cache max age.

        Candidates are snapshotted first; each game is then re-checked under
        its lock, so a game is never removed while a turn holds that lock.
        """
        now = self._clock()
        candidates = [game_id for game_id, game in list(self._games.items()) if self._is_expired(game, now)]

        games_removed = 0
        for game_id in candidates:
            lock = self._locks.get(game_id)
            if lock is None:
                continue
            async with lock:
                game = self._games.get(game_id)
                if game is None or not self._is_expired(game, now):
                    continue
                del self._games[game_id]
                self._cache.pop(game_id, None)
                games_removed += 1
            self._locks.pop(game_id, None)

        stale_entries = [
            game_id
            for game_id, entry in list(self._cache.items())
            if now - entry.cached_at > self._cache_max_age_seconds
        ]
        for game_id in stale_entries:
            self._cache.pop(game_id, None)

        if games_removed or stale_entries:
            logger.info(
                "eviction completed",
                games_removed=games_removed,
                cache_entries_removed=len(stale_entries),
                total_games=len(self._games),
            )
        return EvictionReport(games_removed=games_removed, cache_entries_removed=len(stale_entries))

    def start_evictor(self) -> None:
        """Start the periodic eviction task. Idempotent."""
        if self._evictor_task is not None and not self._evictor_task.done():
            return
        self._evictor_task = asyncio.create_task(self._evictor_loop())

    async def stop_evictor(self) -> None:
        if self._evictor_task is not None:
            self._evictor_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._evictor_task
            self._evictor_task = None

    async def _evictor_loop(self) -> None:
        while True:
            await asyncio.sleep(self._eviction_interval_seconds)
            try:
                await self.evict()
            except Exception:
                logger.exception("game eviction encountered an error")

    # --- Internal helpers ---

    def _allocate_id(self, now_ms: int) -> str:
        for _ in range(_ID_ALLOCATION_ATTEMPTS):
            game_id = self._id_factory(now_ms)
            if game_id not in self._games:
                return game_id
        raise GameIdAllocationError(_ID_ALLOCATION_ATTEMPTS)

    def _is_expired(self, game: Game, now: float) -> bool:
        return now - game.created_at / 1000 > self._game_max_age_seconds

    def _refresh_cache(self, game: Game, now: float) -> None:
        self._cache[game.id] = _CacheEntry(game=game.snapshot(), cached_at=now)
