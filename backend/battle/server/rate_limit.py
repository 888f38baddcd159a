"""Token bucket rate limiting for the HTTP API, keyed by client and endpoint."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class TokenBucket:
    """One client's budget for one endpoint.

    Holds up to ``burst`` requests and refills continuously at ``rate`` per
    second, so a full window of idle time restores the whole budget.
    """

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._rate = rate
        self._burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last_refill = clock()

    @property
    def remaining(self) -> int:
        """Whole tokens left as of the last refill."""
        return math.floor(self._tokens)

    @property
    def last_refill(self) -> float:
        return self._last_refill

    def consume(self) -> bool:
        """Spend one request from the budget; False means the caller is over its limit."""
        now = self._clock()
        elapsed = now - self._last_refill
        self._tokens = min(self._burst, self._tokens + elapsed * self._rate)
        self._last_refill = now

        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: float

    @property
    def rate(self) -> float:
        return self.max_requests / self.window_seconds


DEFAULT_ENDPOINT = "default"
PRUNE_INTERVAL_SECONDS = 300  # 5 minutes

RATE_LIMIT_RULES: dict[str, RateLimitRule] = {
    "create-game": RateLimitRule(max_requests=10, window_seconds=60),
    "play-turn": RateLimitRule(max_requests=20, window_seconds=10),
    "crypto-data": RateLimitRule(max_requests=100, window_seconds=30),
    DEFAULT_ENDPOINT: RateLimitRule(max_requests=100, window_seconds=60),
}


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int


class RateLimiter:
    """One token bucket per (client, endpoint) pair.

    Endpoints without a rule of their own share the default rule. Buckets
    idle for longer than their window are full again; they are pruned at
    most once every prune_interval_seconds, from inside check().
    """

    def __init__(
        self,
        rules: dict[str, RateLimitRule] | None = None,
        clock: Callable[[], float] = time.monotonic,
        prune_interval_seconds: float = PRUNE_INTERVAL_SECONDS,
    ) -> None:
        self._rules = dict(rules or RATE_LIMIT_RULES)
        self._clock = clock
        self._prune_interval_seconds = prune_interval_seconds
        self._next_prune = clock() + prune_interval_seconds
        self._buckets: dict[tuple[str, str], TokenBucket] = {}

    def rule_for(self, endpoint: str) -> RateLimitRule:
        return self._rules.get(endpoint) or self._rules[DEFAULT_ENDPOINT]

    def check(self, client: str, endpoint: str) -> RateLimitDecision:
        if self._clock() >= self._next_prune:
            self.prune()
        key = (client, endpoint)
        bucket = self._buckets.get(key)
        if bucket is None:
            rule = self.rule_for(endpoint)
            bucket = TokenBucket(rule.rate, rule.max_requests, clock=self._clock)
            self._buckets[key] = bucket
        allowed = bucket.consume()
        return RateLimitDecision(allowed=allowed, remaining=bucket.remaining)

    def prune(self) -> int:
        """Drop idle buckets. Returns how many were removed."""
        now = self._clock()
        stale = [
            key
            for key, bucket in self._buckets.items()
            if now - bucket.last_refill > self.rule_for(key[1]).window_seconds
        ]
        for key in stale:
            del self._buckets[key]
        self._next_prune = now + self._prune_interval_seconds
        return len(stale)

    def __len__(self) -> int:
        return len(self._buckets)
