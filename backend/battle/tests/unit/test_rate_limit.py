"""Tests for the token bucket rate limiter and the per-client endpoint limiter."""

from battle.server.rate_limit import RATE_LIMIT_RULES, RateLimiter, RateLimitRule, TokenBucket
from battle.tests.helpers import FakeClock


class TestTokenBucket:
    def test_full_budget_available_up_front(self):
        bucket = TokenBucket(rate=1.0, burst=5, clock=FakeClock())
        assert all(bucket.consume() for _ in range(5))

    def test_request_past_budget_denied(self):
        bucket = TokenBucket(rate=1.0, burst=3, clock=FakeClock())
        for _ in range(3):
            bucket.consume()
        assert bucket.consume() is False
        assert bucket.remaining == 0

    def test_budget_refills_over_time(self):
        """Half a second at 10 tokens/s restores the 5 spent."""
        clock = FakeClock()
        bucket = TokenBucket(rate=10.0, burst=5, clock=clock)
        for _ in range(5):
            bucket.consume()
        assert bucket.consume() is False

        clock.advance(0.5)
        assert all(bucket.consume() for _ in range(5))
        assert bucket.consume() is False

    def test_idle_refill_never_exceeds_burst(self):
        clock = FakeClock()
        bucket = TokenBucket(rate=100.0, burst=2, clock=clock)
        clock.advance(60)

        assert bucket.consume()
        assert bucket.remaining == 1


class TestRateLimiter:
    def test_create_game_limit(self):
        limiter = RateLimiter(clock=FakeClock())

        decisions = [limiter.check("1.2.3.4", "create-game") for _ in range(11)]

        assert all(d.allowed for d in decisions[:10])
        assert decisions[9].remaining == 0
        assert decisions[10].allowed is False

    def test_clients_are_independent(self):
        limiter = RateLimiter(clock=FakeClock())
        for _ in range(10):
            limiter.check("1.2.3.4", "create-game")

        assert limiter.check("5.6.7.8", "create-game").allowed

    def test_endpoints_are_independent(self):
        limiter = RateLimiter(clock=FakeClock())
        for _ in range(10):
            limiter.check("1.2.3.4", "create-game")

        assert limiter.check("1.2.3.4", "play-turn").allowed

    def test_unknown_endpoint_uses_default_rule(self):
        limiter = RateLimiter(clock=FakeClock())
        assert limiter.rule_for("whatever") == RATE_LIMIT_RULES["default"]

    def test_recovers_after_window(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        for _ in range(20):
            limiter.check("c", "play-turn")
        assert limiter.check("c", "play-turn").allowed is False

        clock.advance(10)

        assert limiter.check("c", "play-turn").allowed

    def test_prune_drops_idle_buckets(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.check("a", "play-turn")
        limiter.check("b", "create-game")

        clock.advance(11)
        assert limiter.prune() == 1
        assert len(limiter) == 1

    def test_check_prunes_periodically(self):
        clock = FakeClock()
        limiter = RateLimiter(rules={"default": RateLimitRule(5, 1)}, clock=clock, prune_interval_seconds=10)
        limiter.check("a", "x")

        clock.advance(11)
        limiter.check("b", "x")

        assert len(limiter) == 1
