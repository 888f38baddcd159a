from __future__ import annotations

import contextlib
import json
import time
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from battle.logic.engine import BattleEngine
from battle.logic.exceptions import BattleError
from battle.market.provider import CRYPTO_PAIRS, BinanceMarketProvider, MarketSignalSource, signal_timeout_for
from battle.market.tiers import derive_game_effect, volatility_bonus
from battle.server.rate_limit import RateLimiter
from battle.server.settings import BattleServerSettings
from battle.server.types import CreateGameRequest, PlayTurnRequest
from battle.session.analytics import GameAnalytics
from battle.session.store import GameStore
from shared.build_info import build_metadata
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from battle.market.provider import CryptoPair, MarketProvider

_MAX_REQUEST_BODY_SIZE = 4096
_RECENT_ANALYTICS_EVENTS = 20


class _InvalidBodyError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _success(data: Any, message: str) -> dict[str, Any]:  # noqa: ANN401
    return {"success": True, "data": data, "message": message, "timestamp": _now_ms()}


def _failure(error: str, status_code: int) -> dict[str, Any]:
    return {"success": False, "error": error, "code": int(status_code), "timestamp": _now_ms()}


def _client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def _rate_limited(request: Request, endpoint: str) -> JSONResponse | None:
    """Return a 429 response if the client is over its budget for this endpoint."""
    rate_limiter: RateLimiter = request.app.state.rate_limiter
    client = _client_address(request)
    decision = rate_limiter.check(client, endpoint)
    if decision.allowed:
        return None
    logger.warning("rate limit exceeded", client=client, endpoint=endpoint)
    return JSONResponse(
        _failure("Too many requests. Please try again later.", HTTPStatus.TOO_MANY_REQUESTS),
        status_code=HTTPStatus.TOO_MANY_REQUESTS,
        headers={"X-RateLimit-Remaining": str(decision.remaining)},
    )


async def _read_json(request: Request) -> dict[str, Any]:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        raise _InvalidBodyError(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, "Request body too large")
    try:
        body = json.loads(raw_body) if raw_body.strip() else {}
    except (ValueError, UnicodeDecodeError) as e:
        raise _InvalidBodyError(HTTPStatus.BAD_REQUEST, "Invalid JSON body") from e
    if not isinstance(body, dict):
        raise _InvalidBodyError(HTTPStatus.BAD_REQUEST, "Invalid JSON body")
    return body


def _validation_message(error: ValidationError) -> str:
    reasons = ", ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in error.errors())
    return f"Validation failed: {reasons}"


async def create_game(request: Request) -> JSONResponse:
    engine: BattleEngine = request.app.state.engine

    limited = _rate_limited(request, "create-game")
    if limited is not None:
        return limited

    try:
        game_request = CreateGameRequest.model_validate(await _read_json(request))
    except _InvalidBodyError as e:
        return JSONResponse(_failure(e.message, e.status_code), status_code=e.status_code)
    except ValidationError as e:
        return JSONResponse(_failure(_validation_message(e), HTTPStatus.BAD_REQUEST), status_code=HTTPStatus.BAD_REQUEST)

    try:
        game = engine.create_game(game_request.player_name)
    except BattleError:
        logger.exception("game creation failed")
        return JSONResponse(
            _failure("Failed to create game", HTTPStatus.INTERNAL_SERVER_ERROR),
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    return JSONResponse(_success(game.to_wire(), "Game created successfully"))


async def get_game(request: Request) -> JSONResponse:
    engine: BattleEngine = request.app.state.engine
    game = engine.get_game(request.path_params["game_id"])
    if game is None:
        return JSONResponse({"error": "Game not found"}, status_code=HTTPStatus.NOT_FOUND)
    return JSONResponse(game.to_wire())


async def play_turn(request: Request) -> JSONResponse:
    engine: BattleEngine = request.app.state.engine

    limited = _rate_limited(request, "play-turn")
    if limited is not None:
        return limited

    try:
        turn_request = PlayTurnRequest.model_validate(await _read_json(request))
    except _InvalidBodyError as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except ValidationError:
        return JSONResponse({"error": "Card ID is required"}, status_code=HTTPStatus.BAD_REQUEST)

    try:
        game = await engine.play_turn(request.path_params["game_id"], turn_request.card_id)
    except Exception:  # already logged with traceback by the engine
        return JSONResponse({"error": "Failed to play turn"}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)

    if game is None:
        return JSONResponse({"error": "Game not found or invalid move"}, status_code=HTTPStatus.NOT_FOUND)
    return JSONResponse(game.to_wire())


async def restart_game(request: Request) -> JSONResponse:
    engine: BattleEngine = request.app.state.engine
    game = await engine.restart_game(request.path_params["game_id"])
    if game is None:
        return JSONResponse({"error": "Game not found"}, status_code=HTTPStatus.NOT_FOUND)
    return JSONResponse(game.to_wire())


async def current_crypto(request: Request) -> JSONResponse:
    provider: MarketProvider = request.app.state.market_provider

    limited = _rate_limited(request, "crypto-data")
    if limited is not None:
        return limited

    try:
        quote = await provider.fetch_quote()
    except Exception:
        logger.exception("failed to fetch crypto data")
        return JSONResponse({"error": "Failed to fetch crypto data"}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)

    payload = quote.model_dump(mode="json", by_alias=True)
    payload["gameEffect"] = derive_game_effect(quote).model_dump(mode="json", by_alias=True)
    payload["volatilityBonus"] = volatility_bonus(quote)
    return JSONResponse(payload)


async def crypto_pairs(request: Request) -> JSONResponse:
    pairs: tuple[CryptoPair, ...] = request.app.state.crypto_pairs
    return JSONResponse([pair.to_wire() for pair in pairs])


async def health(request: Request) -> JSONResponse:
    engine: BattleEngine = request.app.state.engine
    provider: MarketProvider = request.app.state.market_provider
    started = time.perf_counter()

    try:
        quote = await provider.fetch_quote()
        market_health: dict[str, Any] = {"status": "healthy", "lastUpdate": quote.timestamp, "symbol": quote.symbol}
    except Exception as e:
        logger.warning("market provider health check failed", error=repr(e))
        market_health = {"status": "degraded", "error": "Using fallback data", "message": str(e)}

    response_ms = (time.perf_counter() - started) * 1000
    return JSONResponse(
        {
            "status": "healthy",
            "timestamp": _now_ms(),
            "responseTime": f"{round(response_ms)}ms",
            "services": {
                "gameEngine": {
                    "status": "healthy",
                    "activeGames": engine.active_game_count(),
                    "operations": engine.metrics.summary(),
                },
                "cryptoService": market_health,
            },
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            **build_metadata(),
        },
    )


async def analytics(request: Request) -> JSONResponse:
    game_analytics: GameAnalytics = request.app.state.analytics
    return JSONResponse(
        {
            "metrics": game_analytics.metrics().model_dump(mode="json", by_alias=True),
            "recentEvents": [
                event.model_dump(mode="json", by_alias=True)
                for event in game_analytics.recent_events(_RECENT_ANALYTICS_EVENTS)
            ],
            "timestamp": _now_ms(),
        },
    )


def create_app(
    settings: BattleServerSettings | None = None,
    store: GameStore | None = None,
    market_provider: MarketProvider | None = None,
    engine: BattleEngine | None = None,
    rate_limiter: RateLimiter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = BattleServerSettings()

    if store is None:
        store = GameStore(
            cache_ttl_seconds=settings.cache_ttl_seconds,
            cache_max_age_seconds=settings.cache_max_age_seconds,
            game_max_age_seconds=settings.game_max_age_seconds,
            eviction_interval_seconds=settings.eviction_interval_seconds,
        )

    # When the app creates its own provider, it owns the HTTP client lifecycle.
    owned_provider: BinanceMarketProvider | None = None
    if market_provider is None:
        owned_provider = BinanceMarketProvider(
            api_url=settings.market_api_url,
            timeout_seconds=settings.market_timeout_seconds,
            cache_seconds=settings.market_cache_seconds,
        )
        market_provider = owned_provider

    if engine is None:
        signals = MarketSignalSource(
            market_provider,
            timeout_seconds=signal_timeout_for(settings.market_timeout_seconds),
        )
        engine = BattleEngine(store, signals)

    game_analytics = GameAnalytics()
    game_analytics.attach(engine.publisher)

    routes = [
        Route("/api/game/create", create_game, methods=["POST"]),
        Route("/api/game/{game_id}", get_game, methods=["GET"]),
        Route("/api/game/{game_id}/play", play_turn, methods=["POST"]),
        Route("/api/game/{game_id}/restart", restart_game, methods=["POST"]),
        Route("/api/crypto/current", current_crypto, methods=["GET"]),
        Route("/api/crypto/pairs", crypto_pairs, methods=["GET"]),
        Route("/api/health", health, methods=["GET"]),
        Route("/api/analytics", analytics, methods=["GET"]),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        store.start_evictor()
        yield
        await store.stop_evictor()
        if owned_provider is not None:
            await owned_provider.aclose()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.store = store
    app.state.engine = engine
    app.state.market_provider = market_provider
    app.state.crypto_pairs = getattr(market_provider, "pairs", CRYPTO_PAIRS)
    app.state.analytics = game_analytics
    app.state.rate_limiter = rate_limiter or RateLimiter()
    app.state.started_at = time.monotonic()

    logger.info("battle server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (uvicorn --factory battle.server.app:get_app)."""
    settings = BattleServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
