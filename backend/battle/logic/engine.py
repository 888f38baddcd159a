"""
Battle engine: the turn orchestrator and the public boundary of the core.

A turn runs entirely under the game's lock, on a working copy loaded from the
store:

1. reject unknown / finished games and unknown cards (None + InvalidTurnEvent)
2. let the AI pick the opponent's card
3. fetch the turn's market signal (never fails, see MarketSignalSource)
4. resolve combat and append the turn record
5. advance the turn counter and check for a winner (player first)
6. tick status effects on both sides
7. commit the working copy

If anything raises between loading and committing, the working copy is
dropped, so the stored game is either fully advanced or untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from battle.logic.ai_player import AIPlayer
from battle.logic.combat import resolve_combat
from battle.logic.enums import GameStatus, InvalidTurnReason, Side
from battle.logic.events import (
    EventPublisher,
    GameCreatedEvent,
    GameFinishedEvent,
    GameRestartedEvent,
    InvalidTurnEvent,
    TurnCompletedEvent,
    TurnErrorEvent,
)
from battle.logic.metrics import OperationMetrics
from battle.logic.state import TurnRecord
from battle.logic.status_effects import tick_status_effects

if TYPE_CHECKING:
    from battle.logic.state import Card, Game, MarketSignal
    from battle.market.provider import MarketSignalSource
    from battle.session.store import GameStore

logger = structlog.get_logger()


def turn_summary(player_card: Card, opponent_card: Card, signal: MarketSignal) -> str:
    return f"{player_card.name} vs {opponent_card.name} - {signal.game_effect.description}"


def check_win_condition(game: Game) -> Side | None:
    """Finish the game if a side is down. The player's HP is checked first."""
    if game.player.hp <= 0:
        winner = Side.OPPONENT
    elif game.opponent.hp <= 0:
        winner = Side.PLAYER
    else:
        return None
    game.game_status = GameStatus.FINISHED
    game.winner = winner
    return winner


def resolve_turn(game: Game, player_card: Card, opponent_card: Card, signal: MarketSignal) -> TurnRecord:
    """Advance a game by one turn in place and return the turn's record."""
    combat = resolve_combat(game.player, game.opponent, player_card, opponent_card, signal)

    record = TurnRecord(
        turn_number=game.current_turn,
        player_card=player_card,
        opponent_card=opponent_card,
        crypto_result=signal,
        player_damage=combat.roll.opponent_damage,
        opponent_damage=combat.roll.player_damage,
        player_hp_after=game.player.hp,
        opponent_hp_after=game.opponent.hp,
        result=turn_summary(player_card, opponent_card, signal),
    )
    game.turn_history.append(record)
    game.current_turn += 1

    check_win_condition(game)
    # Effects tick after the win check: a lethal poison tick shows up in HP
    # but does not change the outcome of the turn that just ended.
    tick_status_effects(game.player)
    tick_status_effects(game.opponent)
    return record


class BattleEngine:
    """Create, read, play and restart games.

    Expected rejections return None; the reason is published as an
    InvalidTurnEvent and logged. Unexpected failures propagate.
    """

    def __init__(
        self,
        store: GameStore,
        signals: MarketSignalSource,
        *,
        ai_player: AIPlayer | None = None,
        publisher: EventPublisher | None = None,
        metrics: OperationMetrics | None = None,
    ) -> None:
        self._store = store
        self._signals = signals
        self._ai_player = ai_player or AIPlayer()
        self._publisher = publisher or EventPublisher()
        self._metrics = metrics or OperationMetrics()

    @property
    def publisher(self) -> EventPublisher:
        return self._publisher

    @property
    def metrics(self) -> OperationMetrics:
        return self._metrics

    def create_game(self, display_name: str) -> Game:
        with self._metrics.track("create_game"):
            game = self._store.create(display_name)
        logger.info("game created", game_id=game.id)
        self._publisher.publish(GameCreatedEvent(game_id=game.id, player_name=display_name))
        return game

    def get_game(self, game_id: str) -> Game | None:
        with self._metrics.track("get_game"):
            return self._store.get(game_id)

    def active_game_count(self) -> int:
        return self._store.active_count()

    async def restart_game(self, game_id: str) -> Game | None:
        with self._metrics.track("restart_game"):
            game = await self._store.restart(game_id)
        if game is None:
            logger.info("restart requested for unknown game", game_id=game_id)
            return None
        logger.info("game restarted", game_id=game_id)
        self._publisher.publish(GameRestartedEvent(game_id=game_id))
        return game

    async def play_turn(self, game_id: str, card_id: str) -> Game | None:
        with self._metrics.track("play_turn"), structlog.contextvars.bound_contextvars(game_id=game_id):
            lock = self._store.lock_for(game_id)
            if lock is None:
                return self._reject(game_id, InvalidTurnReason.GAME_NOT_FOUND, card_id)

            async with lock:
                game = self._store.load(game_id)
                if game is None:
                    return self._reject(game_id, InvalidTurnReason.GAME_NOT_FOUND, card_id)
                if not game.is_playing:
                    return self._reject(game_id, InvalidTurnReason.GAME_NOT_PLAYING, card_id)
                player_card = game.find_card(card_id)
                if player_card is None:
                    return self._reject(game_id, InvalidTurnReason.INVALID_CARD, card_id)

                try:
                    opponent_card = self._ai_player.choose_card(game.available_cards, player_card)
                    signal = await self._signals.next_signal()
                    record = resolve_turn(game, player_card, opponent_card, signal)
                    committed = self._store.commit(game)
                except Exception as e:
                    logger.exception("turn failed, game left unchanged", card_id=card_id)
                    self._publisher.publish(TurnErrorEvent(game_id=game_id, error=str(e)))
                    raise

            self._publish_turn(committed, record)
            return committed

    def _publish_turn(self, game: Game, record: TurnRecord) -> None:
        logger.info(
            "turn completed",
            turn_number=record.turn_number,
            player_card=record.player_card.id,
            opponent_card=record.opponent_card.id,
            player_hp=game.player.hp,
            opponent_hp=game.opponent.hp,
        )
        self._publisher.publish(
            TurnCompletedEvent(
                game_id=game.id,
                turn_number=record.turn_number,
                player_card_id=record.player_card.id,
                opponent_card_id=record.opponent_card.id,
                result=record.result,
            ),
        )
        if game.winner is not None:
            logger.info("game finished", winner=game.winner, total_turns=len(game.turn_history))
            self._publisher.publish(
                GameFinishedEvent(game_id=game.id, winner=game.winner, total_turns=len(game.turn_history)),
            )

    def _reject(self, game_id: str, reason: InvalidTurnReason, card_id: str) -> None:
        logger.warning("invalid turn", reason=reason, card_id=card_id)
        self._publisher.publish(InvalidTurnEvent(game_id=game_id, reason=reason, card_id=card_id))
