"""Domain events published by the battle engine, and the channel that carries them.

The engine publishes one event per notable outcome (game created, turn
resolved, turn rejected, game finished, ...). Consumers such as analytics
subscribe to an EventPublisher; the engine never depends on who is listening.
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from battle.logic.enums import InvalidTurnReason, Side

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger()


def _now_ms() -> int:
    return int(time.time() * 1000)


class EventType(StrEnum):
    GAME_CREATED = "game_created"
    GAME_RESTARTED = "game_restarted"
    TURN_COMPLETED = "turn_completed"
    INVALID_TURN = "invalid_turn"
    TURN_ERROR = "turn_error"
    GAME_FINISHED = "game_finished"


class BattleEvent(BaseModel):
    """Base class for all engine events."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    game_id: str
    timestamp: int = Field(default_factory=_now_ms)


class GameCreatedEvent(BattleEvent):
    type: Literal[EventType.GAME_CREATED] = EventType.GAME_CREATED
    player_name: str


class GameRestartedEvent(BattleEvent):
    type: Literal[EventType.GAME_RESTARTED] = EventType.GAME_RESTARTED


class TurnCompletedEvent(BattleEvent):
    type: Literal[EventType.TURN_COMPLETED] = EventType.TURN_COMPLETED
    turn_number: int
    player_card_id: str
    opponent_card_id: str
    result: str


class InvalidTurnEvent(BattleEvent):
    """A turn request was rejected without touching the game."""

    type: Literal[EventType.INVALID_TURN] = EventType.INVALID_TURN
    reason: InvalidTurnReason
    card_id: str | None = None


class TurnErrorEvent(BattleEvent):
    """A turn failed unexpectedly; the stored game was left unchanged."""

    type: Literal[EventType.TURN_ERROR] = EventType.TURN_ERROR
    error: str


class GameFinishedEvent(BattleEvent):
    type: Literal[EventType.GAME_FINISHED] = EventType.GAME_FINISHED
    winner: Side
    total_turns: int


class EventPublisher:
    """Synchronous fan-out of engine events to subscribed listeners.

    A failing listener is logged and skipped so it cannot break a turn or
    starve the other listeners.
    """

    def __init__(self) -> None:
        self._listeners: list[Callable[[BattleEvent], None]] = []

    def subscribe(self, listener: Callable[[BattleEvent], None]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[BattleEvent], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: BattleEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("event listener failed", event_type=event.type, game_id=event.game_id)
