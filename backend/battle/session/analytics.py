"""Gameplay analytics built from the engine's event channel.

GameAnalytics subscribes to an EventPublisher and keeps an append-only log of
the last MAX_EVENTS analytics events in memory. Aggregates are computed on
demand from that log, so they only describe the retained window.
"""

from __future__ import annotations

from collections import Counter, deque
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from battle.logic.enums import Side
from battle.logic.events import (
    BattleEvent,
    GameCreatedEvent,
    GameFinishedEvent,
    TurnCompletedEvent,
)

if TYPE_CHECKING:
    from battle.logic.events import EventPublisher

logger = structlog.get_logger()

MAX_EVENTS = 1000
DEFAULT_RECENT_EVENTS = 50


class AnalyticsEventType(StrEnum):
    GAME_CREATED = "game_created"
    TURN_PLAYED = "turn_played"
    CARD_USED = "card_used"
    GAME_FINISHED = "game_finished"


class AnalyticsEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: AnalyticsEventType
    game_id: str
    timestamp: int
    data: dict[str, Any] = Field(default_factory=dict)


class WinRates(BaseModel):
    player: int = 0
    opponent: int = 0


class GameMetrics(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_games: int
    active_games: int
    completed_games: int
    average_game_duration: int  # seconds
    popular_cards: dict[str, int]
    win_rates: WinRates


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


class GameAnalytics:
    """Capped in-memory analytics log fed by engine events."""

    def __init__(self, max_events: int = MAX_EVENTS) -> None:
        self._events: deque[AnalyticsEvent] = deque(maxlen=max_events)

    def attach(self, publisher: EventPublisher) -> None:
        publisher.subscribe(self.handle_event)

    def detach(self, publisher: EventPublisher) -> None:
        publisher.unsubscribe(self.handle_event)

    def handle_event(self, event: BattleEvent) -> None:
        """Translate an engine event into zero or more analytics events."""
        if isinstance(event, GameCreatedEvent):
            self.record(AnalyticsEventType.GAME_CREATED, event, {"playerName": event.player_name})
        elif isinstance(event, TurnCompletedEvent):
            self.record(
                AnalyticsEventType.TURN_PLAYED,
                event,
                {
                    "turnNumber": event.turn_number,
                    "playerCard": event.player_card_id,
                    "opponentCard": event.opponent_card_id,
                },
            )
            self.record(AnalyticsEventType.CARD_USED, event, {"cardId": event.player_card_id})
        elif isinstance(event, GameFinishedEvent):
            self.record(
                AnalyticsEventType.GAME_FINISHED,
                event,
                {"winner": event.winner.value, "totalTurns": event.total_turns},
            )

    def record(self, event_type: AnalyticsEventType, source: BattleEvent, data: dict[str, Any]) -> None:
        self._events.append(
            AnalyticsEvent(type=event_type, game_id=source.game_id, timestamp=source.timestamp, data=data),
        )
        logger.debug("analytics event recorded", analytics_type=event_type, game_id=source.game_id)

    def metrics(self) -> GameMetrics:
        created: dict[str, int] = {}
        finished: list[AnalyticsEvent] = []
        card_usage: Counter[str] = Counter()

        for event in self._events:
            if event.type == AnalyticsEventType.GAME_CREATED:
                created.setdefault(event.game_id, event.timestamp)
            elif event.type == AnalyticsEventType.GAME_FINISHED:
                finished.append(event)
            elif event.type == AnalyticsEventType.CARD_USED:
                card_usage[event.data["cardId"]] += 1

        created_count = sum(1 for event in self._events if event.type == AnalyticsEventType.GAME_CREATED)
        player_wins = sum(1 for event in finished if event.data.get("winner") == Side.PLAYER)
        opponent_wins = sum(1 for event in finished if event.data.get("winner") == Side.OPPONENT)

        durations = [
            event.timestamp - created[event.game_id]
            for event in finished
            if event.game_id in created and event.timestamp > created[event.game_id]
        ]
        average_ms = sum(durations) / len(durations) if durations else 0

        return GameMetrics(
            total_games=created_count,
            active_games=created_count - len(finished),
            completed_games=len(finished),
            average_game_duration=round(average_ms / 1000),
            popular_cards=dict(card_usage),
            win_rates=WinRates(
                player=_percent(player_wins, len(finished)),
                opponent=_percent(opponent_wins, len(finished)),
            ),
        )

    def recent_events(self, limit: int = DEFAULT_RECENT_EVENTS) -> list[AnalyticsEvent]:
        """The newest events first."""
        if limit <= 0:
            return []
        return list(reversed(self._events))[:limit]

    def __len__(self) -> int:
        return len(self._events)
