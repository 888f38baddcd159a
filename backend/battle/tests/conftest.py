import pytest

from battle.logic.engine import BattleEngine
from battle.logic.events import BattleEvent, EventPublisher
from battle.session.store import GameStore
from battle.tests.helpers import FakeClock, FixedSignalSource


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return GameStore(clock=clock)


@pytest.fixture
def publisher():
    return EventPublisher()


@pytest.fixture
def published_events(publisher) -> list[BattleEvent]:
    """Every event published during the test, in order."""
    events: list[BattleEvent] = []
    publisher.subscribe(events.append)
    return events


@pytest.fixture
def make_engine(store, publisher):
    """Build an engine over the shared store and publisher with scripted collaborators."""

    def _make(ai_player=None, signals=None) -> BattleEngine:
        return BattleEngine(
            store,
            signals or FixedSignalSource(),
            ai_player=ai_player,
            publisher=publisher,
        )

    return _make
