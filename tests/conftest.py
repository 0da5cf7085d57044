"""Shared fixtures for scoresync tests."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from scoresync.core.records import GameRecord, Player
from scoresync.sync.events import EventBus
from scoresync.sync.store import MemoryRecordStore
from scoresync.sync.types import SyncEvent

RecordFactory = Callable[..., GameRecord]


@pytest.fixture
def make_record() -> RecordFactory:
    """Factory building a record from (name, color, score) tuples."""

    def factory(date: str, *players: tuple[str, str, int], winners: list[str] | None = None) -> GameRecord:
        parsed = [Player(name=name, color=color, score=score) for name, color, score in players]
        if winners is None:
            return GameRecord.create(parsed, date=date)
        return GameRecord(players=tuple(parsed), date=date, winners=tuple(winners))

    return factory


@pytest.fixture
def alice_bob(make_record: RecordFactory) -> GameRecord:
    """Game won by Alice on 2024-01-01."""
    return make_record("2024-01-01T00:00:00Z", ("Alice", "red", 30), ("Bob", "blue", 25))


@pytest.fixture
def carol_dave(make_record: RecordFactory) -> GameRecord:
    """Game won by Carol on 2024-01-02."""
    return make_record("2024-01-02T00:00:00Z", ("Carol", "green", 40), ("Dave", "black", 10))


@pytest.fixture
def bus() -> EventBus[SyncEvent]:
    """Create a transport bus."""
    return EventBus("transport")


@pytest.fixture
def events(bus: EventBus[SyncEvent]) -> list[SyncEvent]:
    """Collect every event published on the bus."""
    received: list[SyncEvent] = []
    bus.subscribe(received.append)
    return received


@pytest.fixture
def store() -> MemoryRecordStore:
    """Create an empty in-memory record store."""
    return MemoryRecordStore()
