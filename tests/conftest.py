"""Shared test fixtures for all test modules."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from perfstore.adapters.storage import InMemoryCounterStorage, SQLiteCounterStorage
from perfstore.core.models import StorageErrorEvent


@pytest.fixture
def counters_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for counter storage tests."""
    return str(tmp_path / "counters.db")


@pytest.fixture
async def sqlite_storage(counters_db_path: str) -> AsyncGenerator[SQLiteCounterStorage]:
    """File-backed SQLite counter storage, closed after the test."""
    storage = SQLiteCounterStorage(counters_db_path)
    yield storage
    await storage.close()


@pytest.fixture
async def memory_sqlite_storage() -> AsyncGenerator[SQLiteCounterStorage]:
    """SQLite counter storage on a :memory: database."""
    storage = SQLiteCounterStorage(":memory:")
    yield storage
    await storage.close()


@pytest.fixture
def in_memory_storage() -> InMemoryCounterStorage:
    """Fixture providing an empty in-memory counter storage."""
    return InMemoryCounterStorage()


@pytest.fixture
def error_capture():
    """Fixture that returns a subscriber callable and the list it fills.

    Usage:
        def test_something(sqlite_storage, error_capture):
            subscriber, events = error_capture
            sqlite_storage.errors.subscribe(subscriber)
    """
    events: list[StorageErrorEvent] = []

    def subscriber(event: StorageErrorEvent) -> None:
        """Capture error events."""
        events.append(event)

    return subscriber, events
