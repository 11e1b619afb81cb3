"""Storage adapters implementing CounterStoragePort."""

from perfstore.adapters.storage.in_memory import InMemoryCounterStorage
from perfstore.adapters.storage.sqlite_counters import SQLiteCounterStorage

__all__ = [
    "InMemoryCounterStorage",
    "SQLiteCounterStorage",
]
