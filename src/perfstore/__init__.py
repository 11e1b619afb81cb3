"""perfstore - performance counter time-series storage."""

from perfstore.adapters.logging import log_storage_errors
from perfstore.adapters.storage import InMemoryCounterStorage, SQLiteCounterStorage
from perfstore.core.counters import batch, counter
from perfstore.core.errors import ErrorChannel
from perfstore.core.models import CounterInput, CounterValue, ErrorKind, StorageErrorEvent
from perfstore.core.ports import CounterStoragePort

__all__ = [
    "CounterInput",
    "CounterStoragePort",
    "CounterValue",
    "ErrorChannel",
    "ErrorKind",
    "InMemoryCounterStorage",
    "SQLiteCounterStorage",
    "StorageErrorEvent",
    "batch",
    "counter",
    "log_storage_errors",
]
