"""Core domain models for performance counter data."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class CounterInput:
    """A named counter reading waiting to be stored.

    Attributes:
        name: Counter name (e.g., "cpu_percent").
        value: The reading. Narrowed to float32 on storage.
    """

    name: str
    value: float


@dataclass(frozen=True)
class CounterValue:
    """A stored counter sample as returned by a query.

    Attributes:
        timestamp: Naive datetime the sample was stored with.
        value: The sample value.
    """

    timestamp: datetime
    value: float


class ErrorKind(str, Enum):
    """Category of an internal storage failure."""

    CONNECTION = "connection"
    BOOTSTRAP = "bootstrap"
    RESOLUTION = "resolution"
    TRANSFER = "transfer"
    QUERY = "query"


@dataclass(frozen=True)
class StorageErrorEvent:
    """A failure reported on the error channel.

    Attributes:
        timestamp: Unix timestamp in seconds when the failure was reported.
        operation: Public operation that failed (store, query, list_counters).
        kind: Failure category.
        message: Textual description, including the traceback.
    """

    timestamp: float
    operation: str
    kind: ErrorKind
    message: str
