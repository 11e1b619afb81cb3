"""Port interface for counter storage adapters.

The protocol defines the contract that storage adapters must implement.
Callers depend only on this interface, not on concrete implementations.
"""

from collections.abc import Iterable
from datetime import date, datetime
from typing import Protocol, runtime_checkable

from perfstore.core.errors import ErrorChannel
from perfstore.core.models import CounterInput, CounterValue


@runtime_checkable
class CounterStoragePort(Protocol):
    """Port for performance counter storage.

    Operations never raise: failures are emitted on ``errors`` and the
    operation returns its empty default.
    Examples: InMemoryCounterStorage, SQLiteCounterStorage.
    """

    @property
    def errors(self) -> ErrorChannel:
        """Channel receiving every internal failure."""
        ...

    async def store(
        self,
        counters: Iterable[CounterInput],
        timestamp: datetime | None = None,
        app_id: str | int | None = None,
    ) -> None:
        """Store a batch of readings sharing one timestamp and app id."""
        ...

    async def query(
        self,
        counter_name: str,
        day: date | datetime | None = None,
        skip: int = 0,
        app_id: str | int | None = None,
    ) -> list[CounterValue]:
        """Read one counter's samples for one calendar day.

        Args:
            counter_name: Counter to read.
            day: Any date or datetime within the day. Defaults to today.
            skip: Number of leading samples to drop.
            app_id: Application id. Defaults to 0.

        Returns:
            Samples ordered by timestamp ascending.
        """
        ...

    async def list_counters(self) -> list[str]:
        """Return every known counter name, unordered."""
        ...
