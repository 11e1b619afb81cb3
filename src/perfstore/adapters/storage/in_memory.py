"""In-memory storage adapter for performance counters."""

from collections.abc import Iterable
from datetime import date, datetime

from perfstore.core.cache import NameCache
from perfstore.core.errors import CounterIdSpaceExhausted, CounterQueryError, ErrorChannel
from perfstore.core.identifiers import (
    MAX_COUNTER_ID,
    counter_id_for,
    day_window,
    next_counter_id,
    normalize_app_id,
)
from perfstore.core.models import CounterInput, CounterValue, ErrorKind


class InMemoryCounterStorage:
    """In-memory implementation of CounterStoragePort.

    Keeps the name mapping and samples in lists and dicts, with the same
    id allocation and error reporting as the SQLite adapter. Suitable for
    testing and for callers that do not need persistence.
    """

    def __init__(self, error_channel: ErrorChannel | None = None) -> None:
        self._errors = error_channel if error_channel is not None else ErrorChannel()
        self._names = NameCache()
        self._taken: set[int] = set()
        self._rows: list[tuple[int, int, datetime, float]] = []

    @property
    def errors(self) -> ErrorChannel:
        """Channel receiving every internal failure."""
        return self._errors

    def _resolve(self, name: str) -> int:
        counter_id = self._names.get(name)
        if counter_id is not None:
            return counter_id
        candidate = counter_id_for(name)
        for _ in range(MAX_COUNTER_ID):
            if candidate not in self._taken:
                self._taken.add(candidate)
                self._names.add(name, candidate)
                return candidate
            candidate = next_counter_id(candidate)
        raise CounterIdSpaceExhausted(f"No free counter id left for {name!r}")

    async def store(
        self,
        counters: Iterable[CounterInput],
        timestamp: datetime | None = None,
        app_id: str | int | None = None,
    ) -> None:
        """Store a batch of counter readings."""
        try:
            batch = list(counters)
            moment = timestamp if timestamp is not None else datetime.now()
            app = normalize_app_id(app_id)
            ids = [self._resolve(counter.name) for counter in batch]
            self._rows.extend(
                (app, counter_id, moment, counter.value)
                for counter_id, counter in zip(ids, batch, strict=True)
            )
        except Exception as exc:
            self._errors.report("store", exc, ErrorKind.TRANSFER)

    async def query(
        self,
        counter_name: str,
        day: date | datetime | None = None,
        skip: int = 0,
        app_id: str | int | None = None,
    ) -> list[CounterValue]:
        """Read one counter's samples for one calendar day."""
        try:
            if skip < 0:
                raise CounterQueryError(f"skip must not be negative: {skip}")
            start, end = day_window(day)
            app = normalize_app_id(app_id)
            counter_id = self._names.get(counter_name)
            if counter_id is None:
                return []
            matches = sorted(
                (row for row in self._rows if row[0] == app and row[1] == counter_id),
                key=lambda row: row[2],
            )
            return [
                CounterValue(timestamp=row[2], value=row[3])
                for row in matches
                if start <= row[2] < end
            ][skip:]
        except Exception as exc:
            self._errors.report("query", exc, ErrorKind.QUERY)
            return []

    async def list_counters(self) -> list[str]:
        """Return every known counter name."""
        return list(self._names.snapshot())
