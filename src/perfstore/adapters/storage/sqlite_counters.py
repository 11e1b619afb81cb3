"""SQLite storage adapter for performance counters."""

import logging
import sqlite3
import struct
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path

import aiosqlite

from perfstore.adapters.storage.sqlite_base import ConnectionManager, SchemaBootstrap
from perfstore.core.cache import NameCache
from perfstore.core.errors import (
    BulkTransferError,
    CounterIdSpaceExhausted,
    CounterQueryError,
    CounterResolutionError,
    ErrorChannel,
)
from perfstore.core.identifiers import (
    MAX_COUNTER_ID,
    counter_id_for,
    day_window,
    next_counter_id,
    normalize_app_id,
)
from perfstore.core.models import CounterInput, CounterValue, ErrorKind

logger = logging.getLogger(__name__)

_SELECT_COUNTER_ID = """
SELECT id FROM counter_names WHERE name = ?
"""

_INSERT_COUNTER_NAME = """
INSERT INTO counter_names (id, name) VALUES (?, ?)
"""

_SELECT_COUNTER_NAMES = """
SELECT name, id FROM counter_names
"""

_INSERT_COUNTER_VALUE = """
INSERT INTO counter_values (app_id, counter_id, timestamp, value) VALUES (?, ?, ?, ?)
"""

# SQLite only accepts OFFSET after a LIMIT; -1 means no limit.
_SELECT_COUNTER_VALUES = """
SELECT timestamp, value FROM counter_values
WHERE app_id = ? AND counter_id = ? AND timestamp >= ? AND timestamp < ?
ORDER BY timestamp ASC
LIMIT -1 OFFSET ?
"""

_FLOAT32 = struct.Struct("<f")


def _to_float32(value: float) -> float:
    """Narrow a value to float32 precision."""
    result: float = _FLOAT32.unpack(_FLOAT32.pack(value))[0]
    return result


def _to_naive(moment: datetime) -> datetime:
    """Convert aware datetimes to local naive time."""
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def _format_timestamp(moment: datetime) -> str:
    """Fixed-width text form whose ordering matches time ordering."""
    return moment.isoformat(sep=" ", timespec="microseconds")


# @tra: Adapter.SQLiteCounterStorage.ImplementsCounterStoragePort
class SQLiteCounterStorage:
    """SQLite implementation of CounterStoragePort.

    Stores counter samples in a SQLite database using aiosqlite for
    non-blocking async operations. Counter names are mapped to 16-bit ids
    through the ``counter_names`` table; ids confirmed there are cached
    per instance so that repeated batches skip the lookup entirely.

    The schema is created lazily by the first operation. Every operation
    opens its own connection, except for :memory: databases, which keep a
    persistent connection until ``close()``.

    No public operation raises. Failures are emitted on ``errors`` and the
    operation returns its empty default.
    """

    def __init__(
        self,
        connection_string: str,
        *,
        schema_path: str | Path | None = None,
        error_channel: ErrorChannel | None = None,
        error_history: int = 100,
    ) -> None:
        """Initialize the storage. No connection is opened here.

        Args:
            connection_string: SQLite database path, ":memory:", or a
                "file:" URI.
            schema_path: Schema script to bootstrap with. Defaults to the
                packaged schema.sql.
            error_channel: Channel to report failures on. A new channel is
                created when omitted.
            error_history: History size of the channel created when
                ``error_channel`` is omitted.
        """
        self._errors = error_channel if error_channel is not None else ErrorChannel(error_history)
        self._connections = ConnectionManager(connection_string)
        self._bootstrap = SchemaBootstrap(self._errors, schema_path)
        self._names = NameCache()

    @property
    def errors(self) -> ErrorChannel:
        """Channel receiving every internal failure."""
        return self._errors

    @property
    def names(self) -> NameCache:
        """Counter names confirmed in the mapping table."""
        return self._names

    @property
    def schema_ready(self) -> bool:
        """True once the schema bootstrap has succeeded."""
        return self._bootstrap.done

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection with the schema bootstrapped."""
        async with self._connections.connection() as db:
            await self._bootstrap.ensure(db, operation)
            yield db

    # --- Identifier resolution ---

    async def _select_id(self, db: aiosqlite.Connection, name: str) -> int | None:
        async with db.execute(_SELECT_COUNTER_ID, (name,)) as cursor:
            row = await cursor.fetchone()
        return None if row is None else int(row[0])

    async def _lookup(self, db: aiosqlite.Connection, name: str) -> int | None:
        """Return the stored id for a name without creating it."""
        counter_id = self._names.get(name)
        if counter_id is None:
            counter_id = await self._select_id(db, name)
            if counter_id is not None:
                self._names.add(name, counter_id)
        return counter_id

    async def _create(self, db: aiosqlite.Connection, name: str) -> int:
        """Insert a mapping row for a new name, probing past taken ids."""
        candidate = counter_id_for(name)
        for _ in range(MAX_COUNTER_ID):
            try:
                await db.execute(_INSERT_COUNTER_NAME, (candidate, name))
                return candidate
            except sqlite3.IntegrityError:
                # Either a concurrent writer created the name first, or the
                # candidate id belongs to another name.
                existing = await self._select_id(db, name)
                if existing is not None:
                    return existing
                logger.debug("Counter id %d taken, probing for %r", candidate, name)
                candidate = next_counter_id(candidate)
        raise CounterIdSpaceExhausted(f"No free counter id left for {name!r}")

    async def _resolve(self, db: aiosqlite.Connection, names: Sequence[str]) -> list[int]:
        """Resolve every name against the mapping table, creating missing rows.

        Returns:
            One id per name, in input order.
        """
        ids: list[int] = []
        try:
            for name in names:
                counter_id = await self._select_id(db, name)
                if counter_id is None:
                    counter_id = await self._create(db, name)
                ids.append(counter_id)
            await db.commit()
        except CounterResolutionError:
            raise
        except Exception as exc:
            raise CounterResolutionError(
                f"Cannot resolve counter ids for {len(names)} names"
            ) from exc
        self._names.update(zip(names, ids))
        return ids

    async def refresh_cache(self) -> int:
        """Load every mapping row into the name cache.

        Returns:
            Number of cached names.
        """
        await self.list_counters()
        return len(self._names)

    # --- Write path ---

    async def _transfer(
        self,
        db: aiosqlite.Connection,
        app_id: int,
        counter_ids: Sequence[int],
        moment: datetime,
        counters: Sequence[CounterInput],
    ) -> None:
        """Write one row per counter in a single batched insert."""
        stamp = _format_timestamp(moment)
        try:
            rows = [
                (app_id, counter_id, stamp, _to_float32(counter.value))
                for counter_id, counter in zip(counter_ids, counters, strict=True)
            ]
            await db.executemany(_INSERT_COUNTER_VALUE, rows)
            await db.commit()
        except Exception as exc:
            raise BulkTransferError(f"Cannot write {len(counters)} counter samples") from exc

    async def _store(
        self,
        counters: Sequence[CounterInput],
        timestamp: datetime | None,
        app_id: str | int | None,
    ) -> None:
        if not counters:
            return
        moment = _to_naive(timestamp) if timestamp is not None else datetime.now()
        app = normalize_app_id(app_id)
        names = [counter.name for counter in counters]

        async with self._session("store") as db:
            counter_ids = self._names.lookup_all(names)
            if counter_ids is None:
                logger.debug("Resolving %d counter names against the table", len(names))
                counter_ids = await self._resolve(db, names)
            await self._transfer(db, app, counter_ids, moment, counters)

    async def store(
        self,
        counters: Iterable[CounterInput],
        timestamp: datetime | None = None,
        app_id: str | int | None = None,
    ) -> None:
        """Store a batch of counter readings.

        Args:
            counters: Readings to store. Row i gets the id of counters[i].
            timestamp: Timestamp shared by every row. Defaults to now.
            app_id: Application id written to every row. Defaults to 0.
        """
        try:
            await self._store(list(counters), timestamp, app_id)
        except Exception as exc:
            self._errors.report("store", exc, ErrorKind.TRANSFER)

    # --- Read path ---

    async def _query(
        self,
        counter_name: str,
        day: date | datetime | None,
        skip: int,
        app_id: str | int | None,
    ) -> list[CounterValue]:
        if skip < 0:
            raise CounterQueryError(f"skip must not be negative: {skip}")
        start, end = day_window(day)
        app = normalize_app_id(app_id)

        async with self._session("query") as db:
            try:
                counter_id = await self._lookup(db, counter_name)
                if counter_id is None:
                    return []
                params = (
                    app,
                    counter_id,
                    _format_timestamp(start),
                    _format_timestamp(end),
                    skip,
                )
                async with db.execute(_SELECT_COUNTER_VALUES, params) as cursor:
                    rows = await cursor.fetchall()
            except Exception as exc:
                raise CounterQueryError(f"Cannot query counter {counter_name!r}") from exc

        return [
            CounterValue(timestamp=datetime.fromisoformat(row[0]), value=row[1])
            for row in rows
        ]

    async def query(
        self,
        counter_name: str,
        day: date | datetime | None = None,
        skip: int = 0,
        app_id: str | int | None = None,
    ) -> list[CounterValue]:
        """Read one counter's samples for one calendar day.

        Returns samples with timestamp in [midnight, next midnight),
        ordered by timestamp ascending, without the first ``skip`` ones.
        Unknown names and failures give an empty list.
        """
        try:
            return await self._query(counter_name, day, skip, app_id)
        except Exception as exc:
            self._errors.report("query", exc, ErrorKind.QUERY)
            return []

    async def list_counters(self) -> list[str]:
        """Return every counter name in the mapping table, unordered."""
        try:
            async with self._session("list_counters") as db:
                try:
                    async with db.execute(_SELECT_COUNTER_NAMES) as cursor:
                        rows = await cursor.fetchall()
                except Exception as exc:
                    raise CounterQueryError("Cannot list counter names") from exc
        except Exception as exc:
            self._errors.report("list_counters", exc, ErrorKind.QUERY)
            return []
        self._names.update((row[0], int(row[1])) for row in rows)
        return [row[0] for row in rows]

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        await self._connections.close()
