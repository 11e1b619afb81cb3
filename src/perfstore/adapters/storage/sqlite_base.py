"""Connection and schema management shared by SQLite storage adapters."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from importlib import resources
from pathlib import Path

import aiosqlite

from perfstore.core.errors import (
    ErrorChannel,
    SchemaBootstrapError,
    StorageConnectionError,
)

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


class ConnectionManager:
    """Manages async (aiosqlite) database connections.

    Every ``connection()`` block gets its own connection that is closed on
    any exit path. For :memory: databases, a persistent connection is kept
    since SQLite in-memory databases are connection-scoped; blocks on it
    are serialized so that each one owns the connection's transaction.
    """

    def __init__(self, connection_string: str) -> None:
        self._connection_string = connection_string
        self._persistent_conn: aiosqlite.Connection | None = None
        self._persistent_lock: asyncio.Lock | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the persistent connection lock (lazy to avoid event loop issues)."""
        if self._persistent_lock is None:
            self._persistent_lock = asyncio.Lock()
        return self._persistent_lock

    @property
    def _should_close_connection(self) -> bool:
        """Return True if connections should be closed after use."""
        return self._connection_string != MEMORY_DB

    async def _open(self) -> aiosqlite.Connection:
        """Open a new connection to the configured database."""
        uri = self._connection_string.startswith("file:")
        try:
            return await aiosqlite.connect(self._connection_string, uri=uri)
        except Exception as exc:
            raise StorageConnectionError(
                f"Cannot open database {self._connection_string!r}"
            ) from exc

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Context manager for async database connections.

        Automatically closes connections for file-based databases.
        For :memory: databases, the persistent connection is held
        exclusively for the whole block and rolled back on error instead
        of being closed.
        """
        if self._should_close_connection:
            db = await self._open()
            try:
                yield db
            finally:
                await db.close()
            return

        async with self._get_lock():
            if self._persistent_conn is None:
                self._persistent_conn = await self._open()
            db = self._persistent_conn
            try:
                yield db
            except BaseException:
                await db.rollback()
                raise

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None


class SchemaBootstrap:
    """Runs the idempotent schema script once per storage instance.

    The script is read lazily on first use and cached. A failure is
    reported on the error channel and left for the next call to retry;
    once the script has run the ``done`` flag is never reset.
    """

    def __init__(self, errors: ErrorChannel, schema_path: str | Path | None = None) -> None:
        self._errors = errors
        self._schema_path = Path(schema_path) if schema_path is not None else None
        self._script: str | None = None
        self._done = False
        self._lock: asyncio.Lock | None = None

    @property
    def done(self) -> bool:
        """True once the schema script has been executed successfully."""
        return self._done

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the bootstrap lock (lazy to avoid event loop issues)."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _load_script(self) -> str:
        if self._script is None:
            if self._schema_path is None:
                source = resources.files(__package__).joinpath("schema.sql")
            else:
                source = self._schema_path
            try:
                self._script = source.read_text(encoding="utf-8")
            except OSError as exc:
                raise SchemaBootstrapError(f"Cannot read schema script {source}") from exc
        return self._script

    async def _run(self, db: aiosqlite.Connection) -> None:
        script = self._load_script()
        try:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.executescript(script)
        except Exception as exc:
            raise SchemaBootstrapError("Schema script failed") from exc

    async def ensure(self, db: aiosqlite.Connection, operation: str) -> bool:
        """Create the schema on ``db`` unless it has already been created.

        Args:
            db: Open connection to run the script on.
            operation: Public operation that triggered the bootstrap.

        Returns:
            True if the schema is in place, False if bootstrap failed.
        """
        if self._done:
            return True
        async with self._get_lock():
            if self._done:
                return True
            try:
                await self._run(db)
            except SchemaBootstrapError as exc:
                self._errors.report(operation, exc)
                return False
            logger.debug("Schema bootstrap completed during %s", operation)
            self._done = True
            return True
