"""Storage exceptions and the error channel.

Public storage operations never raise. Failures are converted to
:class:`StorageErrorEvent` objects and emitted on an :class:`ErrorChannel`,
which delivers them to live subscribers and keeps a bounded history so
that failures stay observable without a subscriber attached at call time.
"""

import logging
import threading
import time
import traceback
from collections import deque
from collections.abc import Callable

from perfstore.core.models import ErrorKind, StorageErrorEvent

logger = logging.getLogger(__name__)

ErrorSubscriber = Callable[[StorageErrorEvent], None]


class CounterStoreError(Exception):
    """Base class for internal storage failures."""

    kind: ErrorKind = ErrorKind.CONNECTION


class StorageConnectionError(CounterStoreError):
    """Opening a database connection failed."""

    kind = ErrorKind.CONNECTION


class SchemaBootstrapError(CounterStoreError):
    """The schema script could not be read or executed."""

    kind = ErrorKind.BOOTSTRAP


class CounterResolutionError(CounterStoreError):
    """Looking up or creating a counter id failed."""

    kind = ErrorKind.RESOLUTION


class CounterIdSpaceExhausted(CounterResolutionError):
    """Every counter id is already assigned to another name."""


class BulkTransferError(CounterStoreError):
    """Writing a batch of sample rows failed."""

    kind = ErrorKind.TRANSFER


class CounterQueryError(CounterStoreError):
    """Reading samples or counter names failed."""

    kind = ErrorKind.QUERY


def _format_exception(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


class ErrorChannel:
    """Subscribable sink for storage failures with a buffered history.

    Example:
        ```python
        channel = ErrorChannel()
        unsubscribe = channel.subscribe(lambda event: print(event.message))
        storage = SQLiteCounterStorage("perf.db", error_channel=channel)
        ```
    """

    def __init__(self, history_size: int = 100) -> None:
        """Initialize the channel.

        Args:
            history_size: Number of most recent events kept in ``history``.
        """
        self._subscribers: list[ErrorSubscriber] = []
        self._history: deque[StorageErrorEvent] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    @property
    def history(self) -> tuple[StorageErrorEvent, ...]:
        """Buffered events, oldest first."""
        with self._lock:
            return tuple(self._history)

    def subscribe(self, callback: ErrorSubscriber) -> Callable[[], None]:
        """Register a callback for every future event.

        Returns:
            A callable that removes the subscription.
        """
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def clear(self) -> None:
        """Drop the buffered history."""
        with self._lock:
            self._history.clear()

    def emit(self, event: StorageErrorEvent) -> None:
        """Buffer an event and deliver it to every subscriber."""
        with self._lock:
            self._history.append(event)
            subscribers = list(self._subscribers)
        logger.error("%s failed (%s): %s", event.operation, event.kind.value, event.message)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Error channel subscriber %r raised", callback)

    def report(
        self,
        operation: str,
        exc: BaseException,
        default_kind: ErrorKind = ErrorKind.CONNECTION,
    ) -> StorageErrorEvent:
        """Convert an exception to an event and emit it.

        Args:
            operation: Name of the public operation that failed.
            exc: The caught exception.
            default_kind: Kind used when ``exc`` is not a CounterStoreError.

        Returns:
            The emitted event.
        """
        kind = exc.kind if isinstance(exc, CounterStoreError) else default_kind
        event = StorageErrorEvent(
            timestamp=time.time(),
            operation=operation,
            kind=kind,
            message=_format_exception(exc),
        )
        self.emit(event)
        return event
