"""Bridge from the storage error channel to Python's logging module.

The channel already logs every event on its own module logger. This
adapter forwards events to an application-chosen logger with structured
fields, so failures can be routed and filtered like any other log record.
"""

import logging
from collections.abc import Callable

from perfstore.core.errors import ErrorChannel
from perfstore.core.models import StorageErrorEvent


def _summary(message: str) -> str:
    """Return the exception line that ends a formatted traceback."""
    lines = message.strip().splitlines()
    return lines[-1] if lines else ""


def log_storage_errors(
    channel: ErrorChannel,
    logger: logging.Logger | None = None,
    level: int = logging.WARNING,
    include_traceback: bool = False,
) -> Callable[[], None]:
    """Forward error channel events to a logger.

    Example:
        ```python
        storage = SQLiteCounterStorage("perf.db")
        log_storage_errors(storage.errors, logging.getLogger("app.perf"))
        ```

    Args:
        channel: Channel to subscribe to.
        logger: Target logger. Defaults to the "perfstore" logger.
        level: Level of the emitted records.
        include_traceback: Log the full message instead of its last line.

    Returns:
        A callable that removes the subscription.
    """
    target = logger if logger is not None else logging.getLogger("perfstore")

    def forward(event: StorageErrorEvent) -> None:
        text = event.message if include_traceback else _summary(event.message)
        target.log(
            level,
            "Counter storage %s failed: %s",
            event.operation,
            text,
            extra={
                "operation": event.operation,
                "kind": event.kind.value,
                "event_timestamp": event.timestamp,
            },
        )

    return channel.subscribe(forward)
