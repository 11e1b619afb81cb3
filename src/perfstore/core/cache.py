"""Process-local cache of counter names confirmed in the mapping table."""

import threading
from collections.abc import Iterable


class NameCache:
    """Append-only map of counter name to stored counter id.

    Entries are added only after the mapping row is known to be durable,
    so the cache never claims a name the table does not hold. Safe for
    concurrent insertion from several threads or tasks.
    """

    def __init__(self) -> None:
        self._ids: dict[str, int] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def get(self, name: str) -> int | None:
        """Return the cached id for a name, or None on a miss."""
        return self._ids.get(name)

    def add(self, name: str, counter_id: int) -> None:
        """Record a confirmed name. An existing entry is never replaced."""
        with self._lock:
            self._ids.setdefault(name, counter_id)

    def update(self, pairs: Iterable[tuple[str, int]]) -> None:
        """Record several confirmed (name, id) pairs."""
        with self._lock:
            for name, counter_id in pairs:
                self._ids.setdefault(name, counter_id)

    def lookup_all(self, names: Iterable[str]) -> list[int] | None:
        """Return ids for every name in order, or None if any name misses."""
        ids: list[int] = []
        for name in names:
            counter_id = self._ids.get(name)
            if counter_id is None:
                return None
            ids.append(counter_id)
        return ids

    def snapshot(self) -> dict[str, int]:
        """Return a copy of the cached entries."""
        with self._lock:
            return dict(self._ids)
