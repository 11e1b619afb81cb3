"""Counter id derivation and day-window helpers.

Counter ids live in the positive signed 16-bit range. The candidate id for
a name is a stable 64-bit string hash reduced modulo ``MAX_COUNTER_ID``;
the mapping table is the authority when candidates collide.
"""

import struct
from datetime import date, datetime, time, timedelta

# Exclusive upper bound of the id space (short.MaxValue).
MAX_COUNTER_ID = 32767

_HASH_SEED = 3074457345618258791
_HASH_MULTIPLIER = 3074457345618258799
_HASH_MASK = (1 << 64) - 1


def counter_hash(name: str) -> int:
    """Return the unsigned 64-bit multiplicative hash of a name.

    The hash runs over UTF-16 code units, so characters outside the Basic
    Multilingual Plane contribute their two surrogates. It must stay stable
    across processes and releases: ids already persisted were derived from it.
    """
    hashed = _HASH_SEED
    units = struct.iter_unpack("<H", name.encode("utf-16-le", "surrogatepass"))
    for (unit,) in units:
        hashed = (hashed + unit) & _HASH_MASK
        hashed = (hashed * _HASH_MULTIPLIER) & _HASH_MASK
    return hashed


def counter_id_for(name: str) -> int:
    """Return the candidate counter id for a name."""
    return counter_hash(name) % MAX_COUNTER_ID


def next_counter_id(counter_id: int) -> int:
    """Return the id probed after ``counter_id`` on a collision."""
    return (counter_id + 1) % MAX_COUNTER_ID


def normalize_app_id(app_id: str | int | None) -> int:
    """Map an application id onto the stored smallint column.

    Args:
        app_id: None for the single-tenant default, an integer, a numeric
            string, or an arbitrary string label.

    Returns:
        Integer in [0, 32767]. Non-numeric labels are hashed into the
        counter id space.

    Raises:
        ValueError: If a numeric app id is outside the smallint range.
    """
    if app_id is None:
        return 0
    if isinstance(app_id, str):
        stripped = app_id.strip()
        if not stripped.lstrip("-").isdigit():
            return counter_id_for(stripped)
        app_id = int(stripped)
    if isinstance(app_id, bool) or not 0 <= app_id <= MAX_COUNTER_ID:
        raise ValueError(f"app_id must be within [0, {MAX_COUNTER_ID}]: {app_id!r}")
    return app_id


def day_window(day: date | datetime | None = None) -> tuple[datetime, datetime]:
    """Return the half-open [start, end) window covering one calendar day.

    Args:
        day: Any date or datetime within the day. Defaults to today.

    Returns:
        Tuple of (midnight of the day, midnight of the next day).
    """
    if day is None:
        day = datetime.now()
    if isinstance(day, datetime):
        day = day.date()
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)
