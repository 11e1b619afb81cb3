"""Helper functions for building CounterInput batches."""

from collections.abc import Iterable, Mapping

from perfstore.core.models import CounterInput


def counter(name: str, value: float) -> CounterInput:
    """Create a single counter reading.

    Args:
        name: Counter name (e.g., "cpu_percent")
        value: Current reading

    Returns:
        CounterInput ready to be stored

    Raises:
        ValueError: If the name is empty.
    """
    if not name:
        raise ValueError("counter name must not be empty")
    return CounterInput(name=name, value=float(value))


def batch(
    readings: Mapping[str, float] | Iterable[tuple[str, float]],
) -> list[CounterInput]:
    """Create a batch of counter readings that share one timestamp.

    Args:
        readings: Mapping of name to value, or (name, value) pairs.
            Pair order is kept; duplicate names are allowed.

    Returns:
        List of CounterInput in input order
    """
    pairs = readings.items() if isinstance(readings, Mapping) else readings
    return [counter(name, value) for name, value in pairs]
