"""BDD step definitions for counter storage features."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import aiosqlite
import pytest
from pytest_bdd import given, parsers, then, when

from perfstore.adapters.storage import SQLiteCounterStorage
from perfstore.core.models import CounterInput, StorageErrorEvent


def run_async(coro: Any) -> Any:
    """Run a coroutine in a new event loop (for sync step functions)."""
    return asyncio.run(coro)


@dataclass
class CounterScenarioContext:
    """Shared state between steps in a counter storage scenario."""

    db_path: str = ""
    storage: SQLiteCounterStorage | None = None
    second_storage: SQLiteCounterStorage | None = None
    received: list[StorageErrorEvent] = field(default_factory=list)
    store_exception: Exception | None = None


@pytest.fixture
def ctx() -> CounterScenarioContext:
    """Fresh scenario context for each test."""
    return CounterScenarioContext()


def _parse_moment(text: str) -> datetime:
    return datetime.strptime(text, "%Y-%m-%d %H:%M:%S")


def _parse_day(text: str) -> datetime:
    return datetime.strptime(text, "%Y-%m-%d")


def _values(text: str) -> list[float]:
    return [float(part) for part in text.split(",")]


# === Given ===


@given("a SQLite counter storage in a temporary file")
def step_storage(ctx: CounterScenarioContext, tmp_path: Path) -> None:
    ctx.db_path = str(tmp_path / "counters.db")
    ctx.storage = SQLiteCounterStorage(ctx.db_path)


@given("a SQLite counter storage whose schema script is missing")
def step_storage_missing_schema(ctx: CounterScenarioContext, tmp_path: Path) -> None:
    ctx.db_path = str(tmp_path / "counters.db")
    ctx.storage = SQLiteCounterStorage(ctx.db_path, schema_path=tmp_path / "gone.sql")


@given("a second SQLite counter storage on the same file")
def step_second_storage(ctx: CounterScenarioContext) -> None:
    ctx.second_storage = SQLiteCounterStorage(ctx.db_path)


@given("an error subscriber")
def step_error_subscriber(ctx: CounterScenarioContext) -> None:
    assert ctx.storage is not None
    ctx.storage.errors.subscribe(ctx.received.append)


# === When ===


@when(parsers.parse('"{name}" is stored with value {value:g} at "{moment}" for app "{app}"'))
def when_stored(
    ctx: CounterScenarioContext, name: str, value: float, moment: str, app: str
) -> None:
    assert ctx.storage is not None
    try:
        run_async(
            ctx.storage.store(
                [CounterInput(name, value)], timestamp=_parse_moment(moment), app_id=app
            )
        )
    except Exception as exc:
        ctx.store_exception = exc


@when(
    parsers.parse(
        '"{name}" is stored with values {values} one second apart from "{start}"'
    )
)
def when_stored_series(
    ctx: CounterScenarioContext, name: str, values: str, start: str
) -> None:
    assert ctx.storage is not None
    first = _parse_moment(start)
    for offset, value in enumerate(_values(values)):
        run_async(
            ctx.storage.store(
                [CounterInput(name, value)], timestamp=first + timedelta(seconds=offset)
            )
        )


@when("both storages list their counters")
def when_both_list(ctx: CounterScenarioContext) -> None:
    assert ctx.storage is not None and ctx.second_storage is not None
    run_async(ctx.storage.list_counters())
    run_async(ctx.second_storage.list_counters())


# === Then ===


@then(parsers.parse('querying "{name}" on "{day}" for app "{app}" returns'))
def then_query_returns(
    ctx: CounterScenarioContext,
    name: str,
    day: str,
    app: str,
    datatable: list[list[str]],
) -> None:
    assert ctx.storage is not None
    result = run_async(ctx.storage.query(name, _parse_day(day), app_id=app))
    expected = [(_parse_moment(row[0]), float(row[1])) for row in datatable[1:]]
    assert [(sample.timestamp, sample.value) for sample in result] == expected


@then(parsers.parse('querying "{name}" on "{day}" skipping {skip:d} returns values {values}'))
def then_query_skipping(
    ctx: CounterScenarioContext, name: str, day: str, skip: int, values: str
) -> None:
    assert ctx.storage is not None
    result = run_async(ctx.storage.query(name, _parse_day(day), skip=skip))
    assert [sample.value for sample in result] == _values(values)


@then(parsers.parse('the counter list is exactly "{names}"'))
def then_counter_list(ctx: CounterScenarioContext, names: str) -> None:
    assert ctx.storage is not None
    listed = run_async(ctx.storage.list_counters())
    assert sorted(listed) == sorted(part.strip() for part in names.split(","))


@then(parsers.parse("the mapping table holds {count:d} rows"))
def then_mapping_rows(ctx: CounterScenarioContext, count: int) -> None:
    async def _count() -> int:
        async with aiosqlite.connect(ctx.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM counter_names") as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    assert run_async(_count()) == count


@then("no storage errors were reported")
def then_no_errors(ctx: CounterScenarioContext) -> None:
    for storage in (ctx.storage, ctx.second_storage):
        if storage is not None:
            assert storage.errors.history == ()


@then("the store call completed without raising")
def then_store_completed(ctx: CounterScenarioContext) -> None:
    assert ctx.store_exception is None


@then(parsers.parse('the subscriber received a "{kind}" error'))
def then_subscriber_received(ctx: CounterScenarioContext, kind: str) -> None:
    assert kind in [event.kind.value for event in ctx.received]
