"""
Tests for the aiomysql-backed replica connection.

aiomysql.create_pool is replaced with an in-memory pool whose cursor mimics
how multi-statement results are drained with nextset().
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import pytest
from pymysql.constants import CLIENT
from pymysql.err import OperationalError

from replwatch.config import ConnectionConfig
from replwatch.domain.models import Target
from replwatch.errors import ReplicaConnectionError
from replwatch.services import connection as connection_module
from replwatch.services.connection import ReplicaConnection


class FakeCursor:
    def __init__(self, conn: "FakeConn") -> None:
        self.conn = conn
        self.description: list[tuple[str]] | None = None
        self._pending: list[str] = []

    async def __aenter__(self) -> "FakeCursor":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    def _run(self, statement: str) -> None:
        self.conn.statements.append(statement)
        if self.conn.fail_on and self.conn.fail_on in statement:
            raise OperationalError(1227, "Access denied")

    async def execute(self, query: str) -> None:
        first, *rest = [part.strip() for part in query.split(";") if part.strip()]
        self._pending = rest
        self._run(first)
        self.description = [(name,) for name in self.conn.columns]

    async def fetchone(self) -> Any:
        return self.conn.row

    async def nextset(self) -> bool | None:
        if not self._pending:
            return None
        self._run(self._pending.pop(0))
        return True


class FakeConn:
    def __init__(self) -> None:
        self.columns = ["Last_SQL_Errno", "Read_Master_Log_Pos"]
        self.row: Any = (0, 42)
        self.statements: list[str] = []
        self.fail_on: str | None = None
        self.ping_error: Exception | None = None

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    async def ping(self, reconnect: bool = True) -> None:
        if self.ping_error is not None:
            raise self.ping_error


class FakePool:
    def __init__(self, conn: FakeConn) -> None:
        self.conn = conn
        self.closed = False

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[FakeConn]:
        yield self.conn

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


@pytest.fixture
def fake_conn() -> FakeConn:
    return FakeConn()


@pytest.fixture
def pool_kwargs(monkeypatch: pytest.MonkeyPatch, fake_conn: FakeConn) -> dict[str, Any]:
    captured: dict[str, Any] = {}

    async def create_pool(**kwargs: Any) -> FakePool:
        captured.update(kwargs)
        captured["pool"] = FakePool(fake_conn)
        return captured["pool"]

    monkeypatch.setattr(connection_module.aiomysql, "create_pool", create_pool)
    return captured


def _connection(**config: Any) -> ReplicaConnection:
    target = Target(name="t1", host="db1", port=3307, username="monitor", password="pw")
    return ReplicaConnection(target, ConnectionConfig(**config))


async def test_open_uses_single_connection_pool(pool_kwargs: dict[str, Any]) -> None:
    conn = _connection()
    await conn.open()

    assert pool_kwargs["host"] == "db1"
    assert pool_kwargs["port"] == 3307
    assert pool_kwargs["user"] == "monitor"
    assert pool_kwargs["minsize"] == 1
    assert pool_kwargs["maxsize"] == 1
    assert pool_kwargs["pool_recycle"] == 300
    assert pool_kwargs["connect_timeout"] == 10.0
    assert pool_kwargs["client_flag"] & CLIENT.MULTI_STATEMENTS


async def test_open_raises_when_ping_fails(
    pool_kwargs: dict[str, Any], fake_conn: FakeConn
) -> None:
    fake_conn.ping_error = OperationalError(2013, "Lost connection")
    with pytest.raises(ReplicaConnectionError, match="ping"):
        await _connection().open()


async def test_open_wraps_driver_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    async def refuse(**kwargs: Any) -> None:
        raise OperationalError(2003, "Can't connect to MySQL server")

    monkeypatch.setattr(connection_module.aiomysql, "create_pool", refuse)
    with pytest.raises(ReplicaConnectionError, match="Can't connect"):
        await _connection().open()


async def test_fetch_one_returns_columns_and_row(pool_kwargs: dict[str, Any]) -> None:
    conn = _connection()
    await conn.open()

    columns, row = await conn.fetch_one("SHOW SLAVE STATUS")

    assert columns == ["Last_SQL_Errno", "Read_Master_Log_Pos"]
    assert row == (0, 42)


async def test_execute_sends_one_batch(pool_kwargs: dict[str, Any], fake_conn: FakeConn) -> None:
    conn = _connection()
    await conn.open()

    await conn.execute(["STOP SLAVE", "SET global sql_slave_skip_counter = 1", "START SLAVE"])

    assert fake_conn.statements == [
        "STOP SLAVE",
        "SET global sql_slave_skip_counter = 1",
        "START SLAVE",
    ]


async def test_slow_batch_is_bounded_by_read_timeout(
    pool_kwargs: dict[str, Any], fake_conn: FakeConn, monkeypatch: pytest.MonkeyPatch
) -> None:
    original_execute = FakeCursor.execute

    async def slow_execute(self: FakeCursor, query: str) -> None:
        await asyncio.sleep(0.2)
        await original_execute(self, query)

    monkeypatch.setattr(FakeCursor, "execute", slow_execute)
    conn = _connection(read_timeout_seconds=3.0, write_timeout_seconds=0.1)
    await conn.open()

    await conn.execute(["STOP SLAVE", "START SLAVE"])

    assert fake_conn.statements == ["STOP SLAVE", "START SLAVE"]


async def test_batch_failure_stops_remaining_statements(
    pool_kwargs: dict[str, Any], fake_conn: FakeConn
) -> None:
    fake_conn.fail_on = "CHANGE MASTER"
    conn = _connection()
    await conn.open()

    with pytest.raises(OperationalError):
        await conn.execute(["STOP SLAVE", "CHANGE MASTER TO master_log_pos=4", "START SLAVE"])

    assert fake_conn.statements == ["STOP SLAVE", "CHANGE MASTER TO master_log_pos=4"]


async def test_sequential_mode_also_stops_at_first_failure(
    pool_kwargs: dict[str, Any], fake_conn: FakeConn
) -> None:
    fake_conn.fail_on = "CHANGE MASTER"
    conn = _connection(multi_statements=False)
    await conn.open()

    with pytest.raises(OperationalError):
        await conn.execute(["STOP SLAVE", "CHANGE MASTER TO master_log_pos=4", "START SLAVE"])

    assert fake_conn.statements == ["STOP SLAVE", "CHANGE MASTER TO master_log_pos=4"]
    assert pool_kwargs["client_flag"] == 0


async def test_ping_reports_loss(pool_kwargs: dict[str, Any], fake_conn: FakeConn) -> None:
    conn = _connection()
    await conn.open()

    fake_conn.ping_error = OperationalError(2006, "MySQL server has gone away")
    assert await conn.ping() is False


async def test_close_releases_pool(pool_kwargs: dict[str, Any]) -> None:
    conn = _connection()
    await conn.open()
    await conn.close()

    assert pool_kwargs["pool"].closed
    await conn.close()  # idempotent


async def test_use_before_open_is_an_error() -> None:
    with pytest.raises(RuntimeError, match="not open"):
        await _connection().fetch_one("SHOW SLAVE STATUS")
