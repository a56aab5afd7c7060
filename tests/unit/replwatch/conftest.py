"""Shared fixtures: in-memory replica sessions, a manual clock and settings."""

from collections import deque
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from replwatch.config import MonitorSettings, PollingConfig
from replwatch.domain.models import GlobalConfig, Target
from replwatch.errors import ReplicaConnectionError

STATUS_COLUMNS = [
    "Slave_IO_State",
    "Master_Host",
    "Master_Log_File",
    "Read_Master_Log_Pos",
    "Relay_Log_File",
    "Exec_Master_Log_Pos",
    "Last_SQL_Errno",
    "Last_SQL_Error",
    "Seconds_Behind_Master",
]


def status_row(
    errno: int = 0, read: int = 1000, exec_: int = 1000, behind: int | None = 0
) -> tuple[Any, ...]:
    return (
        "Waiting for master to send event",
        "primary.example",
        "mysql-bin.000042",
        read,
        "relay-bin.000007",
        exec_,
        errno,
        "" if errno == 0 else f"Error {errno}",
        behind,
    )


class FakeSession:
    """
    Test double implementing the ReplicaSession protocol.

    Each queued response is either a row (None for "no replication"), or an
    exception to raise from fetch_one. Once the queue is empty, the last
    response repeats.
    """

    def __init__(
        self,
        responses: Sequence[Any] = (),
        columns: Sequence[str] = STATUS_COLUMNS,
        fail_open: bool = False,
        execute_error: Exception | None = None,
        ping_ok: bool = True,
    ) -> None:
        self.responses: deque[Any] = deque(responses)
        self.columns = list(columns)
        self.fail_open = fail_open
        self.execute_error = execute_error
        self.ping_ok = ping_ok
        self._last: Any = status_row()

        self.opened = False
        self.closed = False
        self.queries: list[str] = []
        self.executed: list[list[str]] = []
        self.ping_count = 0

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    async def open(self) -> None:
        if self.fail_open:
            raise ReplicaConnectionError("Failed to connect to database: refused")
        self.opened = True

    async def fetch_one(self, query: str) -> tuple[list[str], Any]:
        self.queries.append(query)
        if self.responses:
            self._last = self.responses.popleft()
        if isinstance(self._last, Exception):
            raise self._last
        return self.columns, self._last

    async def execute(self, statements: Sequence[str]) -> None:
        self.executed.append(list(statements))
        if self.execute_error is not None:
            raise self.execute_error

    async def ping(self) -> bool:
        self.ping_count += 1
        return self.ping_ok

    async def close(self) -> None:
        self.closed = True


class ManualClock:
    """Monotonic clock driven by the fake sleep."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    return FakeSession


@pytest.fixture
def row() -> Callable[..., tuple[Any, ...]]:
    return status_row


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def target() -> Target:
    return Target(name="t1", host="db1.internal", username="monitor", password="secret")


@pytest.fixture
def settings(target: Target) -> MonitorSettings:
    return MonitorSettings(global_config=GlobalConfig(), polling=PollingConfig(), targets=[target])
