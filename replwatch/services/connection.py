"""
Connection handling for one monitored replica.

Each target owns a single aiomysql pool capped at one connection. The pool
recycles connections after a fixed lifetime and the driver reconnects on
demand, so the monitor only probes and retries.
"""

import asyncio
from collections.abc import Sequence
from typing import Any, Protocol

import aiomysql
import structlog
from pymysql.constants import CLIENT

from replwatch.config import ConnectionConfig
from replwatch.domain.models import Target
from replwatch.errors import ReplicaConnectionError

logger = structlog.get_logger(__name__)

StatusRow = tuple[list[str], Sequence[Any] | None]


class ReplicaSession(Protocol):
    """
    What a monitor needs from its connection.

    Protocol so tests can hand in an in-memory double.
    """

    async def open(self) -> None: ...

    async def fetch_one(self, query: str) -> StatusRow:
        """Run a query and return its column names and first row (None when empty)."""
        ...

    async def execute(self, statements: Sequence[str]) -> None:
        """Run administrative statements in order, stopping at the first failure."""
        ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class ReplicaConnection:
    """aiomysql-backed session for a single target."""

    def __init__(self, target: Target, config: ConnectionConfig) -> None:
        self.target = target
        self.config = config
        self.logger = logger.bind(target=target.name)
        self._pool: aiomysql.Pool | None = None

    async def open(self) -> None:
        """Create the pool and verify the server answers."""
        client_flag = CLIENT.MULTI_STATEMENTS if self.config.multi_statements else 0
        try:
            self._pool = await aiomysql.create_pool(
                host=self.target.host,
                port=self.target.port,
                user=self.target.username,
                password=self.target.password,
                minsize=1,
                maxsize=1,
                pool_recycle=self.config.max_lifetime_seconds,
                connect_timeout=self.config.connect_timeout_seconds,
                autocommit=True,
                client_flag=client_flag,
            )
        except Exception as e:
            raise ReplicaConnectionError(f"Failed to connect to database: {e}") from e

        if not await self.ping():
            raise ReplicaConnectionError("Failed to ping database")

    def _require_pool(self) -> aiomysql.Pool:
        if self._pool is None:
            raise RuntimeError("Connection not open - call open() first")
        return self._pool

    async def fetch_one(self, query: str) -> StatusRow:
        return await asyncio.wait_for(
            self._fetch_one(query), timeout=self.config.read_timeout_seconds
        )

    async def _fetch_one(self, query: str) -> StatusRow:
        async with self._require_pool().acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(query)
                columns = [col[0] for col in cursor.description or ()]
                row = await cursor.fetchone()
                return columns, row

    async def execute(self, statements: Sequence[str]) -> None:
        # STOP SLAVE blocks until the applier threads exit, so a batch may wait
        # on the server as long as any read does
        timeout = max(self.config.read_timeout_seconds, self.config.write_timeout_seconds)
        await asyncio.wait_for(self._execute(statements), timeout=timeout)

    async def _execute(self, statements: Sequence[str]) -> None:
        async with self._require_pool().acquire() as conn:
            async with conn.cursor() as cursor:
                if self.config.multi_statements:
                    await cursor.execute("; ".join(statements))
                    # Errors in later statements surface while draining result sets
                    while await cursor.nextset():
                        pass
                else:
                    for statement in statements:
                        await cursor.execute(statement)

    async def ping(self) -> bool:
        """Probe the connection; the driver reconnects if it was dropped."""
        try:
            async with self._require_pool().acquire() as conn:
                await asyncio.wait_for(
                    conn.ping(reconnect=True), timeout=self.config.connect_timeout_seconds
                )
            return True
        except Exception as e:
            self.logger.debug("ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._pool is None:
            return
        self._pool.close()
        await self._pool.wait_closed()
        self._pool = None
