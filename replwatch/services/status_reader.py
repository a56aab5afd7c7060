"""
Replication status reader.

Finds the columns we need by name, since the SHOW SLAVE STATUS layout differs
between server versions, and converts only those four values.
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from replwatch.domain.models import SlaveStatus
from replwatch.errors import StatusSchemaError
from replwatch.services.connection import ReplicaSession
from replwatch.services.result import Result

ERRNO_COLUMN = "Last_SQL_Errno"

# Column name -> SlaveStatus field
STATUS_COLUMNS = {
    ERRNO_COLUMN: "errno",
    "Read_Master_Log_Pos": "read_master_log_pos",
    "Exec_Master_Log_Pos": "exec_master_log_pos",
    "Seconds_Behind_Master": "seconds_behind_master",
}


def _as_int(value: Any) -> int:
    """Convert a driver value to int; SQL NULL becomes 0."""
    if value is None:
        return 0
    if isinstance(value, bytes | bytearray):
        value = value.decode("ascii")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
        return int(Decimal(value))
    return int(value)


def parse_slave_status(columns: Sequence[str], row: Sequence[Any] | None) -> SlaveStatus:
    """
    Build a SlaveStatus from a raw result.

    Raises:
        StatusSchemaError: Last_SQL_Errno is not among the columns.
    """
    indexes = {
        STATUS_COLUMNS[name]: idx for idx, name in enumerate(columns) if name in STATUS_COLUMNS
    }
    if "errno" not in indexes:
        raise StatusSchemaError(f"{ERRNO_COLUMN} column not found")

    if row is None:
        return SlaveStatus(replication_configured=False)

    return SlaveStatus(**{field: _as_int(row[idx]) for field, idx in indexes.items()})


class StatusReader:
    """Reads one SlaveStatus snapshot per call."""

    def __init__(self, query: str = "SHOW SLAVE STATUS") -> None:
        self.query = query

    async def read(self, session: ReplicaSession) -> Result[SlaveStatus, Exception]:
        try:
            columns, row = await session.fetch_one(self.query)
            return Result.ok(parse_slave_status(columns, row))
        except Exception as e:
            return Result.err(e)
