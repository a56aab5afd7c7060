"""
Remediation dispatch.

At most one corrective action fires per poll, picked in priority order:
position mismatch, duplicate key, parallel apply exhaustion. Each action is a
short STOP/adjust/START batch of administrative statements, which MariaDB does
not run transactionally.
"""

from enum import Enum

from replwatch.domain.models import GlobalConfig, SlaveStatus
from replwatch.services.connection import ReplicaSession
from replwatch.services.result import Result

DUPLICATE_KEY_ERRNO = 1062
PARALLEL_APPLY_ERRNO = 1942

POSITION_MISMATCH_CAUSE = "Exec_Master_Log_Pos > Read_Master_Log_Pos"


class RemediationAction(str, Enum):
    NONE = "none"
    SKIP = "skip"
    OPTIMIZE = "optimize"
    RESET_POSITION = "reset_position"


def has_position_mismatch(status: SlaveStatus) -> bool:
    """Executed ahead of read means the relay log position got lost."""
    return status.exec_master_log_pos > status.read_master_log_pos and status.exec_master_log_pos > 0


def classify(status: SlaveStatus) -> RemediationAction:
    """Pick the single action to take for this status."""
    if has_position_mismatch(status):
        return RemediationAction.RESET_POSITION
    if status.errno == DUPLICATE_KEY_ERRNO:
        return RemediationAction.SKIP
    if status.errno == PARALLEL_APPLY_ERRNO:
        return RemediationAction.OPTIMIZE
    return RemediationAction.NONE


def build_statements(action: RemediationAction, config: GlobalConfig) -> list[str]:
    if action is RemediationAction.RESET_POSITION:
        return [
            "STOP SLAVE",
            f"CHANGE MASTER TO master_log_pos={config.master_log_pos}",
            "START SLAVE",
        ]
    if action is RemediationAction.SKIP:
        return [
            "STOP SLAVE",
            "SET global sql_slave_skip_counter = 1",
            "START SLAVE",
        ]
    if action is RemediationAction.OPTIMIZE:
        return [
            "STOP SLAVE",
            f"SET GLOBAL slave_parallel_max_queued = {config.slave_parallel_max_queued}",
            f"SET GLOBAL slave_parallel_threads = {config.slave_parallel_threads}",
            f"SET GLOBAL slave_domain_parallel_threads = {config.slave_domain_parallel_threads}",
            "SET GLOBAL slave_parallel_mode = 'optimistic'",
            "START SLAVE",
        ]
    return []


class RemediationDispatcher:
    """Runs the statement batch for an action against a session."""

    def __init__(self, config: GlobalConfig) -> None:
        self.config = config

    async def execute(
        self, action: RemediationAction, session: ReplicaSession
    ) -> Result[RemediationAction, Exception]:
        statements = build_statements(action, self.config)
        if not statements:
            return Result.ok(action)

        try:
            await session.execute(statements)
        except Exception as e:
            return Result.err(e)
        return Result.ok(action)
