"""
Domain models for replication monitoring.

Configuration and status snapshots are immutable pydantic models. The per-target
LagTracker is the only mutable state and belongs to a single TargetMonitor.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MYSQL_PORT = 3306


class GlobalConfig(BaseModel):
    """Remediation and backoff tunables shared read-only by every monitor."""

    model_config = ConfigDict(frozen=True)

    slave_parallel_max_queued: int = Field(
        default=262144, ge=0, description="Bytes queued for parallel apply (optimize action)"
    )
    slave_parallel_threads: int = Field(
        default=3, ge=1, description="Parallel apply threads (optimize action)"
    )
    slave_domain_parallel_threads: int = Field(
        default=2, ge=1, description="Domain parallel apply threads (optimize action)"
    )
    master_log_pos: int = Field(
        default=4, ge=0, description="Log position used by the reset action"
    )
    max_backoff_seconds: int = Field(default=15, ge=0, description="Backoff ceiling")
    backoff_success_count: int = Field(
        default=5, ge=1, description="Clean checks required before backoff grows"
    )


class Target(BaseModel):
    """One monitored replica."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    host: str = Field(min_length=1)
    port: int = Field(default=DEFAULT_MYSQL_PORT, gt=0, lt=65536)
    username: str = Field(min_length=1)
    password: str = Field(default="", repr=False)


class SlaveStatus(BaseModel):
    """Snapshot of the four replication fields we act on."""

    model_config = ConfigDict(frozen=True)

    errno: int = 0
    read_master_log_pos: int = 0
    exec_master_log_pos: int = 0
    seconds_behind_master: int = 0

    # False only when the status query returned no row at all
    replication_configured: bool = True

    @property
    def lag_bytes(self) -> int:
        return self.read_master_log_pos - self.exec_master_log_pos


@dataclass
class LagTracker:
    """Running state for one target's monitoring loop."""

    last_read_pos: int = 0
    last_exec_pos: int = 0
    last_check: float = 0.0
    zero_err_count: int = 0
    backoff_seconds: int = 0
    last_seconds_behind: int = 0

    # Error-sequence aggregation
    current_error_code: int = 0
    error_count: int = 0
    first_error_time: float = 0.0
    episode: int = 0
    last_reported_episode: int = 0
