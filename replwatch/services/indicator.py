"""
Lag trend indicator.

Compares how fast the replica reads relay log versus how fast it executes it,
using the positions seen on the previous poll.
"""

from dataclasses import dataclass
from enum import Enum

from replwatch.domain.models import LagTracker, SlaveStatus


class LagTrend(str, Enum):
    """Direction the replica's lag is moving."""

    CAUGHT_UP = "caught_up"
    CATCHING_UP = "catching_up"
    FALLING_BEHIND = "falling_behind"
    STABLE = "stable"
    UNKNOWN = "unknown"  # no rate yet


_TREND_LABELS = {
    LagTrend.CATCHING_UP: "↑ (catching up, lag: {lag} bytes)",
    LagTrend.FALLING_BEHIND: "↓ (falling behind, lag: {lag} bytes)",
    LagTrend.STABLE: "→ (stable, lag: {lag} bytes)",
    LagTrend.UNKNOWN: "lag: {lag} bytes",
}


@dataclass(frozen=True)
class LagIndicator:
    trend: LagTrend
    lag_bytes: int

    def __str__(self) -> str:
        if self.trend is LagTrend.CAUGHT_UP:
            return "✓ (caught up)"
        return _TREND_LABELS[self.trend].format(lag=self.lag_bytes)


def calculate_lag_indicator(
    tracker: LagTracker,
    status: SlaveStatus,
    now: float,
    min_interval_seconds: float = 0.1,
) -> LagIndicator:
    """
    Classify the lag trend and remember the positions for the next call.

    The rate branch is skipped on the first observation (no previous read
    position) and when polls are too close together to give a meaningful rate.
    Equal rates with a nonzero lag count as stable.
    """
    elapsed = now - tracker.last_check
    current_lag = status.lag_bytes

    first_observation = tracker.last_read_pos == 0
    read_delta = status.read_master_log_pos - tracker.last_read_pos
    exec_delta = status.exec_master_log_pos - tracker.last_exec_pos

    tracker.last_read_pos = status.read_master_log_pos
    tracker.last_exec_pos = status.exec_master_log_pos
    tracker.last_check = now

    if current_lag == 0:
        return LagIndicator(LagTrend.CAUGHT_UP, 0)

    if first_observation or elapsed < min_interval_seconds:
        return LagIndicator(LagTrend.UNKNOWN, current_lag)

    read_rate = read_delta / elapsed
    exec_rate = exec_delta / elapsed

    if exec_rate > read_rate:
        trend = LagTrend.CATCHING_UP
    elif exec_rate < read_rate:
        trend = LagTrend.FALLING_BEHIND
    else:
        trend = LagTrend.STABLE
    return LagIndicator(trend, current_lag)
