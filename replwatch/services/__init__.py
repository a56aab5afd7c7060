"""
Core services for the watchdog.

This package contains the per-target monitoring pipeline: status reading,
lag classification, remediation, error aggregation and backoff.
"""

from .backoff import BackoffController
from .connection import ReplicaConnection, ReplicaSession
from .error_sequence import ErrorSequenceAggregator
from .indicator import LagIndicator, LagTrend, calculate_lag_indicator
from .remediation import RemediationAction, RemediationDispatcher, classify
from .result import Result
from .status_reader import StatusReader, parse_slave_status
from .supervisor import monitor_targets
from .target_monitor import CycleOutcome, TargetMonitor

__all__ = [
    "BackoffController",
    "CycleOutcome",
    "ErrorSequenceAggregator",
    "LagIndicator",
    "LagTrend",
    "RemediationAction",
    "RemediationDispatcher",
    "ReplicaConnection",
    "ReplicaSession",
    "Result",
    "StatusReader",
    "TargetMonitor",
    "calculate_lag_indicator",
    "classify",
    "monitor_targets",
    "parse_slave_status",
]
