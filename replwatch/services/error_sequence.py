"""Coalesces repeated remediated errors into one reported episode."""

import time
from collections.abc import Callable
from typing import Any

from replwatch.domain.models import LagTracker
from replwatch.logging_config import format_duration


class ErrorSequenceAggregator:
    """
    Tracks the error code currently being fixed.

    The first poll of an episode is reported in full by the caller; repeats are
    only counted. When the episode ends, a single summary line reports how many
    further occurrences were fixed.
    """

    def __init__(self, log: Any, clock: Callable[[], float] = time.monotonic) -> None:
        self.logger = log
        self.clock = clock

    def observe_error(self, tracker: LagTracker, errno: int) -> bool:
        """Record a remediated error. Returns True when it opens a new episode."""
        if tracker.current_error_code == errno:
            tracker.error_count += 1
            return False

        self._report(tracker)
        tracker.current_error_code = errno
        tracker.error_count = 1
        tracker.first_error_time = self.clock()
        tracker.episode += 1
        return True

    def observe_clean(self, tracker: LagTracker, indicator: str) -> None:
        """Close the open episode, if any, after an error-free poll."""
        if tracker.current_error_code == 0:
            return

        duration = format_duration(self.clock() - tracker.first_error_time)
        self._report(tracker, duration=duration, indicator=indicator)
        tracker.current_error_code = 0
        tracker.error_count = 0

    def _report(self, tracker: LagTracker, **extra: str) -> None:
        if tracker.error_count <= 1 or tracker.last_reported_episode == tracker.episode:
            return
        self.logger.info(
            "error_sequence_closed",
            count=tracker.error_count - 1,
            errno=tracker.current_error_code,
            **extra,
        )
        tracker.last_reported_episode = tracker.episode
