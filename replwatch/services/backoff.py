"""
Adaptive polling backoff.

Backoff grows by one second per healthy poll once enough consecutive clean
checks have been seen, up to a ceiling. Any error or remediation drops it back
to zero immediately. Falling behind only resets the clean-check streak.
"""

from typing import Any

from replwatch.config import PollingConfig
from replwatch.domain.models import GlobalConfig, LagTracker


class BackoffController:
    def __init__(self, config: GlobalConfig, polling: PollingConfig, log: Any) -> None:
        self.config = config
        self.polling = polling
        self.logger = log

    def on_remediation(self, tracker: LagTracker) -> None:
        """Active intervention resumes tight polling."""
        tracker.zero_err_count = 0
        tracker.backoff_seconds = 0

    def on_unhandled_error(self, tracker: LagTracker) -> None:
        tracker.zero_err_count = 0
        if tracker.backoff_seconds > 0:
            self.logger.info("backoff_reset", previous_backoff=tracker.backoff_seconds)
            tracker.backoff_seconds = 0

    def is_healthy(self, tracker: LagTracker, seconds_behind: int) -> bool:
        """Caught up, or behind but not getting further behind."""
        caught_up = seconds_behind == 0
        progressing = (
            tracker.last_seconds_behind > 0 and seconds_behind <= tracker.last_seconds_behind
        )
        return caught_up or progressing

    def on_clean_poll(self, tracker: LagTracker, seconds_behind: int) -> None:
        if self.is_healthy(tracker, seconds_behind):
            tracker.zero_err_count += 1
            if tracker.zero_err_count >= self.config.backoff_success_count:
                previous = tracker.backoff_seconds
                ceiling = self.config.max_backoff_seconds
                tracker.backoff_seconds = min(previous + 1, ceiling)
                if tracker.backoff_seconds != previous and self._should_log(
                    tracker.backoff_seconds
                ):
                    self.logger.info("backoff_increased", backoff=tracker.backoff_seconds)
        else:
            tracker.zero_err_count = 0
        tracker.last_seconds_behind = seconds_behind

    def _should_log(self, backoff: int) -> bool:
        return backoff == 1 or backoff % 5 == 0 or backoff == self.config.max_backoff_seconds

    def next_interval(self, tracker: LagTracker) -> float:
        """Seconds to sleep between outer poll cycles."""
        if tracker.backoff_seconds > 0:
            return float(tracker.backoff_seconds)
        return self.polling.idle_interval_seconds
