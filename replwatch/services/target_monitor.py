"""
Per-target monitoring loop.

One TargetMonitor owns one session and one LagTracker and drives:
read status -> classify lag -> remediate -> update backoff -> sleep, forever.

Inside a remediation burst the monitor polls again after a short fixed pause
so a run of duplicate-key errors is skipped as fast as the server allows.
The outer sleep between bursts follows the backoff controller.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from replwatch.config import MonitorSettings
from replwatch.domain.models import LagTracker, SlaveStatus, Target
from replwatch.errors import ReplicaConnectionError
from replwatch.services.backoff import BackoffController
from replwatch.services.connection import ReplicaSession
from replwatch.services.error_sequence import ErrorSequenceAggregator
from replwatch.services.indicator import LagIndicator, calculate_lag_indicator
from replwatch.services.remediation import (
    POSITION_MISMATCH_CAUSE,
    RemediationAction,
    RemediationDispatcher,
    classify,
)
from replwatch.services.status_reader import StatusReader

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class CycleOutcome:
    """What one inner burst did."""

    polls: int = 0
    remediations: int = 0
    failed: bool = False
    last_status: SlaveStatus | None = None


class TargetMonitor:
    """
    Watches one replica until the process ends.

    The tracker passed in (or created here) is owned by this monitor alone;
    nothing else reads or writes it, so no locking is involved.
    """

    def __init__(
        self,
        target: Target,
        settings: MonitorSettings,
        session: ReplicaSession,
        tracker: LagTracker | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.target = target
        self.settings = settings
        self.session = session
        self.logger = logger.bind(target=target.name)

        self._sleep = sleep
        self._clock = clock
        self.tracker = tracker if tracker is not None else LagTracker(last_check=clock())

        self.reader = StatusReader(settings.polling.status_query)
        self.dispatcher = RemediationDispatcher(settings.global_config)
        self.backoff = BackoffController(settings.global_config, settings.polling, self.logger)
        self.errors = ErrorSequenceAggregator(self.logger, clock)

        self._replication_configured = True

    async def run(self, max_cycles: int | None = None) -> None:
        """
        Connect, then poll until cancelled.

        A failed initial connect stops this target only. Nothing but
        cancellation escapes, so sibling monitors keep running. max_cycles
        bounds the number of outer cycles (None runs forever).
        """
        try:
            await self._run(max_cycles)
        except ReplicaConnectionError as e:
            self.logger.error("monitor_stopped", error=str(e))
        except Exception as e:
            self.logger.exception("monitor_stopped", error=str(e))

    async def _run(self, max_cycles: int | None) -> None:
        try:
            await self.session.open()
            self.logger.info("monitor_connected", host=self.target.host, port=self.target.port)

            cycles = 0
            while max_cycles is None or cycles < max_cycles:
                try:
                    await self.run_cycle()
                except Exception as e:
                    self.logger.exception("monitor_cycle_failed", error=str(e))
                    await self._sleep(self.settings.polling.error_retry_seconds)
                cycles += 1
                await self._sleep(self.backoff.next_interval(self.tracker))
        finally:
            await self.session.close()

    async def run_cycle(self) -> CycleOutcome:
        """Poll until a poll needs no remediation, or something fails."""
        outcome = CycleOutcome()
        polling = self.settings.polling

        while True:
            result = await self.reader.read(self.session)
            outcome.polls += 1
            if result.is_err():
                self.logger.warning("status_check_failed", error=str(result.unwrap_err()))
                await self._recover()
                outcome.failed = True
                return outcome

            status = result.unwrap()
            outcome.last_status = status
            self._track_configured(status)

            indicator = calculate_lag_indicator(
                self.tracker, status, self._clock(), polling.min_rate_interval_seconds
            )
            action = classify(status)

            if action is RemediationAction.NONE:
                self._settle(status, indicator)
                return outcome

            if not await self._remediate(status, indicator, action):
                outcome.failed = True
                return outcome

            outcome.remediations += 1
            await self._sleep(polling.remediation_retry_seconds)

    async def _remediate(
        self, status: SlaveStatus, indicator: LagIndicator, action: RemediationAction
    ) -> bool:
        fields = self._status_fields(status, indicator, action)

        if action is RemediationAction.RESET_POSITION:
            self.logger.warning("replication_status", cause=POSITION_MISMATCH_CAUSE, **fields)
            self.backoff.on_remediation(self.tracker)
        else:
            self.backoff.on_remediation(self.tracker)
            fields["backoff"] = self.tracker.backoff_seconds
            if self.errors.observe_error(self.tracker, status.errno):
                self.logger.warning("replication_status", **fields)

        result = await self.dispatcher.execute(action, self.session)
        if result.is_err():
            error = str(result.unwrap_err())
            if action is RemediationAction.RESET_POSITION:
                self.logger.error("position_reset_failed", error=error)
            else:
                self.logger.error("remediation_failed", error=error, **fields)
            await self._recover()
            return False

        if action is RemediationAction.RESET_POSITION:
            self.logger.info("position_reset", position=self.settings.global_config.master_log_pos)
        return True

    def _settle(self, status: SlaveStatus, indicator: LagIndicator) -> None:
        """Bookkeeping for a poll that needed no remediation."""
        if status.errno == 0:
            self.errors.observe_clean(self.tracker, str(indicator))
            self.backoff.on_clean_poll(self.tracker, status.seconds_behind_master)
        else:
            self.logger.warning(
                "replication_status",
                **self._status_fields(status, indicator, RemediationAction.NONE),
            )
            self.backoff.on_unhandled_error(self.tracker)

    async def _recover(self) -> None:
        """Probe the connection, then pause before retrying from scratch."""
        if not await self.session.ping():
            self.logger.warning("connection_lost")
        await self._sleep(self.settings.polling.error_retry_seconds)

    def _track_configured(self, status: SlaveStatus) -> None:
        if status.replication_configured == self._replication_configured:
            return
        self._replication_configured = status.replication_configured
        if status.replication_configured:
            self.logger.info("replication_configured")
        else:
            self.logger.warning(
                "replication_not_configured", query=self.settings.polling.status_query
            )

    def _status_fields(
        self, status: SlaveStatus, indicator: LagIndicator, action: RemediationAction
    ) -> dict[str, object]:
        return {
            "errno": status.errno,
            "indicator": str(indicator),
            "trend": indicator.trend.value,
            "lag_bytes": indicator.lag_bytes,
            "action": action.value,
            "backoff": self.tracker.backoff_seconds,
        }
