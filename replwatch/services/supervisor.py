"""
Starts one independent monitor per target.

Monitors share nothing but the read-only settings. A monitor that gives up on
its target returns normally, so the TaskGroup keeps its siblings running.
"""

import asyncio
from collections.abc import Callable

import structlog

from replwatch.config import ConnectionConfig, MonitorSettings
from replwatch.domain.models import Target
from replwatch.services.connection import ReplicaConnection, ReplicaSession
from replwatch.services.target_monitor import TargetMonitor

logger = structlog.get_logger(__name__)

ConnectionFactory = Callable[[Target, ConnectionConfig], ReplicaSession]


def build_monitors(
    settings: MonitorSettings, connection_factory: ConnectionFactory = ReplicaConnection
) -> list[TargetMonitor]:
    return [
        TargetMonitor(target, settings, connection_factory(target, settings.connection))
        for target in settings.targets
    ]


async def monitor_targets(
    settings: MonitorSettings,
    connection_factory: ConnectionFactory = ReplicaConnection,
    max_cycles: int | None = None,
) -> None:
    """Run every target's monitor until all of them have stopped."""
    logger.info("targets_loaded", count=len(settings.targets))

    monitors = build_monitors(settings, connection_factory)
    async with asyncio.TaskGroup() as task_group:
        for monitor in monitors:
            task_group.create_task(
                monitor.run(max_cycles=max_cycles), name=f"monitor-{monitor.target.name}"
            )

    logger.info("all_monitors_stopped", count=len(monitors))
