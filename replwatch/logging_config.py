"""
Structured logging setup.

Events are emitted as snake_case names with key/value fields. The json format
ships them as-is; the console format renders each event as the classic one-line
progress signal:

    [replica-1] 2026/10/16 09:30:01 errno=1062 lag: 120 bytes action=skip backoff=0s
"""

import logging
import sys
from collections.abc import MutableMapping
from datetime import datetime
from typing import Any

import structlog

from replwatch.config import LoggingConfig

LINE_TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

STATUS_TEMPLATE = "errno={errno} {indicator} action={action} backoff={backoff}s"

# Body templates for the console line format, keyed by event name
EVENT_TEMPLATES: dict[str, str] = {
    "targets_loaded": "Loaded {count} target(s) from config",
    "monitor_connected": "Connected to MariaDB, monitoring replication status...",
    "monitor_stopped": "Monitoring stopped: {error}",
    "status_check_failed": "Error checking replication: {error}",
    "connection_lost": "Connection lost, will reconnect",
    "replication_status": STATUS_TEMPLATE,
    "remediation_failed": STATUS_TEMPLATE,
    "position_reset": "Master log position reset to {position}",
    "position_reset_failed": "Failed to reset master log position: {error}",
    "error_sequence_closed": "Fixed {count} more errno={errno} problems",
    "backoff_increased": "No errors detected, backed off to {backoff}s",
    "backoff_reset": "Error detected, resetting backoff",
    "replication_not_configured": (
        "No replication configured ({query} returned no row), reporting as idle"
    ),
    "replication_configured": "Replication status available again",
    "invalid_config_value": "Invalid value {value!r} for {key} in [{section}], using {default}",
    "config_error": "Failed to load config: {error}",
}

# Keys consumed by the line renderer itself
_RESERVED_KEYS = {
    "event", "target", "timestamp", "level", "logger", "exc_info", "exception", "stack"
}


def format_duration(seconds: float) -> str:
    """Render a duration rounded to whole seconds, e.g. 0s, 42s, 1m5s, 2h0m3s."""
    # half-seconds round up
    total = int(seconds + 0.5) if seconds > 0 else 0
    if total <= 0:
        return "0s"
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def _render_body(event: str, event_dict: MutableMapping[str, Any]) -> str:
    template = EVENT_TEMPLATES.get(event)
    if template is None:
        extras = " ".join(
            f"{key}={value}" for key, value in event_dict.items() if key not in _RESERVED_KEYS
        )
        return f"{event} {extras}".rstrip()

    try:
        body = template.format(**event_dict)
    except KeyError:
        return event

    if event == "error_sequence_closed" and "duration" in event_dict:
        body += f" (took {event_dict['duration']})"
        if event_dict.get("indicator"):
            body += f" {event_dict['indicator']}"
    if event_dict.get("cause"):
        body += f" ({event_dict['cause']})"
    if event in {"remediation_failed", "replication_status"} and event_dict.get("error"):
        body += f" error={event_dict['error']}"
    return body


def render_line(_logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]) -> str:
    """structlog renderer producing `[target] date time body`."""
    event = str(event_dict.get("event", ""))
    stamp = event_dict.get("timestamp")
    if not isinstance(stamp, str):
        stamp = datetime.now().strftime(LINE_TIMESTAMP_FORMAT)

    parts = []
    if event_dict.get("target"):
        parts.append(f"[{event_dict['target']}]")
    parts.append(stamp)
    parts.append(_render_body(event, event_dict))

    line = " ".join(parts)
    if event_dict.get("exception"):
        line += "\n" + str(event_dict["exception"])
    return line


def configure_logging(config: LoggingConfig) -> None:
    """Configure stdlib logging and structlog for the whole process."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.level),
        force=True,
    )

    if config.format == "json":
        timestamper = structlog.processors.TimeStamper(fmt="iso")
        renderer: Any = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        timestamper = structlog.processors.TimeStamper(fmt=LINE_TIMESTAMP_FORMAT, utc=False)
        renderer = render_line

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
