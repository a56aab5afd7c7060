"""
Configuration management for the replication watchdog.

Design principles:
- Targets and tunables come from an INI file (one section per replica)
- Validation at startup (fail fast) with pydantic
- Hard-coded defaults for every tunable
- Logging settings from environment variables / .env
"""

import configparser
import os
from collections.abc import Callable
from pathlib import Path
from typing import Literal, TypeVar, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from replwatch.domain.models import DEFAULT_MYSQL_PORT, GlobalConfig, Target
from replwatch.errors import ConfigError

logger = structlog.get_logger(__name__)

DEFAULTS_SECTION = "defaults"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["console", "json"]

NumberT = TypeVar("NumberT", int, float)


class PollingConfig(BaseModel):
    """Timings of the polling loop."""

    model_config = ConfigDict(frozen=True)

    idle_interval_seconds: float = Field(
        default=0.5, gt=0.0, description="Sleep between cycles while not backed off"
    )
    remediation_retry_seconds: float = Field(
        default=0.025, ge=0.0, description="Pause between polls inside a remediation burst"
    )
    error_retry_seconds: float = Field(
        default=1.0, ge=0.0, description="Pause after a failed query or remediation"
    )
    min_rate_interval_seconds: float = Field(
        default=0.1, ge=0.0, description="Shortest interval over which rates are computed"
    )
    status_query: str = Field(default="SHOW SLAVE STATUS", min_length=1)


class ConnectionConfig(BaseModel):
    """Per-target connection parameters."""

    model_config = ConfigDict(frozen=True)

    connect_timeout_seconds: float = Field(default=10.0, gt=0.0)
    read_timeout_seconds: float = Field(default=30.0, gt=0.0)
    write_timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_lifetime_seconds: int = Field(
        default=300, gt=0, description="Connections older than this are renewed"
    )
    multi_statements: bool = Field(
        default=True, description="Send remediation batches in one round trip"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: LogFormat = Field(default="console", description="Logging format")


class MonitorSettings(BaseModel):
    """Everything the monitors need, validated once at startup."""

    model_config = ConfigDict(frozen=True)

    global_config: GlobalConfig = Field(default_factory=GlobalConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    targets: list[Target] = Field(min_length=1)


def _level_to_literal(val: str | None) -> LogLevel:
    v = (val or "").strip().upper()
    return cast(LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO")


def _format_to_literal(val: str | None) -> LogFormat:
    v = (val or "").strip().lower()
    return "json" if v == "json" else "console"


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def load_logging_config_from_env() -> LoggingConfig:
    """Read LOG_LEVEL and LOG_FORMAT, honouring a local .env file."""
    load_dotenv()
    return LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format=_format_to_literal(os.getenv("LOG_FORMAT", "console")),
    )


def _read_number(
    section: configparser.SectionProxy,
    key: str,
    default: NumberT,
    convert: Callable[[str], NumberT],
) -> NumberT:
    """Read a numeric key, keeping the default when the value does not parse."""
    raw = section.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return convert(raw.strip())
    except ValueError:
        logger.warning(
            "invalid_config_value", section=section.name, key=key, value=raw, default=default
        )
        return default


def _load_global_config(section: configparser.SectionProxy | None) -> GlobalConfig:
    defaults = GlobalConfig()
    if section is None:
        return defaults
    values = {
        name: _read_number(section, name, getattr(defaults, name), int)
        for name in GlobalConfig.model_fields
    }
    return GlobalConfig(**values)


def _load_polling_config(section: configparser.SectionProxy | None) -> PollingConfig:
    defaults = PollingConfig()
    if section is None:
        return defaults
    values: dict[str, object] = {
        name: _read_number(section, name, getattr(defaults, name), float)
        for name in PollingConfig.model_fields
        if name != "status_query"
    }
    values["status_query"] = section.get("status_query", defaults.status_query).strip()
    return PollingConfig(**values)


def _load_connection_config(section: configparser.SectionProxy | None) -> ConnectionConfig:
    defaults = ConnectionConfig()
    if section is None:
        return defaults
    return ConnectionConfig(
        connect_timeout_seconds=_read_number(
            section, "connect_timeout_seconds", defaults.connect_timeout_seconds, float
        ),
        read_timeout_seconds=_read_number(
            section, "read_timeout_seconds", defaults.read_timeout_seconds, float
        ),
        write_timeout_seconds=_read_number(
            section, "write_timeout_seconds", defaults.write_timeout_seconds, float
        ),
        max_lifetime_seconds=_read_number(
            section, "max_lifetime_seconds", defaults.max_lifetime_seconds, int
        ),
        multi_statements=_parse_bool(section.get("multi_statements"), defaults.multi_statements),
    )


def _load_target(section: configparser.SectionProxy) -> Target:
    port = (section.get("port") or "").strip() or DEFAULT_MYSQL_PORT
    return Target(
        name=section.name,
        host=(section.get("host") or "").strip(),
        port=port,  # type: ignore[arg-type]
        username=(section.get("username") or "").strip(),
        password=section.get("password") or "",
    )


def parse_config(
    parser: configparser.ConfigParser, logging_config: LoggingConfig | None = None
) -> MonitorSettings:
    """Build validated settings from an already-read parser."""
    defaults = parser[DEFAULTS_SECTION] if parser.has_section(DEFAULTS_SECTION) else None

    try:
        targets = [
            _load_target(parser[name])
            for name in parser.sections()
            if name != DEFAULTS_SECTION
        ]
        if not targets:
            raise ConfigError("no targets defined in config file")

        return MonitorSettings(
            global_config=_load_global_config(defaults),
            polling=_load_polling_config(defaults),
            connection=_load_connection_config(defaults),
            logging=logging_config or LoggingConfig(),
            targets=targets,
        )
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def load_config(
    path: str | Path, logging_config: LoggingConfig | None = None
) -> MonitorSettings:
    """Load and validate the INI configuration file."""
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, encoding="utf-8") as fh:
            parser.read_file(fh)
    except OSError as e:
        raise ConfigError(f"failed to load config file: {e}") from e
    except configparser.Error as e:
        raise ConfigError(f"failed to parse config file: {e}") from e

    return parse_config(parser, logging_config)
