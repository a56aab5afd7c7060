"""Exception hierarchy for the replication watchdog."""


class ReplwatchError(Exception):
    """Base class for all watchdog errors."""


class ConfigError(ReplwatchError):
    """Configuration is missing, unreadable or invalid. Fatal at startup."""


class ReplicaConnectionError(ReplwatchError):
    """A target could not be connected to or pinged. Fatal for that target only."""


class StatusSchemaError(ReplwatchError):
    """The replication status result lacks a mandatory column."""
