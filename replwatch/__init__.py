"""MariaDB replication watchdog.

Polls replicas, reports lag trends and applies a small set of automatic fixes
for known-recoverable replication errors.
"""

__version__ = "0.1.0"
