"""Constants for gcontrol."""

from datetime import timedelta

__all__ = [
    "CONFIG_PATH",
    "DEFAULT_LISTEN_ADDRESS",
    "LDAP_TIMEOUT",
    "MAX_CONCURRENT_SYNCS",
    "MAX_PENDING_SYNCS",
    "SYNC_TIMEOUT",
]

CONFIG_PATH = "/etc/gcontrol/gcontrol.yaml"
"""Default configuration path."""

DEFAULT_LISTEN_ADDRESS = "0.0.0.0:8082"
"""Default address and port on which to listen for login notifications."""

LDAP_TIMEOUT = 5.0
"""Timeout (in seconds) for LDAP connections and queries."""

MAX_CONCURRENT_SYNCS = 10
"""Default number of synchronizations allowed to talk to LDAP at once."""

MAX_PENDING_SYNCS = 1000
"""Default number of accepted synchronizations that may be unfinished.

Login notifications beyond this are rejected rather than queued so that a
flood of logins while the directory servers are down cannot grow memory
usage without bound.
"""

SYNC_TIMEOUT = timedelta(seconds=30)
"""Default time limit for resolving groups from a single directory server."""
