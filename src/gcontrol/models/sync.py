"""Data models for permission synchronization results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

__all__ = [
    "FailureKind",
    "Grant",
    "ServerOutcome",
    "SyncFailure",
    "SyncSuccess",
]


@dataclass(frozen=True, slots=True, order=True)
class Grant:
    """Membership in a Grafana team within an organization."""

    org_id: int
    """Numeric ID of the Grafana organization."""

    team_id: int
    """Numeric ID of the team within that organization."""


class FailureKind(StrEnum):
    """Reason why a directory server contributed no groups."""

    connection = "connection"
    authentication = "authentication"
    search = "search"
    timeout = "timeout"
    sink = "sink"
    internal = "internal"


@dataclass(frozen=True, slots=True)
class SyncSuccess:
    """Groups and grants resolved from one directory server."""

    server: str
    """Identity (``host:port``) of the directory server."""

    bind_user: str
    """Username used for the bind, which may be a static override."""

    groups: list[str]
    """Membership attribute values, in search order, not deduplicated."""

    grants: frozenset[Grant]
    """Grafana grants derived from the groups."""


@dataclass(frozen=True, slots=True)
class SyncFailure:
    """Failure to resolve groups from one directory server."""

    server: str
    """Identity (``host:port``) of the directory server."""

    bind_user: str
    """Username used for the bind, which may be a static override."""

    kind: FailureKind
    """Which step failed."""

    message: str
    """Description of the underlying error."""


type ServerOutcome = SyncSuccess | SyncFailure
"""Result of synchronizing with one directory server."""
