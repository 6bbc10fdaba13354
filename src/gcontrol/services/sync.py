"""Synchronization of Grafana permissions from directory groups."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import timedelta

from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from ..config import GroupMapping, ServerConfig
from ..exceptions import (
    DirectoryAuthenticationError,
    DirectoryError,
    DirectorySearchError,
)
from ..models.ldap import Credentials
from ..models.sync import (
    FailureKind,
    Grant,
    ServerOutcome,
    SyncFailure,
    SyncSuccess,
)
from ..registry import ServerRegistry
from ..storage.sink import GrantSink
from .groups import GroupResolver

__all__ = ["PermissionSync", "map_groups"]


def map_groups(
    groups: Iterable[str], mappings: Iterable[GroupMapping]
) -> frozenset[Grant]:
    """Translate directory groups into Grafana grants.

    Groups are matched against the configured group DNs by exact string
    comparison, so the configured DN must be spelled the way the directory
    returns it. Groups without a mapping are ignored.

    Parameters
    ----------
    groups
        Membership attribute values resolved for a user.
    mappings
        Group mappings of the directory server the groups came from.

    Returns
    -------
    frozenset of Grant
        Grants for all mapped groups.
    """
    found = set(groups)
    return frozenset(
        Grant(org_id=m.org_id, team_id=m.team_id)
        for m in mappings
        if m.group_dn in found
    )


def _failure_kind(exc: DirectoryError) -> FailureKind:
    if isinstance(exc, DirectoryAuthenticationError):
        return FailureKind.authentication
    elif isinstance(exc, DirectorySearchError):
        return FailureKind.search
    else:
        return FailureKind.connection


class PermissionSync:
    """Resolve a user's groups on every directory server and apply them.

    Every configured directory server is handled independently and in
    order. A failure on one server, including a failure to apply its grants,
    is logged and recorded and never prevents the remaining servers from
    being processed.

    Parameters
    ----------
    registry
        Directory servers to query.
    resolver
        Resolver for the groups of a user on one server.
    sink
        Destination for the resulting Grafana grants.
    timeout
        Time limit for resolving groups from one server.
    logger
        Logger to use.
    slack_client
        If given, failures that need operator attention (an unreachable or
        failing server, a failed sink, or an unexpected error) are also
        reported to Slack. Rejected credentials are not.
    """

    def __init__(
        self,
        *,
        registry: ServerRegistry,
        resolver: GroupResolver,
        sink: GrantSink,
        timeout: timedelta,
        logger: BoundLogger,
        slack_client: SlackWebhookClient | None = None,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._sink = sink
        self._timeout = timeout
        self._logger = logger
        self._slack = slack_client

    async def synchronize(
        self, credentials: Credentials
    ) -> list[ServerOutcome]:
        """Synchronize the permissions of a user from all servers.

        Parameters
        ----------
        credentials
            Credentials of the user who logged in.

        Returns
        -------
        list of SyncSuccess or SyncFailure
            Outcome for each directory server, in registry order.
        """
        outcomes = [
            await self._sync_server(server, credentials)
            for server in self._registry
        ]
        failed = sum(1 for o in outcomes if isinstance(o, SyncFailure))
        self._logger.info(
            "Finished permission synchronization",
            user=credentials.username,
            servers=len(outcomes),
            failed=failed,
        )
        return outcomes

    async def _sync_server(
        self, server: ServerConfig, credentials: Credentials
    ) -> ServerOutcome:
        """Resolve and apply the grants from one directory server."""
        username = credentials.username
        bind_user = ServerRegistry.bind_credentials(
            server, credentials
        ).username
        logger = self._logger.bind(
            ldap_server=server.name, user=username, bind_user=bind_user
        )

        def failure(kind: FailureKind, message: str) -> SyncFailure:
            return SyncFailure(
                server=server.name,
                bind_user=bind_user,
                kind=kind,
                message=message,
            )

        logger.debug("Authenticating to directory server")
        try:
            async with asyncio.timeout(self._timeout.total_seconds()):
                groups = await self._resolver.resolve(server, credentials)
        except DirectoryError as e:
            kind = _failure_kind(e)
            logger.error(
                "Cannot resolve groups from directory server",
                failure=kind.value,
                error=str(e),
            )
            if self._slack and kind != FailureKind.authentication:
                await self._slack.post_exception(e)
            return failure(kind, str(e))
        except TimeoutError:
            msg = f"Timed out after {self._timeout.total_seconds()}s"
            logger.error(
                "Cannot resolve groups from directory server",
                failure=FailureKind.timeout.value,
                error=msg,
            )
            return failure(FailureKind.timeout, msg)
        except Exception as e:
            msg = f"{type(e).__name__}: {e!s}"
            logger.exception(
                "Unexpected error resolving groups",
                failure=FailureKind.internal.value,
                error=msg,
            )
            if self._slack:
                await self._slack.post_uncaught_exception(e)
            return failure(FailureKind.internal, msg)

        grants = map_groups(groups, server.group_mappings)
        try:
            await self._sink.apply(username, server.name, grants)
        except Exception as e:
            msg = f"{type(e).__name__}: {e!s}"
            logger.exception(
                "Cannot apply Grafana grants",
                failure=FailureKind.sink.value,
                error=msg,
            )
            if self._slack:
                await self._slack.post_uncaught_exception(e)
            return failure(FailureKind.sink, msg)

        logger.info(
            "Synchronized groups from directory server",
            groups=len(groups),
            grants=len(grants),
        )
        return SyncSuccess(
            server=server.name,
            bind_user=bind_user,
            groups=groups,
            grants=grants,
        )
