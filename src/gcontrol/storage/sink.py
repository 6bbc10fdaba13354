"""Destinations for resolved Grafana grants."""

from __future__ import annotations

from abc import ABCMeta, abstractmethod

from structlog.stdlib import BoundLogger

from ..config import GrafanaConfig
from ..models.sync import Grant

__all__ = ["GrantSink", "LoggingGrantSink"]


class GrantSink(metaclass=ABCMeta):
    """Receives the Grafana grants resolved for a user.

    This is the boundary between group resolution and whatever applies the
    permission changes in Grafana. It is called once per directory server
    that was successfully queried, possibly with an empty set of grants.
    """

    @abstractmethod
    async def apply(
        self, username: str, server: str, grants: frozenset[Grant]
    ) -> None:
        """Accept the grants for a user from one directory server.

        Parameters
        ----------
        username
            Username of the user who logged in.
        server
            Identity (``host:port``) of the directory server the grants came
            from.
        grants
            Organization and team memberships the user should have.
        """


class LoggingGrantSink(GrantSink):
    """Grant sink that only logs the grants.

    Parameters
    ----------
    config
        Grafana configuration, if any, used to annotate the log messages.
    logger
        Logger to use.
    """

    def __init__(
        self, config: GrafanaConfig | None, logger: BoundLogger
    ) -> None:
        if config and config.url:
            logger = logger.bind(grafana_url=str(config.url))
        self._logger = logger

    async def apply(
        self, username: str, server: str, grants: frozenset[Grant]
    ) -> None:
        self._logger.info(
            "Resolved Grafana grants",
            user=username,
            ldap_server=server,
            grants=[
                {"org_id": g.org_id, "team_id": g.team_id}
                for g in sorted(grants)
            ],
        )
