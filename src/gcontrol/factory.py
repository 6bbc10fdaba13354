"""Create gcontrol components."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import Self

import structlog
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .config import Config
from .registry import ServerRegistry
from .services.groups import GroupResolver
from .services.sync import PermissionSync
from .storage.ldap import DirectoryClient
from .storage.sink import GrantSink, LoggingGrantSink
from .supervisor import SyncSupervisor

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process application context.

    This object caches all of the per-process singletons that can be reused
    for every request and only need to be recreated if the application
    configuration changes. Directory connections are deliberately not part
    of it, since every synchronization binds with different credentials.
    """

    config: Config
    """gcontrol's configuration."""

    registry: ServerRegistry
    """Directory servers to query."""

    sink: GrantSink
    """Destination for resolved Grafana grants."""

    supervisor: SyncSupervisor
    """Owner of background synchronization tasks."""

    @classmethod
    def from_config(cls, config: Config) -> Self:
        """Create a new process context from the gcontrol configuration.

        Parameters
        ----------
        config
            The gcontrol configuration.

        Returns
        -------
        ProcessContext
            Shared context for a gcontrol process.
        """
        logger = structlog.get_logger("gcontrol")
        return cls(
            config=config,
            registry=ServerRegistry.from_config(config),
            sink=LoggingGrantSink(config.grafana, logger),
            supervisor=SyncSupervisor(
                max_running=config.max_concurrent_syncs,
                max_pending=config.max_pending_syncs,
                logger=logger,
            ),
        )

    async def aclose(self) -> None:
        """Clean up a process context.

        Called during shutdown, or before recreating the process context using
        a different configuration. Cancels any synchronizations still running.
        """
        await self.supervisor.aclose()


class Factory:
    """Build gcontrol components.

    Uses the contents of a `ProcessContext` to construct the components of the
    application on demand.

    Parameters
    ----------
    context
        Shared process context.
    logger
        Logger to use for errors.
    """

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for gcontrol components.

        Intended for command-line use outside of the web application.

        Parameters
        ----------
        config
            gcontrol configuration.

        Yields
        ------
        Factory
            The factory. Must be used as an async context manager.

        Examples
        --------
        .. code-block:: python

           async with Factory.standalone(config) as factory:
               sync = factory.create_permission_sync()
               outcomes = await sync.synchronize(credentials)
        """
        logger = structlog.get_logger("gcontrol")
        context = ProcessContext.from_config(config)
        async with aclosing(cls(context, logger)) as factory:
            yield factory

    def __init__(self, context: ProcessContext, logger: BoundLogger) -> None:
        self._context = context
        self._logger = logger

    @property
    def supervisor(self) -> SyncSupervisor:
        """Owner of background synchronization tasks."""
        return self._context.supervisor

    async def aclose(self) -> None:
        """Shut down the factory.

        After this method is called, the factory object is no longer valid and
        must not be used.
        """
        await self._context.aclose()

    def create_directory_client(self) -> DirectoryClient:
        """Create a client for directory servers.

        Returns
        -------
        DirectoryClient
            Newly-created directory client.
        """
        return DirectoryClient(self._logger)

    def create_group_resolver(self) -> GroupResolver:
        """Create a resolver for directory groups.

        Returns
        -------
        GroupResolver
            Newly-created group resolver.
        """
        return GroupResolver(self.create_directory_client(), self._logger)

    def create_permission_sync(self) -> PermissionSync:
        """Create the service that synchronizes Grafana permissions.

        Returns
        -------
        PermissionSync
            Newly-created permission synchronization service.
        """
        return PermissionSync(
            registry=self._context.registry,
            resolver=self.create_group_resolver(),
            sink=self._context.sink,
            timeout=self._context.config.sync_timeout,
            logger=self._logger,
            slack_client=self.create_slack_client(),
        )

    def create_slack_client(self) -> SlackWebhookClient | None:
        """Create a client for sending alerts to Slack.

        Returns
        -------
        safir.slack.webhook.SlackWebhookClient or None
            Configured Slack client if Slack alerts are enabled and a webhook
            was configured, otherwise `None`.
        """
        config = self._context.config
        if not config.slack_alerts or not config.slack_webhook:
            return None
        return SlackWebhookClient(
            config.slack_webhook, "gcontrol", self._logger
        )

    def set_logger(self, logger: BoundLogger) -> None:
        """Replace the internal logger.

        Used by the context dependency to update the logger for all
        newly-created components when it's rebound with additional context.

        Parameters
        ----------
        logger
            New logger.
        """
        self._logger = logger
