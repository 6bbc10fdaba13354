"""Registry of configured directory servers."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Self

from .config import Config, ServerConfig
from .models.ldap import Credentials

__all__ = ["ServerRegistry"]


class ServerRegistry:
    """Ordered, read-only collection of directory servers.

    Built once from the configuration at startup and shared by every
    synchronization task. Nothing mutates it afterwards, so concurrent
    iteration needs no locking.

    Parameters
    ----------
    servers
        Directory servers in the order in which they should be queried.
    """

    def __init__(self, servers: Iterable[ServerConfig]) -> None:
        self._servers = tuple(servers)

    @classmethod
    def from_config(cls, config: Config) -> Self:
        """Create the registry from the gcontrol configuration."""
        return cls(config.servers)

    def __iter__(self) -> Iterator[ServerConfig]:
        return iter(self._servers)

    def __len__(self) -> int:
        return len(self._servers)

    @staticmethod
    def bind_credentials(
        server: ServerConfig, credentials: Credentials
    ) -> Credentials:
        """Determine the credentials with which to bind to a server.

        A server with static credentials always binds with them. Only when
        both the static username and password are empty are the credentials
        of the user who logged in used instead. A server with only one of the
        two set still uses its static values.

        Parameters
        ----------
        server
            Directory server to bind to.
        credentials
            Credentials supplied by the user who logged in.

        Returns
        -------
        Credentials
            Credentials to use for the bind.
        """
        password = ""
        if server.password:
            password = server.password.get_secret_value()
        if not server.user and not password:
            return credentials
        return Credentials(username=server.user or "", password=password)
