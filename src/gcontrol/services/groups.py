"""Resolution of a user's directory groups."""

from __future__ import annotations

from structlog.stdlib import BoundLogger

from ..config import ServerConfig
from ..models.ldap import Credentials
from ..registry import ServerRegistry
from ..storage.ldap import DirectoryClient

__all__ = ["GroupResolver"]


class GroupResolver:
    """Resolve the group memberships of a user from one directory server.

    Parameters
    ----------
    directory
        Client used to bind to and search the directory server.
    logger
        Logger to use.
    """

    def __init__(
        self, directory: DirectoryClient, logger: BoundLogger
    ) -> None:
        self._directory = directory
        self._logger = logger

    async def resolve(
        self, server: ServerConfig, credentials: Credentials
    ) -> list[str]:
        """Get the membership attribute values of a user.

        Binds once, with the static credentials of the server if it has any
        and otherwise with the user's credentials, then searches every
        configured base DN in order for the user's own username. The
        connection is closed before returning or raising.

        Parameters
        ----------
        server
            Directory server to query.
        credentials
            Credentials of the user who logged in.

        Returns
        -------
        list of str
            Membership attribute values from all search bases, in order.
            Empty if no entries matched.

        Raises
        ------
        DirectoryError
            Raised if the bind or any search failed. A failed search stops
            processing of the remaining search bases.
        """
        bind = ServerRegistry.bind_credentials(server, credentials)
        username = credentials.username
        groups: list[str] = []
        async with self._directory.session(server, bind) as session:
            for base in server.search_base_dns:
                groups.extend(
                    await self._directory.search(session, base, username)
                )
        self._logger.debug(
            "Resolved directory groups",
            ldap_server=server.name,
            user=username,
            groups=groups,
        )
        return groups
