"""LDAP storage layer for gcontrol."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import bonsai
from bonsai import LDAPClient, LDAPSearchScope
from bonsai.utils import escape_attribute_value, escape_filter_exp
from structlog.stdlib import BoundLogger

from ..config import ServerConfig
from ..constants import LDAP_TIMEOUT
from ..exceptions import (
    DirectoryAuthenticationError,
    DirectoryConnectionError,
    DirectorySearchError,
)
from ..models.ldap import Credentials

__all__ = ["DirectoryClient", "DirectorySession"]


@dataclass(slots=True)
class DirectorySession:
    """An open connection to one directory server, bound as one user.

    A session belongs to the resolution that opened it and must never be
    shared with another resolution or reused for other credentials.
    """

    server: ServerConfig
    """Directory server the connection is to."""

    bind_dn: str
    """DN the connection is bound as."""

    connection: Any
    """Underlying bonsai asyncio connection."""


class DirectoryClient:
    """Bind to and search directory servers.

    Unlike a pooled LDAP client, every session opened here has its own
    connection, since each one is bound with the credentials of a different
    user.

    Parameters
    ----------
    logger
        Logger for debug messages and errors.
    """

    def __init__(self, logger: BoundLogger) -> None:
        self._logger = logger

    async def connect(
        self, server: ServerConfig, credentials: Credentials
    ) -> DirectorySession:
        """Open a connection to a directory server and bind.

        Parameters
        ----------
        server
            Directory server to connect to.
        credentials
            Credentials for the bind. The username is substituted into the
            bind DN template of the server.

        Returns
        -------
        DirectorySession
            The bound session. The caller must pass it to `release` exactly
            once. Prefer `session`, which does that automatically.

        Raises
        ------
        DirectoryAuthenticationError
            Raised if the server rejected the bind.
        DirectoryConnectionError
            Raised if the connection to the server failed.
        """
        name = server.name
        username = credentials.username
        bind_dn = server.bind_dn % escape_attribute_value(username)
        logger = self._logger.bind(
            ldap_url=server.url, ldap_bind_dn=bind_dn, user=username
        )

        # An empty password makes a simple bind anonymous.
        if not credentials.password:
            msg = f"Refusing bind to {name} as {bind_dn} without a password"
            raise DirectoryAuthenticationError(msg, name, username)

        client = LDAPClient(server.url, tls=server.start_tls)
        client.set_credentials(
            "SIMPLE", user=bind_dn, password=credentials.password
        )
        try:
            logger.debug("Binding to LDAP server")
            connection = await client.connect(
                is_async=True, timeout=LDAP_TIMEOUT
            )
        except bonsai.AuthenticationError as e:
            msg = f"Bind to {name} as {bind_dn} rejected: {e!s}"
            raise DirectoryAuthenticationError(msg, name, username) from e
        except (bonsai.LDAPError, asyncio.TimeoutError) as e:
            msg = f"Cannot connect to {name}: {type(e).__name__}: {e!s}"
            raise DirectoryConnectionError(msg, name, username) from e

        return DirectorySession(
            server=server, bind_dn=bind_dn, connection=connection
        )

    async def search(
        self, session: DirectorySession, base: str, username: str
    ) -> list[str]:
        """Search for a user's group memberships under one base DN.

        Parameters
        ----------
        session
            Bound session to search with.
        base
            Base DN of the subtree to search.
        username
            Username substituted into the search filter template.

        Returns
        -------
        list of str
            Values of the membership attribute of every matching entry, in
            the order returned by the server. Entries without the attribute
            contribute nothing. If the server is configured with
            ``first_value_only``, only the first value of each entry is used.

        Raises
        ------
        DirectorySearchError
            Raised if the search failed or timed out.
        """
        server = session.server
        attr = server.attributes.member_of
        filter_exp = server.search_filter % escape_filter_exp(username)
        logger = self._logger.bind(
            ldap_url=server.url,
            ldap_attrs=[attr],
            ldap_base=base,
            ldap_search=filter_exp,
            user=username,
        )

        try:
            logger.debug("Querying LDAP")
            results = await session.connection.search(
                base=base,
                scope=LDAPSearchScope.SUB,
                filter_exp=filter_exp,
                attrlist=[attr],
                timeout=LDAP_TIMEOUT,
            )
        except (bonsai.LDAPError, asyncio.TimeoutError) as e:
            msg = f"Search of {base} on {server.name} failed: {e!s}"
            raise DirectorySearchError(msg, server.name, username) from e
        logger.debug("LDAP entries found", count=len(results))

        values = []
        for entry in results:
            if attr not in entry:
                continue
            found = [str(v) for v in entry[attr]]
            if server.first_value_only:
                found = found[:1]
            values.extend(found)
        return values

    def release(self, session: DirectorySession) -> None:
        """Close the connection of a session.

        Must be called exactly once per session.

        Parameters
        ----------
        session
            Session to close.
        """
        self._logger.debug(
            "Closing LDAP connection", ldap_url=session.server.url
        )
        session.connection.close()

    @asynccontextmanager
    async def session(
        self, server: ServerConfig, credentials: Credentials
    ) -> AsyncIterator[DirectorySession]:
        """Open a session that is released on every exit path.

        Parameters
        ----------
        server
            Directory server to connect to.
        credentials
            Credentials for the bind.

        Yields
        ------
        DirectorySession
            The bound session.

        Raises
        ------
        DirectoryAuthenticationError
            Raised if the server rejected the bind.
        DirectoryConnectionError
            Raised if the connection to the server failed.
        """
        session = await self.connect(server, credentials)
        try:
            yield session
        finally:
            self.release(session)
