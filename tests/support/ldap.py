"""Mock bonsai LDAP API for testing."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Iterator
from typing import Any
from unittest.mock import Mock, patch

import bonsai

from gcontrol.constants import LDAP_TIMEOUT
from gcontrol.storage import ldap

_SearchResults = list[dict[str, list[str]]]

__all__ = [
    "MockLDAP",
    "MockLDAPClient",
    "MockLDAPConnection",
    "patch_ldap",
]


class MockLDAPConnection(Mock):
    """Mock bonsai asyncio connection bound to one directory server.

    Only methods of the real `bonsai.LDAPConnection` may be called on it.

    Parameters
    ----------
    directory
        The mock directory holding the test data.
    url
        URL of the server the connection is to.
    bind_dn
        DN the connection is bound as.
    """

    def __init__(
        self, directory: MockLDAP, url: str, bind_dn: str, **kwargs: Any
    ) -> None:
        super().__init__(spec=bonsai.LDAPConnection, **kwargs)
        self.url = url
        self.bind_dn = bind_dn
        self.close_count = 0
        self._directory = directory

    def close(self) -> None:
        self.close_count += 1

    async def search(
        self,
        base: str,
        scope: bonsai.LDAPSearchScope,
        filter_exp: str,
        attrlist: list[str],
        timeout: float,
    ) -> _SearchResults:
        assert scope == bonsai.LDAPSearchScope.SUB
        assert timeout == LDAP_TIMEOUT
        assert self.close_count == 0, "search on closed connection"
        self._directory.searches.append((self.url, base, filter_exp))

        if (self.url, base) in self._directory.hung_searches:
            await asyncio.sleep(3600)
        if (self.url, base) in self._directory.failed_searches:
            raise bonsai.LDAPError(f"Search of {base} failed")

        entries = self._directory.entries[self.url].get((base, filter_exp))
        if not entries:
            return []
        return [
            {a: entry[a] for a in attrlist if a in entry} for entry in entries
        ]


class MockLDAPClient(Mock):
    """Mock bonsai client for one directory server.

    Only methods of the real `bonsai.LDAPClient` may be called on it, so code
    relying on a method bonsai does not have fails here as well.
    """

    def __init__(
        self, directory: MockLDAP, url: str, tls: bool, **kwargs: Any
    ) -> None:
        super().__init__(spec=bonsai.LDAPClient, **kwargs)
        self.url = url
        self.tls = tls
        self.user: str | None = None
        self.password: str | None = None
        self._directory = directory

    def set_credentials(
        self, mechanism: str, user: str, password: str
    ) -> None:
        assert mechanism == "SIMPLE"
        self.user = user
        self.password = password

    async def connect(
        self, *, is_async: bool, timeout: float
    ) -> MockLDAPConnection:
        assert is_async
        assert timeout == LDAP_TIMEOUT
        assert self.user is not None
        self._directory.binds.append((self.url, self.user, self.password))

        if self.url in self._directory.down:
            raise bonsai.ConnectionError("Can't contact LDAP server")
        if self.url in self._directory.hung:
            await asyncio.sleep(3600)
        accounts = self._directory.accounts[self.url]
        if accounts.get(self.user) != self.password:
            raise bonsai.AuthenticationError("Invalid credentials")

        connection = MockLDAPConnection(self._directory, self.url, self.user)
        self._directory.connections.append(connection)
        return connection


class MockLDAP:
    """Test data and call records for a set of mock directory servers.

    Servers are identified by their LDAP URL, such as
    ``ldap://ldap1.example.com:389``.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, dict[str, str]] = defaultdict(dict)
        self.entries: defaultdict[str, dict[tuple[str, str], _SearchResults]]
        self.entries = defaultdict(dict)
        self.down: set[str] = set()
        self.hung: set[str] = set()
        self.failed_searches: set[tuple[str, str]] = set()
        self.hung_searches: set[tuple[str, str]] = set()
        self.clients: list[MockLDAPClient] = []
        self.binds: list[tuple[str, str, str | None]] = []
        self.connections: list[MockLDAPConnection] = []
        self.searches: list[tuple[str, str, str]] = []

    def add_account(self, url: str, bind_dn: str, password: str) -> None:
        """Allow binds to a server as the given DN with the given password."""
        self.accounts[url][bind_dn] = password

    def add_entries_for_test(
        self, url: str, base: str, filter_exp: str, entries: _SearchResults
    ) -> None:
        """Add LDAP entries for testing.

        Parameters
        ----------
        url
            URL of the server holding the entries.
        base
            The base DN of a search that should return these entries.
        filter_exp
            The exact search filter that returns these entries.
        entries
            The entries returned by that search, which will be filtered by the
            attribute list.
        """
        self.entries[url][(base, filter_exp)] = entries

    def client(self, url: str, tls: bool = False) -> MockLDAPClient:
        """Create a mock client, replacing `bonsai.LDAPClient`."""
        client = MockLDAPClient(self, url, tls)
        self.clients.append(client)
        return client

    @property
    def open_connections(self) -> int:
        """Number of connections that have not been closed."""
        return sum(1 for c in self.connections if c.close_count == 0)


def patch_ldap() -> Iterator[MockLDAP]:
    """Mock the bonsai API for testing.

    Returns
    -------
    MockLDAP
        The mock LDAP API.
    """
    mock_ldap = MockLDAP()
    with patch.object(ldap, "LDAPClient", new=mock_ldap.client):
        yield mock_ldap

