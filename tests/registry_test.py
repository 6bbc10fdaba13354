"""Tests for the registry of directory servers."""

from __future__ import annotations

from pydantic import SecretStr

from gcontrol.config import Config, ServerConfig
from gcontrol.models.ldap import Credentials
from gcontrol.registry import ServerRegistry

from .support.config import config_path


def _server(
    user: str | None = None, password: str | None = None
) -> ServerConfig:
    return ServerConfig(
        host="ldap.example.com",
        user=user,
        password=SecretStr(password) if password is not None else None,
        bind_dn="uid=%s,ou=people,dc=example,dc=com",
        search_filter="(uid=%s)",
    )


def test_order() -> None:
    config = Config.from_file(config_path("multi"))
    registry = ServerRegistry.from_config(config)

    assert len(registry) == 3
    assert [s.host for s in registry] == [
        "ldap1.example.com",
        "ldap2.example.com",
        "ldap3.example.com",
    ]

    # Iteration can be repeated.
    assert [s.host for s in registry] == [s.host for s in registry]


def test_bind_credentials() -> None:
    credentials = Credentials(username="alice", password="alice-password")

    bind = ServerRegistry.bind_credentials(_server(), credentials)
    assert bind == credentials

    bind = ServerRegistry.bind_credentials(_server("", ""), credentials)
    assert bind == credentials

    server = _server("svc", "service-password")
    bind = ServerRegistry.bind_credentials(server, credentials)
    assert bind == Credentials(username="svc", password="service-password")

    # Only one of the two static values set still overrides both.
    bind = ServerRegistry.bind_credentials(_server("svc"), credentials)
    assert bind == Credentials(username="svc", password="")
    server = _server(password="service-password")
    bind = ServerRegistry.bind_credentials(server, credentials)
    assert bind == Credentials(username="", password="service-password")


def test_credentials_repr() -> None:
    credentials = Credentials(username="alice", password="alice-password")
    assert "alice-password" not in repr(credentials)
