"""Tests for creating gcontrol components."""

from __future__ import annotations

import pytest
from safir.testing.slack import MockSlackWebhook

from gcontrol.config import Config
from gcontrol.factory import Factory, ProcessContext
from gcontrol.models.ldap import Credentials
from gcontrol.models.sync import SyncFailure

from .support.config import config_path
from .support.ldap import MockLDAP
from .support.sink import MockGrantSink


@pytest.mark.asyncio
async def test_factory(
    factory: Factory,
    mock_ldap: MockLDAP,
    mock_sink: MockGrantSink,
    mock_slack: MockSlackWebhook,
) -> None:
    mock_ldap.down.add("ldap://ldap1.example.com:389")
    credentials = Credentials(username="alice", password="password")

    sync = factory.create_permission_sync()
    outcomes = await sync.synchronize(credentials)

    assert len(outcomes) == 1
    assert isinstance(outcomes[0], SyncFailure)
    assert mock_sink.applied == []
    assert len(mock_slack.messages) == 1


@pytest.mark.asyncio
async def test_process_context(config: Config) -> None:
    context = ProcessContext.from_config(config)
    assert len(context.registry) == len(config.servers)
    assert context.supervisor.pending == 0
    await context.aclose()


@pytest.mark.asyncio
async def test_slack_client(factory: Factory) -> None:
    assert factory.create_slack_client()

    config = Config.from_file(config_path("multi"))
    async with Factory.standalone(config) as standalone:
        assert standalone.create_slack_client() is None
