"""Test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
import respx
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from safir.testing.slack import MockSlackWebhook, mock_slack_webhook

from gcontrol.config import Config
from gcontrol.factory import Factory
from gcontrol.main import create_app

from .support.config import configure
from .support.ldap import MockLDAP, patch_ldap
from .support.sink import MockGrantSink, patch_sink


@pytest_asyncio.fixture
async def app(
    config: Config,
    mock_ldap: MockLDAP,
    mock_sink: MockGrantSink,
    mock_slack: MockSlackWebhook | None,
) -> AsyncIterator[FastAPI]:
    """Return a configured test application.

    Wraps the application in a lifespan manager so that startup and shutdown
    events are sent during test execution.
    """
    app = create_app()
    async with LifespanManager(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Return an ``httpx.AsyncClient`` configured to talk to the test app."""
    async with AsyncClient(
        base_url="http://gcontrol.example.com",
        transport=ASGITransport(app=app),
    ) as client:
        yield client


@pytest.fixture
def config(monkeypatch: pytest.MonkeyPatch) -> Config:
    """Set up and return the default test configuration.

    Notes
    -----
    This fixture must not be async so that it can be used by the cli tests,
    which must not be async because the Click support starts its own asyncio
    loop.
    """
    slack_webhook = "https://slack.example.com/webhook"
    monkeypatch.setenv("GCONTROL_SLACK_WEBHOOK", slack_webhook)
    return configure("base")


@pytest_asyncio.fixture
async def factory(
    config: Config, mock_ldap: MockLDAP, mock_sink: MockGrantSink
) -> AsyncIterator[Factory]:
    """Return a component factory."""
    async with Factory.standalone(config) as factory:
        yield factory


@pytest.fixture
def mock_ldap() -> Iterator[MockLDAP]:
    """Replace the bonsai LDAP API with a mock class."""
    yield from patch_ldap()


@pytest.fixture
def mock_sink() -> Iterator[MockGrantSink]:
    """Replace the grant sink with one that records the grants."""
    yield from patch_sink()


@pytest.fixture
def mock_slack(
    config: Config, respx_mock: respx.Router
) -> MockSlackWebhook | None:
    """Mock a Slack webhook."""
    if not config.slack_webhook:
        return None
    webhook = config.slack_webhook.get_secret_value()
    return mock_slack_webhook(webhook, respx_mock)
