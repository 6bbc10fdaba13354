"""Mock grant sink for testing."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import patch

from gcontrol import factory
from gcontrol.models.sync import Grant
from gcontrol.storage.sink import GrantSink

__all__ = ["MockGrantSink", "patch_sink"]


class MockGrantSink(GrantSink):
    """Grant sink that records every call.

    Servers added to ``failing`` make `apply` raise, as a Grafana outage
    would.
    """

    def __init__(self) -> None:
        self.applied: list[tuple[str, str, frozenset[Grant]]] = []
        self.failing: set[str] = set()

    async def apply(
        self, username: str, server: str, grants: frozenset[Grant]
    ) -> None:
        if server in self.failing:
            raise RuntimeError("Grafana unavailable")
        self.applied.append((username, server, grants))


def patch_sink() -> Iterator[MockGrantSink]:
    """Replace the grant sink created by the process context.

    Returns
    -------
    MockGrantSink
        The mock grant sink.
    """
    mock_sink = MockGrantSink()
    with patch.object(factory, "LoggingGrantSink", return_value=mock_sink):
        yield mock_sink
