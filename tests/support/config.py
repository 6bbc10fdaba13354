"""Build test configuration for gcontrol."""

from __future__ import annotations

from pathlib import Path

from gcontrol.config import Config
from gcontrol.dependencies.config import config_dependency
from gcontrol.dependencies.context import context_dependency

__all__ = [
    "config_path",
    "configure",
    "reconfigure",
]


def config_path(filename: str) -> Path:
    """Return the path to a test configuration file.

    Parameters
    ----------
    filename
        The base name of a test configuration file.

    Returns
    -------
    Path
        The path to that file.
    """
    return (
        Path(__file__).parent.parent / "data" / "config" / (filename + ".yaml")
    )


def configure(filename: str) -> Config:
    """Change the test application configuration.

    Parameters
    ----------
    filename
        Configuration file to use.

    Returns
    -------
    Config
        The new configuration.

    Notes
    -----
    This is used for tests that cannot be async, so itself must not be async.
    """
    config_dependency.set_config_path(config_path(filename))
    return config_dependency.config()


async def reconfigure(filename: str) -> Config:
    """Change the configuration of a running test application.

    Parameters
    ----------
    filename
        Configuration file to use.

    Returns
    -------
    Config
        The new configuration.
    """
    config = configure(filename)
    await context_dependency.initialize(config)
    return config
