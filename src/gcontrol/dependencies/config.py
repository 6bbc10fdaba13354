"""Location and cache of the gcontrol configuration."""

from __future__ import annotations

import os
from pathlib import Path

from ..config import Config
from ..constants import CONFIG_PATH

__all__ = ["ConfigDependency", "config_dependency"]


class ConfigDependency:
    """Holds the configuration shared by the app and the command line.

    The path comes from ``GCONTROL_CONFIG_PATH`` or the default path until a
    ``--config-path`` option replaces it. The file is parsed the first time
    the configuration is needed and never re-read unless the path changes,
    and logging is reconfigured from it every time it is parsed.
    """

    def __init__(self) -> None:
        path = os.getenv("GCONTROL_CONFIG_PATH", CONFIG_PATH)
        self._config_path = Path(path)
        self._config: Config | None = None

    @property
    def config_path(self) -> Path:
        """Path from which the configuration is loaded."""
        return self._config_path

    def config(self) -> Config:
        """Return the configuration, loading it on first use.

        Raises
        ------
        OSError
            Raised if the configuration file cannot be read.
        pydantic.ValidationError
            Raised if the configuration is invalid.
        yaml.YAMLError
            Raised if the configuration file is not valid YAML.
        """
        if self._config is None:
            self._config = self._load()
        return self._config

    def set_config_path(self, path: Path) -> None:
        """Switch to a different configuration file and load it immediately.

        Loading right away means a bad ``--config-path`` is reported before
        any command starts work.

        Parameters
        ----------
        path
            The new configuration path.
        """
        self._config_path = path
        self._config = None
        self._config = self._load()

    def _load(self) -> Config:
        config = Config.from_file(self._config_path)
        config.configure_logging()
        return config


config_dependency = ConfigDependency()
"""Process-wide holder of the gcontrol configuration."""
