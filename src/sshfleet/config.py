"""User configuration management for sshfleet."""

from __future__ import annotations

import getpass
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from vpd.next.util import read_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "sshfleet"
DEFAULT_SSH_CONFIG_NAME = "sshfleet_ssh_config"


class SshfleetConfig:
    """Manages sshfleet user configuration.

    ``~/.config/sshfleet/config.yaml``::

        ssh_config: ~/.cache/sshfleet/ssh_config
        inventory:
          - ~/fleet/hosts.yaml
        color: true
        defaults:
          backend: remote
    """

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or (DEFAULT_CONFIG_DIR / "config.yaml")
        self._data: dict[str, Any] = {}
        self._load()

    def _load(self):
        if self.config_path.exists():
            self._data = read_yaml(str(self.config_path)) or {}
        else:
            self._data = {}

    @property
    def config_dir(self) -> Path:
        return self.config_path.parent

    @property
    def ssh_config_path(self) -> Path:
        """Where the generated ssh_config is written before each run."""
        path = self._data.get("ssh_config")
        if path:
            return Path(os.path.expanduser(path))
        return Path(tempfile.gettempdir()) / ("%s_%s" % (DEFAULT_SSH_CONFIG_NAME, getpass.getuser()))

    @property
    def inventory_paths(self) -> list[Path]:
        """Extra inventory files, loaded before the discovered ones."""
        return [Path(os.path.expanduser(p)) for p in self._data.get("inventory", [])]

    @property
    def color(self) -> bool | None:
        """Explicit colour preference, or None to follow the terminal."""
        value = self._data.get("color")
        return None if value is None else bool(value)

    @property
    def default_backend(self) -> str | None:
        return self.get("defaults.backend")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        current = self._data
        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current
