"""Base class for sshfleet script drivers."""

from __future__ import annotations

import logging
from abc import abstractmethod
from logging import Logger
from typing import Any

from scitrera_app_framework import Plugin, Variables

from sshfleet.models import Driver

logger = logging.getLogger(__name__)

EXT_DRIVER = "sshfleet.driver"


class DriverPlugin(Plugin):
    """Abstract base class for sshfleet drivers.

    Each driver is an SAF Plugin registered as a multi-extension under the
    'sshfleet.driver' extension point.  A driver turns a task into the
    Jinja2 template of the script that runs on each host; the executor
    never depends on a driver's template shape.

    Subclasses must define:
        - driver_name: str identifier (e.g. "default")
        - template(): return the template source for a rendering context
    """

    eager = False  # don't initialize until requested

    driver_name: str = ""
    description: str = ""

    # --- SAF Plugin interface ---

    def name(self) -> str:
        return "sshfleet.driver.%s" % self.driver_name

    def extension_point_name(self, v: Variables) -> str:
        return EXT_DRIVER

    def is_enabled(self, v: Variables) -> bool:
        # Multi-extension plugins must report False, otherwise SAF caches the
        # first driver under the extension point and skips the others.
        return False

    def is_multi_extension(self, v: Variables) -> bool:
        return True

    def initialize(self, v: Variables, logger: Logger) -> DriverPlugin:
        return self

    # --- Driver interface ---

    @abstractmethod
    def template(self, driver: Driver, context: dict[str, Any]) -> str:
        """Return the Jinja2 template source for the task script.

        Args:
            driver: The driver record being rendered.
            context: Rendering context (``task``, ``host``, ``scripts``, ...).

        Returns:
            Template source; the ``environment`` and ``functions`` blocks
            can be pulled in with ``{% include %}``.
        """
        ...

    def to_driver(self) -> Driver:
        """Build the inventory record backed by this plugin."""
        return Driver(name=self.driver_name, engine=self.template, description=self.description)
