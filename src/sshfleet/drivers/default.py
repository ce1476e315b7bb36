"""The built-in default driver."""

from __future__ import annotations

from typing import Any

from sshfleet.drivers.base import DriverPlugin
from sshfleet.models import DEFAULT_DRIVER_NAME, Driver
from sshfleet.scripts import read_script


def default_engine(driver: Driver, context: dict[str, Any]) -> str:
    """Environment block, functions block, then every code fragment in order."""
    return read_script("default.sh.j2")


class DefaultDriver(DriverPlugin):
    """Concatenates the environment and functions blocks with the task's fragments."""

    driver_name = DEFAULT_DRIVER_NAME
    description = "Plain bash: environment, helper functions, then each script fragment"

    def template(self, driver: Driver, context: dict[str, Any]) -> str:
        return default_engine(driver, context)


def default_driver() -> Driver:
    """A default driver record that does not need the plugin registry."""
    return Driver(name=DEFAULT_DRIVER_NAME, engine=default_engine,
                  description=DefaultDriver.description)
