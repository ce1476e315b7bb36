"""Bootstrap the sshfleet driver plugin system using SAF."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scitrera_app_framework import Variables, register_plugin, get_extensions
from scitrera_app_framework.util import find_types_in_modules

from sshfleet.drivers.base import EXT_DRIVER

if TYPE_CHECKING:
    from sshfleet.drivers.base import DriverPlugin
    from sshfleet.models import Driver

logger = logging.getLogger(__name__)

# Module-level singleton for the sshfleet Variables instance
_variables: Variables | None = None


def init_sshfleet(v: Variables | None = None, log_level: str = "WARNING") -> Variables:
    """Initialize sshfleet's plugin system.

    Uses SAF's desktop initialization without the heavy-weight features
    (no fault handler, no shutdown hooks), then registers every driver
    plugin found in :mod:`sshfleet.drivers`.

    Args:
        v: Optional pre-existing Variables instance to reuse.
        log_level: SAF log level (default WARNING to reduce verbosity).

    Returns:
        The initialized Variables instance.
    """
    global _variables

    if _variables is not None and v is None:
        return _variables

    if v is None:
        from scitrera_app_framework import init_framework_desktop
        v = init_framework_desktop("sshfleet", log_level=log_level, fault_handler=False,
                                   shutdown_hooks=False, fixed_logger=logger)

        from sshfleet.utils import suppress_noisy_loggers
        suppress_noisy_loggers()

    _variables = v

    # Import here to avoid circular imports
    from sshfleet.drivers.base import DriverPlugin

    discovered = list(find_types_in_modules("sshfleet.drivers", DriverPlugin))
    for driver_cls in discovered:
        try:
            register_plugin(driver_cls, v=v)
            logger.debug("Registered driver: %s", driver_cls.__name__)
        except (ValueError, TypeError) as e:
            logger.debug("Skipping driver %s: %s", driver_cls.__name__, e)

    return v


def get_variables() -> Variables:
    """Get the sshfleet Variables instance, initializing if needed."""
    global _variables
    if _variables is None:
        init_sshfleet()
    return _variables


def _driver_plugins(v: Variables | None = None) -> list[DriverPlugin]:
    if v is None:
        v = get_variables()
    plugins = get_extensions(EXT_DRIVER, v=v)
    return [p for p in plugins.values() if p.driver_name]


def get_driver_plugin(name: str, v: Variables | None = None) -> DriverPlugin:
    """Get a specific driver plugin by name.

    Raises:
        ValueError: If the driver is not found
    """
    plugins = _driver_plugins(v)
    for plugin in plugins:
        if plugin.driver_name == name:
            return plugin

    available = sorted(p.driver_name for p in plugins)
    raise ValueError("Unknown driver: %r. Available: %s" % (name, available))


def list_drivers(v: Variables | None = None) -> list[str]:
    """List all registered driver names."""
    return sorted(p.driver_name for p in _driver_plugins(v))


def builtin_drivers(v: Variables | None = None) -> dict[str, Driver]:
    """Driver records for every registered plugin, keyed by name."""
    return {p.driver_name: p.to_driver() for p in _driver_plugins(v)}
