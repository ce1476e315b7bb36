"""Tests for sshfleet.bootstrap module."""

from __future__ import annotations

import pytest

from sshfleet.bootstrap import (
    builtin_drivers,
    get_driver_plugin,
    get_variables,
    init_sshfleet,
    list_drivers,
)
from sshfleet.drivers.default import DefaultDriver
from sshfleet.inventory import Inventory
from sshfleet.scripts import read_script


def test_init_sshfleet_returns_variables():
    """Verify that init_sshfleet returns a Variables instance."""
    v = init_sshfleet(log_level="WARNING")
    assert v is not None


def test_init_sshfleet_idempotent():
    """Calling init_sshfleet twice returns the same singleton."""
    v1 = init_sshfleet(log_level="WARNING")
    v2 = init_sshfleet(log_level="WARNING")
    assert v1 is v2
    assert get_variables() is v1


def test_default_driver_registered(v):
    assert "default" in list_drivers(v)
    assert isinstance(get_driver_plugin("default", v), DefaultDriver)


def test_unknown_driver_plugin(v):
    with pytest.raises(ValueError, match="Unknown driver"):
        get_driver_plugin("nope", v)


def test_builtin_drivers_are_records(v):
    drivers = builtin_drivers(v)
    driver = drivers["default"]
    assert driver.name == "default"
    assert driver.template({}) == read_script("default.sh.j2")


def test_inventory_with_builtin_drivers(v):
    inventory = Inventory.with_builtin_drivers(v)
    assert inventory.get_driver("default").name == "default"
