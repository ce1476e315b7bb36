"""Host/Task/Driver registry and the YAML loader that populates it.

An inventory file has up to three top-level sections::

    hosts:
      web1:
        description: web server 1
        tags: [web, prod]
        ssh_config:
          HostName: 192.168.0.11
          User: deploy
        after_connect:
          - echo "connected to web1"
    tasks:
      uptime:
        targets: [web]
        parallel: true
        prefix: true
        script:
          - uptime
    drivers:
      strict:
        template: |
          set -eu
          {% include "environment" %}
          {% for script in scripts %}{{ script.code }}
          {% endfor %}

Later files override earlier ones entry by entry.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterable

from vpd.next.util import read_yaml

from sshfleet.hosts import HostQuery, get_tags
from sshfleet.models import BACKEND_REMOTE, DEFAULT_DRIVER_NAME, Driver, Host, Task

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ("sshfleet.yaml", ".sshfleet.yaml")
OVERRIDE_FILE_NAMES = ("sshfleet_override.yaml", ".sshfleet_override.yaml")

_HOST_KEYS = {
    "description", "tags", "hidden", "ssh_options", "ssh_config", "props",
    "before_connect", "after_connect", "after_disconnect",
}
_TASK_KEYS = {
    "description", "hidden", "disabled", "script", "file", "driver", "targets",
    "filters", "backend", "parallel", "privileged", "user", "pty", "prefix",
    "namespace", "props",
}
_DRIVER_KEYS = {"description", "template", "props"}


class ConfigurationError(Exception):
    """Raised when hosts, tasks or drivers are defined inconsistently."""


class Inventory:
    """Process-wide name -> record maps for hosts, tasks and drivers."""

    def __init__(
            self,
            hosts: Iterable[Host] = (),
            tasks: Iterable[Task] = (),
            drivers: Iterable[Driver] = (),
    ):
        self.hosts: dict[str, Host] = {}
        self.tasks: dict[str, Task] = {}
        self.drivers: dict[str, Driver] = {}
        for host in hosts:
            self.add_host(host)
        for task in tasks:
            self.add_task(task)
        for driver in drivers:
            self.add_driver(driver)

    @classmethod
    def with_builtin_drivers(cls, v=None) -> Inventory:
        """An empty inventory seeded with every registered driver plugin."""
        from sshfleet.bootstrap import builtin_drivers
        return cls(drivers=builtin_drivers(v).values())

    def add_host(self, host: Host) -> None:
        if host.name in self.hosts:
            logger.debug("Host '%s' redefined", host.name)
        self.hosts[host.name] = host

    def add_task(self, task: Task) -> None:
        if task.public_name in self.tasks:
            logger.debug("Task '%s' redefined", task.public_name)
        self.tasks[task.public_name] = task

    def add_driver(self, driver: Driver) -> None:
        self.drivers[driver.name] = driver

    def get_host(self, name: str) -> Host | None:
        return self.hosts.get(name)

    def get_enabled_task(self, name: str) -> Task | None:
        """Task by public name, or None if unknown or disabled."""
        task = self.tasks.get(name)
        if task is None or task.disabled:
            return None
        return task

    def get_driver(self, name: str | None) -> Driver:
        """Driver by name (empty means the default driver).

        Raises:
            ConfigurationError: If no driver has that name.
        """
        name = name or DEFAULT_DRIVER_NAME
        driver = self.drivers.get(name)
        if driver is None:
            raise ConfigurationError("invalid driver name '%s'" % name)
        return driver

    def query(self) -> HostQuery:
        return HostQuery(self.hosts)

    def tags(self) -> list[str]:
        return get_tags(self.hosts)

    def tasks_ordered_by_name(self, include_hidden: bool = False) -> list[Task]:
        tasks = [
            t for t in self.tasks.values()
            if include_hidden or (not t.hidden and not t.disabled)
        ]
        return sorted(tasks, key=lambda t: t.public_name)

    def validate(self) -> None:
        """Check cross-record invariants once, before anything runs.

        Raises:
            ConfigurationError: On the first duplicated name or invalid task.
        """
        tags = set(self.tags())
        for task in self.tasks.values():
            if task.public_name in self.hosts:
                raise ConfigurationError("Task '%s' is duplicated with hostname." % task.public_name)
            if task.public_name in tags:
                raise ConfigurationError("Task '%s' is duplicated with tag." % task.public_name)
            issues = task.validate()
            if issues:
                raise ConfigurationError(issues[0])
        for tag in sorted(tags):
            if tag in self.hosts:
                raise ConfigurationError("Tag '%s' is duplicated with hostname." % tag)


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _as_list(value: Any, what: str) -> list:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    if isinstance(value, list):
        return value
    raise ConfigurationError("%s must be a string or a list, got %r" % (what, value))


def _as_str_dict(value: Any, what: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError("%s must be a mapping, got %r" % (what, value))
    return {str(k): str(v) for k, v in value.items()}


def _check_keys(section: str, name: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError("%s '%s': unknown key(s): %s" % (section, name, ", ".join(unknown)))


def parse_host(name: str, data: dict[str, Any] | None) -> Host:
    data = data or {}
    _check_keys("host", name, data, _HOST_KEYS)
    return Host(
        name=name,
        description=str(data.get("description", "")),
        tags=[str(t) for t in _as_list(data.get("tags"), "host '%s' tags" % name)],
        hidden=bool(data.get("hidden", False)),
        ssh_options=[str(o) for o in _as_list(data.get("ssh_options"), "host '%s' ssh_options" % name)],
        ssh_config=_as_str_dict(data.get("ssh_config"), "host '%s' ssh_config" % name),
        before_connect=[str(h) for h in _as_list(data.get("before_connect"), "hook")],
        after_connect=[str(h) for h in _as_list(data.get("after_connect"), "hook")],
        after_disconnect=[str(h) for h in _as_list(data.get("after_disconnect"), "hook")],
        props=_as_str_dict(data.get("props"), "host '%s' props" % name),
    )


def _parse_fragments(name: str, value: Any) -> list[dict[str, str]]:
    fragments = []
    for i, item in enumerate(_as_list(value, "task '%s' script" % name)):
        if isinstance(item, dict):
            if "code" not in item:
                raise ConfigurationError("task '%s': script fragment %d has no 'code'" % (name, i))
            fragments.append({"name": str(item.get("name", i)), "code": str(item["code"])})
        else:
            fragments.append({"name": str(i), "code": str(item)})
    return fragments


def parse_task(name: str, data: dict[str, Any] | None) -> Task:
    data = data or {}
    _check_keys("task", name, data, _TASK_KEYS)

    # ``prefix: true`` enables the backend default, a string sets the template.
    prefix = data.get("prefix", False)
    use_prefix = bool(prefix)
    prefix_template = prefix if isinstance(prefix, str) else ""

    return Task(
        name=name,
        description=str(data.get("description", "")),
        hidden=bool(data.get("hidden", False)),
        disabled=bool(data.get("disabled", False)),
        script=_parse_fragments(name, data.get("script")),
        file=data.get("file"),
        driver=str(data.get("driver") or DEFAULT_DRIVER_NAME),
        targets=[str(t) for t in _as_list(data.get("targets"), "task '%s' targets" % name)],
        filters=[str(f) for f in _as_list(data.get("filters"), "task '%s' filters" % name)],
        backend=str(data.get("backend", BACKEND_REMOTE)),
        parallel=bool(data.get("parallel", False)),
        privileged=bool(data.get("privileged", False)),
        user=str(data.get("user") or ""),
        pty=bool(data.get("pty", False)),
        use_prefix=use_prefix,
        prefix=prefix_template,
        registry=data.get("namespace"),
        props=_as_str_dict(data.get("props"), "task '%s' props" % name),
    )


def template_engine(source: str):
    """Engine returning a fixed template source, for drivers defined in YAML."""

    def engine(driver: Driver, context: dict[str, Any]) -> str:
        return source

    return engine


def parse_driver(name: str, data: dict[str, Any] | None) -> Driver:
    data = data or {}
    _check_keys("driver", name, data, _DRIVER_KEYS)
    source = data.get("template")
    if not isinstance(source, str) or not source.strip():
        raise ConfigurationError("driver '%s' must define a non-empty 'template'" % name)
    return Driver(
        name=name,
        engine=template_engine(source),
        description=str(data.get("description", "")),
        props=_as_str_dict(data.get("props"), "driver '%s' props" % name),
    )


def load_into(inventory: Inventory, path: str | Path) -> Inventory:
    """Merge the records defined in one YAML file into *inventory*.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError("Inventory file not found: %s" % path)
    try:
        data = read_yaml(str(path)) or {}
    except Exception as e:
        raise ConfigurationError("Failed to read %s: %s" % (path, e)) from e
    if not isinstance(data, dict):
        raise ConfigurationError("%s: top level must be a mapping" % path)

    unknown = sorted(set(data) - {"hosts", "tasks", "drivers"})
    if unknown:
        raise ConfigurationError("%s: unknown section(s): %s" % (path, ", ".join(unknown)))

    for name, payload in (data.get("drivers") or {}).items():
        inventory.add_driver(parse_driver(str(name), payload))
    for name, payload in (data.get("hosts") or {}).items():
        inventory.add_host(parse_host(str(name), payload))
    for name, payload in (data.get("tasks") or {}).items():
        inventory.add_task(parse_task(str(name), payload))

    logger.debug("Loaded %s: %d hosts, %d tasks, %d drivers", path,
                 len(data.get("hosts") or {}), len(data.get("tasks") or {}),
                 len(data.get("drivers") or {}))
    return inventory


def load_inventory(paths: Iterable[str | Path], inventory: Inventory | None = None) -> Inventory:
    """Load and merge inventory files in order (later files win)."""
    if inventory is None:
        inventory = Inventory.with_builtin_drivers()
    for path in paths:
        load_into(inventory, path)
    return inventory


def _first_existing(directory: Path, names: Iterable[str]) -> Path | None:
    for name in names:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def find_config_files(working_dir: str | Path, user_dir: str | Path | None = None) -> list[Path]:
    """Inventory files to load, lowest precedence first.

    Order: user config, user override, working-directory config,
    working-directory override.  In each directory the non-hidden name
    (``sshfleet.yaml``) wins over the hidden one (``.sshfleet.yaml``);
    only one of the two is loaded.
    """
    from sshfleet.config import DEFAULT_CONFIG_DIR

    user_dir = Path(os.path.expanduser(str(user_dir))) if user_dir else DEFAULT_CONFIG_DIR
    working_dir = Path(working_dir)

    found = []
    for candidate in (user_dir / "inventory.yaml", user_dir / "inventory_override.yaml"):
        if candidate.is_file():
            found.append(candidate)
    for names in (CONFIG_FILE_NAMES, OVERRIDE_FILE_NAMES):
        candidate = _first_existing(working_dir, names)
        if candidate is not None and candidate not in found:
            found.append(candidate)
    logger.debug("Inventory files: %s", [str(p) for p in found])
    return found
