"""Tests for the inventory registry and its YAML loader."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from sshfleet.drivers.default import default_driver
from sshfleet.inventory import (
    ConfigurationError,
    Inventory,
    find_config_files,
    load_inventory,
    parse_host,
    parse_task,
)
from sshfleet.models import Host, Task


def _write(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


def _empty() -> Inventory:
    return Inventory(drivers=[default_driver()])


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def test_get_enabled_task_ignores_disabled():
    inv = Inventory(tasks=[Task(name="on"), Task(name="off", disabled=True)])
    assert inv.get_enabled_task("on").name == "on"
    assert inv.get_enabled_task("off") is None
    assert inv.get_enabled_task("missing") is None


def test_namespaced_task_public_name():
    inv = Inventory(tasks=[Task(name="build", registry="ci")])
    assert inv.get_enabled_task("ci:build").name == "build"
    assert inv.get_enabled_task("build") is None


def test_get_driver_default_and_unknown():
    inv = _empty()
    assert inv.get_driver("").name == "default"
    with pytest.raises(ConfigurationError, match="invalid driver name 'nope'"):
        inv.get_driver("nope")


def test_tasks_ordered_by_name_hides_hidden_and_disabled():
    inv = Inventory(tasks=[Task(name="b"), Task(name="a"), Task(name="h", hidden=True),
                           Task(name="d", disabled=True)])
    assert [t.name for t in inv.tasks_ordered_by_name()] == ["a", "b"]
    assert [t.name for t in inv.tasks_ordered_by_name(include_hidden=True)] == ["a", "b", "d", "h"]


def test_validate_task_host_collision():
    inv = Inventory(hosts=[Host(name="web1")], tasks=[Task(name="web1")])
    with pytest.raises(ConfigurationError, match="Task 'web1' is duplicated with hostname."):
        inv.validate()


def test_validate_task_tag_collision():
    inv = Inventory(hosts=[Host(name="a", tags=["deploy"])], tasks=[Task(name="deploy")])
    with pytest.raises(ConfigurationError, match="duplicated with tag"):
        inv.validate()


def test_validate_tag_host_collision():
    inv = Inventory(hosts=[Host(name="a", tags=["b"]), Host(name="b")])
    with pytest.raises(ConfigurationError, match="Tag 'b' is duplicated with hostname."):
        inv.validate()


@pytest.mark.parametrize("task, message", [
    (Task(name="t", script=[{"name": "0", "code": "x"}], file="x.sh"), "mutually exclusive"),
    (Task(name="t", user="bob", privileged=True), "mutually exclusive"),
    (Task(name="t", backend="cloud"), "invalid backend"),
    (Task(name="t", filters=["web"]), "requires 'targets'"),
])
def test_validate_task_definition(task, message):
    with pytest.raises(ConfigurationError, match=message):
        Inventory(tasks=[task]).validate()


def test_validate_ok():
    Inventory(hosts=[Host(name="a", tags=["web"])], tasks=[Task(name="t", targets=["web"])]).validate()


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def test_parse_host_full():
    host = parse_host("web1", {
        "description": "web",
        "tags": "web",
        "ssh_options": ["-A"],
        "ssh_config": {"HostName": "10.0.0.1", "Port": 2222},
        "before_connect": "echo hi",
        "props": {"rack": 4},
    })
    assert host.tags == ["web"]
    assert host.ssh_options == ["-A"]
    assert host.ssh_config == {"HostName": "10.0.0.1", "Port": "2222"}
    assert host.before_connect == ["echo hi"]
    assert host.props == {"rack": "4"}


def test_parse_host_unknown_key():
    with pytest.raises(ConfigurationError, match="unknown key"):
        parse_host("web1", {"hostname": "x"})


def test_parse_task_prefix_forms():
    assert parse_task("t", {"prefix": True}).use_prefix
    assert parse_task("t", {"prefix": True}).prefix == ""
    custom = parse_task("t", {"prefix": "{{ host.name }}: "})
    assert custom.use_prefix and custom.prefix == "{{ host.name }}: "
    assert not parse_task("t", {}).use_prefix


def test_parse_task_script_fragments():
    task = parse_task("t", {"script": ["echo 1", {"name": "two", "code": "echo 2"}]})
    assert task.script == [{"name": "0", "code": "echo 1"}, {"name": "two", "code": "echo 2"}]


def test_parse_task_fragment_without_code():
    with pytest.raises(ConfigurationError, match="no 'code'"):
        parse_task("t", {"script": [{"name": "x"}]})


def test_parse_task_namespace():
    assert parse_task("build", {"namespace": "ci"}).public_name == "ci:build"


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def test_load_inventory_merges_later_wins(tmp_path):
    first = _write(tmp_path / "one.yaml", {
        "hosts": {"a": {"description": "first"}, "b": {}},
        "tasks": {"t": {"script": ["echo one"]}},
    })
    second = _write(tmp_path / "two.yaml", {
        "hosts": {"a": {"description": "second"}},
        "drivers": {"strict": {"template": "set -e\n"}},
    })

    inv = load_inventory([first, second], _empty())

    assert inv.hosts["a"].description == "second"
    assert "b" in inv.hosts
    assert inv.tasks["t"].script[0]["code"] == "echo one"
    assert set(inv.drivers) == {"default", "strict"}


def test_load_inventory_unknown_section(tmp_path):
    path = _write(tmp_path / "bad.yaml", {"servers": {}})
    with pytest.raises(ConfigurationError, match="unknown section"):
        load_inventory([path], _empty())


def test_load_inventory_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_inventory([tmp_path / "nope.yaml"], _empty())


def test_load_inventory_driver_without_template(tmp_path):
    path = _write(tmp_path / "d.yaml", {"drivers": {"x": {"description": "no template"}}})
    with pytest.raises(ConfigurationError, match="template"):
        load_inventory([path], _empty())


def test_load_inventory_seeds_builtin_drivers(tmp_path, v):
    path = _write(tmp_path / "inv.yaml", {"hosts": {"a": {}}})
    inv = load_inventory([path])
    assert "default" in inv.drivers


# ---------------------------------------------------------------------------
# Config file discovery
# ---------------------------------------------------------------------------

def test_find_config_files_order(tmp_path):
    user = tmp_path / "user"
    work = tmp_path / "work"
    expected = [
        _write(user / "inventory.yaml", {}),
        _write(user / "inventory_override.yaml", {}),
        _write(work / "sshfleet.yaml", {}),
        _write(work / "sshfleet_override.yaml", {}),
    ]
    assert find_config_files(work, user) == expected


def test_find_config_files_visible_name_wins(tmp_path):
    work = tmp_path / "work"
    visible = _write(work / "sshfleet.yaml", {})
    _write(work / ".sshfleet.yaml", {})
    assert find_config_files(work, tmp_path / "nouser") == [visible]


def test_find_config_files_hidden_fallback(tmp_path):
    work = tmp_path / "work"
    hidden = _write(work / ".sshfleet.yaml", {})
    override = _write(work / ".sshfleet_override.yaml", {})
    assert find_config_files(work, tmp_path / "nouser") == [hidden, override]


def test_find_config_files_none(tmp_path):
    assert find_config_files(tmp_path, tmp_path / "nouser") == []
