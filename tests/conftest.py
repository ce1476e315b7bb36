"""Shared pytest fixtures for sshfleet tests."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import pytest
import yaml

from sshfleet.bootstrap import init_sshfleet
from sshfleet.drivers.default import default_driver
from sshfleet.inventory import Inventory
from sshfleet.models import Console, Host, RunOptions, Task


@pytest.fixture(autouse=True)
def isolate_stateful(tmp_path: Path, monkeypatch):
    """Redirect SAF stateful root to temp dir for test isolation.

    Prevents tests from writing to the real ~/.config/sshfleet/.
    Also resets the bootstrap singleton between tests.
    """
    monkeypatch.setenv("STATEFUL_ROOT", str(tmp_path / "stateful"))
    import sshfleet.bootstrap
    sshfleet.bootstrap._variables = None
    yield
    sshfleet.bootstrap._variables = None


@pytest.fixture
def v(tmp_path: Path) -> Any:
    """Initialize sshfleet and return the Variables instance."""
    import sshfleet.bootstrap
    sshfleet.bootstrap._variables = None
    return init_sshfleet(log_level="WARNING")


@pytest.fixture
def fleet() -> Inventory:
    """Three local-testable hosts plus the default driver.

    ``a`` and ``b`` are tagged ``web``, ``b`` and ``c`` are tagged ``db``;
    ``c`` is hidden.
    """
    return Inventory(
        hosts=[
            Host(name="a", tags=["web"], props={"role": "front"}),
            Host(name="b", tags=["web", "db"]),
            Host(name="c", tags=["db"], hidden=True, ssh_config={"HostName": "10.0.0.3"}),
        ],
        drivers=[default_driver()],
    )


class FakeConsole:
    """In-memory console; the streams have no file descriptor."""

    def __init__(self, stdin: bytes = b""):
        self.stdin = io.BytesIO(stdin)
        self.stdout = io.BytesIO()
        self.stderr = io.BytesIO()

    def console(self) -> Console:
        return Console(stdin=self.stdin, stdout=self.stdout, stderr=self.stderr)

    def out_lines(self) -> list[str]:
        return self.stdout.getvalue().decode().splitlines()

    def err_text(self) -> str:
        return self.stderr.getvalue().decode()


@pytest.fixture
def fake_console() -> FakeConsole:
    return FakeConsole()


@pytest.fixture
def run_options(tmp_path: Path, fake_console: FakeConsole) -> RunOptions:
    return RunOptions(
        ssh_config_path=str(tmp_path / "ssh_config"),
        working_dir=str(tmp_path),
        console=fake_console.console(),
    )


@pytest.fixture
def local_task():
    """Factory for local-backend tasks with a single script fragment."""

    def make(code: str, **kwargs) -> Task:
        kwargs.setdefault("backend", "local")
        return Task(name=kwargs.pop("name", "t"), script=[{"name": "main", "code": code}], **kwargs)

    return make


@pytest.fixture
def inventory_dir(tmp_path: Path) -> Path:
    """A working directory containing an ``sshfleet.yaml`` inventory."""
    work = tmp_path / "work"
    work.mkdir()
    data = {
        "hosts": {
            "web1": {
                "description": "web server 1",
                "tags": ["web"],
                "ssh_config": {"HostName": "192.168.0.11", "User": "deploy"},
            },
            "web2": {"tags": ["web"]},
            "db1": {"tags": ["db"], "hidden": True},
        },
        "tasks": {
            "hello": {
                "description": "say hello",
                "backend": "local",
                "script": ["echo hello from $SSHFLEET_TASK_NAME"],
            },
            "greet": {
                "backend": "local",
                "targets": ["web"],
                "prefix": True,
                "script": ["echo hi $SSHFLEET_HOSTNAME"],
            },
            "secret": {"hidden": True, "backend": "local", "script": ["true"]},
        },
    }
    with open(work / "sshfleet.yaml", "w") as f:
        yaml.dump(data, f)
    return work
