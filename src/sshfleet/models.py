"""Host, Task and Driver records.

These are plain records populated by the configuration layer (see
:mod:`sshfleet.inventory`) before any task runs.  The engine treats them
as read-only, apart from injecting the invocation ``args`` into a task.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Callable, Union

DEFAULT_DRIVER_NAME = "default"

BACKEND_LOCAL = "local"
BACKEND_REMOTE = "remote"
BACKENDS = (BACKEND_LOCAL, BACKEND_REMOTE)

# A hook is either literal command text, a zero-argument callable returning
# another hook value, or None (no-op).
HookValue = Union[str, Callable[[], Any], None]


@dataclass
class Host:
    """An addressable machine."""

    name: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    hidden: bool = False
    ssh_options: list[str] = field(default_factory=list)
    ssh_config: dict[str, str] = field(default_factory=dict)
    before_connect: list[HookValue] = field(default_factory=list)
    after_connect: list[HookValue] = field(default_factory=list)
    after_disconnect: list[HookValue] = field(default_factory=list)
    props: dict[str, str] = field(default_factory=dict)

    def description_or_default(self) -> str:
        return self.description or "%s host" % self.name

    def matches(self, expression: str) -> bool:
        """True when *expression* is this host's name or one of its tags."""
        return expression == self.name or expression in self.tags


@dataclass
class Task:
    """A named unit of work producing a script for zero or more hosts."""

    name: str
    description: str = ""
    hidden: bool = False
    disabled: bool = False
    script: list[dict[str, str]] = field(default_factory=list)
    file: str | None = None
    driver: str = DEFAULT_DRIVER_NAME
    targets: list[str] = field(default_factory=list)
    filters: list[str] = field(default_factory=list)
    backend: str = BACKEND_REMOTE
    parallel: bool = False
    privileged: bool = False
    user: str = ""
    pty: bool = False
    use_prefix: bool = False
    prefix: str = ""
    prepare: Callable[[], Any] | None = None
    registry: str | None = None
    props: dict[str, str] = field(default_factory=dict)
    args: list[str] = field(default_factory=list)

    @property
    def public_name(self) -> str:
        """Name used on the command line (``namespace:name`` when namespaced)."""
        if self.registry:
            return "%s:%s" % (self.registry, self.name)
        return self.name

    @property
    def is_remote(self) -> bool:
        return self.backend == BACKEND_REMOTE

    def description_or_default(self) -> str:
        return self.description or "%s task" % self.public_name

    def validate(self) -> list[str]:
        """Return a list of problems with this task definition (empty if valid)."""
        issues = []
        if self.script and self.file:
            issues.append("task '%s': 'script' and 'file' are mutually exclusive" % self.public_name)
        if self.user and self.privileged:
            issues.append("task '%s': 'user' and 'privileged' are mutually exclusive" % self.public_name)
        if self.backend not in BACKENDS:
            issues.append("task '%s': invalid backend '%s' (expected one of: %s)"
                          % (self.public_name, self.backend, ", ".join(BACKENDS)))
        if self.filters and not self.targets:
            issues.append("task '%s': 'filters' requires 'targets'" % self.public_name)
        return issues

    def fragments(self) -> list[dict[str, str]]:
        """Code fragments to render, reading ``file`` when it is set."""
        if self.file:
            path = Path(os.path.expanduser(self.file))
            return [{"name": path.name, "code": path.read_text()}]
        return list(self.script)


@dataclass
class Driver:
    """A pluggable script-rendering strategy.

    ``engine`` receives the driver and the rendering context and returns
    the Jinja2 template source for the final script.
    """

    name: str
    engine: Callable[[Driver, dict[str, Any]], str]
    description: str = ""
    props: dict[str, str] = field(default_factory=dict)

    def template(self, context: dict[str, Any]) -> str:
        return self.engine(self, context)


@dataclass(frozen=True)
class Console:
    """Binary console streams shared by every child process of a run."""

    stdin: BinaryIO
    stdout: BinaryIO
    stderr: BinaryIO

    @classmethod
    def system(cls) -> Console:
        return cls(stdin=sys.stdin.buffer, stdout=sys.stdout.buffer, stderr=sys.stderr.buffer)


@dataclass(frozen=True)
class RunOptions:
    """Invocation parameters for one call into the engine.

    Built once by the outer layer and passed down explicitly; the engine
    reads no process-wide flags.
    """

    ssh_config_path: str
    working_dir: str = field(default_factory=os.getcwd)
    console: Console = field(default_factory=Console.system)
    color: bool = False
