"""Shared CLI infrastructure: logging, inventory loading, Click types, decorators."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click

logger = logging.getLogger(__name__)


# TODO: converge logging with SAF logging
def _setup_logging(verbose: bool):
    """Configure logging based on verbosity.

    Uses explicit handler setup instead of ``logging.basicConfig``, which
    is a no-op once SAF (or anything else) has installed root handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO
    fmt = ("%(asctime)s [%(levelname)s] %(name)s: %(message)s" if verbose
           else "%(message)s")

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
    root.addHandler(handler)

    from sshfleet.utils import suppress_noisy_loggers
    suppress_noisy_loggers()


def _fail(message: str, code: int = 1):
    click.echo("Error: %s" % message, err=True)
    sys.exit(code)


def _get_config(config_path=None):
    from sshfleet.config import SshfleetConfig
    return SshfleetConfig(Path(config_path)) if config_path else SshfleetConfig()


def _working_dir(ctx) -> str:
    obj = ctx.obj or {}
    return os.path.abspath(obj.get("working_dir") or os.getcwd())


def _inventory_paths(config, working_dir: str) -> list[Path]:
    from sshfleet.inventory import find_config_files
    paths = list(config.inventory_paths)
    for path in find_config_files(working_dir, config.config_dir):
        if path not in paths:
            paths.append(path)
    return paths


def _load_inventory(config, working_dir: str, v=None):
    """Build the inventory: built-in drivers, then every inventory file in order.

    Raises:
        ConfigurationError: On malformed files or cross-record collisions.
    """
    from sshfleet.inventory import Inventory, load_inventory

    inventory = load_inventory(_inventory_paths(config, working_dir), Inventory.with_builtin_drivers(v))
    inventory.validate()
    return inventory


def _load_context(ctx):
    """Initialize plugins, load config and inventory; exit on configuration errors.

    Returns:
        Tuple of (config, inventory, working_dir).
    """
    from sshfleet.bootstrap import init_sshfleet
    from sshfleet.inventory import ConfigurationError

    v = init_sshfleet()
    # SAF's init_framework_desktop reconfigures the root logger; re-apply ours
    _setup_logging(ctx.obj["verbose"])

    config = _get_config(ctx.obj.get("config_path"))
    working_dir = _working_dir(ctx)
    try:
        inventory = _load_inventory(config, working_dir, v)
    except ConfigurationError as e:
        _fail(str(e))
    return config, inventory, working_dir


def _run_options(config, inventory, working_dir: str):
    """Regenerate the ssh_config and build the per-invocation options."""
    from sshfleet.models import RunOptions
    from sshfleet.sshconfig import update_ssh_config

    ssh_config_path = config.ssh_config_path
    try:
        update_ssh_config(ssh_config_path, inventory.query().all_hosts_ordered_by_name())
    except OSError as e:
        _fail("cannot write ssh_config %s: %s" % (ssh_config_path, e))

    color = config.color
    if color is None:
        color = sys.stdout.isatty()
    return RunOptions(ssh_config_path=str(ssh_config_path), working_dir=working_dir, color=color)


def _engine_errors() -> tuple:
    """Exception types reported as a one-line ``Error:`` message."""
    from sshfleet.hosts import HostResolutionError
    from sshfleet.inventory import ConfigurationError
    from sshfleet.orchestration.executor import FleetAbortError, TaskExecutionError
    from sshfleet.render import TemplateRenderError
    from sshfleet.session import HookError
    return (ConfigurationError, HostResolutionError, TemplateRenderError,
            TaskExecutionError, FleetAbortError, HookError)


def _run_task(task, inventory, options, args=()):
    """Run *task*, turning engine errors into a single fatal message."""
    from sshfleet.orchestration.executor import FleetAbortError, run_task

    try:
        run_task(task, inventory, options, args=args)
    except FleetAbortError as e:
        # The failing host was already reported on the console.
        logger.debug("Parallel run aborted by %s", e.host)
        sys.exit(1)
    except _engine_errors() as e:
        _fail(str(e))


def _completion_inventory():
    """Inventory for shell completion, loaded from the current directory."""
    from sshfleet.inventory import Inventory, load_inventory
    from sshfleet.drivers.default import default_driver

    config = _get_config()
    return load_inventory(_inventory_paths(config, os.getcwd()), Inventory(drivers=[default_driver()]))


class TaskNameType(click.ParamType):
    """Click parameter type with shell completion for task names."""

    name = "task"

    def shell_complete(self, ctx, param, incomplete):
        """Return completion items for visible task names."""
        from sshfleet.inventory import ConfigurationError
        try:
            tasks = _completion_inventory().tasks_ordered_by_name()
        except (ConfigurationError, OSError):
            return []
        return [
            click.shell_completion.CompletionItem(t.public_name, help=t.description)
            for t in tasks
            if t.public_name.startswith(incomplete)
        ]


TASK_NAME = TaskNameType()


class HostExprType(click.ParamType):
    """Click parameter type with shell completion for host names and tags."""

    name = "host"

    def shell_complete(self, ctx, param, incomplete):
        """Return completion items for visible host names and all tags."""
        from sshfleet.inventory import ConfigurationError
        try:
            inventory = _completion_inventory()
        except (ConfigurationError, OSError):
            return []
        names = [h.name for h in inventory.query().visible().all_hosts_ordered_by_name()]
        names.extend(inventory.tags())
        return [
            click.shell_completion.CompletionItem(n)
            for n in names
            if n.startswith(incomplete)
        ]


HOST_EXPR = HostExprType()


def target_options(f):
    """Common host-targeting options: --target, --filter."""
    f = click.option("--filter", "-f", "filters", multiple=True, type=HOST_EXPR,
                     help="Keep only targeted hosts matching this name or tag (repeatable)")(f)
    f = click.option("--target", "-t", "targets", multiple=True, type=HOST_EXPR,
                     help="Run on hosts with this name or tag (repeatable)")(f)
    return f
