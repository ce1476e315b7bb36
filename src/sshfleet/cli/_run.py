"""sshfleet run and exec commands."""

from __future__ import annotations

import logging

import click

from ._common import (
    TASK_NAME,
    _engine_errors,
    _fail,
    _load_context,
    _run_options,
    _run_task,
    target_options,
)

logger = logging.getLogger(__name__)


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("task_name", type=TASK_NAME)
@click.argument("task_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx, task_name, task_args):
    """Run a task defined in the inventory.

    Extra TASK_ARGS are exported to the script as SSHFLEET_TASK_ARGS_1,
    SSHFLEET_TASK_ARGS_2, ... with the count in SSHFLEET_TASK_ARGS_COUNT.

    Examples:

      sshfleet run uptime

      sshfleet run deploy v1.2.3
    """
    config, inventory, working_dir = _load_context(ctx)
    task = inventory.get_enabled_task(task_name)
    if task is None:
        _fail("Task '%s' not found." % task_name)

    options = _run_options(config, inventory, working_dir)
    _run_task(task, inventory, options, args=task_args)


@click.command("exec", context_settings={"ignore_unknown_options": True,
                                         "allow_interspersed_args": False})
@target_options
@click.option("--backend", type=click.Choice(["local", "remote"]), default=None,
              help="Where to run (default: remote with --target, local otherwise)")
@click.option("--parallel", "-p", is_flag=True, help="Run on all hosts at once")
@click.option("--privileged", is_flag=True, help="Run as root via sudo")
@click.option("--user", "-u", default="", help="Run as this user via sudo")
@click.option("--prefix", is_flag=True, help="Prefix each output line with the host")
@click.option("--prefix-string", default="", help="Custom prefix template (implies --prefix)")
@click.option("--pty", is_flag=True, help="Allocate a pseudo-terminal on the remote side")
@click.option("--driver", default="", help="Driver used to render the script")
@click.option("--file", "is_file", is_flag=True, help="Treat COMMAND as a path to a script file")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def exec_cmd(ctx, targets, filters, backend, parallel, privileged, user, prefix,
             prefix_string, pty, driver, is_file, command):
    """Run an ad-hoc COMMAND on the targeted hosts (or locally).

    Examples:

      sshfleet exec --target web --parallel --prefix uptime

      sshfleet exec --target db --filter prod --privileged 'systemctl status postgresql'

      sshfleet exec --file ./maintenance.sh
    """
    from sshfleet.orchestration.executor import build_exec_task

    config, inventory, working_dir = _load_context(ctx)
    errors = _engine_errors()
    try:
        task = build_exec_task(
            " ".join(command),
            targets=targets,
            filters=filters,
            backend=backend or (config.default_backend if targets else None),
            parallel=parallel,
            privileged=privileged,
            user=user,
            pty=pty,
            driver=driver,
            prefix=prefix,
            prefix_string=prefix_string,
            file=is_file,
        )
    except errors as e:
        _fail(str(e))

    issues = task.validate()
    if issues:
        _fail(issues[0])

    options = _run_options(config, inventory, working_dir)
    _run_task(task, inventory, options)
