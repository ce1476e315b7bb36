"""sshfleet CLI: run shell tasks across a fleet of hosts over ssh."""

from __future__ import annotations

import click

from sshfleet import __version__
from ._common import _setup_logging
from ._connect import connect
from ._inventory import config_cmd, hosts, tags, tasks
from ._run import exec_cmd, run


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose/debug output")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="Path to config file (default: ~/.config/sshfleet/config.yaml)")
@click.option("--working-dir", "-C", "working_dir", default=None, type=click.Path(file_okay=False),
              help="Directory to look for sshfleet.yaml in and to run local tasks from")
@click.version_option(__version__, prog_name="sshfleet")
@click.pass_context
def main(ctx, verbose, config_path, working_dir):
    """sshfleet: run tasks on many hosts through ssh."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    ctx.obj["working_dir"] = working_dir
    _setup_logging(verbose)


main.add_command(run)
main.add_command(exec_cmd)
main.add_command(connect)
main.add_command(hosts)
main.add_command(tags)
main.add_command(tasks)
main.add_command(config_cmd)
