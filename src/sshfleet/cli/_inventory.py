"""sshfleet hosts, tags, tasks and config commands."""

from __future__ import annotations

import click

from ._common import (
    HOST_EXPR,
    TASK_NAME,
    _fail,
    _get_config,
    _inventory_paths,
    _load_context,
    _working_dir,
)


@click.command()
@click.option("--select", "-s", "selections", multiple=True, type=HOST_EXPR,
              help="Show hosts with this name or tag (repeatable)")
@click.option("--filter", "-f", "filters", multiple=True, type=HOST_EXPR,
              help="Keep only selected hosts matching this name or tag (repeatable)")
@click.option("--all", "-a", "show_all", is_flag=True, help="Include hidden hosts")
@click.option("--quiet", "-q", is_flag=True, help="Only print host names")
@click.option("--ssh-config", "ssh_config", is_flag=True, help="Print the generated ssh_config instead")
@click.pass_context
def hosts(ctx, selections, filters, show_all, quiet, ssh_config):
    """List hosts defined in the inventory."""
    from sshfleet.hosts import HostResolutionError, check_selection
    from sshfleet.sshconfig import generate_ssh_config
    from sshfleet.utils.cli_formatters import format_host_table

    try:
        check_selection(selections, filters)
    except HostResolutionError as e:
        _fail(str(e))

    _config, inventory, _wd = _load_context(ctx)
    query = inventory.query()
    if not show_all:
        query.visible()
    if selections:
        host_list = query.append_selections(selections).append_filters(filters).hosts_ordered_by_name()
    else:
        host_list = query.all_hosts_ordered_by_name()

    if ssh_config:
        click.echo(generate_ssh_config(host_list).decode("utf-8"), nl=False)
        return
    click.echo(format_host_table(host_list, quiet=quiet))


@click.command()
@click.pass_context
def tags(ctx):
    """List tags used by hosts in the inventory."""
    _config, inventory, _wd = _load_context(ctx)
    for tag in inventory.tags():
        click.echo(tag)


@click.command()
@click.option("--all", "-a", "show_all", is_flag=True, help="Include hidden and disabled tasks")
@click.option("--quiet", "-q", is_flag=True, help="Only print task names")
@click.option("--show", "show_name", default=None, type=TASK_NAME, help="Show one task in detail")
@click.pass_context
def tasks(ctx, show_all, quiet, show_name):
    """List tasks defined in the inventory."""
    from sshfleet.utils.cli_formatters import display_task_detail, format_task_table

    _config, inventory, _wd = _load_context(ctx)
    if show_name:
        task = inventory.tasks.get(show_name)
        if task is None:
            _fail("Task '%s' not found." % show_name)
        display_task_detail(task)
        return
    click.echo(format_task_table(inventory.tasks_ordered_by_name(include_hidden=show_all), quiet=quiet))


@click.command("config")
@click.pass_context
def config_cmd(ctx):
    """Show the effective configuration and inventory files."""
    from sshfleet.bootstrap import init_sshfleet, list_drivers

    v = init_sshfleet()
    config = _get_config(ctx.obj.get("config_path"))
    working_dir = _working_dir(ctx)

    click.echo("Config file:     %s%s" % (config.config_path, "" if config.config_path.exists() else " (not found)"))
    click.echo("ssh_config:      %s" % config.ssh_config_path)
    click.echo("Working dir:     %s" % working_dir)
    if config.default_backend:
        click.echo("Default backend: %s" % config.default_backend)
    click.echo("Drivers:         %s" % ", ".join(list_drivers(v)))
    paths = _inventory_paths(config, working_dir)
    click.echo("Inventory files:")
    if not paths:
        click.echo("  (none)")
    for path in paths:
        click.echo("  %s" % path)
