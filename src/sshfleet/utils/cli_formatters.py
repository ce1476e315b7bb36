"""Presentation layer formatting functions for the sshfleet CLI."""

from typing import Any

import click


def format_table(
        headers: list[str],
        rows: list[list[str]],
        *,
        quiet: bool = False,
        empty_message: str = "Nothing found.",
) -> str:
    """Format rows as a plain, left-aligned text table.

    Args:
        headers: Column headers.
        rows: Row values, one list per row, aligned with *headers*.
        quiet: Emit only the first column, no header (for scripting).
        empty_message: Text returned when there are no rows.

    Returns:
        Formatted multi-line string (no trailing newline).
    """
    if quiet:
        return "\n".join(row[0] for row in rows)
    if not rows:
        return empty_message

    widths = [len(h) for h in headers]
    for row in rows:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(value))

    header = "  ".join(f"{h:<{widths[i]}}" for i, h in enumerate(headers)).rstrip()
    separator = "-" * len(header)
    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(f"{v:<{widths[i]}}" for i, v in enumerate(row)).rstrip())
    return "\n".join(lines)


def format_host_table(hosts: list[Any], quiet: bool = False) -> str:
    rows = [
        [h.name, h.description_or_default(), ",".join(h.tags), "true" if h.hidden else "false"]
        for h in hosts
    ]
    return format_table(["NAME", "DESCRIPTION", "TAGS", "HIDDEN"], rows,
                        quiet=quiet, empty_message="No hosts found.")


def format_task_table(tasks: list[Any], quiet: bool = False) -> str:
    rows = [
        [t.public_name, t.description, t.backend, "true" if t.hidden else "false"]
        for t in tasks
    ]
    return format_table(["NAME", "DESCRIPTION", "BACKEND", "HIDDEN"], rows,
                        quiet=quiet, empty_message="No tasks found.")


def display_task_detail(task) -> None:
    """Display task details (used by ``sshfleet tasks --show``)."""
    click.echo(f"Name:         {task.public_name}")
    click.echo(f"Description:  {task.description_or_default()}")
    click.echo(f"Backend:      {task.backend}")
    click.echo(f"Driver:       {task.driver}")
    click.echo(f"Parallel:     {task.parallel}")
    if task.targets:
        click.echo(f"Targets:      {', '.join(task.targets)}")
    if task.filters:
        click.echo(f"Filters:      {', '.join(task.filters)}")
    if task.user:
        click.echo(f"User:         {task.user}")
    elif task.privileged:
        click.echo("Privileged:   True")
    if task.file:
        click.echo(f"File:         {task.file}")
    for fragment in task.script:
        click.echo(f"\n# {fragment.get('name', '')}\n{fragment.get('code', '').rstrip()}")
