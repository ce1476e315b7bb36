"""sshfleet connect command."""

from __future__ import annotations

import click

from ._common import _engine_errors, _fail, _load_context, _run_options


@click.command(context_settings={"ignore_unknown_options": True,
                                 "allow_interspersed_args": False})
@click.argument("ssh_args", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def connect(ctx, ssh_args):
    """Open an ssh session using the generated ssh_config.

    With a single host name, the host's before_connect, after_connect and
    after_disconnect hooks run around the session.  Any other arguments
    are passed to ssh unchanged.  Exits with ssh's exit status.

    Examples:

      sshfleet connect web1

      sshfleet connect -L 8080:localhost:80 web1
    """
    from sshfleet.session import run_session

    config, inventory, working_dir = _load_context(ctx)
    options = _run_options(config, inventory, working_dir)
    try:
        code = run_session(ssh_args, inventory, options)
    except _engine_errors() as e:
        _fail(str(e))
    ctx.exit(code)
