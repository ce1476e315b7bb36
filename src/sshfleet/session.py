"""Interactive ssh sessions with per-host lifecycle hooks.

``sshfleet connect web1`` regenerates the ssh_config, then:

1. runs the host's ``before_connect`` hooks locally (a failure aborts),
2. opens ``ssh`` with the ``after_connect`` hooks as the remote command,
   followed by ``exec $SHELL`` so the user lands in an interactive shell,
3. runs the ``after_disconnect`` hooks locally, whatever happened before.

Hooks only fire when the single argument is a known host name; any other
argument list is passed to ``ssh`` untouched.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Iterable, Sequence

from sshfleet.inventory import Inventory
from sshfleet.models import Host, HookValue, RunOptions
from sshfleet.orchestration.ssh import build_session_cmd
from sshfleet.orchestration.streams import has_fileno
from sshfleet.utils import exit_code_from_returncode, local_shell

logger = logging.getLogger(__name__)

MAX_HOOK_DEPTH = 32


class HookError(Exception):
    """A hook could not be resolved or its command failed."""


def resolve_hook(value: HookValue) -> str:
    """Resolve a hook value to command text.

    Callables are invoked until they produce a string (or None, which
    resolves to an empty command).

    Raises:
        HookError: If the chain is deeper than :data:`MAX_HOOK_DEPTH` or
            ends in something that is not text.
    """
    depth = 0
    while callable(value):
        if depth >= MAX_HOOK_DEPTH:
            raise HookError("hook nesting exceeds %d levels" % MAX_HOOK_DEPTH)
        value = value()
        depth += 1
    if value is None:
        return ""
    if not isinstance(value, str):
        raise HookError("hook resolved to %s, expected a string" % type(value).__name__)
    return value


def hook_script(hooks: Iterable[HookValue]) -> str:
    """Concatenate resolved hooks, one per line; empty hooks are skipped."""
    lines = []
    for hook in hooks:
        command = resolve_hook(hook)
        if command:
            lines.append(command + "\n")
    return "".join(lines)


def _stdio_kwargs(options: RunOptions) -> dict:
    # Streams without a file descriptor (captured output) fall back to the
    # process's own stdio.
    console = options.console
    return {
        "stdin": console.stdin if has_fileno(console.stdin) else None,
        "stdout": console.stdout if has_fileno(console.stdout) else None,
        "stderr": console.stderr if has_fileno(console.stderr) else None,
    }


def run_command(script: str, options: RunOptions, label: str = "hook") -> None:
    """Run *script* with the local shell in the invocation's working directory.

    Raises:
        HookError: If the shell cannot start or exits non-zero.
    """
    shell, flag = local_shell()
    logger.debug("Running %s locally", label)
    try:
        proc = subprocess.run([shell, flag, script], cwd=options.working_dir, **_stdio_kwargs(options))
    except OSError as e:
        raise HookError("%s: cannot start %s: %s" % (label, shell, e)) from e
    if proc.returncode != 0:
        raise HookError("%s failed with exit status %d"
                        % (label, exit_code_from_returncode(proc.returncode)))


def _ssh(cmd: list[str], options: RunOptions) -> int:
    logger.debug("Session command: %s", cmd)
    try:
        proc = subprocess.run(cmd, **_stdio_kwargs(options))
    except OSError as e:
        raise HookError("cannot start ssh: %s" % e) from e
    return exit_code_from_returncode(proc.returncode)


def _after_disconnect(host: Host, options: RunOptions, failed: bool) -> None:
    script = hook_script(host.after_disconnect)
    if not script:
        return
    try:
        run_command(script, options, "after_disconnect")
    except HookError as e:
        if not failed:
            raise
        # The earlier failure is the one reported to the caller.
        logger.error("%s", e)


def run_session(args: Sequence[str], inventory: Inventory, options: RunOptions) -> int:
    """Open an interactive ssh session and return ssh's exit code.

    Args:
        args: Arguments for ``ssh`` (typically a single host name).
        inventory: Host registry, used to look up hooks.
        options: Invocation parameters (ssh_config path, console, cwd).

    Returns:
        ssh's exit code, ``128 + signal`` when it was killed by a signal.

    Raises:
        HookError: If a hook fails or ssh cannot be started.
    """
    args = list(args)
    host = inventory.get_host(args[0]) if len(args) == 1 else None
    if host is None:
        return _ssh(build_session_cmd(options.ssh_config_path, args), options)

    failed = True
    try:
        before = hook_script(host.before_connect)
        if before:
            run_command(before, options, "before_connect")

        after = hook_script(host.after_connect)
        remote_command = after + "\nexec $SHELL\n" if after else None
        code = _ssh(build_session_cmd(options.ssh_config_path, args, remote_command), options)
        failed = False
        return code
    finally:
        _after_disconnect(host, options, failed)
