"""Command lines for the external ``ssh`` client and the local shell.

Nothing here spawns a process; the executor and the session controller
turn these argument lists into subprocesses.
"""

from __future__ import annotations

import logging
from typing import Sequence

from sshfleet.models import Host, Task
from sshfleet.utils import local_shell, shell_escape, shell_quote_word

logger = logging.getLogger(__name__)


def wrap_privileged(script: str, task: Task, working_dir: str | None = None) -> str:
    """Wrap *script* for privilege escalation as configured on *task*.

    ``user`` wins over ``privileged``.  When *working_dir* is given (local
    execution) the elevated shell first changes into it, so it keeps the
    invocation's working context; remote execution relies on the login
    shell's home directory instead.

    Args:
        script: Rendered script text.
        task: Task carrying ``user`` / ``privileged``.
        working_dir: Directory to ``cd`` into before running, or None.

    Returns:
        The script unchanged, or a ``sudo ... bash -l -c '<script>'`` line.
    """
    if not task.user and not task.privileged:
        return script
    if working_dir:
        script = "cd %s\n%s" % (shell_quote_word(working_dir), script)
    if task.user:
        return "sudo -u %s bash -l -c %s" % (shell_quote_word(task.user), shell_escape(script))
    return "sudo bash -l -c %s" % shell_escape(script)


def build_ssh_base(ssh_config_path: str, ssh_options: Sequence[str] = (), pty: bool = False) -> list[str]:
    """``ssh [options] [-t -t] -F <config>``; the host and command are appended by callers."""
    cmd = ["ssh"]
    cmd.extend(ssh_options)
    if pty:
        # A single -t is ignored without a local tty; two force allocation.
        cmd.extend(["-t", "-t"])
    cmd.extend(["-F", ssh_config_path])
    return cmd


def build_remote_task_cmd(ssh_config_path: str, task: Task, host: Host, script: str) -> list[str]:
    """Full ``ssh`` invocation running *script* on *host* through ``bash -c``.

    Args:
        ssh_config_path: Generated ssh_config to pass with ``-F``.
        task: Task being run (``pty`` and privilege settings).
        host: Target host; its name is the ssh_config alias.
        script: Rendered script text.

    Returns:
        List of command parts suitable for subprocess.
    """
    script = wrap_privileged(script, task)
    cmd = build_ssh_base(ssh_config_path, host.ssh_options, pty=task.pty)
    cmd.extend([host.name, "bash", "-c", shell_escape(script)])
    logger.debug("SSH command for %s: %s", host.name, " ".join(cmd[:-1]))
    return cmd


def build_local_task_cmd(task: Task, script: str, working_dir: str | None = None) -> list[str]:
    """Local shell invocation (``bash -c`` or ``cmd /C``) running *script*."""
    shell, flag = local_shell()
    return [shell, flag, wrap_privileged(script, task, working_dir)]


def build_session_cmd(
        ssh_config_path: str,
        args: Sequence[str],
        remote_command: str | None = None,
) -> list[str]:
    """``ssh -F <config> <args...> [remote command]`` for interactive sessions.

    When *remote_command* is given and the caller did not pass ``-t``
    already, a single ``-t`` is added so the remote command gets a tty.
    """
    cmd = ["ssh"]
    if remote_command is not None and "-t" not in args:
        cmd.append("-t")
    cmd.extend(["-F", ssh_config_path])
    cmd.extend(args)
    if remote_command is not None:
        cmd.append(remote_command)
    return cmd
