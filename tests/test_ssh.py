"""Unit tests for sshfleet.orchestration.ssh module."""

from unittest.mock import patch

from sshfleet.models import Host, Task
from sshfleet.orchestration.ssh import (
    build_local_task_cmd,
    build_remote_task_cmd,
    build_session_cmd,
    build_ssh_base,
    wrap_privileged,
)


def test_wrap_privileged_plain_script_unchanged():
    assert wrap_privileged("echo hi", Task(name="t")) == "echo hi"


def test_wrap_privileged_user():
    """user wins: sudo -u <user> bash -l -c '<script>'."""
    task = Task(name="t", user="alice")
    assert wrap_privileged("whoami", task) == "sudo -u alice bash -l -c 'whoami'"


def test_wrap_privileged_root():
    task = Task(name="t", privileged=True)
    assert wrap_privileged("whoami", task) == "sudo bash -l -c 'whoami'"


def test_wrap_privileged_escapes_single_quotes():
    task = Task(name="t", privileged=True)
    assert wrap_privileged("echo 'x'", task) == "sudo bash -l -c 'echo '\"'\"'x'\"'\"''"


def test_wrap_privileged_local_changes_directory_first():
    task = Task(name="t", privileged=True, backend="local")
    assert wrap_privileged("ls", task, working_dir="/srv/app") == "sudo bash -l -c 'cd /srv/app\nls'"


def test_build_ssh_base_pty_forces_two_t_flags():
    cmd = build_ssh_base("/tmp/cfg", ["-A"], pty=True)
    assert cmd == ["ssh", "-A", "-t", "-t", "-F", "/tmp/cfg"]


def test_build_remote_task_cmd():
    """ssh [options] -F <config> <host> bash -c <escaped script>."""
    host = Host(name="web1", ssh_options=["-o", "BatchMode=yes"])
    cmd = build_remote_task_cmd("/tmp/cfg", Task(name="t"), host, "echo hi")

    assert cmd == ["ssh", "-o", "BatchMode=yes", "-F", "/tmp/cfg", "web1", "bash", "-c", "'echo hi'"]


def test_build_remote_task_cmd_privileged():
    cmd = build_remote_task_cmd("/tmp/cfg", Task(name="t", user="bob"), Host(name="h"), "id")
    assert cmd[-1] == "'sudo -u bob bash -l -c '\"'\"'id'\"'\"''"


@patch("sshfleet.orchestration.ssh.local_shell", return_value=("bash", "-c"))
def test_build_local_task_cmd(mock_shell):
    assert build_local_task_cmd(Task(name="t", backend="local"), "echo hi") == ["bash", "-c", "echo hi"]


@patch("sshfleet.orchestration.ssh.local_shell", return_value=("cmd", "/C"))
def test_build_local_task_cmd_windows(mock_shell):
    assert build_local_task_cmd(Task(name="t", backend="local"), "dir")[:2] == ["cmd", "/C"]


def test_build_session_cmd_passthrough():
    assert build_session_cmd("/tmp/cfg", ["-v", "web1"]) == ["ssh", "-F", "/tmp/cfg", "-v", "web1"]


def test_build_session_cmd_with_remote_command_adds_tty():
    cmd = build_session_cmd("/tmp/cfg", ["web1"], "echo hi\n\nexec $SHELL\n")
    assert cmd == ["ssh", "-t", "-F", "/tmp/cfg", "web1", "echo hi\n\nexec $SHELL\n"]


def test_build_session_cmd_keeps_callers_tty_flag():
    cmd = build_session_cmd("/tmp/cfg", ["-t", "web1"], "x")
    assert cmd.count("-t") == 1
