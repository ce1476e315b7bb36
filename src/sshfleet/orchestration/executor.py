"""Concurrent task executor.

A run goes through: resolve targets -> generate every script -> dispatch
(local or remote) -> sequential or parallel execution -> join.

Scripts are generated for all hosts before the first process starts, so a
template error never leaves a half-run fleet behind.

Failure semantics:

* sequential: the first failing host stops the run; later hosts never
  start and the error is raised to the caller.
* parallel: the first failing host is reported on stderr, every sibling
  process is terminated, and the run raises :class:`FleetAbortError`,
  which is fatal to the whole command.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Sequence

from sshfleet.hosts import HostResolutionError, check_selection, resolve_hosts
from sshfleet.inventory import Inventory
from sshfleet.models import (
    BACKEND_LOCAL, BACKEND_REMOTE, DEFAULT_DRIVER_NAME, Host, RunOptions, Task,
)
from sshfleet.orchestration.ssh import build_local_task_cmd, build_remote_task_cmd
from sshfleet.orchestration.streams import (
    OutputSynchronizer, StdinBroadcaster, has_fileno, join_all, start_stdin_feeder,
)
from sshfleet.render import generate_script, render_prefix
from sshfleet.utils import signal_name

logger = logging.getLogger(__name__)

NO_HOSTS_MESSAGE = "There are no hosts to run the command. You must specify valid hosts."
ABORT_POLL_INTERVAL = 0.1


class TaskExecutionError(Exception):
    """A host's process could not be started or exited non-zero."""

    def __init__(self, host: str | None, message: str, returncode: int | None = None):
        self.host = host
        self.returncode = returncode
        super().__init__("%s: %s" % (host, message) if host else message)


class FleetAbortError(Exception):
    """A parallel run was aborted because one of its hosts failed."""

    def __init__(self, cause: BaseException, host: str | None = None):
        self.cause = cause
        self.host = host
        super().__init__("parallel run aborted: %s" % cause)


# ---------------------------------------------------------------------------
# Per-host process
# ---------------------------------------------------------------------------

class HostRun:
    """One child process (local shell or ssh) and the threads around it.

    Owns its stdin queue and process handle exclusively; only the output
    synchronizer's lock is shared with other hosts.
    """

    def __init__(
            self,
            label: str | None,
            cmd: list[str],
            options: RunOptions,
            synchronizer: OutputSynchronizer,
            prefix: str = "",
            stdin_queue=None,
            direct_output: bool = False,
    ):
        self.label = label
        self.cmd = cmd
        self.options = options
        self.synchronizer = synchronizer
        self.prefix = prefix
        self.stdin_queue = stdin_queue
        self.direct_output = direct_output
        self.process: subprocess.Popen | None = None
        self._lock = threading.Lock()
        self._terminated = False

    def _stdin_arg(self):
        if self.stdin_queue is not None:
            return subprocess.PIPE
        console_stdin = self.options.console.stdin
        return console_stdin if has_fileno(console_stdin) else subprocess.DEVNULL

    def start(self) -> bool:
        """Spawn the process; returns False if the run was terminated first."""
        console = self.options.console
        with self._lock:
            if self._terminated:
                return False
            logger.debug("Starting %s: %s", self.label or "<local>", self.cmd[0])
            try:
                self.process = subprocess.Popen(
                    self.cmd,
                    stdin=self._stdin_arg(),
                    stdout=console.stdout if self.direct_output else subprocess.PIPE,
                    stderr=console.stderr if self.direct_output else subprocess.PIPE,
                    cwd=self.options.working_dir,
                )
            except OSError as e:
                raise TaskExecutionError(self.label, "cannot start %s: %s" % (self.cmd[0], e)) from e
        return True

    def run(self, abort: threading.Event | None = None) -> None:
        """Start the process, stream its I/O and wait for it.

        Raises:
            TaskExecutionError: If the process cannot start or exits non-zero.
        """
        if abort is not None and abort.is_set():
            return
        if not self.start():
            return
        proc = self.process
        label = self.label or "local"

        if self.stdin_queue is not None:
            start_stdin_feeder(self.stdin_queue, proc.stdin, label)

        readers = []
        if not self.direct_output:
            console = self.options.console
            readers.append(self.synchronizer.start_scanner(proc.stdout, console.stdout, self.prefix, label))
            readers.append(self.synchronizer.start_scanner(proc.stderr, console.stderr, self.prefix, label))

        t0 = time.monotonic()
        returncode = proc.wait()
        if self._terminated:
            # Grandchildren may still hold the output pipes; their remaining
            # lines are left to the daemon scanners.
            raise TaskExecutionError(self.label, "terminated", returncode)
        join_all(readers)
        elapsed = time.monotonic() - t0

        if returncode == 0:
            logger.debug("  %s OK (%.1fs)", label, elapsed)
            return
        sig = signal_name(returncode)
        if sig:
            raise TaskExecutionError(self.label, "killed by %s" % sig, returncode)
        raise TaskExecutionError(self.label, "exit status %d" % returncode, returncode)

    def terminate(self) -> None:
        """Best-effort stop; also prevents a not-yet-started process from starting."""
        with self._lock:
            self._terminated = True
            if self.process is not None and self.process.poll() is None:
                logger.debug("Terminating %s", self.label or "<local>")
                self.process.terminate()


# ---------------------------------------------------------------------------
# Task runs
# ---------------------------------------------------------------------------

def resolve_task_hosts(task: Task, inventory: Inventory) -> list[Host]:
    """Hosts targeted by *task*, sorted by name.

    Returns an empty list only for a local task without targets (a
    host-less run).

    Raises:
        HostResolutionError: If filters are set without targets, a remote
            task has no targets, or the targets match no host.
    """
    check_selection(task.targets, task.filters, option="target")
    if not task.targets:
        if task.is_remote:
            raise HostResolutionError(NO_HOSTS_MESSAGE)
        return []
    hosts = resolve_hosts(inventory.hosts, task.targets, task.filters)
    if not hosts:
        raise HostResolutionError(NO_HOSTS_MESSAGE)
    return hosts


def run_task(task: Task, inventory: Inventory, options: RunOptions, args: Sequence[str] = ()) -> None:
    """Run *task* on its target hosts.

    Args:
        task: Task to run.
        inventory: Host/driver registry.
        options: Invocation parameters (ssh_config path, console, cwd).
        args: Extra command-line arguments, exposed to the script.

    Raises:
        HostResolutionError: Targets could not be resolved.
        ConfigurationError: Unknown driver.
        TemplateRenderError: Script or prefix template failed.
        TaskExecutionError: A host failed in sequential mode.
        FleetAbortError: A host failed in parallel mode.
    """
    logger.debug("Run task: %s args=%s", task.public_name, list(args))
    task.args = list(args)

    if task.prepare is not None:
        logger.debug("Running prepare function of task %s", task.public_name)
        task.prepare()

    driver = inventory.get_driver(task.driver)
    logger.debug("Task %s uses driver %s", task.public_name, driver.name)
    hosts = resolve_task_hosts(task, inventory)
    synchronizer = OutputSynchronizer(options.console.stdout, options.console.stderr, color=options.color)

    if not hosts:
        _run_hostless(task, inventory, options, synchronizer)
        return

    # Render everything up front: a template error must surface before any
    # process starts.
    runs = []
    for host in hosts:
        script = generate_script(options.ssh_config_path, task, host, hosts, inventory.drivers)
        prefix = render_prefix(task, host, hosts)
        runs.append((host, script, prefix))

    direct = len(hosts) == 1 and not runs[0][2] and _console_has_fds(options)
    broadcaster = StdinBroadcaster(options.console.stdin, len(hosts)).start()

    host_runs = []
    for i, (host, script, prefix) in enumerate(runs):
        if task.backend == BACKEND_REMOTE:
            cmd = build_remote_task_cmd(options.ssh_config_path, task, host, script)
        else:
            cmd = build_local_task_cmd(task, script, options.working_dir)
        host_runs.append(HostRun(host.name, cmd, options, synchronizer, prefix=prefix,
                                 stdin_queue=broadcaster.queues[i], direct_output=direct))

    logger.info("Running task %s on %d host(s) [%s, %s]: %s", task.public_name, len(hosts),
                task.backend, "parallel" if task.parallel else "sequential",
                ", ".join(h.name for h in hosts))

    try:
        if task.parallel:
            _run_parallel(host_runs, synchronizer)
        else:
            _run_sequential(host_runs)
    finally:
        broadcaster.stop()


def _console_has_fds(options: RunOptions) -> bool:
    return has_fileno(options.console.stdout) and has_fileno(options.console.stderr)


def _run_hostless(task: Task, inventory: Inventory, options: RunOptions,
                  synchronizer: OutputSynchronizer) -> None:
    """A local task without targets: exactly one invocation, stdin inherited."""
    script = generate_script(options.ssh_config_path, task, None, [], inventory.drivers)
    prefix = render_prefix(task, None)
    cmd = build_local_task_cmd(task, script, options.working_dir)

    direct = not prefix and _console_has_fds(options)
    if has_fileno(options.console.stdin):
        HostRun(None, cmd, options, synchronizer, prefix=prefix, direct_output=direct).run()
        return

    broadcaster = StdinBroadcaster(options.console.stdin, 1).start()
    try:
        HostRun(None, cmd, options, synchronizer, prefix=prefix,
                stdin_queue=broadcaster.queues[0], direct_output=direct).run()
    finally:
        broadcaster.stop()


def _run_sequential(host_runs: list[HostRun]) -> None:
    for host_run in host_runs:
        host_run.run()


def _run_parallel(host_runs: list[HostRun], synchronizer: OutputSynchronizer) -> None:
    """Run every host at once; the first failure aborts the whole batch.

    The abort does not wait for the siblings: they are terminated and the
    pool is shut down without joining them.
    """
    abort = threading.Event()
    failure_lock = threading.Lock()
    failures: list[tuple[HostRun, BaseException]] = []

    def worker(host_run: HostRun) -> None:
        try:
            host_run.run(abort)
        except Exception as e:  # worker boundary: record, then abort siblings
            with failure_lock:
                first = not failures
                failures.append((host_run, e))
            if not first:
                return
            synchronizer.error("sshfleet error: %s" % e)
            for other in host_runs:
                if other is not host_run:
                    other.terminate()
            abort.set()

    pool = ThreadPoolExecutor(max_workers=len(host_runs))
    futures = [pool.submit(worker, host_run) for host_run in host_runs]
    try:
        pending = futures
        while pending and not abort.is_set():
            _, pending = wait(pending, timeout=ABORT_POLL_INTERVAL)
    except BaseException:
        # Ctrl-C while waiting: stop the whole fleet before propagating.
        abort.set()
        for host_run in host_runs:
            host_run.terminate()
        raise
    finally:
        pool.shutdown(wait=not abort.is_set(), cancel_futures=True)

    if failures:
        failed_run, cause = failures[0]
        raise FleetAbortError(cause, host=failed_run.label)


# ---------------------------------------------------------------------------
# Ad-hoc tasks
# ---------------------------------------------------------------------------

EXEC_TASK_NAME = "--exec"


def build_exec_task(
        command: str,
        targets: Sequence[str] = (),
        filters: Sequence[str] = (),
        backend: str | None = None,
        parallel: bool = False,
        privileged: bool = False,
        user: str = "",
        pty: bool = False,
        driver: str = "",
        prefix: bool = False,
        prefix_string: str = "",
        file: bool = False,
) -> Task:
    """Build a temporary task running *command* (or the script file *command*).

    A command without targets runs locally; with targets it defaults to the
    remote backend.

    Raises:
        HostResolutionError: If filters are given without targets.
    """
    check_selection(targets, filters, option="target")
    if backend is None:
        backend = BACKEND_REMOTE if targets else BACKEND_LOCAL
    task = Task(
        name=EXEC_TASK_NAME,
        driver=driver or DEFAULT_DRIVER_NAME,
        targets=list(targets),
        filters=list(filters),
        backend=backend,
        parallel=parallel,
        privileged=privileged,
        user=user,
        pty=pty,
        use_prefix=prefix or bool(prefix_string),
        prefix=prefix_string,
    )
    if file:
        task.file = command
    else:
        task.script = [{"name": "command", "code": command}]
    return task
