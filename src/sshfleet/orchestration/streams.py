"""Console I/O plumbing for multi-host runs.

Two halves:

* :class:`StdinBroadcaster` copies the console's stdin, chunk by chunk, to
  one bounded queue per host; :func:`feed_stdin` drains a queue into that
  host's child stdin pipe.  Every host sees the same bytes in the same order.
* :class:`OutputSynchronizer` reads child stdout/stderr line by line and
  writes whole lines to the console under a single lock, so lines from
  different hosts never interleave mid-line.
"""

from __future__ import annotations

import logging
import os
import queue
import select
import threading
from typing import BinaryIO, Iterable

import click

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024
QUEUE_CAPACITY = 256
POLL_INTERVAL = 0.05
STOP_TIMEOUT = 1.0

# End-of-input marker put on every queue once the console stdin is exhausted.
EOF = None


def has_fileno(stream) -> bool:
    """True if *stream* is backed by a real file descriptor (usable by Popen)."""
    try:
        stream.fileno()
    except (AttributeError, OSError, ValueError):
        return False
    return True


class StdinBroadcaster:
    """Pump the console's stdin into one queue per host.

    This is a broadcast, not a partition: each chunk goes verbatim onto
    every queue.  On end of input the :data:`EOF` marker is put on each
    queue in turn.

    :meth:`stop` ends the pump when the run is over, so stdin left unread
    stays in the console for the next run instead of being consumed by a
    stale thread.
    """

    def __init__(self, source: BinaryIO, count: int, chunk_size: int = CHUNK_SIZE,
                 capacity: int = QUEUE_CAPACITY):
        self.source = source
        self.chunk_size = chunk_size
        self.queues: list[queue.Queue] = [queue.Queue(maxsize=capacity) for _ in range(count)]
        self._thread: threading.Thread | None = None
        self._stopped = threading.Event()

    def start(self) -> StdinBroadcaster:
        self._thread = threading.Thread(target=self._pump, name="sshfleet-stdin", daemon=True)
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def stop(self, timeout: float = STOP_TIMEOUT) -> None:
        """Stop reading stdin and wait for the pump to exit."""
        self._stopped.set()
        self.join(timeout)

    def _pollable_fd(self) -> int | None:
        # select() only works on file descriptors of POSIX pipes, ttys and files.
        if os.name != "posix" or not has_fileno(self.source):
            return None
        return self.source.fileno()

    def _read_chunk(self) -> bytes | None:
        """Next chunk, ``b""`` at end of input, None once stopped."""
        fd = self._pollable_fd()
        if fd is None:
            # read1 returns as soon as some bytes are available, which keeps
            # interactive input flowing instead of waiting for a full chunk.
            read = getattr(self.source, "read1", self.source.read)
            return read(self.chunk_size)
        while not self._stopped.is_set():
            ready, _, _ = select.select([fd], [], [], POLL_INTERVAL)
            if ready:
                return os.read(fd, self.chunk_size)
        return None

    def _put(self, q: queue.Queue, item) -> bool:
        while not self._stopped.is_set():
            try:
                q.put(item, timeout=POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _pump(self) -> None:
        try:
            while not self._stopped.is_set():
                chunk = self._read_chunk()
                if not chunk:
                    break
                for q in self.queues:
                    if not self._put(q, chunk):
                        break
        except (OSError, ValueError) as e:
            logger.error("sshfleet error in reading stdin: %s", e)
        finally:
            self._finish()

    def _finish(self) -> None:
        for q in self.queues:
            if self._put(q, EOF):
                continue
            # Stopped: a queue nobody drains anymore may be full.
            try:
                q.put_nowait(EOF)
            except queue.Full:
                pass


def feed_stdin(source: queue.Queue, dest: BinaryIO, label: str = "") -> None:
    """Drain *source* into the child stdin pipe *dest*, closing it on EOF.

    A broken pipe means the child stopped reading; the error is dropped and
    the rest of the queue is discarded.  The queue is still drained to the
    end so the broadcaster never blocks on a host that went away.
    """
    writable = True
    while True:
        chunk = source.get()
        if chunk is EOF:
            break
        if not writable:
            continue
        try:
            dest.write(chunk)
            dest.flush()
        except BrokenPipeError:
            writable = False
        except (OSError, ValueError) as e:
            logger.error("sshfleet error in writing stdin to %s: %s", label or "child", e)
            writable = False

    try:
        dest.close()
    except BrokenPipeError:
        pass


def start_stdin_feeder(source: queue.Queue, dest: BinaryIO, label: str = "") -> threading.Thread:
    thread = threading.Thread(target=feed_stdin, args=(source, dest, label),
                              name="sshfleet-stdin-%s" % label, daemon=True)
    thread.start()
    return thread


class OutputSynchronizer:
    """Line-atomic writer shared by all hosts of a run.

    The lock guards the console's stdout and stderr; it is the only lock
    shared between host workers.
    """

    def __init__(self, stdout: BinaryIO, stderr: BinaryIO, color: bool = False):
        self.stdout = stdout
        self.stderr = stderr
        self.color = color
        self.lock = threading.Lock()

    def encode_prefix(self, prefix: str) -> bytes:
        if prefix and self.color:
            prefix = click.style(prefix, fg="cyan", bold=True)
        return prefix.encode("utf-8")

    def write_line(self, dest: BinaryIO, prefix: bytes, line: bytes) -> None:
        with self.lock:
            dest.write(prefix + line + b"\n")
            dest.flush()

    def scan_lines(self, src: BinaryIO, dest: BinaryIO, prefix: str = "") -> None:
        """Copy *src* to *dest* one complete line at a time.

        A final line without a trailing newline is still emitted as a whole
        line.  Lines are written with the (rendered once) *prefix*.
        """
        encoded = self.encode_prefix(prefix)
        try:
            for raw in iter(src.readline, b""):
                self.write_line(dest, encoded, raw.rstrip(b"\n").rstrip(b"\r"))
        except (OSError, ValueError) as e:
            self.error("sshfleet error: reading output failed: %s" % e)

    def start_scanner(self, src: BinaryIO, dest: BinaryIO, prefix: str, label: str = "") -> threading.Thread:
        thread = threading.Thread(target=self.scan_lines, args=(src, dest, prefix),
                                  name="sshfleet-output-%s" % label, daemon=True)
        thread.start()
        return thread

    def error(self, message: str) -> None:
        """Write an error line to the console's stderr without splitting other lines."""
        if self.color:
            message = click.style(message, fg="red", bold=True)
        with self.lock:
            self.stderr.write(message.encode("utf-8") + b"\n")
            self.stderr.flush()


def join_all(threads: Iterable[threading.Thread]) -> None:
    for thread in threads:
        thread.join()
