"""Small shared helpers: shell quoting, env keys, exit codes, logging noise."""

from __future__ import annotations

import logging
import re
import shlex
import signal
import sys

logger = logging.getLogger(__name__)

_ENV_KEY_RE = re.compile(r"[^A-Za-z0-9_]")


def shell_escape(s: str) -> str:
    """Single-quote *s* for a POSIX shell.

    Unlike :func:`shlex.quote`, the result is always quoted, so generated
    scripts read the same whatever their content.
    """
    return "'" + s.replace("'", "'\"'\"'") + "'"


def shell_quote_word(s: str) -> str:
    """Quote *s* only when needed (user names, paths)."""
    return shlex.quote(s)


def env_key_escape(s: str) -> str:
    """Turn *s* into a valid environment variable name fragment."""
    return _ENV_KEY_RE.sub("_", s)


def hostname_align(name: str, names: list[str], pad: str = " ") -> str:
    """Return padding that lines up *name* with the longest of *names*.

    The result is *pad* repeated once per missing character plus one, so
    ``"[web1]" + hostname_align(...)`` starts every host's output in the
    same column.
    """
    if not names:
        return pad
    width = max(len(n) for n in names)
    return pad * (max(width - len(name), 0) + 1)


def exit_code_from_returncode(returncode: int) -> int:
    """Map a :class:`subprocess.Popen` return code to a shell exit status.

    Negative return codes mean the child died from a signal, which a shell
    reports as ``128 + signum``.
    """
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def signal_name(returncode: int) -> str | None:
    if returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return None


def is_windows() -> bool:
    return sys.platform.startswith("win")


def local_shell() -> tuple[str, str]:
    """Shell binary and its "run this string" flag for the local OS."""
    if is_windows():
        return "cmd", "/C"
    return "bash", "-c"


def suppress_noisy_loggers() -> None:
    """Quiet third-party loggers that are chatty at INFO."""
    for name in ("scitrera_app_framework", "urllib3", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)
