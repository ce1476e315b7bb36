"""Generation of the ssh_config file consumed by the ``ssh`` client.

Every run regenerates this file from the inventory and points ``ssh -F``
at it, so host aliases resolve without touching ``~/.ssh/config``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from sshfleet.models import Host

logger = logging.getLogger(__name__)

HEADER = "# Generated by sshfleet. Changes will be overwritten.\n"


def _format_value(value: str) -> str:
    if value == "" or any(c.isspace() for c in value):
        return '"%s"' % value.replace('"', '\\"')
    return value


def generate_ssh_config(hosts: Iterable[Host]) -> bytes:
    """Render ``Host`` blocks for *hosts*, in the order given.

    Args:
        hosts: Hosts to include; each host's ``ssh_config`` mapping becomes
            the keyword/argument lines of its block.

    Returns:
        The file content, UTF-8 encoded.
    """
    lines = [HEADER]
    for host in hosts:
        lines.append("Host %s\n" % host.name)
        for key, value in host.ssh_config.items():
            lines.append("    %s %s\n" % (key, _format_value(str(value))))
        lines.append("\n")
    return "".join(lines).encode("utf-8")


def update_ssh_config(output_path: str | Path, hosts: Iterable[Host]) -> bytes:
    """Write the generated ssh_config to *output_path* and return its content."""
    output_path = Path(output_path)
    content = generate_ssh_config(hosts)
    logger.debug("Writing ssh_config to %s (%d bytes)", output_path, len(content))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(content)
    os.chmod(output_path, 0o644)
    return content
