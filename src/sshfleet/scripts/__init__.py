"""Jinja2 shell templates for generated task scripts.

``environment.sh.j2`` and ``functions.sh.j2`` are the named blocks every
driver template may ``{% include %}``; ``default.sh.j2`` is the template of
the built-in default driver.
"""

from __future__ import annotations

from importlib import resources

TEMPLATE_SUFFIX = ".sh.j2"
BLOCK_NAMES = ("environment", "functions")


def read_script(name: str) -> str:
    """Return the source of the packaged template *name* (e.g. ``"default.sh.j2"``)."""
    return resources.files(__package__).joinpath(name).read_text(encoding="utf-8")


def block_sources() -> dict[str, str]:
    """Named blocks keyed by include name (``"environment"``, ``"functions"``)."""
    return {block: read_script(block + TEMPLATE_SUFFIX) for block in BLOCK_NAMES}
