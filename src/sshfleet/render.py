"""Script and prefix rendering.

Drivers produce Jinja2 template source; this module renders it against a
context exposing the task, the target host (``None`` for host-less local
tasks) and a few helper functions:

* ``shell_escape(s)``: single-quote for a POSIX shell
* ``upper(s)`` / ``lower(s)``: case folding
* ``env_key_escape(s)``: make ``s`` usable in an environment variable name
* ``hostname_align(pad)``: padding that lines up prefixes across all hosts
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import jinja2

from sshfleet.inventory import ConfigurationError
from sshfleet.models import DEFAULT_DRIVER_NAME, Driver, Host, Task
from sshfleet.scripts import block_sources
from sshfleet.utils import env_key_escape, hostname_align, shell_escape

logger = logging.getLogger(__name__)

DEFAULT_PREFIX_REMOTE = "[remote:{{ host.name }}]{{ hostname_align(' ') }}"
DEFAULT_PREFIX_LOCAL = "[local:{{ host.name }}]{{ hostname_align(' ') }}"
HOSTLESS_LOCAL_PREFIX = "[local] "


class TemplateRenderError(Exception):
    """Raised when a driver or prefix template fails to parse or evaluate."""


_environment: jinja2.Environment | None = None


def get_environment() -> jinja2.Environment:
    """Shared Jinja2 environment with the ``environment``/``functions`` blocks."""
    global _environment
    if _environment is None:
        _environment = jinja2.Environment(
            loader=jinja2.DictLoader(block_sources()),
            undefined=jinja2.StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _environment


def template_context(
        task: Task,
        host: Host | None,
        hosts: Sequence[Host] = (),
        ssh_config_path: str = "",
        driver: Driver | None = None,
) -> dict[str, Any]:
    """Build the variables and helpers visible to templates."""
    names = [h.name for h in hosts]
    host_name = host.name if host is not None else ""
    return {
        "task": task,
        "host": host,
        "hosts": list(hosts),
        "driver": driver,
        "ssh_config": ssh_config_path,
        "shell_escape": shell_escape,
        "upper": str.upper,
        "lower": str.lower,
        "env_key_escape": env_key_escape,
        "hostname_align": lambda pad=" ": hostname_align(host_name, names, pad),
    }


def render_template(source: str, context: Mapping[str, Any]) -> str:
    """Render *source* against *context*.

    Raises:
        TemplateRenderError: On syntax errors, undefined variables, or any
            other failure while evaluating the template.
    """
    try:
        return get_environment().from_string(source).render(**context)
    except jinja2.TemplateSyntaxError as e:
        raise TemplateRenderError("template syntax error at line %s: %s" % (e.lineno, e.message)) from e
    except jinja2.TemplateError as e:
        raise TemplateRenderError("template error: %s" % e) from e


def generate_script(
        ssh_config_path: str,
        task: Task,
        host: Host | None,
        hosts: Sequence[Host],
        drivers: Mapping[str, Driver],
) -> str:
    """Render the runnable script for one (task, host) pair.

    Args:
        ssh_config_path: Path of the generated ssh_config (exported to the script).
        task: Task being run.
        host: Target host, or None for a host-less local task.
        hosts: Every host targeted by this run (for alignment helpers).
        drivers: Name -> Driver map.

    Returns:
        The script text.

    Raises:
        ConfigurationError: If the task's driver is unknown.
        TemplateRenderError: If the driver's template fails.
    """
    driver_name = task.driver or DEFAULT_DRIVER_NAME
    driver = drivers.get(driver_name)
    if driver is None:
        raise ConfigurationError("invalid driver name '%s'" % driver_name)

    context = template_context(task, host, hosts, ssh_config_path, driver)
    try:
        context["scripts"] = task.fragments()
    except OSError as e:
        raise TemplateRenderError("cannot read task file %s: %s" % (task.file, e)) from e

    source = driver.template(context)
    script = render_template(source, context)
    logger.debug("Driver '%s' rendered %d bytes for %s", driver.name, len(script),
                 host.name if host is not None else "<local>")
    return script


def render_prefix(task: Task, host: Host | None, hosts: Sequence[Host] = ()) -> str:
    """Render the per-line output prefix for *host*, or ``""`` when disabled.

    A host-less task always gets :data:`HOSTLESS_LOCAL_PREFIX`; there is no
    host to interpolate.
    """
    if not task.use_prefix:
        return ""
    if host is None:
        return HOSTLESS_LOCAL_PREFIX
    source = task.prefix
    if not source:
        source = DEFAULT_PREFIX_REMOTE if task.is_remote else DEFAULT_PREFIX_LOCAL
    return render_template(source, template_context(task, host, hosts))
