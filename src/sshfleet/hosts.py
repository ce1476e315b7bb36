"""Host selection queries.

Selections and filters are name-or-tag expressions: a selection builds the
candidate set, a filter narrows it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from sshfleet.models import Host

logger = logging.getLogger(__name__)


class HostResolutionError(Exception):
    """Error during host resolution."""

    pass


def check_selection(selections: Iterable[str], filters: Iterable[str], option: str = "select") -> None:
    """Reject filters supplied without any selection.

    Args:
        selections: Selection expressions.
        filters: Filter expressions.
        option: Name of the selecting option, used in the error message.

    Raises:
        HostResolutionError: If *filters* is non-empty and *selections* is empty.
    """
    if not list(selections) and list(filters):
        raise HostResolutionError("--filter must be used with --%s option." % option)


def get_tags(hosts: Mapping[str, Host] | Iterable[Host]) -> list[str]:
    """Sorted, unique tags across *hosts*."""
    values = hosts.values() if isinstance(hosts, Mapping) else hosts
    tags: set[str] = set()
    for host in values:
        tags.update(host.tags)
    return sorted(tags)


def resolve_hosts(
    hosts: Mapping[str, Host],
    selections: Iterable[str],
    filters: Iterable[str] = (),
    visible_only: bool = False,
) -> list[Host]:
    """Resolve selection/filter expressions into an ordered host list.

    A selection expression matches either an exact host name or a tag name.
    The union of the matches is the candidate set; an empty selection list
    gives an empty set (the caller decides whether that is an error).
    Filters keep only candidates that also match at least one filter
    expression.  With *visible_only*, hidden hosts are dropped even if
    selected by name.

    Args:
        hosts: Name -> Host map to query.
        selections: Selection expressions.
        filters: Filter expressions.
        visible_only: Exclude hosts with ``hidden=True``.

    Returns:
        Deduplicated hosts sorted by name.
    """
    selections = list(selections)
    filters = list(filters)

    candidates: dict[str, Host] = {}
    for expression in selections:
        for host in hosts.values():
            if host.matches(expression):
                candidates[host.name] = host

    if filters:
        candidates = {
            name: host for name, host in candidates.items()
            if any(host.matches(f) for f in filters)
        }

    if visible_only:
        candidates = {name: host for name, host in candidates.items() if not host.hidden}

    resolved = [candidates[name] for name in sorted(candidates)]
    logger.debug("Resolved %d hosts from selections=%s filters=%s",
                 len(resolved), selections, filters)
    return resolved


class HostQuery:
    """Fluent builder over :func:`resolve_hosts`."""

    def __init__(self, hosts: Mapping[str, Host]):
        self.datasource = hosts
        self.selections: list[str] = []
        self.filters: list[str] = []
        self.visible_only = False

    def append_selections(self, selections: Iterable[str]) -> HostQuery:
        self.selections.extend(selections)
        return self

    def append_filters(self, filters: Iterable[str]) -> HostQuery:
        self.filters.extend(filters)
        return self

    def visible(self) -> HostQuery:
        self.visible_only = True
        return self

    def all_hosts_ordered_by_name(self) -> list[Host]:
        """Every host in the datasource (respecting :meth:`visible`), ignoring selections."""
        hosts = [h for h in self.datasource.values() if not (self.visible_only and h.hidden)]
        return sorted(hosts, key=lambda h: h.name)

    def hosts_ordered_by_name(self) -> list[Host]:
        return resolve_hosts(self.datasource, self.selections, self.filters, self.visible_only)
