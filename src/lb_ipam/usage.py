"""Refcounted pool IP accounting and the resync algorithm."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, List, Optional

from .nodes import NodePool

LOG = logging.getLogger(__name__)


class UsageMap(Mapping):
    """Map of pool IP -> number of nodes currently bound to it.

    The key set is fixed at construction time and only the counts change.
    Counts never go below zero: a decrement past zero is logged and clamped
    instead of raising, so a stray double-release cannot break the
    reconcile loop.
    """

    def __init__(self, ips: Iterable[str] = ()) -> None:
        # ``dict.fromkeys`` keeps the first occurrence of duplicates.
        self._counts: Dict[str, int] = dict.fromkeys(ips, 0)

    @classmethod
    def from_counts(cls, counts: Mapping) -> "UsageMap":
        usage = cls(counts.keys())
        for ip, count in counts.items():
            if count < 0:
                raise ValueError(f"negative refcount {count} for {ip}")
            usage._counts[ip] = int(count)
        return usage

    def __getitem__(self, ip: str) -> int:
        return self._counts[ip]

    def __iter__(self) -> Iterator[str]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        return f"UsageMap({self._counts!r})"

    def increment(self, ip: str) -> int:
        self._counts[ip] += 1
        return self._counts[ip]

    def decrement(self, ip: str) -> int:
        if self._counts[ip] <= 0:
            LOG.error("refcount for %s would go negative; clamping to 0", ip)
            return 0
        self._counts[ip] -= 1
        return self._counts[ip]

    def least_used(self) -> Optional[str]:
        """Return the tracked IP with the lowest count, or ``None`` if empty.

        Ties are broken by ascending string order of the IP so placement is
        reproducible for a given snapshot.
        """

        if not self._counts:
            return None
        return min(sorted(self._counts), key=lambda ip: self._counts[ip])

    def total(self) -> int:
        return sum(self._counts.values())

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def tracked_ips(self) -> List[str]:
        return sorted(self._counts)


def resync(
    desired_ips: Iterable[str],
    node_pool: NodePool,
    timeout: Optional[float] = None,
) -> UsageMap:
    """Rebuild a :class:`UsageMap` from ``desired_ips`` and current node state.

    Every unique IP in ``desired_ips`` gets an entry, starting at zero.  Each
    node bound to one of those IPs adds one to its count; nodes bound to an
    IP outside the pool are stale or foreign assignments and are ignored.
    Errors from :meth:`NodePool.list_nodes` propagate unchanged.
    """

    usage = UsageMap(desired_ips)
    nodes = node_pool.list_nodes(timeout=timeout)

    stale = 0
    for node in nodes:
        if not node.is_bound:
            continue
        if node.assigned_ip in usage:
            usage.increment(node.assigned_ip)
        else:
            stale += 1
            LOG.debug(
                "Ignoring node %s bound to untracked IP %s",
                node.name,
                node.assigned_ip,
            )

    LOG.info(
        "Resynced %d pool IPs from %d nodes (%d bound, %d stale)",
        len(usage),
        len(nodes),
        usage.total(),
        stale,
    )
    return usage
