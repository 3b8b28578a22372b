"""Error taxonomy for the IP pool controller."""

from __future__ import annotations


class IPAMError(Exception):
    """Base class for every error raised by :mod:`lb_ipam`."""


class NodeNotFound(IPAMError):
    """The node registry has no node with the requested name."""

    def __init__(self, node_name: str) -> None:
        super().__init__(f"node '{node_name}' not found")
        self.node_name = node_name


class PoolExhausted(IPAMError):
    """Assign was invoked while no pool IP is tracked."""


class PersistenceError(IPAMError):
    """Base class for node registry read/write failures."""


class PersistenceConflict(PersistenceError):
    """The node was modified concurrently (stale resource version)."""


class PersistenceFailure(PersistenceError):
    """The node registry is unreachable or returned an error."""

