"""Load-balancer IP pool accounting.

This package assigns externally routable IPs from a shared pool to cluster
nodes.  Each node's assignment is persisted as node metadata, which is the
durable record; the controller keeps an in-memory refcount per pool IP that
it can rebuild from that record at any time:

* :func:`lb_ipam.usage.resync` rebuilds the refcounts from the desired pool
  and the current nodes, ignoring assignments outside the pool;
* :class:`lb_ipam.controller.LBController` assigns the least used pool IP to
  a node and releases it again, keeping refcounts and node metadata in step;
* :class:`lb_ipam.nodes.NodePool` abstracts the node registry, with an
  in-memory implementation here and a Kubernetes one in :mod:`lb_ipam.kube`.
"""

from .controller import LBController  # noqa: F401
from .exceptions import (  # noqa: F401
    IPAMError,
    NodeNotFound,
    PersistenceConflict,
    PersistenceError,
    PersistenceFailure,
    PoolExhausted,
)
from .nodes import InMemoryNodePool, Node, NodePool  # noqa: F401
from .usage import UsageMap, resync  # noqa: F401

__all__ = [
    "IPAMError",
    "InMemoryNodePool",
    "LBController",
    "Node",
    "NodeNotFound",
    "NodePool",
    "PersistenceConflict",
    "PersistenceError",
    "PersistenceFailure",
    "PoolExhausted",
    "UsageMap",
    "resync",
]
