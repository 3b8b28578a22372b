"""Node model and the node registry contract.

:class:`NodePool` is the seam between the allocation engine and whatever
system of record holds the cluster nodes.  The engine only needs three
operations from it: fetch one node, list all nodes and persist a node's
assigned IP with optimistic concurrency.  :class:`InMemoryNodePool` is a
complete implementation used by the static agent mode and the unit tests;
:mod:`lb_ipam.kube` provides the Kubernetes-backed one.
"""

from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Iterable, List, Optional

from .exceptions import NodeNotFound, PersistenceConflict

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class Node:
    """A cluster machine, optionally bound to one pool IP.

    Attributes
    ----------
    name:
        Unique, immutable node identifier.
    assigned_ip:
        The bound pool IP, or ``None`` when the node is unbound.
    resource_version:
        Opaque optimistic-concurrency token issued by the registry.  Updates
        carrying a stale version fail with
        :class:`~lb_ipam.exceptions.PersistenceConflict`.
    """

    name: str
    assigned_ip: Optional[str] = None
    resource_version: Optional[str] = None

    def __post_init__(self) -> None:
        # An empty annotation value means "unbound".
        if self.assigned_ip == "":
            object.__setattr__(self, "assigned_ip", None)

    @property
    def is_bound(self) -> bool:
        return self.assigned_ip is not None

    def with_assigned_ip(self, ip: Optional[str]) -> "Node":
        return dataclasses.replace(self, assigned_ip=ip)


class NodePool(ABC):
    """Queryable and mutable collection of :class:`Node` objects.

    Every method accepts an optional ``timeout`` (seconds) which bounds the
    underlying registry call.
    """

    @abstractmethod
    def get_node(self, name: str, timeout: Optional[float] = None) -> Node:
        """Return node ``name`` or raise :class:`NodeNotFound`."""

    @abstractmethod
    def list_nodes(self, timeout: Optional[float] = None) -> List[Node]:
        """Return a snapshot of every node.  May be eventually consistent."""

    @abstractmethod
    def update_node(self, node: Node, timeout: Optional[float] = None) -> Node:
        """Persist ``node.assigned_ip`` and return the stored node.

        Raises :class:`PersistenceConflict` when ``node.resource_version`` is
        stale and :class:`PersistenceFailure` on transport errors.
        """


class InMemoryNodePool(NodePool):
    """Thread-safe in-process node registry with integer resource versions."""

    def __init__(self, nodes: Iterable[Node] = ()) -> None:
        self._lock = Lock()
        self._nodes: Dict[str, Node] = {}
        self._versions: Dict[str, int] = {}
        for node in nodes:
            self._store(node.name, node.assigned_ip, 1)

    def _store(self, name: str, assigned_ip: Optional[str], version: int) -> Node:
        node = Node(name=name, assigned_ip=assigned_ip, resource_version=str(version))
        self._nodes[name] = node
        self._versions[name] = version
        return node

    def add_node(self, node: Node) -> Node:
        """Insert or replace ``node`` out-of-band, bumping its version."""

        with self._lock:
            version = self._versions.get(node.name, 0) + 1
            return self._store(node.name, node.assigned_ip, version)

    def remove_node(self, name: str) -> None:
        with self._lock:
            self._nodes.pop(name, None)
            self._versions.pop(name, None)

    def get_node(self, name: str, timeout: Optional[float] = None) -> Node:
        with self._lock:
            try:
                return self._nodes[name]
            except KeyError:
                raise NodeNotFound(name) from None

    def list_nodes(self, timeout: Optional[float] = None) -> List[Node]:
        with self._lock:
            return list(self._nodes.values())

    def update_node(self, node: Node, timeout: Optional[float] = None) -> Node:
        with self._lock:
            current = self._versions.get(node.name)
            if current is None:
                raise NodeNotFound(node.name)
            if node.resource_version is not None and node.resource_version != str(current):
                raise PersistenceConflict(
                    f"node '{node.name}' changed: have version "
                    f"{node.resource_version}, registry has {current}"
                )
            stored = self._store(node.name, node.assigned_ip, current + 1)
        LOG.debug("Stored node %s with assigned IP %s", node.name, node.assigned_ip)
        return stored
