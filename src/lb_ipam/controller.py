"""Load-balancer IP controller.

:class:`LBController` owns one :class:`~lb_ipam.usage.UsageMap` and one
:class:`~lb_ipam.nodes.NodePool` handle.  It rebuilds the map from node
state on :meth:`~LBController.resync` and keeps it consistent with node
metadata on every :meth:`~LBController.assign` and
:meth:`~LBController.release`.  The node registry is the durable source of
truth; the map is only an in-memory index over it.

All three operations run under a single lock, so the read-select-increment
of a refcount and the node update that follows it appear atomic to other
callers, and nothing interleaves with an in-flight resync.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from .exceptions import NodeNotFound, PersistenceConflict, PoolExhausted
from .nodes import NodePool
from .usage import UsageMap, resync

LOG = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONFLICT_RETRIES = 3


class LBController:
    """Assign pool IPs to nodes and track per-IP usage."""

    def __init__(
        self,
        node_pool: NodePool,
        usage: Optional[UsageMap] = None,
        *,
        conflict_retries: int = DEFAULT_CONFLICT_RETRIES,
        request_timeout: Optional[float] = None,
    ) -> None:
        if conflict_retries < 0:
            raise ValueError("conflict_retries must be >= 0")
        self._node_pool = node_pool
        self._usage = usage if usage is not None else UsageMap()
        self._synced = usage is not None
        self._conflict_retries = conflict_retries
        self._request_timeout = request_timeout
        self._lock = Lock()

    # ------------------------------------------------------------------
    # Resync
    # ------------------------------------------------------------------
    def resync(
        self, desired_ips: Iterable[str], timeout: Optional[float] = None
    ) -> Dict[str, int]:
        """Replace the usage map with one rebuilt from current node state.

        Returns a snapshot of the new map.
        """

        with self._lock:
            usage = resync(desired_ips, self._node_pool, timeout=self._timeout(timeout))
            self._usage = usage
            self._synced = True
            return usage.snapshot()

    # ------------------------------------------------------------------
    # Assign / release
    # ------------------------------------------------------------------
    def assign(
        self, node_name: str, request_id: str, timeout: Optional[float] = None
    ) -> str:
        """Bind a pool IP to ``node_name`` and return it.

        A node already bound to a tracked IP keeps it.  Otherwise the least
        used tracked IP is chosen (lowest IP string on ties), its count is
        incremented and the node is updated; the increment is rolled back if
        the update fails.
        """

        timeout = self._timeout(timeout)
        with self._lock:
            return self._retry_on_conflict(
                "assign",
                node_name,
                request_id,
                lambda: self._assign_once(node_name, request_id, timeout),
            )

    def release(
        self, node_name: str, request_id: str, timeout: Optional[float] = None
    ) -> None:
        """Drop one reference on the IP bound to ``node_name``, if any.

        Unknown nodes, unbound nodes and nodes bound to an untracked IP are
        no-ops.  The decrement is rolled back if clearing the node fails.
        """

        timeout = self._timeout(timeout)
        with self._lock:
            self._retry_on_conflict(
                "release",
                node_name,
                request_id,
                lambda: self._release_once(node_name, request_id, timeout),
            )

    def _assign_once(self, node_name: str, request_id: str, timeout: Optional[float]) -> str:
        node = self._node_pool.get_node(node_name, timeout=timeout)

        if node.is_bound and node.assigned_ip in self._usage:
            LOG.debug(
                "[%s] node %s already holds %s", request_id, node_name, node.assigned_ip
            )
            return node.assigned_ip

        ip = self._usage.least_used()
        if ip is None:
            raise PoolExhausted(f"no pool IP available for node '{node_name}'")

        if node.is_bound:
            LOG.info(
                "[%s] node %s bound to untracked IP %s, reassigning",
                request_id,
                node_name,
                node.assigned_ip,
            )

        self._usage.increment(ip)
        try:
            self._node_pool.update_node(node.with_assigned_ip(ip), timeout=timeout)
        except Exception:
            self._usage.decrement(ip)
            raise

        LOG.info(
            "[%s] assigned %s to node %s (refcount=%d)",
            request_id,
            ip,
            node_name,
            self._usage[ip],
        )
        return ip

    def _release_once(self, node_name: str, request_id: str, timeout: Optional[float]) -> None:
        try:
            node = self._node_pool.get_node(node_name, timeout=timeout)
        except NodeNotFound:
            LOG.debug("[%s] node %s not found, nothing to release", request_id, node_name)
            return

        if not node.is_bound:
            LOG.debug("[%s] node %s has no IP assigned", request_id, node_name)
            return
        ip = node.assigned_ip
        if ip not in self._usage:
            LOG.debug(
                "[%s] node %s holds untracked IP %s, skipping", request_id, node_name, ip
            )
            return

        previous = self._usage[ip]
        self._usage.decrement(ip)
        try:
            self._node_pool.update_node(node.with_assigned_ip(None), timeout=timeout)
        except NodeNotFound:
            # The node is gone together with its binding.
            LOG.info("[%s] node %s removed during release of %s", request_id, node_name, ip)
            return
        except Exception:
            if previous > 0:
                self._usage.increment(ip)
            raise

        LOG.info(
            "[%s] released %s from node %s (refcount=%d)",
            request_id,
            ip,
            node_name,
            self._usage[ip],
        )

    def _retry_on_conflict(
        self, operation: str, node_name: str, request_id: str, attempt: Callable[[], T]
    ) -> T:
        retries = 0
        while True:
            try:
                return attempt()
            except PersistenceConflict:
                if retries >= self._conflict_retries:
                    LOG.warning(
                        "[%s] %s for node %s still conflicting after %d retries",
                        request_id,
                        operation,
                        node_name,
                        retries,
                    )
                    raise
                retries += 1
                LOG.info(
                    "[%s] conflict on node %s during %s, re-fetching (retry %d)",
                    request_id,
                    node_name,
                    operation,
                    retries,
                )

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self._request_timeout

    # ------------------------------------------------------------------
    # Introspection helpers (useful for tests / CLI)
    # ------------------------------------------------------------------
    @property
    def is_synced(self) -> bool:
        return self._synced

    def usage(self) -> Dict[str, int]:
        with self._lock:
            return self._usage.snapshot()

    def tracked_ips(self) -> List[str]:
        with self._lock:
            return self._usage.tracked_ips()
