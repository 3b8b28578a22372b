"""Route agent events to a single :class:`~lb_ipam.controller.LBController`."""

from __future__ import annotations

import logging
from typing import Optional, Union

from lb_ipam import LBController

from .events import NodeAssign, NodeRelease, PoolUpdate

LOG = logging.getLogger(__name__)

Event = Union[PoolUpdate, NodeAssign, NodeRelease]


class EventDispatcher:
    """Dispatch pool and node events to the controller."""

    def __init__(self, controller: LBController) -> None:
        self._controller = controller

    @property
    def controller(self) -> LBController:
        return self._controller

    def handle(self, event: Event) -> Optional[str]:
        """Apply ``event``; returns the assigned IP for :class:`NodeAssign`."""

        if isinstance(event, PoolUpdate):
            self._on_pool_update(event)
            return None
        if isinstance(event, NodeAssign):
            return self._on_node_assign(event)
        if isinstance(event, NodeRelease):
            self._on_node_release(event)
            return None
        raise TypeError(f"Unsupported event type: {type(event)!r}")

    def _on_pool_update(self, event: PoolUpdate) -> None:
        try:
            self._controller.resync(event.ips)
        except Exception:
            LOG.exception("resync with %d pool IPs failed", len(event.ips))
            raise

    def _on_node_assign(self, event: NodeAssign) -> str:
        try:
            return self._controller.assign(event.node, event.request_id)
        except Exception:
            LOG.exception("[%s] assign for node %s failed", event.request_id, event.node)
            raise

    def _on_node_release(self, event: NodeRelease) -> None:
        try:
            self._controller.release(event.node, event.request_id)
        except Exception:
            LOG.exception("[%s] release for node %s failed", event.request_id, event.node)
            raise
