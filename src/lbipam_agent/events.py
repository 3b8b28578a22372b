"""Event primitives consumed by :class:`~lbipam_agent.dispatcher.EventDispatcher`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class PoolUpdate:
    """Represents the desired pool IP list.

    Watchers publish the full list whenever it changes so the controller can
    rebuild its accounting from scratch.
    """

    ips: Sequence[str]


@dataclass(frozen=True)
class NodeAssign:
    """Request a pool IP for ``node``."""

    node: str
    request_id: str


@dataclass(frozen=True)
class NodeRelease:
    """Signals that ``node`` no longer needs its pool IP."""

    node: str
    request_id: str
