"""YAML configuration loader for the lb-ipam agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import yaml

from lb_ipam import InMemoryNodePool, LBController, Node, NodePool
from lb_ipam.controller import DEFAULT_CONFLICT_RETRIES
from lb_ipam.kube import DEFAULT_ANNOTATION_KEY, KubeNodePool

from .watchers.utils import normalise_ips

NODE_POOL_TYPES = ("kubernetes", "static")


@dataclass
class ControllerConfig:
    annotation_key: str = DEFAULT_ANNOTATION_KEY
    conflict_retries: int = DEFAULT_CONFLICT_RETRIES
    request_timeout: Optional[float] = None

    def build_controller(self, node_pool: NodePool) -> LBController:
        return LBController(
            node_pool,
            conflict_retries=self.conflict_retries,
            request_timeout=self.request_timeout,
        )


@dataclass
class NodePoolConfig:
    type: str = "kubernetes"
    kubeconfig: Optional[str] = None
    label_selector: Optional[str] = None
    nodes: Sequence[Node] = field(default_factory=list)

    def build_node_pool(self, annotation_key: str) -> NodePool:
        if self.type == "static":
            return InMemoryNodePool(self.nodes)
        return KubeNodePool.from_config(
            kubeconfig=self.kubeconfig,
            annotation_key=annotation_key,
            label_selector=self.label_selector,
        )


@dataclass
class WatcherConfig:
    type: str
    path: Path
    interval: float = 5.0
    resync_interval: Optional[float] = None


@dataclass
class AgentConfig:
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    node_pool: NodePoolConfig = field(default_factory=NodePoolConfig)
    pool_ips: Sequence[str] = field(default_factory=list)
    watchers: Sequence[WatcherConfig] = field(default_factory=list)


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


def _parse_controller(section: dict) -> ControllerConfig:
    retries = int(section.get("conflict_retries", DEFAULT_CONFLICT_RETRIES))
    if retries < 0:
        raise ValueError("'controller.conflict_retries' must be >= 0")
    return ControllerConfig(
        annotation_key=str(section.get("annotation_key", DEFAULT_ANNOTATION_KEY)),
        conflict_retries=retries,
        request_timeout=_optional_float(section.get("request_timeout")),
    )


def _parse_static_node(entry: dict) -> Node:
    if "name" not in entry:
        raise ValueError("static node entries require a 'name'")
    assigned_ip = entry.get("assigned_ip")
    return Node(
        name=str(entry["name"]),
        assigned_ip=None if assigned_ip is None else str(assigned_ip),
    )


def _parse_node_pool(section: dict) -> NodePoolConfig:
    pool_type = str(section.get("type", "kubernetes"))
    if pool_type not in NODE_POOL_TYPES:
        raise ValueError(f"Unsupported node_pool type '{pool_type}'")

    nodes_data = section.get("nodes", [])
    if not isinstance(nodes_data, list):
        raise ValueError("'node_pool.nodes' must be a list")
    nodes: List[Node] = [_parse_static_node(entry) for entry in nodes_data]

    kubeconfig = section.get("kubeconfig")
    return NodePoolConfig(
        type=pool_type,
        kubeconfig=None if kubeconfig is None else str(kubeconfig),
        label_selector=section.get("label_selector") or None,
        nodes=nodes,
    )


def _parse_watchers(entries: Iterable[dict]) -> List[WatcherConfig]:
    watchers: List[WatcherConfig] = []
    for entry in entries:
        if "path" not in entry:
            raise ValueError("watcher entries require a 'path'")
        watchers.append(
            WatcherConfig(
                type=str(entry.get("type", "file")),
                path=Path(entry["path"]),
                interval=float(entry.get("interval", entry.get("poll_interval", 5.0))),
                resync_interval=_optional_float(entry.get("resync_interval")),
            )
        )
    return watchers


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    controller = _parse_controller(data.get("controller") or {})
    node_pool = _parse_node_pool(data.get("node_pool") or {})

    pool_section = data.get("pool") or {}
    ips = pool_section.get("ips", [])
    if not isinstance(ips, list):
        raise ValueError("'pool.ips' must be a list")

    watchers_section = data.get("watchers", [])
    if not isinstance(watchers_section, list):
        raise ValueError("'watchers' section must be a list")
    watchers = _parse_watchers(watchers_section)

    return AgentConfig(
        controller=controller,
        node_pool=node_pool,
        pool_ips=normalise_ips(ips),
        watchers=watchers,
    )
