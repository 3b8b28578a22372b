"""Kubernetes-backed node pool.

A node's assigned pool IP is stored as a single annotation on the Node
object.  Updates are sent as merge patches that carry the node's
``resourceVersion``, so the API server rejects writes based on a stale read
with HTTP 409.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from .exceptions import NodeNotFound, PersistenceConflict, PersistenceFailure
from .nodes import Node, NodePool

LOG = logging.getLogger(__name__)

DEFAULT_ANNOTATION_KEY = "lb-ipam.io/assigned-ip"


def _request_kwargs(timeout: Optional[float]) -> dict:
    if timeout is None:
        return {}
    return {"_request_timeout": timeout}


class KubeNodePool(NodePool):
    """:class:`~lb_ipam.nodes.NodePool` over the Kubernetes Node API."""

    def __init__(
        self,
        api: client.CoreV1Api,
        annotation_key: str = DEFAULT_ANNOTATION_KEY,
        label_selector: Optional[str] = None,
    ) -> None:
        self._api = api
        self._annotation_key = annotation_key
        self._label_selector = label_selector or None

    @classmethod
    def from_config(
        cls,
        kubeconfig: Optional[str] = None,
        annotation_key: str = DEFAULT_ANNOTATION_KEY,
        label_selector: Optional[str] = None,
    ) -> "KubeNodePool":
        """Build a pool from in-cluster credentials or a kubeconfig file."""

        if kubeconfig:
            config.load_kube_config(config_file=kubeconfig)
        else:
            try:
                config.load_incluster_config()
            except config.ConfigException:
                LOG.info("Not running in-cluster, falling back to default kubeconfig")
                config.load_kube_config()
        return cls(client.CoreV1Api(), annotation_key, label_selector)

    @property
    def annotation_key(self) -> str:
        return self._annotation_key

    def _to_node(self, obj: Any) -> Node:
        annotations = obj.metadata.annotations or {}
        return Node(
            name=obj.metadata.name,
            assigned_ip=annotations.get(self._annotation_key) or None,
            resource_version=obj.metadata.resource_version,
        )

    def get_node(self, name: str, timeout: Optional[float] = None) -> Node:
        if self._label_selector:
            return self._get_selected_node(name, timeout)
        try:
            obj = self._api.read_node(name, **_request_kwargs(timeout))
        except ApiException as exc:
            if exc.status == 404:
                raise NodeNotFound(name) from exc
            raise PersistenceFailure(f"failed to read node '{name}': {exc.reason}") from exc
        except urllib3.exceptions.HTTPError as exc:
            raise PersistenceFailure(f"failed to read node '{name}': {exc}") from exc
        return self._to_node(obj)

    def _get_selected_node(self, name: str, timeout: Optional[float]) -> Node:
        # Nodes outside the selector are invisible, as in list_nodes.
        kwargs = _request_kwargs(timeout)
        try:
            result = self._api.list_node(
                field_selector=f"metadata.name={name}",
                label_selector=self._label_selector,
                **kwargs,
            )
        except ApiException as exc:
            raise PersistenceFailure(f"failed to read node '{name}': {exc.reason}") from exc
        except urllib3.exceptions.HTTPError as exc:
            raise PersistenceFailure(f"failed to read node '{name}': {exc}") from exc
        if not result.items:
            raise NodeNotFound(name)
        return self._to_node(result.items[0])

    def list_nodes(self, timeout: Optional[float] = None) -> List[Node]:
        kwargs = _request_kwargs(timeout)
        if self._label_selector:
            kwargs["label_selector"] = self._label_selector
        try:
            result = self._api.list_node(**kwargs)
        except ApiException as exc:
            raise PersistenceFailure(f"failed to list nodes: {exc.reason}") from exc
        except urllib3.exceptions.HTTPError as exc:
            raise PersistenceFailure(f"failed to list nodes: {exc}") from exc
        return [self._to_node(obj) for obj in result.items]

    def update_node(self, node: Node, timeout: Optional[float] = None) -> Node:
        # A null annotation value removes the key.
        metadata: dict = {"annotations": {self._annotation_key: node.assigned_ip}}
        if node.resource_version is not None:
            metadata["resourceVersion"] = node.resource_version
        body = {"metadata": metadata}

        try:
            obj = self._api.patch_node(node.name, body, **_request_kwargs(timeout))
        except ApiException as exc:
            if exc.status == 404:
                raise NodeNotFound(node.name) from exc
            if exc.status == 409:
                raise PersistenceConflict(
                    f"node '{node.name}' was modified concurrently"
                ) from exc
            raise PersistenceFailure(
                f"failed to update node '{node.name}': {exc.reason}"
            ) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise PersistenceFailure(f"failed to update node '{node.name}': {exc}") from exc

        LOG.debug(
            "Patched node %s annotation %s=%s",
            node.name,
            self._annotation_key,
            node.assigned_ip,
        )
        return self._to_node(obj)
