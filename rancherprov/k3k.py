"""Planning, creation and listing of K3k virtual clusters."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from rancherprov.clients import GroupVersionResource, ListParams, ToolsClient

log = logging.getLogger(__name__)

LOCAL_CLUSTER = "local"
K3K_API_VERSION = "k3k.io/v1beta1"
K3K_KIND = "Cluster"
K3K_RESOURCE_KIND = "k3kcluster"
MANAGEMENT_CLUSTER_KIND = "managementcluster"
K3K_CLUSTER_GVR = GroupVersionResource(group="k3k.io", version="v1beta1", resource="clusters")


@dataclass
class ResourceLimits:
    """CPU and memory limits, e.g. cpu="500m", memory="2Gi"."""

    cpu: str = ""
    memory: str = ""

    def _to_spec(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (("cpu", self.cpu), ("memory", self.memory))
            if value
        }


@dataclass
class PersistenceConfig:
    """Storage settings for the etcd data of a K3k cluster."""

    type: str = ""
    storage_class_name: str = ""
    storage_request: str = ""

    def _to_spec(self) -> dict[str, Any]:
        fields = (
            ("type", self.type),
            ("storageClassName", self.storage_class_name),
            ("storageRequest", self.storage_request),
        )
        return {key: value for key, value in fields if value}


@dataclass
class SyncConfig:
    """Which resources a shared-mode K3k cluster synchronises."""

    priority_classes: bool = False
    ingresses: bool = False

    def _to_spec(self) -> dict[str, Any]:
        spec: dict[str, Any] = {}
        if self.ingresses:
            spec["ingresses"] = {"enabled": True}
        if self.priority_classes:
            spec["priorityClasses"] = {"enabled": True}
        return spec


@dataclass
class K3kClusterParams:
    """Everything needed to describe a K3k cluster to create."""

    name: str = ""
    namespace: str = ""
    target_cluster: str = ""
    version: str = ""
    mode: str = ""
    servers: int = 0
    agents: int = 0
    sync: SyncConfig | None = None
    server_limit: ResourceLimits | None = None
    worker_limit: ResourceLimits | None = None
    persistence: PersistenceConfig | None = None


@dataclass
class K3kClusterDetails:
    """Summary of one K3k cluster found in a downstream cluster."""

    name: str
    spec: dict[str, Any] | None = None
    status: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out an empty spec or status."""
        result: dict[str, Any] = {"name": self.name}
        if self.spec:
            result["spec"] = self.spec
        if self.status:
            result["status"] = self.status
        return result


def build_k3k_cluster(params: K3kClusterParams) -> dict[str, Any]:
    """Build the K3k Cluster object described by the parameters."""
    spec: dict[str, Any] = {}
    if params.version:
        spec["version"] = params.version
    if params.mode:
        spec["mode"] = params.mode
    if params.servers > 0:
        spec["servers"] = params.servers
    if params.agents > 0:
        spec["agents"] = params.agents

    sections = (
        ("sync", params.sync),
        ("serverLimit", params.server_limit),
        ("workerLimit", params.worker_limit),
        ("persistence", params.persistence),
    )
    for key, section in sections:
        if section is None:
            continue
        section_spec = section._to_spec()
        if section_spec:
            spec[key] = section_spec

    return {
        "apiVersion": K3K_API_VERSION,
        "kind": K3K_KIND,
        "metadata": {"name": params.name, "namespace": params.namespace},
        "spec": spec,
    }


def plan_k3k_cluster(params: K3kClusterParams) -> str:
    """Describe the K3k cluster that would be created, without creating it."""
    log.debug(
        "planning K3k cluster creation: name=%s namespace=%s targetCluster=%s",
        params.name,
        params.namespace,
        params.target_cluster,
    )
    if not params.name:
        raise ValueError("name is required")
    if not params.namespace:
        raise ValueError("namespace is required")
    if not params.target_cluster:
        raise ValueError("targetCluster is required")

    obj = build_k3k_cluster(params)
    plan = [
        {
            "type": "create",
            "payload": obj,
            "resource": {
                "name": params.name,
                "kind": K3K_RESOURCE_KIND,
                "cluster": params.target_cluster,
                "namespace": params.namespace,
            },
        }
    ]
    return json.dumps(plan, indent=2)


def create_k3k_cluster(
    client: ToolsClient, params: K3kClusterParams, url: str, token: str
) -> str:
    """Create the K3k cluster in its target cluster and describe the result."""
    log.debug("creating K3k cluster %s", params.name)
    obj = build_k3k_cluster(params)
    resources = client.get_resource_interface(
        token, url, params.namespace, params.target_cluster, K3K_CLUSTER_GVR
    )
    try:
        created = resources.create(obj)
    except Exception as exc:
        log.error("failed to create K3k cluster %s: %s", params.name, exc)
        raise RuntimeError(f"failed to create K3k cluster {params.name}: {exc}") from exc
    return _mcp_response([created], params.target_cluster)


def list_k3k_clusters(
    client: ToolsClient, clusters: Iterable[str] | None, url: str, token: str
) -> str:
    """Map each downstream cluster to the K3k clusters found in it, as JSON.

    With no clusters given, every cluster known to Rancher is searched.
    Clusters that cannot be queried are left out of the result.
    """
    names = list(clusters or ())
    if not names:
        try:
            found = client.get_resources(
                ListParams(
                    cluster=LOCAL_CLUSTER,
                    kind=MANAGEMENT_CLUSTER_KIND,
                    url=url,
                    token=token,
                )
            )
        except Exception as exc:
            raise RuntimeError(f"failed to get clusters: {exc}") from exc
        names = [_name_of(cluster) for cluster in found]

    result: dict[str, list[dict[str, Any]] | None] = {}
    for cluster in names:
        try:
            k3k_clusters = client.get_resources(
                ListParams(cluster=cluster, kind=K3K_RESOURCE_KIND, url=url, token=token)
            )
        except Exception as exc:
            log.warning("failed to get k3k clusters from %s: %s", cluster, exc)
            continue
        details = [
            K3kClusterDetails(
                name=_name_of(item),
                spec=_nested_map(item, "spec"),
                status=_nested_map(item, "status"),
            ).to_dict()
            for item in k3k_clusters
        ]
        result[cluster] = details or None

    return json.dumps(result, sort_keys=True, separators=(",", ":"))


def _name_of(obj: Mapping[str, Any]) -> str:
    metadata = obj.get("metadata") or {}
    return str(metadata.get("name", ""))


def _nested_map(obj: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    value = obj.get(key)
    return dict(value) if isinstance(value, Mapping) else None


def _mcp_response(objects: list[dict[str, Any]], cluster: str) -> str:
    if not objects:
        return json.dumps({"llm": "no resources found"}, separators=(",", ":"))

    ui_context = []
    for obj in objects:
        metadata = obj.get("metadata") or {}
        name = metadata.get("name")
        if not name:
            continue
        kind = str(obj.get("kind", ""))
        api_version = str(obj.get("apiVersion", ""))
        group = api_version.rpartition("/")[0]
        entry: dict[str, Any] = {}
        if metadata.get("namespace"):
            entry["namespace"] = metadata["namespace"]
        entry["kind"] = kind
        entry["cluster"] = cluster
        entry["name"] = name
        entry["type"] = f"{group}.{kind.lower()}" if group else kind.lower()
        ui_context.append(entry)

    response: dict[str, Any] = {"llm": objects}
    if ui_context:
        response["uiContext"] = ui_context
    return json.dumps(response, separators=(",", ":"))