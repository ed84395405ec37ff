"""Scaling of node pools in Rancher-provisioned rke2 and k3s clusters."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any

from rancherprov.clients import (
    JSON_PATCH_TYPE,
    GetParams,
    GroupVersionResource,
    NotFoundError,
    ToolsClient,
)
from rancherprov.k3k import _mcp_response

log = logging.getLogger(__name__)

LOCAL_CLUSTER = "local"
DEFAULT_CLUSTER_RESOURCES_NAMESPACE = "fleet-default"

PROVISIONING_GROUP = "provisioning.cattle.io"
PROVISIONING_CLUSTER_RESOURCE_KIND = "provisioningcluster"
PROVISIONING_CLUSTER_GVR = GroupVersionResource(
    group=PROVISIONING_GROUP, version="v1", resource="clusters"
)
MACHINE_CONFIG_GROUP = "rke-machine-config.cattle.io"

ETCD_MIN_NODES = 3
ETCD_MAX_NODES = 7


@dataclass
class ScaleRequest:
    """Which node pool to scale and how.

    A non-zero amount_to_add or amount_to_subtract overrides desired_size.
    An empty or "default" namespace means the default cluster namespace.
    """

    cluster: str = ""
    namespace: str = ""
    node_pool_name: str = ""
    desired_size: int = 0
    amount_to_add: int = 0
    amount_to_subtract: int = 0


def _normalized(request: ScaleRequest) -> ScaleRequest:
    if request.namespace in ("", "default"):
        return replace(request, namespace=DEFAULT_CLUSTER_RESOURCES_NAMESPACE)
    return request


def _name_of(obj: dict[str, Any]) -> str:
    return str((obj.get("metadata") or {}).get("name", ""))


def _rke_config(cluster: dict[str, Any]) -> dict[str, Any] | None:
    return (cluster.get("spec") or {}).get("rkeConfig")


def get_provisioning_cluster(
    client: ToolsClient, namespace: str, name: str, url: str, token: str
) -> dict[str, Any]:
    """Fetch a provisioning cluster from the local cluster.

    Raises NotFoundError when it does not exist.
    """
    log.debug("fetching provisioning cluster %s/%s", namespace, name)
    try:
        cluster = client.get_resource(
            GetParams(
                cluster=LOCAL_CLUSTER,
                kind=PROVISIONING_CLUSTER_RESOURCE_KIND,
                namespace=namespace,
                name=name,
                url=url,
                token=token,
            )
        )
    except NotFoundError as exc:
        log.debug("provisioning cluster %s/%s not found", namespace, name)
        raise NotFoundError(PROVISIONING_GROUP, "cluster", name) from exc
    if not isinstance(cluster, dict):
        raise ValueError(f"provisioning cluster {name} is not an object")
    log.debug("retrieved provisioning cluster %s/%s", namespace, name)
    return cluster


def get_machine_pool_configs(
    client: ToolsClient, cluster: dict[str, Any], url: str, token: str
) -> list[dict[str, Any]]:
    """Return the machine configs referenced by the cluster's machine pools.

    Configs that do not exist are skipped; a cluster without machine pools
    raises NotFoundError.
    """
    cluster_name = _name_of(cluster)
    rke = _rke_config(cluster)
    pools = (rke or {}).get("machinePools") or []
    if not pools:
        log.debug("no machine pools found in cluster %s", cluster_name)
        raise NotFoundError(MACHINE_CONFIG_GROUP, "", cluster_name)

    configs: list[dict[str, Any]] = []
    for pool in pools:
        node_config = pool.get("nodeConfig") or {}
        config_name = str(node_config.get("name", ""))
        config_kind = str(node_config.get("kind", ""))
        gvr = GroupVersionResource(
            group=MACHINE_CONFIG_GROUP,
            version="v1",
            resource=f"{config_kind.lower()}s",
        )
        log.debug(
            "fetching machine config %s (%s) for pool %s",
            config_name,
            config_kind,
            pool.get("name"),
        )
        try:
            config = client.get_resource_by_gvr(
                GetParams(
                    cluster=LOCAL_CLUSTER,
                    namespace=DEFAULT_CLUSTER_RESOURCES_NAMESPACE,
                    name=config_name,
                    url=url,
                    token=token,
                ),
                gvr,
            )
        except NotFoundError:
            log.debug("machine config %s not found, skipping", config_name)
            continue
        configs.append(config)
    return configs


def build_scale_patch(cluster: dict[str, Any], request: ScaleRequest) -> bytes:
    """Return the JSON patch that sets the quantity of the requested pool.

    Raises ValueError for any request that would leave the pool unsafe or empty.
    """
    rke = _rke_config(cluster)
    if rke is None:
        raise ValueError(
            f"cluster {request.cluster} has a nil RKEConfig, cannot scale node pool"
        )
    pools = rke.get("machinePools") or []
    if not pools:
        raise ValueError(f"cluster {request.cluster} has no Node Pools, cannot scale")

    desired = request.desired_size
    to_add = request.amount_to_add
    to_subtract = request.amount_to_subtract

    if desired < 0:
        raise ValueError("desired size must be greater than or equal to 0")
    if desired == 0 and to_add == 0 and to_subtract == 0:
        raise ValueError(
            "either desiredSize, amountToAdd, or amountToSubtract must be specified. "
            "A node pool cannot be scaled to 0 nodes"
        )
    if to_add != 0 and to_subtract != 0:
        raise ValueError("cannot specify both amountToAdd and amountToSubtract")

    cluster_name = _name_of(cluster)
    for index, pool in enumerate(pools):
        pool_name = str(pool.get("name", ""))
        # The UI shows pool names prefixed with the cluster name; accept both.
        if request.node_pool_name not in (pool_name, f"{cluster_name}-{pool_name}"):
            continue

        current = int(pool.get("quantity") or 0)
        log.debug("node pool %s found with %d nodes", pool_name, current)
        if to_add:
            desired = current + to_add
        if to_subtract:
            desired = current - to_subtract

        if pool.get("etcdRole"):
            if desired < ETCD_MIN_NODES and desired < current:
                raise ValueError(
                    "scaling an etcd node pool to less than 3 nodes can result in "
                    "a loss of quorum and potential data loss"
                )
            if desired > ETCD_MAX_NODES:
                raise ValueError(
                    "it is not recommended to have more than 7 etcd nodes in a "
                    "cluster as it can lead to performance issues"
                )
            if desired % 2 == 0:
                raise ValueError(
                    "etcd node pools should have an odd number of nodes to ensure "
                    "fault tolerance and maintain quorum. Scaling to an even number "
                    "of nodes can lead to split-brain scenarios and potential data loss"
                )

        if desired <= 0:
            raise ValueError(
                "A node pool cannot be scaled to 0 nodes or a negative number of nodes"
            )
        break
    else:
        message = (
            f"node pool {request.node_pool_name} not found in cluster {request.cluster}"
        )
        log.error(message)
        raise ValueError(message)

    patch = [
        {
            "op": "replace",
            "path": f"/spec/rkeConfig/machinePools/{index}/quantity",
            "value": desired,
        }
    ]
    return json.dumps(patch, sort_keys=True, separators=(",", ":")).encode()


def scale_node_pool_patch(
    client: ToolsClient, request: ScaleRequest, url: str, token: str
) -> bytes:
    """Fetch the cluster and return the JSON patch that scales the requested pool."""
    request = _normalized(request)
    cluster = get_provisioning_cluster(
        client, request.namespace, request.cluster, url, token
    )
    return build_scale_patch(cluster, request)


def scale_node_pool(
    client: ToolsClient, request: ScaleRequest, url: str, token: str
) -> str:
    """Scale a node pool and describe the patched cluster, as JSON."""
    request = _normalized(request)
    log.debug("scaling node pool %s of cluster %s", request.node_pool_name, request.cluster)
    resources = client.get_resource_interface(
        token, url, request.namespace, LOCAL_CLUSTER, PROVISIONING_CLUSTER_GVR
    )
    patch = scale_node_pool_patch(client, request, url, token)
    log.debug("patching provisioning cluster with %s", patch.decode())
    patched = resources.patch(request.cluster, JSON_PATCH_TYPE, patch)
    return _mcp_response([patched], request.cluster)


def plan_scale_node_pool(
    client: ToolsClient, request: ScaleRequest, url: str, token: str
) -> str:
    """Describe the update that would scale a node pool, without applying it."""
    request = _normalized(request)
    log.debug(
        "planning scale of node pool %s of cluster %s",
        request.node_pool_name,
        request.cluster,
    )
    patch = scale_node_pool_patch(client, request, url, token)
    plan = [
        {
            "type": "update",
            "payload": json.loads(patch),
            "resource": {
                "name": request.cluster,
                "kind": PROVISIONING_CLUSTER_RESOURCE_KIND,
                "cluster": LOCAL_CLUSTER,
                "namespace": request.namespace,
            },
        }
    ]
    return json.dumps(plan, indent=2)