"""Lookup of Cluster API machines and the machine sets and deployments that own them."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from rancherprov.clients import (
    GetParams,
    ListParams,
    NotFoundError,
    ToolsClient,
    owner_references,
)
from rancherprov.k3k import _mcp_response

log = logging.getLogger(__name__)

LOCAL_CLUSTER = "local"
DEFAULT_CLUSTER_RESOURCES_NAMESPACE = "fleet-default"

CAPI_GROUP = "cluster.x-k8s.io"
CAPI_MACHINE_DEPLOYMENT_KIND = "MachineDeployment"
CAPI_MACHINE_SET_KIND = "MachineSet"
CAPI_MACHINE_KIND = "Machine"

CAPI_MACHINE_RESOURCE_KIND = "capimachine"
CAPI_MACHINE_SET_RESOURCE_KIND = "capimachineset"
CAPI_MACHINE_DEPLOYMENT_RESOURCE_KIND = "capimachinedeployment"

CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"

_LABEL_VALUE = re.compile(r"(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?")
_LABEL_VALUE_MAX_LENGTH = 63


@dataclass
class MachineChain:
    """A machine together with the machine set and machine deployment above it."""

    machine: dict[str, Any] | None = None
    machine_set: dict[str, Any] | None = None
    machine_deployment: dict[str, Any] | None = None

    def resources(self) -> list[dict[str, Any]]:
        """Return the objects found, machine first, leaving out missing ones."""
        return [
            obj
            for obj in (self.machine, self.machine_set, self.machine_deployment)
            if obj is not None
        ]


def _name_of(obj: dict[str, Any]) -> str:
    return str((obj.get("metadata") or {}).get("name", ""))


def _find_owner(
    client: ToolsClient,
    owned: dict[str, Any],
    owner_kind: str,
    resource_kind: str,
    namespace: str,
    url: str,
    token: str,
    description: str,
) -> tuple[bool, dict[str, Any] | None]:
    """Fetch the owner of the given kind.

    Return whether an owner reference of that kind exists, and the owner
    (None when it is referenced but missing).
    """
    found_reference = False
    owner: dict[str, Any] | None = None
    for ref in owner_references(owned):
        if ref.get("kind") != owner_kind:
            continue
        found_reference = True
        owner_name = str(ref.get("name", ""))
        log.debug("fetching CAPI %s %s/%s", description, namespace, owner_name)
        try:
            owner = client.get_resource_at_any_api_version(
                GetParams(
                    cluster=LOCAL_CLUSTER,
                    kind=resource_kind,
                    namespace=namespace,
                    name=owner_name,
                    url=url,
                    token=token,
                )
            )
        except NotFoundError:
            log.debug("CAPI %s %s/%s not found", description, namespace, owner_name)
            return True, None
        except Exception as exc:
            log.error("failed to get CAPI %s %s/%s: %s", description, namespace, owner_name, exc)
            raise RuntimeError(f"failed to get {description}: {exc}") from exc
    return found_reference, owner


def get_machine_chain(
    client: ToolsClient, machine_name: str, namespace: str, url: str, token: str
) -> MachineChain:
    """Fetch a CAPI machine and, through owner references, its set and deployment.

    Raises NotFoundError when the machine itself does not exist.
    """
    namespace = namespace or DEFAULT_CLUSTER_RESOURCES_NAMESPACE
    log.debug("fetching CAPI machine %s/%s", namespace, machine_name)

    try:
        machine = client.get_resource_at_any_api_version(
            GetParams(
                cluster=LOCAL_CLUSTER,
                kind=CAPI_MACHINE_RESOURCE_KIND,
                namespace=namespace,
                name=machine_name,
                url=url,
                token=token,
            )
        )
    except NotFoundError as exc:
        log.debug("CAPI machine %s/%s not found", namespace, machine_name)
        raise NotFoundError(CAPI_GROUP, CAPI_MACHINE_KIND, machine_name) from exc
    except Exception as exc:
        log.error("failed to get CAPI machine %s/%s: %s", namespace, machine_name, exc)
        raise RuntimeError(f"failed to get machine: {exc}") from exc

    has_set, machine_set = _find_owner(
        client,
        machine,
        CAPI_MACHINE_SET_KIND,
        CAPI_MACHINE_SET_RESOURCE_KIND,
        namespace,
        url,
        token,
        "machine set",
    )
    if not has_set or machine_set is None:
        log.debug("CAPI machine %s has no machine set owner", machine_name)
        return MachineChain(machine=machine)

    has_deployment, machine_deployment = _find_owner(
        client,
        machine_set,
        CAPI_MACHINE_DEPLOYMENT_KIND,
        CAPI_MACHINE_DEPLOYMENT_RESOURCE_KIND,
        namespace,
        url,
        token,
        "machine deployment",
    )
    if not has_deployment:
        log.debug("CAPI machine set %s has no machine deployment owner", _name_of(machine_set))
    return MachineChain(
        machine=machine, machine_set=machine_set, machine_deployment=machine_deployment
    )


def _cluster_selector(target_cluster: str) -> str:
    if len(target_cluster) > _LABEL_VALUE_MAX_LENGTH or not _LABEL_VALUE.fullmatch(
        target_cluster
    ):
        log.error("invalid cluster name for label selector: %r", target_cluster)
        raise ValueError("failed to create machine selector for cluster machines")
    return f"{CLUSTER_NAME_LABEL}={target_cluster}"


def _list_or_empty(
    client: ToolsClient, kind: str, namespace: str, selector: str, url: str, token: str,
    description: str,
) -> list[dict[str, Any]]:
    log.debug("listing CAPI %s in %s", description, namespace)
    try:
        found = client.get_resources_at_any_api_version(
            ListParams(
                cluster=LOCAL_CLUSTER,
                kind=kind,
                namespace=namespace,
                label_selector=selector,
                url=url,
                token=token,
            )
        )
    except NotFoundError:
        log.debug("no CAPI %s found in %s", description, namespace)
        return []
    except Exception as exc:
        log.error("failed to list CAPI %s in %s: %s", description, namespace, exc)
        raise RuntimeError(f"failed to list {description}: {exc}") from exc
    log.debug("found %d CAPI %s", len(found), description)
    return list(found)


def get_all_machine_resources(
    client: ToolsClient, target_cluster: str, namespace: str, url: str, token: str
) -> tuple[list[dict[str, Any]], list[dict[str, Any]], list[dict[str, Any]]]:
    """Return the machines, machine sets and machine deployments of a cluster."""
    namespace = namespace or DEFAULT_CLUSTER_RESOURCES_NAMESPACE
    selector = _cluster_selector(target_cluster)

    deployments = _list_or_empty(
        client, CAPI_MACHINE_DEPLOYMENT_RESOURCE_KIND, namespace, selector, url, token,
        "machine deployments",
    )
    machine_sets = _list_or_empty(
        client, CAPI_MACHINE_SET_RESOURCE_KIND, namespace, selector, url, token,
        "machine sets",
    )
    machines = _list_or_empty(
        client, CAPI_MACHINE_RESOURCE_KIND, namespace, selector, url, token,
        "machines",
    )
    return machines, machine_sets, deployments


def get_cluster_machine(
    client: ToolsClient, cluster: str, machine_name: str, url: str, token: str
) -> str:
    """Describe a machine with its machine set and deployment, as JSON.

    A machine that does not exist gives a response with no resources.
    """
    log.info("getting cluster machine %s of cluster %s", machine_name, cluster)
    try:
        chain = get_machine_chain(
            client, machine_name, DEFAULT_CLUSTER_RESOURCES_NAMESPACE, url, token
        )
    except NotFoundError:
        chain = MachineChain()
    # All CAPI resources live in the local cluster.
    return _mcp_response(chain.resources(), LOCAL_CLUSTER)