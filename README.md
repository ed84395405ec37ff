# rancherprov

Helpers for provisioning work against a Rancher server: building, planning
and creating K3k virtual clusters, following Cluster API machines up to
their machine sets and machine deployments, scaling RKE2/K3s node pools
within safe limits, and looking up the Kubernetes versions Rancher can
provision.

Operations that read or write cluster resources take a client object that
follows the `ToolsClient` protocol in `rancherprov.clients`; you supply the
transport (or a fake for testing). Only the Kubernetes version lookups in
`rancherprov.kdm` and `make_rancher_request` make HTTP calls themselves,
using the standard library.

Most operations return a JSON string ready to hand to a caller, such as
`{"llm": [...], "uiContext": [...]}` for resources, `{"llm": "no resources found"}`
when there are none, or a list of planned `create`/`update` operations.

## Installation

```
pip install rancherprov
```

Python 3.10 or newer is required. There are no runtime dependencies.

## Modules

| Module | What it offers |
| --- | --- |
| `rancherprov.version` | `get_version()` – the value of `VERSION`, followed by `GIT_COMMIT` in parentheses when that is set |
| `rancherprov.logs` | `child_logger(tool_name, session_id, extras)` – a `LoggerAdapter` on the `rancherprov` logger whose records carry a `fields` mapping with the tool name, session id and extras |
| `rancherprov.clients` | `ToolsClient` and `ResourceInterface` protocols, `GetParams`, `ListParams`, `GroupVersionResource`, `NotFoundError`, `rancher_url(configured_url, headers)`, `owner_references(obj)` |
| `rancherprov.k3k` | `K3kClusterParams`, `SyncConfig`, `ResourceLimits`, `PersistenceConfig`, `K3kClusterDetails`, `build_k3k_cluster`, `plan_k3k_cluster`, `create_k3k_cluster`, `list_k3k_clusters` |
| `rancherprov.kdm` | `get_kdm_releases`, `supported_kubernetes_version` (returns a `VersionLookup`), `supported_cni`, `list_supported_kubernetes_versions`, `make_rancher_request` |
| `rancherprov.machines` | `MachineChain`, `get_machine_chain`, `get_all_machine_resources`, `get_cluster_machine` |
| `rancherprov.scaling` | `ScaleRequest`, `get_provisioning_cluster`, `get_machine_pool_configs`, `build_scale_patch`, `scale_node_pool_patch`, `scale_node_pool`, `plan_scale_node_pool` |

## Examples

Build a K3k cluster object and a creation plan for it, without any server:

```python
from rancherprov.k3k import K3kClusterParams, SyncConfig, build_k3k_cluster, plan_k3k_cluster

params = K3kClusterParams(
    name="dev",
    namespace="k3k-dev",
    target_cluster="downstream",
    mode="shared",
    servers=1,
    sync=SyncConfig(ingresses=True),
)
obj = build_k3k_cluster(params)   # a k3k.io/v1beta1 Cluster as a dict
print(plan_k3k_cluster(params))   # JSON list with one "create" operation
```

`plan_k3k_cluster` raises `ValueError` when the name, namespace or target
cluster is missing.

Check which Kubernetes versions a Rancher server offers, and which CNIs are
supported:

```python
from rancherprov.kdm import list_supported_kubernetes_versions, supported_cni, supported_kubernetes_version

print(list_supported_kubernetes_versions("https://rancher.example.com", "rke2"))
lookup = supported_kubernetes_version("https://rancher.example.com", "rke2", "v1.33.3")
print(lookup.supported, lookup.version)   # newest matching release, e.g. v1.33.3+rke2r2
print(supported_cni("canal"))             # (list of supported CNIs, True)
```

Only `rke2` and `k3s` are accepted as distributions; anything else raises
`ValueError`.

Scale a node pool through a client you provide:

```python
from rancherprov.scaling import ScaleRequest, plan_scale_node_pool, scale_node_pool

request = ScaleRequest(cluster="prod", node_pool_name="workers", amount_to_add=2)
print(plan_scale_node_pool(client, request, "https://rancher.example.com", "token"))
print(scale_node_pool(client, request, "https://rancher.example.com", "token"))
```

A pool may be named as it is in the cluster spec or prefixed with the
cluster name. An empty or `"default"` namespace means `fleet-default`.
Scaling refuses unsafe changes with `ValueError`: a pool is never scaled to
zero or fewer nodes, `amount_to_add` and `amount_to_subtract` cannot both be
given, and an etcd pool must keep an odd size, stay at or below 7 nodes and
not shrink below 3. A missing provisioning cluster raises `NotFoundError`.

Look up a machine with its owners:

```python
from rancherprov.machines import get_cluster_machine

print(get_cluster_machine(client, "prod", "prod-machine-1", "https://rancher.example.com", "token"))
```

A machine that does not exist gives `{"llm":"no resources found"}`.

## What this package does not do

It has no command-line program and runs no server: it does not register
tools with any protocol server or answer requests itself. It also has no
Kubernetes client of its own; reading and writing cluster resources is left
to the `ToolsClient` you pass in.

## Running the tests

```
pip install -e ".[test]"
pytest
```