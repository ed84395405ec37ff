import dataclasses

import pytest

from rancherprov.clients import (
    URL_HEADER,
    GetParams,
    GroupVersionResource,
    ListParams,
    NotFoundError,
    owner_references,
    rancher_url,
)


def test_not_found_message_and_attributes():
    err = NotFoundError("cluster.x-k8s.io", "Machine", "m1")
    assert str(err) == 'Machine.cluster.x-k8s.io "m1" not found'
    assert (err.group, err.resource, err.name) == ("cluster.x-k8s.io", "Machine", "m1")


def test_not_found_without_group():
    err = NotFoundError("", "pods", "p")
    assert str(err).startswith('pods "p"')


def test_not_found_for_provisioning_cluster():
    err = NotFoundError("provisioning.cattle.io", "cluster", "test-cluster")
    assert str(err) == 'cluster.provisioning.cattle.io "test-cluster" not found'
    assert err.name == "test-cluster"
    assert err.resource == "cluster"
    assert err.group == "provisioning.cattle.io"


def test_gvr_is_hashable_and_frozen():
    gvr = GroupVersionResource("rke-machine-config.cattle.io", "v1", "things")
    assert {gvr: 1}[GroupVersionResource("rke-machine-config.cattle.io", "v1", "things")] == 1
    with pytest.raises(dataclasses.FrozenInstanceError):
        gvr.version = "v2"


def test_params_defaults_are_empty():
    assert GetParams().name == ""
    assert ListParams(cluster="local").label_selector == ""
    assert ListParams(cluster="local").cluster == "local"


def test_rancher_url_prefers_configured():
    assert rancher_url("https://a.example.com", {URL_HEADER: ["https://b.example.com"]}) == "https://a.example.com"


def test_rancher_url_falls_back_to_header_list():
    assert rancher_url("", {URL_HEADER: ["https://b.example.com", "x"]}) == "https://b.example.com"


def test_rancher_url_header_case_insensitive_string():
    assert rancher_url("", {URL_HEADER.upper(): "https://c.example.com"}) == "https://c.example.com"


@pytest.mark.parametrize("headers", [None, {}, {URL_HEADER: []}, {"Other": "x"}])
def test_rancher_url_missing(headers):
    assert rancher_url("", headers) == ""


def test_owner_references():
    ref = {"kind": "MachineSet", "name": "ms"}
    obj = {"metadata": {"name": "m", "ownerReferences": [ref]}}
    assert owner_references(obj) == [ref]


@pytest.mark.parametrize("obj", [{}, {"metadata": {}}, {"metadata": {"ownerReferences": None}}])
def test_owner_references_absent(obj):
    assert owner_references(obj) == []