"""Client interfaces and shared request types for the provisioning tools."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

URL_HEADER = "R_url"
TOOLSET_NAME = "provisioning"
TOOLSET_ANNOTATION = "toolset"
JSON_PATCH_TYPE = "application/json-patch+json"


class NotFoundError(Exception):
    """A requested resource does not exist."""

    def __init__(self, group: str, resource: str, name: str) -> None:
        self.group = group
        self.resource = resource
        self.name = name
        qualified = f"{resource}.{group}" if group else resource
        super().__init__(f'{qualified} "{name}" not found')


@dataclass(frozen=True)
class GroupVersionResource:
    """Identifies a resource type by API group, version and plural name."""

    group: str
    version: str
    resource: str


@dataclass
class GetParams:
    """Parameters to fetch a single resource."""

    cluster: str = ""
    kind: str = ""
    namespace: str = ""
    name: str = ""
    url: str = ""
    token: str = ""


@dataclass
class ListParams:
    """Parameters to list resources."""

    cluster: str = ""
    kind: str = ""
    namespace: str = ""
    label_selector: str = ""
    url: str = ""
    token: str = ""


class ResourceInterface(Protocol):
    """Operations on one resource type in one namespace of one cluster."""

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create the object and return it as stored."""

    def patch(self, name: str, patch_type: str, data: bytes) -> dict[str, Any]:
        """Apply a patch to the named object and return the result."""


class ToolsClient(Protocol):
    """The cluster access the provisioning tools rely on."""

    def get_resource(self, params: GetParams) -> dict[str, Any]:
        """Fetch one resource; raise NotFoundError if it is missing."""

    def get_resource_at_any_api_version(self, params: GetParams) -> dict[str, Any]:
        """Fetch one resource at whichever API version is served."""

    def get_resources_at_any_api_version(self, params: ListParams) -> list[dict[str, Any]]:
        """List resources at whichever API version is served."""

    def get_resource_by_gvr(
        self, params: GetParams, gvr: GroupVersionResource
    ) -> dict[str, Any]:
        """Fetch one resource addressed by an explicit group/version/resource."""

    def get_resources(self, params: ListParams) -> list[dict[str, Any]]:
        """List resources of a kind."""

    def get_resource_interface(
        self,
        token: str,
        url: str,
        namespace: str,
        cluster: str,
        gvr: GroupVersionResource,
    ) -> ResourceInterface:
        """Return an interface for operations on one resource type."""


def rancher_url(configured_url: str, headers: Mapping[str, Any] | None) -> str:
    """Return the configured Rancher URL, or else the one from the request headers."""
    if configured_url:
        return configured_url
    if not headers:
        return ""
    wanted = URL_HEADER.lower()
    for key, value in headers.items():
        if key.lower() != wanted:
            continue
        if isinstance(value, (list, tuple)):
            return str(value[0]) if value else ""
        return str(value)
    return ""


def owner_references(obj: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Return the owner references in an object's metadata."""
    metadata = obj.get("metadata") or {}
    refs = metadata.get("ownerReferences") or []
    return [ref for ref in refs if isinstance(ref, dict)]