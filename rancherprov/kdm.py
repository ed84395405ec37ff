"""Kubernetes version metadata (KDM), CNI support and raw Rancher API requests."""

from __future__ import annotations

import json
import logging
import re
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

DISTRIBUTIONS = ("rke2", "k3s")

# The same list is hard-coded in the Rancher dashboard.
SUPPORTED_CNIS = (
    "calico",
    "canal",
    "cilium",
    "flannel",
    "multus,canal",
    "multus,cilium",
    "multus,calico",
    "none",
)

_RELEASE_NUMBER = re.compile(r"[+-]?[0-9]+")


@dataclass
class VersionLookup:
    """Outcome of resolving a requested Kubernetes version against the KDM releases."""

    version: str = ""
    versions: list[str] = field(default_factory=list)
    supported: bool = False


def _fetch(request: urllib.request.Request) -> tuple[bytes, int]:
    """Send a request and return the body and status, whatever the status is."""
    try:
        with urllib.request.urlopen(request) as resp:
            return resp.read(), resp.status
    except urllib.error.HTTPError as exc:
        with exc:
            return exc.read(), exc.code


def get_kdm_releases(url: str, distro: str) -> list[str]:
    """Return the Kubernetes versions a Rancher server offers for a distribution."""
    if distro not in DISTRIBUTIONS:
        raise ValueError(
            f"invalid distro: {distro}. Valid values are 'rke2' and 'k3s'"
        )

    request = urllib.request.Request(f"{url}/v1-{distro}-release/releases")
    try:
        body, _ = _fetch(request)
    except (urllib.error.URLError, ValueError, OSError) as exc:
        raise RuntimeError(f"failed to get KDM releases: {exc}") from exc

    try:
        kdm = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"failed to unmarshal KDM response: {exc}") from exc
    if not isinstance(kdm, dict):
        raise ValueError("failed to unmarshal KDM response: not a JSON object")

    releases = kdm.get("data")
    if not isinstance(releases, list):
        raise ValueError("invalid KDM response format: missing 'data' field")

    versions: list[str] = []
    for release in releases:
        if not isinstance(release, dict):
            raise ValueError("invalid KDM response format: release is not an object")
        version = release.get("version")
        if not isinstance(version, str):
            raise ValueError(
                "invalid KDM response format: release version is not a string"
            )
        versions.append(version)
    return versions


def supported_kubernetes_version(url: str, distro: str, version: str) -> VersionLookup:
    """Resolve a version such as "v1.33.3" to the newest matching release.

    A complete release name (e.g. "v1.33.3+rke2r1") that is offered is used as is.
    """
    versions = get_kdm_releases(url, distro)
    distro_version = f"{version}+{distro}"
    log.debug("looking for Kubernetes version %s", distro_version)

    candidates: list[str] = []
    for candidate in versions:
        if candidate == version:
            return VersionLookup(version=version, versions=versions, supported=True)
        if distro_version in candidate:
            log.debug("potential match %s", candidate)
            candidates.append(candidate)

    if not candidates:
        log.debug("no release matches %s for %s", version, distro)
        return VersionLookup(versions=versions)

    separator = "k3s" if distro == "k3s" else "rke2r"
    latest_name = ""
    latest_number = 0
    for candidate in candidates:
        _, found, release = candidate.partition(separator)
        if not found:
            log.debug("cannot parse release %s, skipping", candidate)
            continue
        if not _RELEASE_NUMBER.fullmatch(release):
            log.debug("release number %r is not an integer, skipping", release)
            continue
        number = int(release)
        if number > latest_number:
            latest_number = number
            latest_name = candidate

    if not latest_name:
        log.debug("no usable release found for %s", version)
        return VersionLookup(versions=versions)

    log.debug("resolved Kubernetes version %s", latest_name)
    return VersionLookup(version=latest_name, versions=versions, supported=True)


def supported_cni(cni: str) -> tuple[list[str], bool]:
    """Return the supported CNIs and whether the given one is among them."""
    return list(SUPPORTED_CNIS), cni in SUPPORTED_CNIS


def make_rancher_request(
    rancher_url: str, method: str, path: str, token: str, body: bytes | None
) -> tuple[bytes, int]:
    """Send a JSON request to the Rancher API and return the body and status code."""
    request = urllib.request.Request(
        f"{rancher_url}/{path.removeprefix('/')}",
        data=body,
        method=method,
        headers={
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
        },
    )
    return _fetch(request)


def list_supported_kubernetes_versions(url: str, distribution: str) -> str:
    """Describe the Kubernetes versions that can be provisioned for a distribution."""
    if distribution not in DISTRIBUTIONS:
        raise ValueError(f"unsupported distribution: {distribution}")
    log.debug("listing supported Kubernetes versions for %s", distribution)

    versions = get_kdm_releases(url, distribution)
    message = (
        f"Supported Kubernetes versions for {distribution}: [{' '.join(versions)}]"
    )
    response: dict[str, Any] = {"llm": [{"message": message}]}
    return json.dumps(response, separators=(",", ":"))