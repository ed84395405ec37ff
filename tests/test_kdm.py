import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from rancherprov.kdm import (
    VersionLookup,
    get_kdm_releases,
    list_supported_kubernetes_versions,
    make_rancher_request,
    supported_cni,
    supported_kubernetes_version,
)


def _kdm_data(*versions):
    return json.dumps({"data": [{"version": v} for v in versions]})


class _Server:
    def __init__(self):
        self.body = b""
        self.status = 200
        self.requests = []
        server_state = self

        class Handler(BaseHTTPRequestHandler):
            def _handle(self):
                length = int(self.headers.get("Content-Length") or 0)
                data = self.rfile.read(length) if length else b""
                server_state.requests.append(
                    {
                        "method": self.command,
                        "path": self.path,
                        "headers": dict(self.headers),
                        "body": data,
                    }
                )
                payload = server_state.body
                self.send_response(server_state.status)
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            do_GET = _handle
            do_POST = _handle
            do_PUT = _handle

            def log_message(self, *args):
                pass

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.url = f"http://127.0.0.1:{self.httpd.server_address[1]}"
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    def set_body(self, text):
        self.body = text.encode() if isinstance(text, str) else text


@pytest.fixture
def server():
    srv = _Server()
    srv.thread.start()
    yield srv
    srv.httpd.shutdown()
    srv.httpd.server_close()


def test_list_invalid_distribution():
    with pytest.raises(ValueError, match="unsupported distribution: invalid"):
        list_supported_kubernetes_versions("http://127.0.0.1:1", "invalid")


@pytest.mark.parametrize(
    "distribution, versions, expected",
    [
        (
            "rke2",
            ("v1.32.4+rke2r1", "v1.32.3+rke2r1"),
            {"llm": [{"message": "Supported Kubernetes versions for rke2: [v1.32.4+rke2r1 v1.32.3+rke2r1]"}]},
        ),
        (
            "k3s",
            ("v1.32.4+k3s1", "v1.32.3+k3s1"),
            {"llm": [{"message": "Supported Kubernetes versions for k3s: [v1.32.4+k3s1 v1.32.3+k3s1]"}]},
        ),
    ],
)
def test_list_valid_distribution(server, distribution, versions, expected):
    server.set_body(_kdm_data(*versions))
    result = list_supported_kubernetes_versions(server.url, distribution)
    assert json.loads(result) == expected
    assert server.requests[0]["path"] == f"/v1-{distribution}-release/releases"


def test_get_kdm_releases_returns_versions(server):
    server.set_body(_kdm_data("v1.30.1+rke2r2", "v1.31.0+rke2r1"))
    assert get_kdm_releases(server.url, "rke2") == ["v1.30.1+rke2r2", "v1.31.0+rke2r1"]


def test_get_kdm_releases_invalid_distro():
    with pytest.raises(ValueError, match="invalid distro: rke1"):
        get_kdm_releases("http://127.0.0.1:1", "rke1")


@pytest.mark.parametrize(
    "body, message",
    [
        ("not json", "failed to unmarshal KDM response"),
        ('{"other": []}', "missing 'data' field"),
        ('{"data": ["v1"]}', "release is not an object"),
        ('{"data": [{"version": 1}]}', "release version is not a string"),
    ],
)
def test_get_kdm_releases_bad_response(server, body, message):
    server.set_body(body)
    with pytest.raises(ValueError, match=message):
        get_kdm_releases(server.url, "k3s")


def test_supported_version_exact_match(server):
    server.set_body(_kdm_data("v1.33.3+rke2r1", "v1.33.3+rke2r2"))
    lookup = supported_kubernetes_version(server.url, "rke2", "v1.33.3+rke2r1")
    assert lookup == VersionLookup(
        version="v1.33.3+rke2r1",
        versions=["v1.33.3+rke2r1", "v1.33.3+rke2r2"],
        supported=True,
    )


def test_supported_version_picks_latest_rke2(server):
    server.set_body(_kdm_data("v1.33.3+rke2r1", "v1.33.3+rke2r3", "v1.33.3+rke2r2", "v1.32.1+rke2r9"))
    lookup = supported_kubernetes_version(server.url, "rke2", "v1.33.3")
    assert lookup.supported is True
    assert lookup.version == "v1.33.3+rke2r3"


def test_supported_version_picks_latest_k3s(server):
    server.set_body(_kdm_data("v1.32.4+k3s1", "v1.32.4+k3s2"))
    lookup = supported_kubernetes_version(server.url, "k3s", "v1.32.4")
    assert lookup.version == "v1.32.4+k3s2"
    assert lookup.supported is True


def test_supported_version_not_found(server):
    server.set_body(_kdm_data("v1.32.4+k3s1"))
    lookup = supported_kubernetes_version(server.url, "k3s", "v1.99.0")
    assert lookup == VersionLookup(version="", versions=["v1.32.4+k3s1"], supported=False)


def test_supported_version_unparseable_release(server):
    server.set_body(_kdm_data("v1.33.3+rke2rX"))
    lookup = supported_kubernetes_version(server.url, "rke2", "v1.33.3")
    assert lookup.supported is False
    assert lookup.versions == ["v1.33.3+rke2rX"]


@pytest.mark.parametrize("cni", ["calico", "canal", "cilium", "flannel", "multus,canal", "none"])
def test_supported_cni_accepts(cni):
    cnis, ok = supported_cni(cni)
    assert ok is True
    assert cni in cnis


def test_supported_cni_rejects():
    cnis, ok = supported_cni("weave")
    assert ok is False
    assert cnis == [
        "calico",
        "canal",
        "cilium",
        "flannel",
        "multus,canal",
        "multus,cilium",
        "multus,calico",
        "none",
    ]


def test_make_rancher_request_sends_headers_and_body(server):
    server.set_body('{"ok":true}')
    body, status = make_rancher_request(server.url, "POST", "/v3/clusters", "token", b'{"a":1}')
    assert status == 200
    assert json.loads(body) == {"ok": True}
    req = server.requests[0]
    assert req["method"] == "POST"
    assert req["path"] == "/v3/clusters"
    assert req["body"] == b'{"a":1}'
    assert req["headers"]["Authorization"] == "Bearer token"
    assert req["headers"]["Content-Type"] == "application/json"
    assert req["headers"]["Accept"] == "application/json"


def test_make_rancher_request_returns_error_status(server):
    server.status = 404
    server.set_body('{"message":"missing"}')
    body, status = make_rancher_request(server.url, "GET", "v3/clusters/x", "token", None)
    assert status == 404
    assert json.loads(body) == {"message": "missing"}
    assert server.requests[0]["path"] == "/v3/clusters/x"