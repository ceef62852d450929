"""
Fake Keystone + Cinder server for testing without a cloud.

    python -m cindermon.mock.fake_openstack_server
    cindermon --config fake.yaml collect      # endpoint: http://127.0.0.1:9200/v3

Speaks just enough of identity v3/v2.0 and block storage v3 to drive
the collector: password auth, project/tenant listing, paginated volume
and snapshot listings across all tenants, and per-project limits.
"""

from __future__ import annotations

import json
import threading
import uuid
from collections import Counter
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

# Default deployment: two projects, admin can see everything
DEFAULT_PROJECTS = {"p-admin": "admin", "p-alpha": "alpha", "p-beta": "beta"}

DEFAULT_VOLUMES = [
    ("p-alpha", 10), ("p-alpha", 20), ("p-alpha", 5),
    ("p-beta", 100),
    ("p-admin", 1),
]

DEFAULT_SNAPSHOTS = [
    ("p-alpha", 10),
    ("p-beta", 50), ("p-beta", 50),
]

PAGE_SIZE = 2


def _default_limits(project_id: str) -> dict:
    used = sum(1 for pid, _ in DEFAULT_VOLUMES if pid == project_id)
    return {
        "maxTotalVolumes": 50,
        "maxTotalSnapshots": 20,
        "maxTotalVolumeGigabytes": 1000,
        "maxTotalBackups": 10,
        "maxTotalBackupGigabytes": 1000,
        "totalVolumesUsed": used,
        "totalSnapshotsUsed": 0,
        "totalGigabytesUsed": 0,
        "totalBackupsUsed": 0,
        "totalBackupGigabytesUsed": 0,
    }


class FakeCloud:
    """In-memory deployment state shared by all request handlers."""

    def __init__(
        self,
        projects: Optional[Dict[str, str]] = None,
        volumes: Optional[List[Tuple[str, int]]] = None,
        snapshots: Optional[List[Tuple[str, int]]] = None,
        user: str = "admin",
        password: str = "secret",
    ):
        self.projects = dict(DEFAULT_PROJECTS if projects is None else projects)
        self.volumes = list(DEFAULT_VOLUMES if volumes is None else volumes)
        self.snapshots = list(DEFAULT_SNAPSHOTS if snapshots is None else snapshots)
        self.limits = {pid: _default_limits(pid) for pid in self.projects}
        self.user = user
        self.password = password
        self.tokens: Dict[str, str] = {}   # token -> project id ('' when unscoped)
        self.calls: Counter = Counter()
        self.base_url = ""
        self._lock = threading.Lock()

    def issue_token(self, project_id: str) -> str:
        token = uuid.uuid4().hex
        with self._lock:
            self.tokens[token] = project_id
        return token

    def record(self, key: str):
        with self._lock:
            self.calls[key] += 1

    def project_id(self, name: str) -> Optional[str]:
        for pid, pname in self.projects.items():
            if pname == name:
                return pid
        return None


class _OpenStackHandler(BaseHTTPRequestHandler):
    cloud: FakeCloud = None  # set per server by make_handler()

    # -- plumbing --------------------------------------------------------

    def _send_json(self, status: int, body: dict, headers: Optional[dict] = None):
        data = json.dumps(body).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(data)

    def _read_json(self) -> dict:
        length = int(self.headers.get("Content-Length") or 0)
        return json.loads(self.rfile.read(length) or b"{}")

    def _token_project(self) -> Optional[str]:
        return self.cloud.tokens.get(self.headers.get("X-Auth-Token", ""))

    def _catalog_v3(self) -> list:
        return [{
            "type": "volumev3",
            "name": "cinderv3",
            "endpoints": [{"interface": "public", "url": f"{self.cloud.base_url}/volume/v3"}],
        }]

    def _catalog_v2(self) -> list:
        return [{
            "type": "volumev3",
            "name": "cinderv3",
            "endpoints": [{"publicURL": f"{self.cloud.base_url}/volume/v3"}],
        }]

    def _check_password(self, user: str, password: str) -> bool:
        return user == self.cloud.user and password == self.cloud.password

    # -- identity --------------------------------------------------------

    def _v3_tokens(self):
        auth = self._read_json().get("auth", {})
        creds = auth.get("identity", {}).get("password", {}).get("user", {})
        if not self._check_password(creds.get("name"), creds.get("password")):
            return self._send_json(401, {"error": {"code": 401, "message": "Invalid credentials"}})

        token_body = {"catalog": self._catalog_v3(), "user": {"name": creds["name"]}}
        project_id = ""
        scope = auth.get("scope", {}).get("project")
        if scope:
            project_id = self.cloud.project_id(scope.get("name"))
            if project_id is None:
                return self._send_json(401, {"error": {"code": 401, "message": "Unknown project"}})
            token_body["project"] = {"id": project_id, "name": scope["name"]}

        token = self.cloud.issue_token(project_id)
        self.cloud.record(f"auth:{scope.get('name') if scope else ''}")
        self._send_json(201, {"token": token_body}, headers={"X-Subject-Token": token})

    def _v2_tokens(self):
        auth = self._read_json().get("auth", {})
        creds = auth.get("passwordCredentials", {})
        if not self._check_password(creds.get("username"), creds.get("password")):
            return self._send_json(401, {"error": {"code": 401, "message": "Invalid credentials"}})

        tenant_name = auth.get("tenantName", "")
        project_id = ""
        token_body = {}
        if tenant_name:
            project_id = self.cloud.project_id(tenant_name)
            if project_id is None:
                return self._send_json(401, {"error": {"code": 401, "message": "Unknown tenant"}})
            token_body["tenant"] = {"id": project_id, "name": tenant_name}

        token = self.cloud.issue_token(project_id)
        token_body["id"] = token
        self.cloud.record(f"auth:{tenant_name}")
        self._send_json(200, {"access": {"token": token_body, "serviceCatalog": self._catalog_v2()}})

    def _list_projects(self, key: str):
        self.cloud.record("projects")
        items = [{"id": pid, "name": name} for pid, name in self.cloud.projects.items()]
        self._send_json(200, {key: items})

    # -- block storage ---------------------------------------------------

    def _listing(self, key: str, rows: List[Tuple[str, int]], tenant_attr: str, query: dict):
        self.cloud.record(key)
        offset = int(query.get("offset", ["0"])[0])
        page = rows[offset:offset + PAGE_SIZE]
        items = [
            {"id": f"{key}-{offset + i}", "size": size, tenant_attr: pid}
            for i, (pid, size) in enumerate(page)
        ]
        body = {key: items}
        if offset + PAGE_SIZE < len(rows):
            href = f"{self.cloud.base_url}/volume/v3/{key}/detail?all_tenants=1&offset={offset + PAGE_SIZE}"
            body[f"{key}_links"] = [{"rel": "next", "href": href}]
        self._send_json(200, body)

    def _limits(self, project_id: str):
        self.cloud.record(f"limits:{self.cloud.projects.get(project_id, '')}")
        self._send_json(200, {"limits": {"rate": [], "absolute": self.cloud.limits.get(project_id, {})}})

    # -- routing ---------------------------------------------------------

    def do_POST(self):
        path = urlparse(self.path).path
        if path == "/v3/auth/tokens":
            self._v3_tokens()
        elif path == "/v2.0/tokens":
            self._v2_tokens()
        else:
            self._send_json(404, {"error": "not found"})

    def do_GET(self):
        url = urlparse(self.path)
        project_id = self._token_project()
        if project_id is None:
            return self._send_json(401, {"error": {"code": 401, "message": "Invalid token"}})

        if url.path == "/v3/auth/projects":
            self._list_projects("projects")
        elif url.path == "/v2.0/tenants":
            self._list_projects("tenants")
        elif url.path == "/volume/v3/volumes/detail":
            self._listing("volumes", self.cloud.volumes, "os-vol-tenant-attr:tenant_id", parse_qs(url.query))
        elif url.path == "/volume/v3/snapshots/detail":
            self._listing("snapshots", self.cloud.snapshots, "os-extended-snapshot-attributes:project_id",
                          parse_qs(url.query))
        elif url.path == "/volume/v3/limits" and project_id:
            self._limits(project_id)
        else:
            self._send_json(404, {"error": "not found"})

    def log_message(self, format, *args):
        pass  # Suppress request logging noise


def make_handler(cloud: FakeCloud):
    return type("OpenStackHandler", (_OpenStackHandler,), {"cloud": cloud})


def start_fake_server(cloud: Optional[FakeCloud] = None, host: str = "127.0.0.1", port: int = 0):
    """Serve `cloud` from a daemon thread. Port 0 picks a free port.

    Returns (server, cloud); stop with server.shutdown().
    """
    cloud = cloud or FakeCloud()
    server = ThreadingHTTPServer((host, port), make_handler(cloud))
    cloud.base_url = f"http://{host}:{server.server_address[1]}"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, cloud


def run_fake_server(host: str = "127.0.0.1", port: int = 9200):
    cloud = FakeCloud()
    server = ThreadingHTTPServer((host, port), make_handler(cloud))
    cloud.base_url = f"http://{host}:{port}"
    print(f"Fake OpenStack running at {cloud.base_url}/v3 (user={cloud.user}, password={cloud.password})")
    print("Press Ctrl+C to stop.\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    server.server_close()
    print("\nServer stopped.")


if __name__ == "__main__":
    run_fake_server()
