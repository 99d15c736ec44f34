import copy
import itertools
import json
import os as _os
import sys
import threading

import httpx
import pytest

# Ensure project root is importable (so `import cli` / `import main` work without installing)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from poolsync.api_models import ServiceInstance  # noqa: E402
from poolsync.clc_client import ClcClient  # noqa: E402
from poolsync.reconciler import Reconciler  # noqa: E402
from poolsync.settings import Settings  # noqa: E402

ALIAS = "ACME"
TOKEN = "tok-1"


class FakeControlPlane:
    """In-memory stand-in for the v2 API, served through httpx.MockTransport.

    Records every mutating call in `mutations` as (method, path).
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.datacenters: dict[str, dict] = {}
        self.groups: dict[str, dict] = {}
        self.servers: dict[str, dict] = {}
        self.lbs: dict[str, dict] = {}
        self.mutations: list[tuple[str, str]] = []
        self.requests: list[tuple[str, str]] = []
        self.logins = 0
        self.hide_new_lb_reads = 0  # 404s served for GET of a just-created balancer
        self.fail: dict[tuple[str, str], int] = {}  # (method, last path segment) -> status
        self.expire_token_once = False
        self._ids = itertools.count(1)
        self._hidden: dict[str, int] = {}

    # --- seeding -----------------------------------------------------------

    def add_datacenter(self, dc: str, root_groups: list[str]) -> None:
        self.datacenters[dc] = {
            "id": dc,
            "name": f"{dc} datacenter",
            "links": [{"rel": "self", "href": f"/v2/datacenters/{ALIAS}/{dc}"}]
            + [{"rel": "group", "id": g, "href": f"/v2/groups/{ALIAS}/{g}"} for g in root_groups],
        }

    def add_group(self, gid: str, servers: list[str] = (), children: list[str] = ()) -> None:
        self.groups[gid] = {
            "id": gid,
            "name": gid.upper(),
            "groups": [{"id": c, "name": c.upper()} for c in children],
            "links": [{"rel": "server", "id": s} for s in servers],
        }

    def add_server(self, name: str, pairs: list[tuple[str | None, str | None]]) -> None:
        self.servers[name] = {
            "id": name.lower(),
            "name": name,
            "details": {"ipAddresses": [{"public": p, "internal": i} for p, i in pairs]},
        }

    def add_lb(self, name: str, pools: dict[int, list[tuple[str, int]]] | None = None) -> str:
        lb_id = f"lb-{next(self._ids)}"
        self.lbs[lb_id] = {
            "id": lb_id,
            "name": name,
            "description": "seeded",
            "ipAddress": "203.0.113.10",
            "status": "enabled",
            "pools": [],
        }
        for port, nodes in (pools or {}).items():
            self.lbs[lb_id]["pools"].append(self._pool(port, nodes))
        return lb_id

    def _pool(self, port: int, nodes: list[tuple[str, int]]) -> dict:
        return {
            "id": f"pool-{next(self._ids)}",
            "port": port,
            "method": "roundRobin",
            "persistence": "standard",
            "nodes": [{"status": "enabled", "ipAddress": ip, "privatePort": pp} for ip, pp in nodes],
        }

    # --- inspection --------------------------------------------------------

    def lbs_named(self, name: str) -> list[dict]:
        return [lb for lb in self.lbs.values() if lb["name"] == name]

    def pool_nodes(self, name: str, port: int) -> list[tuple[str, int]]:
        (lb,) = self.lbs_named(name)
        (pool,) = [p for p in lb["pools"] if p["port"] == port]
        return [(n["ipAddress"], n["privatePort"]) for n in pool["nodes"]]

    # --- transport ---------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self.lock:
            return self._handle(request)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.requests.append((method, path))
        body = json.loads(request.content) if request.content else None

        if path == "/v2/authentication/login":
            if body != {"username": "user", "password": "secret"}:
                return httpx.Response(400, json={"message": "bad credentials"})
            self.logins += 1
            return httpx.Response(200, json={"bearerToken": TOKEN, "accountAlias": ALIAS, "userName": "user"})

        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return httpx.Response(401, json={"message": "unauthorized"})
        if self.expire_token_once:
            self.expire_token_once = False
            return httpx.Response(401, json={"message": "token expired"})

        parts = path.strip("/").split("/")
        if (method, parts[-1]) in self.fail:
            return httpx.Response(self.fail[(method, parts[-1])], json={"message": "injected failure"})
        if method != "GET":
            self.mutations.append((method, path))

        resource, alias, rest = parts[1], parts[2], parts[3:]
        if alias != ALIAS:
            return httpx.Response(404)

        if resource == "datacenters":
            return self._get(self.datacenters, rest[0])
        if resource == "groups":
            return self._get(self.groups, rest[0])
        if resource == "servers":
            return self._get(self.servers, rest[0])
        if resource == "sharedLoadBalancers":
            return self._lbs(method, rest[1:], body)
        return httpx.Response(404)

    @staticmethod
    def _get(table: dict, key: str) -> httpx.Response:
        if key not in table:
            return httpx.Response(404, json={"message": f"{key} not found"})
        return httpx.Response(200, json=copy.deepcopy(table[key]))

    def _lbs(self, method: str, rest: list[str], body) -> httpx.Response:
        if not rest:
            if method == "GET":
                return httpx.Response(200, json=copy.deepcopy(list(self.lbs.values())))
            lb_id = self.add_lb(body["name"])
            self.lbs[lb_id]["description"] = body["description"]
            self._hidden[lb_id] = self.hide_new_lb_reads
            return httpx.Response(201, json=copy.deepcopy(self.lbs[lb_id]))

        lb = self.lbs.get(rest[0])
        if lb is None:
            return httpx.Response(404, json={"message": "load balancer not found"})

        if len(rest) == 1:
            if method == "GET":
                if self._hidden.get(lb["id"], 0) > 0:
                    self._hidden[lb["id"]] -= 1
                    return httpx.Response(404, json={"message": "load balancer not found"})
                return httpx.Response(200, json=copy.deepcopy(lb))
            if method == "DELETE":
                del self.lbs[lb["id"]]
                return httpx.Response(204)

        if len(rest) == 2 and method == "POST":
            pool = self._pool(body["port"], [])
            lb["pools"].append(pool)
            return httpx.Response(201, json=copy.deepcopy(pool))

        pool = next((p for p in lb["pools"] if p["id"] == rest[2]), None)
        if pool is None:
            return httpx.Response(404, json={"message": "pool not found"})
        if len(rest) == 3 and method == "DELETE":
            lb["pools"].remove(pool)
            return httpx.Response(204)
        if len(rest) == 4 and method == "PUT":
            pool["nodes"] = [dict(n, status="enabled") for n in body]
            return httpx.Response(200, json=[])
        return httpx.Response(405)


@pytest.fixture()
def plane():
    """Datacenter GB3: root group with one web host (1.2.3.4 -> 10.0.0.5)."""
    p = FakeControlPlane()
    p.add_datacenter("GB3", ["g-root"])
    p.add_group("g-root", servers=["GB3WEB01"])
    p.add_server("GB3WEB01", [("1.2.3.4", "10.0.0.5")])
    return p


@pytest.fixture()
def cfg():
    return Settings(
        region="GB3",
        base_url="https://api.test",
        username="user",
        password="secret",
        account_alias=None,
        allowed_ports=(80, 443),
        opt_in_attribute="clc",
        create_wait_timeout_s=5.0,
        create_poll_initial_s=0.01,
        create_poll_max_s=0.02,
        directory_max_depth=32,
        directory_max_groups=1000,
        serialize_per_key=True,
        debug=False,
    )


@pytest.fixture()
def client(plane, cfg):
    http = httpx.Client(transport=httpx.MockTransport(plane.handler))
    c = ClcClient(cfg, http=http)
    yield c
    http.close()


@pytest.fixture()
def reconciler(cfg, client):
    return Reconciler(cfg, client=client, sleep=lambda s: None)


@pytest.fixture()
def make_instance():
    def _make(name="web", host_ip="1.2.3.4", host_port="32768", exposed_port="443", clc="true", **attrs):
        if clc is not None:
            attrs["clc"] = clc
        return ServiceInstance(
            name=name, host_ip=host_ip, host_port=host_port, exposed_port=exposed_port, attrs=attrs
        )

    return _make
