import json

import httpx
import pytest

from core import config
from core.models import NodeDescriptor

SESSION_COOKIE = "3x-ui=MTcwMDAwMDAwMHxzZXNzaW9u"


class FakePanel:
    """In-memory stand-in for a set of 3x-ui panels, keyed by host name."""

    def __init__(self):
        self.inbounds = {}
        self.down = set()
        self.reject_login = set()
        self.reject_add = set()
        self.broken = set()
        self.added = []
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        path = request.url.path
        self.requests.append(request)
        if host in self.down:
            raise httpx.ConnectError("connection refused", request=request)

        if path.endswith("/login"):
            if host in self.reject_login:
                return httpx.Response(200, json={"success": False, "msg": "wrong username or password"})
            return httpx.Response(
                200,
                json={"success": True, "msg": "Login Successfully"},
                headers={"Set-Cookie": f"{SESSION_COOKIE}; Path=/; HttpOnly"},
            )

        if request.headers.get("cookie") != SESSION_COOKIE:
            return httpx.Response(404)

        if path.endswith("/panel/api/inbounds/list"):
            if host in self.broken:
                return httpx.Response(200, json={"success": True, "obj": None})
            return httpx.Response(200, json={"success": True, "obj": self.inbounds.get(host, [])})

        if path.endswith("/panel/api/inbounds/addClient"):
            if host in self.reject_add:
                return httpx.Response(500)
            self.added.append((host, json.loads(request.content)))
            return httpx.Response(200, json={"success": True, "msg": "Client(s) added Successfully"})

        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def make_inbound(inbound_id: int, remark: str, clients: int | None) -> dict:
    inbound = {"id": inbound_id, "remark": remark, "protocol": "vless", "port": 443}
    if clients is not None:
        inbound["clientStats"] = [{"email": f"user{i}", "enable": True} for i in range(clients)]
    return inbound


def server_entry(node_id: str, users_limit: int = 10, **overrides) -> dict:
    entry = {
        "id": node_id,
        "apiUrl": f"https://{node_id}.example:2053",
        "webBasePath": "secretpath",
        "username": "admin",
        "password": "hunter2",
        "usersLimit": users_limit,
        "publicHost": f"{node_id}.example",
        "publicPort": 443,
        "security": "reality",
        "pbk": "Xk3pX2nT9aQ",
        "fp": "chrome",
        "sni": "www.google.com",
        "sid": "6ba85179e30d4fc2",
        "spx": "",
    }
    entry.update(overrides)
    return entry


def make_node(node_id: str, users_limit: int = 10, **overrides) -> NodeDescriptor:
    return NodeDescriptor.model_validate(server_entry(node_id, users_limit, **overrides))


@pytest.fixture
def panel():
    return FakePanel()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATA_DIR", str(tmp_path))
    monkeypatch.setattr(config, "SERVERS_FILE", str(tmp_path / "servers.json"))
    monkeypatch.setattr(config, "LOADS_FILE", str(tmp_path / "loads.json"))
    return tmp_path


@pytest.fixture
def write_servers(data_dir):
    def write(entries):
        (data_dir / "servers.json").write_text(json.dumps({"servers": entries}), encoding="utf-8")
    return write
