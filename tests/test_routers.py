import pytest
from fastapi.testclient import TestClient

from tunnel_panel.core.settings import Settings
from tunnel_panel.main import create_app
from tunnel_panel.services.ordering import MemoryOrderStore

NODES = [
    {"id": 1, "name": "a", "status": 1},
    {"id": 2, "name": "b", "status": 1},
    {"id": 3, "name": "c", "status": 1},
]


@pytest.fixture
def store():
    return MemoryOrderStore()


@pytest.fixture
def client(store):
    settings = Settings(
        api_base="http://panel.test", token="", timeout=1.0, max_retries=1, order_db=":memory:", log_level="WARNING"
    )
    with TestClient(create_app(settings, order_store=store)) as c:
        yield c


def test_health(client):
    assert client.get("/api/health").json()["ok"] is True


def test_invalid_json_is_rejected(client):
    r = client.post("/api/topology/validate", content=b"{oops", headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert r.json()["ok"] is False


def test_validate_and_normalize_topology(client):
    tunnel = {
        "name": "edge",
        "type": 2,
        "entryNodeId": [{"nodeId": 1}],
        "chainNodes": [[{"nodeId": 2, "protocol": "wss", "strategy": "fifo"}, {"nodeId": -1}]],
        "outNodeId": [{"nodeId": 3}],
    }
    r = client.post("/api/topology/validate", json={"tunnel": tunnel, "nodes": NODES})
    assert r.json() == {"ok": True, "errors": {}}

    r = client.post("/api/topology/normalize", json={"tunnel": tunnel, "nodes": NODES})
    payload = r.json()["payload"]
    assert payload["chainNodes"] == [[{"nodeId": 2, "chainType": 2, "protocol": "wss", "strategy": "fifo"}]]
    assert payload["outNodeId"] == [{"nodeId": 3, "chainType": 3, "protocol": "tls", "strategy": "round"}]


def test_normalize_rejects_invalid_topology(client):
    r = client.post("/api/topology/normalize", json={"tunnel": {"name": "e", "type": 2}, "nodes": NODES})
    assert r.status_code == 400
    assert "outNodeId" in r.json()["errors"]


def test_group_diagnosis(client):
    body = {
        "tunnelName": "t",
        "results": [
            {"success": True, "fromChainType": 2, "fromInx": 2, "averageTime": 10, "packetLoss": 0},
            {"success": False, "fromChainType": 1},
            {"success": True, "fromChainType": 2, "fromInx": 1, "averageTime": 120, "packetLoss": 1},
        ],
    }
    data = client.post("/api/diagnosis/group", json=body).json()
    assert data["name"] == "t"
    assert [c["inx"] for c in data["chains"]] == [1, 2]
    assert data["chains"][0]["results"][0]["quality"] == "fair"
    assert data["summary"] == {"total": 3, "successCount": 2, "failCount": 1}


def test_order_reconcile_and_reorder(client, store):
    store.set("node-order", [3, 1])
    items = [{"id": 1}, {"id": 2}, {"id": 3}]
    r = client.post("/api/order/reconcile", json={"scope": "nodes", "items": items})
    assert r.json()["order"] == [3, 1, 2]

    r = client.post("/api/order/reorder", json={"scope": "nodes", "items": items, "movedId": 2, "targetId": 3})
    data = r.json()
    assert data["order"] == [2, 3, 1]
    assert data["items"][0] == {"id": 2, "inx": 0}
    assert store.get("node-order") == [2, 3, 1]


def test_order_unknown_scope(client):
    r = client.post("/api/order/reconcile", json={"scope": "users", "items": []})
    assert r.status_code == 400


def test_normalize_rejects_nan_traffic_ratio(client):
    body = (
        b'{"tunnel": {"name": "web", "type": 1, "trafficRatio": NaN, '
        b'"entryNodeId": [{"nodeId": 1}], "remoteAddr": "1.1.1.1:80"}, '
        b'"nodes": [{"id": 1, "name": "a", "status": 1}]}'
    )
    r = client.post("/api/topology/normalize", content=body, headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert "trafficRatio" in r.json()["errors"]
