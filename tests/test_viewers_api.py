"""
Tests for the viewer REST API and the viewer WebSocket endpoint.

Run tests:
    pytest tests/test_viewers_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from api.viz_manager import viz_registry
from main import app


@pytest.fixture
def client():
    viz_registry.clear()
    with TestClient(app) as c:
        yield c
    viz_registry.clear()


def _connect(ws, viz_id="demo", client_id="c1"):
    ws.send_json({"action": "connect", "clientId": client_id, "vizId": viz_id})


class TestRest:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_system_info_reports_settings(self, client, isolated_settings):
        settings = client.get("/api/system/info").json()["settings"]
        assert settings["save_dir"] == str(isolated_settings)
        assert settings["max_columns"] == 5

    def test_initialize_and_read_back(self, client, info, trace_a):
        response = client.post("/api/viewers/demo/initialize", json={"info": info, "traces": {"a": trace_a}})
        assert response.status_code == 200
        assert response.json()["trace_count"] == 1

        state = client.get("/api/viewers/demo").json()
        assert state["info"] == info
        assert state["traces"] == {"a": trace_a}
        assert state["clients"] == []

    def test_put_and_remove(self, client, info, trace_a):
        client.post("/api/viewers/demo/initialize", json={"info": info})
        assert client.put("/api/viewers/demo/traces/a", json=trace_a).status_code == 200
        assert list(client.get("/api/viewers/demo").json()["traces"]) == ["a"]

        assert client.delete("/api/viewers/demo/traces/a").json()["removed"] is True
        assert client.delete("/api/viewers/demo/traces/a").json()["removed"] is False
        assert client.get("/api/viewers/demo").json()["traces"] == {}

    def test_unknown_viewer(self, client):
        assert client.get("/api/viewers/missing").status_code == 404
        assert client.delete("/api/viewers/missing/traces/a").status_code == 404

    def test_list_viewers(self, client, info):
        client.post("/api/viewers/one/initialize", json={"info": info})
        client.post("/api/viewers/two/initialize", json={"info": info})
        ids = sorted(v["viz_id"] for v in client.get("/api/viewers").json()["viewers"])
        assert ids == ["one", "two"]

    def test_save_without_clients_conflicts(self, client, info):
        client.post("/api/viewers/demo/initialize", json={"info": info})
        assert client.post("/api/viewers/demo/save").status_code == 409

    def test_initialize_requires_info(self, client):
        assert client.post("/api/viewers/demo/initialize", json={"traces": {}}).status_code == 422

    def test_initialize_rejects_non_numeric_info(self, client):
        response = client.post("/api/viewers/demo/initialize", json={"info": {"x": [0, "a", 2]}})
        assert response.status_code == 422
        assert client.get("/api/viewers/demo").status_code == 404


class TestWebSocket:
    def test_websocket_connect_receives_current_state(self, client, info, trace_a):
        client.post("/api/viewers/demo/initialize", json={"info": info, "traces": {"a": trace_a}})
        with client.websocket_connect("/") as ws:
            _connect(ws)
            message = ws.receive_json()
            assert message == {"action": "initialize", "info": info, "traces": {"a": trace_a}}
            assert client.get("/api/viewers/demo").json()["clients"] == ["c1"]

    def test_websocket_receives_mutations(self, client, info, trace_a):
        client.post("/api/viewers/demo/initialize", json={"info": info})
        with client.websocket_connect("/") as ws:
            _connect(ws)
            assert ws.receive_json()["action"] == "initialize"

            client.put("/api/viewers/demo/traces/a", json=trace_a)
            assert ws.receive_json() == {"action": "putTrace", "tId": "a", "t": trace_a}

            client.delete("/api/viewers/demo/traces/a")
            assert ws.receive_json() == {"action": "removeTrace", "tId": "a"}

            assert client.post("/api/viewers/demo/save").json() == {"viz_id": "demo", "requested": 1}
            assert ws.receive_json() == {"action": "saveHTML"}

    def test_websocket_survives_garbage(self, client, info):
        client.post("/api/viewers/demo/initialize", json={"info": info})
        with client.websocket_connect("/") as ws:
            ws.send_text("not json")
            ws.send_json({"action": "launch"})
            _connect(ws)
            assert ws.receive_json()["action"] == "initialize"

    def test_websocket_stats(self, client):
        stats = client.get("/api/ws/stats").json()
        assert set(stats) == {"total_connections", "sessions"}
        assert stats["sessions"] <= stats["total_connections"]
