from starlette.testclient import TestClient

from hs4_mcp.transport.http_server import create_http_app


def test_health_and_ready_endpoints(app_context):
    with TestClient(create_http_app()) as client:
        health = client.get("/health")
        ready = client.get("/ready")

    assert health.json() == {"status": "healthy"}
    assert ready.json() == {
        "status": "ready",
        "safeMode": "read_write",
        "adminExecutionMode": "adapter",
    }


def test_mcp_endpoint_round_trip(app_context):
    with TestClient(create_http_app()) as client:
        response = client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 9, "method": "tools/call", "params": {"name": "hs4.change.list"}},
        )

    assert response.status_code == 200
    assert response.headers["MCP-Protocol-Version"] == "2025-03-26"
    assert response.json()["result"]["structuredContent"]["result"] == {"count": 0, "items": []}


def test_mcp_endpoint_rejects_get(app_context):
    with TestClient(create_http_app()) as client:
        assert client.get("/mcp").status_code == 405
