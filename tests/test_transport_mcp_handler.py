import json

import pytest
from starlette.requests import Request

from hs4_mcp.transport.mcp_handler import MAX_BATCH_REQUESTS, handle_mcp_request
from hs4_mcp.tools import get_tool_specs


def make_request(method="POST", headers=None, body=None, raw=None):
    scope = {"type": "http", "method": method, "path": "/mcp", "headers": []}
    if headers:
        scope["headers"] = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    request = Request(scope)
    payload = raw if raw is not None else json.dumps(body).encode()

    async def receive():
        return {"type": "http.request", "body": payload, "more_body": False}

    request._receive = receive
    return request


def rpc(method, request_id=1, **params):
    return {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}


async def send(body, headers=None):
    response = await handle_mcp_request(make_request(body=body, headers=headers))
    return response, (json.loads(response.body) if response.body else None)


@pytest.mark.asyncio
async def test_options_request():
    response = await handle_mcp_request(make_request(method="OPTIONS", raw=b""))
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_invalid_json():
    response = await handle_mcp_request(make_request(raw=b"{invalid"))
    assert response.status_code == 400
    assert json.loads(response.body)["error"]["message"] == "Invalid JSON"


@pytest.mark.asyncio
async def test_non_object_root_returns_invalid_request():
    response, body = await send("hello")
    assert response.status_code == 400
    assert body["error"]["code"] == "invalid_request"


@pytest.mark.asyncio
async def test_initialize_negotiates_protocol_version():
    response, body = await send(rpc("initialize", protocolVersion="2025-06-18"))
    assert response.headers["MCP-Protocol-Version"] == "2025-03-26"
    assert body["result"]["protocolVersion"] == "2025-06-18"
    assert body["result"]["serverInfo"]["name"] == "hs4-mcp"

    _, fallback = await send(rpc("initialize", protocolVersion="1999-01-01"))
    assert fallback["result"]["protocolVersion"] == "2025-11-25"


@pytest.mark.asyncio
async def test_ping_and_unknown_method():
    _, ping = await send(rpc("ping"))
    _, unknown = await send(rpc("resources/list"))
    assert ping["result"] == {}
    assert unknown["error"]["message"] == "Unsupported method: resources/list"


@pytest.mark.asyncio
async def test_tools_list():
    _, body = await send(rpc("tools/list"))
    tools = body["result"]["tools"]
    assert len(tools) == len(get_tool_specs())
    assert tools[0]["name"] == "hs4.health.get"
    assert tools[0]["inputSchema"]["type"] == "object"


@pytest.mark.asyncio
async def test_tools_call_error_sets_is_error(app_context):
    _, body = await send(rpc("tools/call", name="hs4.scripts.run", arguments={"command": "x.vb"}))
    result = body["result"]
    assert result["isError"] is True
    assert result["structuredContent"]["error"]["code"] == "POLICY_DENY"


@pytest.mark.asyncio
async def test_tools_call_success(app_context):
    _, body = await send(
        rpc("tools/call", name="hs4.cameras.pan", arguments={"camId": 2, "direction": "leftstart", "dryRun": True})
    )
    result = body["result"]
    assert "isError" not in result
    assert result["structuredContent"]["result"]["dryRun"] is True


@pytest.mark.asyncio
async def test_tools_call_rejects_bad_params():
    _, unknown = await send(rpc("tools/call", name="hs4.nope"))
    _, nameless = await send(rpc("tools/call"))
    _, bad_args = await send(rpc("tools/call", name="hs4.health.get", arguments=[1]))
    assert unknown["error"]["message"] == "Unknown tool: hs4.nope"
    assert nameless["error"]["message"] == "Invalid tool name"
    assert bad_args["error"]["code"] == "invalid_params"


@pytest.mark.asyncio
async def test_notification_is_accepted_without_body():
    response = await handle_mcp_request(
        make_request(body={"jsonrpc": "2.0", "method": "notifications/initialized"})
    )
    assert response.status_code == 202


@pytest.mark.asyncio
async def test_batch_requests():
    response, body = await send([rpc("ping", 1), {"jsonrpc": "2.0", "method": "notifications/x"}, 7])
    assert response.status_code == 200
    assert [item["id"] for item in body] == [1, None]
    assert body[1]["error"]["code"] == "invalid_request"

    too_large, _ = await send([rpc("ping", i) for i in range(MAX_BATCH_REQUESTS + 1)])
    empty, _ = await send([])
    assert too_large.status_code == 400
    assert empty.status_code == 400
