from unittest.mock import MagicMock, patch

import pytest
from fastmcp.exceptions import ToolError

from hs4_mcp.mcp_runtime import MCPServer, ToolResult, ToolSpec, _is_awaitable, invoke_tool

SCHEMA = {
    "type": "object",
    "properties": {"ref": {"type": "integer"}, "dryRun": {"type": "boolean"}},
    "additionalProperties": False,
}


def _ok(arguments):
    return ToolResult(content=[{"type": "text", "text": "ok"}], structured_content={"result": arguments})


@pytest.mark.asyncio
async def test_invoke_tool_accepts_sync_and_async_handlers():
    async def async_handler(arguments):
        return _ok(arguments)

    sync_result = await invoke_tool(ToolSpec("t1", "d", {}, _ok), {"a": 1})
    async_result = await invoke_tool(ToolSpec("t2", "d", {}, async_handler), {"b": 2})

    assert sync_result.structured_content == {"result": {"a": 1}}
    assert async_result.structured_content == {"result": {"b": 2}}


@pytest.mark.asyncio
async def test_invoke_tool_rejects_other_return_types():
    with pytest.raises(TypeError, match="did not return ToolResult"):
        await invoke_tool(ToolSpec("t1", "d", {}, lambda arguments: {"plain": "dict"}), {})


def test_is_awaitable():
    async def coro():
        return None

    pending = coro()
    assert _is_awaitable(pending)
    pending.close()
    assert not _is_awaitable(1)


def test_add_tool_registers_with_fastmcp():
    with patch("hs4_mcp.mcp_runtime.FastMCP") as fast_mcp, patch(
        "hs4_mcp.mcp_runtime.FunctionTool"
    ) as function_tool:
        function_tool.from_function.return_value = MagicMock()
        server = MCPServer("hs4-mcp", "0.1.0", "instructions")
        server.add_tool(ToolSpec("hs4.devices.set", "d", SCHEMA, _ok))

    fast_mcp.assert_called_once_with(name="hs4-mcp", version="0.1.0", instructions="instructions")
    kwargs = function_tool.from_function.call_args.kwargs
    assert kwargs["name"] == "hs4.devices.set"
    handler = function_tool.from_function.call_args.args[0]
    assert handler.__name__ == "_handler_hs4_devices_set"
    assert list(handler.__signature__.parameters) == ["ref", "dryRun"]
    fast_mcp.return_value.add_tool.assert_called_once_with(function_tool.from_function.return_value)
    assert list(server.tools) == ["hs4.devices.set"]


@pytest.mark.asyncio
async def test_fastmcp_handler_drops_none_and_raises_tool_error():
    seen = {}

    def failing(arguments):
        seen.update(arguments)
        return ToolResult(
            content=[{"type": "text", "text": '{"error": {"code": "POLICY_DENY"}}'}],
            is_error=True,
        )

    with patch("hs4_mcp.mcp_runtime.FastMCP"), patch("hs4_mcp.mcp_runtime.FunctionTool") as function_tool:
        MCPServer("n", "v", "i").add_tool(ToolSpec("hs4.scripts.run", "d", SCHEMA, failing))
    handler = function_tool.from_function.call_args.args[0]

    with pytest.raises(ToolError, match="POLICY_DENY"):
        await handler(ref=5, dryRun=None)
    assert seen == {"ref": 5}


def test_run_delegates_to_fastmcp():
    with patch("hs4_mcp.mcp_runtime.FastMCP") as fast_mcp:
        MCPServer("n", "v", "i").run()
    fast_mcp.return_value.run.assert_called_once_with()
