"""Tool registration helpers.

Tools fall into four groups:
- read tools: hs4.health.get, hs4.selftest.run, hs4.audit.query
- operator mutations: devices, events, scripts, plugin functions, cameras
- admin mutations: one hs4.admin.<domain>.<action> tool per catalog entry
- two-phase changes: hs4.change.prepare/commit/list
"""

from __future__ import annotations

from hs4_mcp.logging_utils import get_logger
from hs4_mcp.mcp_runtime import MCPServer, ToolSpec
from hs4_mcp.tools.admin import ADMIN_TOOLS
from hs4_mcp.tools.changes import CHANGE_TOOLS
from hs4_mcp.tools.health import READ_TOOLS
from hs4_mcp.tools.mutations import MUTATION_TOOLS

__all__ = ["get_tool_registry", "get_tool_specs", "register_tools"]


def get_tool_specs() -> list[ToolSpec]:
    return [*READ_TOOLS, *MUTATION_TOOLS, *ADMIN_TOOLS, *CHANGE_TOOLS]


def get_tool_registry() -> dict[str, ToolSpec]:
    return {tool.name: tool for tool in get_tool_specs()}


def register_tools(server: MCPServer) -> None:
    """Register every HS4 tool with the MCP server."""
    logger = get_logger(__name__)
    specs = get_tool_specs()
    for tool in specs:
        server.add_tool(tool)
    logger.info("Registered %d HS4 tools (%d admin mutations)", len(specs), len(ADMIN_TOOLS))
