"""One ``hs4.admin.<domain>.<action>`` tool per admin mutation."""

from __future__ import annotations

from typing import Any

from hs4_mcp.admin.catalog import ADMIN_ACTIONS, AdminAction
from hs4_mcp.app import get_app_context
from hs4_mcp.mcp_runtime import ToolResult, ToolSpec
from hs4_mcp.tools._schemas import admin_schema
from hs4_mcp.tools.base import guarded_handler


def _admin_tool(action: AdminAction) -> ToolSpec:
    schema = admin_schema(action)

    async def run(payload: dict[str, Any]) -> ToolResult:
        return await get_app_context().gateway.run_tool(action.tool_name, payload)

    return ToolSpec(
        name=action.tool_name,
        description=(
            f"{action.description} Requires admin policy, maintenanceWindowId and, "
            "when enforced, changeTicket. Supports dryRun."
        ),
        input_schema=schema,
        handler=guarded_handler(schema, run),
    )


ADMIN_TOOLS = tuple(_admin_tool(action) for action in ADMIN_ACTIONS)
