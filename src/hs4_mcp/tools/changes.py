"""Two-phase change tools: prepare, commit and list."""

from __future__ import annotations

from typing import Any

from hs4_mcp.app import get_app_context
from hs4_mcp.mcp_runtime import ToolResult, ToolSpec
from hs4_mcp.tools._schemas import (
    CHANGE_COMMIT_SCHEMA,
    CHANGE_LIST_SCHEMA,
    CHANGE_PREPARE_SCHEMA,
)
from hs4_mcp.tools.base import guarded_handler


async def _prepare(payload: dict[str, Any]) -> ToolResult:
    args = payload.get("args")
    summary = payload.get("summary")
    return await get_app_context().gateway.prepare(
        str(payload["toolName"]),
        args if isinstance(args, dict) else {},
        summary if isinstance(summary, dict) else {},
    )


async def _commit(payload: dict[str, Any]) -> ToolResult:
    return await get_app_context().gateway.commit(str(payload["token"]))


async def _list(payload: dict[str, Any]) -> ToolResult:
    limit = payload.get("limit")
    return await get_app_context().gateway.list_changes(limit if isinstance(limit, int) else 50)


change_prepare_tool = ToolSpec(
    name="hs4.change.prepare",
    description=(
        "Prepare a guarded mutation and return a commit token for two-phase execution. "
        "Policy is evaluated as a dry run; nothing is sent to HS4."
    ),
    input_schema=CHANGE_PREPARE_SCHEMA,
    handler=guarded_handler(CHANGE_PREPARE_SCHEMA, _prepare),
)

change_commit_tool = ToolSpec(
    name="hs4.change.commit",
    description="Commit a previously prepared mutation token.",
    input_schema=CHANGE_COMMIT_SCHEMA,
    handler=guarded_handler(CHANGE_COMMIT_SCHEMA, _commit),
)

change_list_tool = ToolSpec(
    name="hs4.change.list",
    description="List live prepared change tokens, newest first.",
    input_schema=CHANGE_LIST_SCHEMA,
    handler=guarded_handler(CHANGE_LIST_SCHEMA, _list),
)

CHANGE_TOOLS = (change_prepare_tool, change_commit_tool, change_list_tool)
