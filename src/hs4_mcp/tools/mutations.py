"""Operator mutation tools: devices, events, scripts, plugin functions and cameras."""

from __future__ import annotations

from typing import Any

from hs4_mcp.app import get_app_context
from hs4_mcp.envelopes import error_result
from hs4_mcp.mcp_runtime import ToolResult, ToolSpec
from hs4_mcp.tools._schemas import (
    CAMERAS_PAN_SCHEMA,
    DEVICES_SET_SCHEMA,
    EVENTS_RUN_SCHEMA,
    PLUGIN_FUNCTION_SCHEMA,
    SCRIPTS_RUN_SCHEMA,
)
from hs4_mcp.tools.base import guarded_handler


def _mutation_handler(tool_name: str):
    async def run(payload: dict[str, Any]) -> ToolResult:
        return await get_app_context().gateway.run_tool(tool_name, payload)

    return run


async def _run_event(payload: dict[str, Any]) -> ToolResult:
    has_id = isinstance(payload.get("id"), int)
    if not has_id and not (payload.get("group") and payload.get("name")):
        return error_result("BAD_REQUEST", "Provide id, or provide both group and name.")
    return await get_app_context().gateway.run_tool("hs4.events.run", payload)


devices_set_tool = ToolSpec(
    name="hs4.devices.set",
    description=(
        "Set a device state by control value (preferred) or setdevicestatus mode. "
        "Performs post-write verification by default and can auto-fallback to "
        "control_value when set_status does not converge."
    ),
    input_schema=DEVICES_SET_SCHEMA,
    handler=guarded_handler(DEVICES_SET_SCHEMA, _mutation_handler("hs4.devices.set")),
)

events_run_tool = ToolSpec(
    name="hs4.events.run",
    description="Run an HS4 event by id, or by group+name.",
    input_schema=EVENTS_RUN_SCHEMA,
    handler=guarded_handler(EVENTS_RUN_SCHEMA, _run_event),
)

scripts_run_tool = ToolSpec(
    name="hs4.scripts.run",
    description=(
        "Run a HomeSeer script command through the runscript.html action handler. "
        "This is powerful and should be tightly allowlisted in production."
    ),
    input_schema=SCRIPTS_RUN_SCHEMA,
    handler=guarded_handler(SCRIPTS_RUN_SCHEMA, _mutation_handler("hs4.scripts.run")),
)

plugin_function_tool = ToolSpec(
    name="hs4.plugins.function.call",
    description="Call the pluginfunction endpoint with positional P1..Pn parameters.",
    input_schema=PLUGIN_FUNCTION_SCHEMA,
    handler=guarded_handler(
        PLUGIN_FUNCTION_SCHEMA, _mutation_handler("hs4.plugins.function.call")
    ),
)

cameras_pan_tool = ToolSpec(
    name="hs4.cameras.pan",
    description="Pan/tilt command for a camera via the pancamera endpoint.",
    input_schema=CAMERAS_PAN_SCHEMA,
    handler=guarded_handler(CAMERAS_PAN_SCHEMA, _mutation_handler("hs4.cameras.pan")),
)

MUTATION_TOOLS = (
    devices_set_tool,
    events_run_tool,
    scripts_run_tool,
    plugin_function_tool,
    cameras_pan_tool,
)
