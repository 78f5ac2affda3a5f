"""MCP runtime adapter on top of FastMCP."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, cast

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import FunctionTool
from fastmcp.tools.tool import ToolResult as FastToolResult
from pydantic import BaseModel

logger = logging.getLogger(__name__)


@dataclass
class ToolSpec:
    name: str
    description: str
    input_schema: dict[str, object]
    handler: Callable[[dict[str, object]], "ToolResult | Awaitable[ToolResult]"]


class ToolResult(BaseModel):
    content: list[dict[str, object]]
    structured_content: dict[str, object] | None = None
    is_error: bool = False


class MCPServer:
    """Thin wrapper that registers ``ToolSpec`` handlers as FastMCP tools."""

    def __init__(self, name: str, version: str, instructions: str) -> None:
        self._server: Any = FastMCP(name=name, version=version, instructions=instructions)
        self._tools: dict[str, ToolSpec] = {}

    @property
    def tools(self) -> dict[str, ToolSpec]:
        return dict(self._tools)

    def add_tool(self, tool: ToolSpec) -> None:
        self._tools[tool.name] = tool
        self._add_fastmcp_tool(tool)

    def run(self) -> None:
        self._server.run()

    def _add_fastmcp_tool(self, tool: ToolSpec) -> None:
        # Synthetic signature so FastMCP sees named parameters without exec()/eval().
        raw_properties = tool.input_schema.get("properties", {})
        properties = raw_properties if isinstance(raw_properties, dict) else {}
        prop_names = [name for name in properties.keys() if isinstance(name, str)]

        async def _handler(**kwargs: object) -> object:
            filtered = {k: v for k, v in kwargs.items() if v is not None}
            result = await invoke_tool(tool, filtered)
            if result.is_error:
                # FastMCP flags raised ToolErrors with isError=true; the text keeps the JSON body.
                text = result.content[0].get("text") if result.content else None
                raise ToolError(str(text or "Tool call failed."))
            return FastToolResult(
                content=result.content,
                structured_content=result.structured_content,
            )

        params = [
            inspect.Parameter(name, inspect.Parameter.KEYWORD_ONLY, default=None, annotation=object)
            for name in prop_names
        ]
        _handler.__signature__ = inspect.Signature(params)  # type: ignore[attr-defined]
        safe_name = tool.name.replace("-", "_").replace(".", "_")
        _handler.__name__ = f"_handler_{safe_name}"

        fast_tool = FunctionTool.from_function(
            _handler,
            name=tool.name,
            description=tool.description,
        )
        fields = getattr(fast_tool.__class__, "model_fields", None)
        if isinstance(fields, dict) and "parameters" in fields:
            setattr(fast_tool, "parameters", tool.input_schema)
        self._server.add_tool(fast_tool)


async def invoke_tool(tool: ToolSpec, arguments: dict[str, object]) -> ToolResult:
    raw_result = tool.handler(arguments)
    if _is_awaitable(raw_result):
        result = await cast(Awaitable[ToolResult], raw_result)
    else:
        result = cast(ToolResult, raw_result)
    if not isinstance(result, ToolResult):
        raise TypeError("Tool handler did not return ToolResult")
    return result


def _is_awaitable(value: object) -> bool:
    try:
        return inspect.isawaitable(value)
    except TypeError:
        return False
