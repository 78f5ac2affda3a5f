"""Success and error envelopes returned by every tool."""

from __future__ import annotations

import json
from typing import Any

from hs4_mcp.errors import ErrorCode, HS4Error, actionable_error_fields
from hs4_mcp.mcp_runtime import ToolResult
from hs4_mcp.utils.serialization import json_default


def _to_text(payload: object) -> str:
    return json.dumps(payload, ensure_ascii=True, indent=2, default=json_default)


def _jsonable(payload: object) -> Any:
    return json.loads(json.dumps(payload, default=json_default))


def success_result(data: object) -> ToolResult:
    data = _jsonable(data)
    return ToolResult(
        content=[{"type": "text", "text": _to_text(data)}],
        structured_content={"result": data},
    )


def error_result(code: ErrorCode, message: str, details: object = None) -> ToolResult:
    error: dict[str, object] = {"code": code, "message": message, **actionable_error_fields(code)}
    if details is not None:
        error["details"] = _jsonable(details)
    body = {"error": error}
    return ToolResult(
        content=[{"type": "text", "text": _to_text(body)}],
        structured_content=body,
        is_error=True,
    )


def error_from_exception(exc: HS4Error) -> ToolResult:
    return error_result(exc.code, exc.message, exc.details)
