"""Tool helpers."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from hs4_mcp.audit.db import AuditStore
from hs4_mcp.audit.models import AuditEntry
from hs4_mcp.envelopes import error_from_exception, success_result
from hs4_mcp.errors import BadRequestError, HS4Error, as_hs4_error
from hs4_mcp.mcp_runtime import ToolResult
from hs4_mcp.utils.jsonschema import validate_payload

logger = logging.getLogger(__name__)


def validate_or_raise(schema: dict[str, Any], payload: dict[str, Any]) -> None:
    errors = validate_payload(schema, payload)
    if errors:
        raise BadRequestError(
            "Input validation failed: " + "; ".join(errors), details={"errors": errors}
        )


def guarded_handler(
    schema: dict[str, Any],
    func: Callable[[dict[str, Any]], Awaitable[ToolResult]],
) -> Callable[[dict[str, object]], Awaitable[ToolResult]]:
    """Wrap a tool body with schema validation and error-envelope mapping."""

    async def handler(payload: dict[str, object]) -> ToolResult:
        arguments = dict(payload or {})
        try:
            validate_or_raise(schema, arguments)
            return await func(arguments)
        except HS4Error as exc:
            return error_from_exception(exc)
        except Exception as exc:
            logger.exception("Tool handler error")
            return error_from_exception(as_hs4_error(exc))

    return handler


async def audited_read(
    audit: AuditStore,
    tool: str,
    action: str,
    details: dict[str, Any],
    fn: Callable[[], Awaitable[Any]],
) -> ToolResult:
    """Run a read-only tool body and record its outcome."""
    started = time.monotonic()
    try:
        data = await fn()
    except Exception as exc:
        mapped = as_hs4_error(exc)
        await audit.record(
            AuditEntry(
                tool=tool,
                action=action,
                result="error",
                duration_ms=int((time.monotonic() - started) * 1000),
                error_code=mapped.code,
                message=mapped.message,
                details=details,
            )
        )
        return error_from_exception(mapped)

    await audit.record(
        AuditEntry(
            tool=tool,
            action=action,
            result="success",
            duration_ms=int((time.monotonic() - started) * 1000),
            details=details,
        )
    )
    return success_result(data)
