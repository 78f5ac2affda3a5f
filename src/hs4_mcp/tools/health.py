"""Health, self-test and audit read tools."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from hs4_mcp.app import get_app_context
from hs4_mcp.audit.models import DEFAULT_QUERY_LIMIT, AuditQuery
from hs4_mcp.errors import as_hs4_error
from hs4_mcp.hs4.normalizer import (
    normalize_cameras_payload,
    normalize_events_payload,
    normalize_status_payload,
)
from hs4_mcp.mcp_runtime import ToolResult, ToolSpec
from hs4_mcp.tools._schemas import AUDIT_QUERY_SCHEMA, HEALTH_SCHEMA, SELFTEST_SCHEMA
from hs4_mcp.tools.base import audited_read, guarded_handler
from hs4_mcp.utils.time import utc_now_iso


async def _health(payload: dict[str, Any]) -> ToolResult:
    ctx = get_app_context()

    async def read() -> dict[str, Any]:
        version, status_payload = await asyncio.gather(
            ctx.client.get_version(),
            ctx.client.get_status(compress=True, everything=False),
        )
        snapshot = normalize_status_payload(status_payload)
        return {
            "hs4Version": version,
            "hs4BaseUrl": ctx.client.base_url,
            "safeMode": ctx.policy_engine.config.safe_mode,
            "transport": ctx.settings.server.transport_mode,
            "devicesDiscovered": len(snapshot.devices),
            "checkedAt": utc_now_iso(),
        }

    return await audited_read(ctx.audit, "hs4.health.get", "read_health", {}, read)


async def _run_check(
    name: str, read_check: Callable[[], Awaitable[dict[str, Any]]], *, failure: str = "fail"
) -> dict[str, Any]:
    try:
        details = await read_check()
    except Exception as exc:
        mapped = as_hs4_error(exc)
        return {"check": name, "status": failure, "code": mapped.code, "message": mapped.message}
    return {"check": name, "status": "pass", **details}


async def _selftest(payload: dict[str, Any]) -> ToolResult:
    ctx = get_app_context()

    async def version() -> dict[str, Any]:
        return {"value": await ctx.client.get_version()}

    async def devices() -> dict[str, Any]:
        status_payload = await ctx.client.get_status(compress=True, everything=False)
        return {"count": len(normalize_status_payload(status_payload).devices)}

    async def events() -> dict[str, Any]:
        return {"count": len(normalize_events_payload(await ctx.client.get_events()))}

    async def cameras() -> dict[str, Any]:
        return {"count": len(normalize_cameras_payload(await ctx.client.get_cameras()))}

    async def change_tokens() -> dict[str, Any]:
        await ctx.changes.init()
        return {"purgedExpired": ctx.changes.purge_expired()}

    async def read() -> dict[str, Any]:
        # Cameras are optional on many hubs, so a failed read only warns.
        checks = [
            await _run_check("hs4_version", version),
            await _run_check("devices_read", devices),
            await _run_check("events_read", events),
            await _run_check("cameras_read", cameras, failure="warn"),
            await _run_check("change_token_store", change_tokens),
        ]
        fail_count = sum(1 for check in checks if check["status"] == "fail")
        warn_count = sum(1 for check in checks if check["status"] == "warn")
        return {
            "status": "fail" if fail_count else "warn" if warn_count else "pass",
            "failCount": fail_count,
            "warnCount": warn_count,
            "adminExecutionMode": ctx.router.mode,
            "checks": checks,
        }

    return await audited_read(ctx.audit, "hs4.selftest.run", "selftest_run", {}, read)


async def _audit_query(payload: dict[str, Any]) -> ToolResult:
    ctx = get_app_context()
    query = AuditQuery(
        tool=payload.get("tool"),
        action=payload.get("action"),
        result=payload.get("result"),
        operation_tier=payload.get("operationTier"),
        domain=payload.get("domain"),
        maintenance_window_id=payload.get("maintenanceWindowId"),
        change_ticket=payload.get("changeTicket"),
        rollback_result=payload.get("rollbackResult"),
        since=payload.get("since"),
        limit=payload.get("limit", DEFAULT_QUERY_LIMIT),
    )

    async def read() -> dict[str, Any]:
        entries = await ctx.audit.query(query)
        return {"entries": [entry.to_dict() for entry in entries]}

    return await audited_read(ctx.audit, "hs4.audit.query", "query_audit", dict(payload), read)


health_tool = ToolSpec(
    name="hs4.health.get",
    description="Check HS4 connectivity, auth status and basic runtime metrics.",
    input_schema=HEALTH_SCHEMA,
    handler=guarded_handler(HEALTH_SCHEMA, _health),
)

selftest_tool = ToolSpec(
    name="hs4.selftest.run",
    description="Run a read-only MCP/HS4 health and capability self-test matrix.",
    input_schema=SELFTEST_SCHEMA,
    handler=guarded_handler(SELFTEST_SCHEMA, _selftest),
)

audit_query_tool = ToolSpec(
    name="hs4.audit.query",
    description="Query audit log entries produced by MCP operations, newest first.",
    input_schema=AUDIT_QUERY_SCHEMA,
    handler=guarded_handler(AUDIT_QUERY_SCHEMA, _audit_query),
)

READ_TOOLS = (health_tool, selftest_tool, audit_query_tool)
