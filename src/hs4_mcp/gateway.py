"""Guarded mutation pipeline: policy, audit, dry-run and two-phase change tokens."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any

from hs4_mcp.admin.catalog import AdminAction, find_admin_action
from hs4_mcp.admin.results import AdminExecutionResult, parse_adapter_result
from hs4_mcp.admin.router import AdminExecutionRouter
from hs4_mcp.audit.db import AuditStore
from hs4_mcp.audit.models import AuditEntry
from hs4_mcp.change.models import PreparedChangeRecord
from hs4_mcp.change.store import ChangeTokenStore
from hs4_mcp.devices.verifier import DeviceWriteVerifier
from hs4_mcp.envelopes import error_result, success_result
from hs4_mcp.errors import BadRequestError, as_hs4_error
from hs4_mcp.hs4.client import HS4Client
from hs4_mcp.hs4.normalizer import normalize_status_payload
from hs4_mcp.mcp_runtime import ToolResult
from hs4_mcp.policy.engine import PolicyEngine
from hs4_mcp.policy.models import ADMIN_DOMAINS, RISK_LEVELS, MutationRequest
from hs4_mcp.utils.time import to_iso

logger = logging.getLogger(__name__)

OPERATOR_MUTATION_TOOLS = (
    "hs4.devices.set",
    "hs4.events.run",
    "hs4.scripts.run",
    "hs4.plugins.function.call",
    "hs4.cameras.pan",
)

# Tool name -> immediate-path audit action.
OPERATOR_AUDIT_ACTIONS = {
    "hs4.devices.set": "set_device",
    "hs4.events.run": "run_event",
    "hs4.scripts.run": "run_script_command",
    "hs4.plugins.function.call": "plugin_function",
    "hs4.cameras.pan": "pan_camera",
}

ADMIN_GUARD_FIELDS = (
    "confirm",
    "intent",
    "reason",
    "dryRun",
    "operationTier",
    "domain",
    "maintenanceWindowId",
    "changeTicket",
    "riskLevel",
)

PREPARE_TOOL = "hs4.change.prepare"
COMMIT_TOOL = "hs4.change.commit"

Execute = Callable[[], Awaitable[Any]]


def _read_str(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _read_number(args: dict[str, Any], key: str) -> float | None:
    value = args.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _read_int(args: dict[str, Any], key: str) -> int | None:
    value = _read_number(args, key)
    return int(value) if value is not None and float(value).is_integer() else None


def _read_bool(args: dict[str, Any], key: str) -> bool | None:
    value = args.get(key)
    return value if isinstance(value, bool) else None


def _read_id(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return _read_str(args, key)


def parse_supported_tool(tool_name: str) -> str | None:
    """Return the normalized tool name if it can be prepared/committed."""
    normalized = (tool_name or "").strip()
    if normalized in OPERATOR_MUTATION_TOOLS:
        return normalized
    if find_admin_action(normalized) is not None:
        return normalized
    return None


def strip_admin_guard_fields(args: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in args.items() if key not in ADMIN_GUARD_FIELDS}


def build_mutation_target(tool_name: str, args: dict[str, Any]) -> dict[str, Any]:
    target: dict[str, Any] = {"toolName": tool_name}
    for key in ("ref", "camId", "id"):
        number = _read_number(args, key)
        if number is not None:
            target[key] = number
    for key in ("group", "name", "command", "plugin", "functionName"):
        text = _read_str(args, key)
        if text:
            target[key] = text

    admin = find_admin_action(tool_name)
    if admin is not None:
        target["domain"] = admin.domain
        target["action"] = admin.action
        target_ids = _admin_target_ids(admin, args)
        if target_ids:
            target["targetIds"] = target_ids
    return target


def _admin_target_ids(admin: AdminAction, args: dict[str, Any]) -> list[str | int]:
    ids: list[str | int] = []
    for key in admin.target_keys:
        value = args.get(key)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (int, str)) and str(value).strip():
            ids.append(value)
    return ids


def build_policy_request(
    tool_name: str,
    args: dict[str, Any],
    *,
    action: str | None = None,
    force_dry_run: bool | None = None,
) -> MutationRequest:
    """Translate tool arguments into a policy request.

    ``force_dry_run`` overrides the caller's ``dryRun``: prepare evaluates with
    ``True``, commit with ``False``.
    """
    dry_run = force_dry_run if force_dry_run is not None else _read_bool(args, "dryRun") is True
    request = MutationRequest(
        tool=tool_name,
        action=action or f"prepare:{tool_name}",
        confirm=_read_bool(args, "confirm"),
        intent=_read_str(args, "intent"),
        reason=_read_str(args, "reason"),
        dry_run=dry_run,
    )

    if tool_name == "hs4.devices.set":
        ref = _read_int(args, "ref")
        request.target_refs = [ref] if ref is not None else []
    elif tool_name == "hs4.events.run":
        event_id = _read_int(args, "id")
        request.event_ids = [event_id] if event_id is not None else []
    elif tool_name == "hs4.scripts.run":
        request.script_command = _read_str(args, "command")
    elif tool_name == "hs4.plugins.function.call":
        plugin = _read_str(args, "plugin")
        function_name = _read_str(args, "functionName")
        if plugin and function_name:
            request.plugin_function = f"{plugin}:{function_name}".lower()
    elif tool_name == "hs4.cameras.pan":
        cam_id = _read_int(args, "camId")
        request.camera_ids = [cam_id] if cam_id is not None else []
    else:
        admin = find_admin_action(tool_name)
        if admin is not None:
            _apply_admin_fields(request, admin, args, action)
    return request


def _apply_admin_fields(
    request: MutationRequest, admin: AdminAction, args: dict[str, Any], action: str | None
) -> None:
    request.action = action or f"prepare:{admin.action}"
    # Admin tools always run under the admin tier so the admin gates cannot be skipped.
    request.operation_tier = "admin"
    request.domain = admin.domain
    request.maintenance_window_id = _read_str(args, "maintenanceWindowId")
    request.change_ticket = _read_str(args, "changeTicket")
    risk_level = _read_str(args, "riskLevel")
    request.risk_level = risk_level if risk_level in RISK_LEVELS else "medium"  # type: ignore[assignment]
    request.target_ids = _admin_target_ids(admin, args)

    user_id = _read_id(args, "userId") or _read_str(args, "username")
    plugin_id = _read_id(args, "pluginId")
    interface_id = _read_id(args, "interfaceId")
    category = _read_str(args, "category")
    request.user_ids = [user_id] if user_id else []
    request.plugin_ids = [plugin_id] if plugin_id else []
    request.interface_ids = [interface_id] if interface_id else []
    request.category_ids = [category] if category else []

    cam_id = _read_int(args, "camId")
    request.camera_ids = [cam_id] if cam_id is not None else []
    event_id = _read_int(args, "eventId")
    request.event_ids = [event_id] if event_id is not None else []
    ref = _read_int(args, "ref")
    request.target_refs = [ref] if ref is not None else []


def _admin_guard(request: MutationRequest) -> dict[str, Any]:
    return {
        "operationTier": request.operation_tier or "operator",
        "domain": request.domain if request.domain in ADMIN_DOMAINS else None,
        "maintenanceWindowId": request.maintenance_window_id,
        "changeTicket": request.change_ticket,
        "riskLevel": request.risk_level or "medium",
    }


class MutationGateway:
    """Single entry point for every state-changing tool call.

    Each call is evaluated by the policy engine, optionally short-circuited as a
    dry run, executed, and recorded in the audit store with its outcome.
    """

    def __init__(
        self,
        *,
        policy: PolicyEngine,
        client: HS4Client,
        changes: ChangeTokenStore,
        audit: AuditStore,
        router: AdminExecutionRouter,
        verifier: DeviceWriteVerifier,
    ) -> None:
        self._policy = policy
        self._client = client
        self._changes = changes
        self._audit = audit
        self._router = router
        self._verifier = verifier
        self._committing: set[str] = set()

    @property
    def changes(self) -> ChangeTokenStore:
        return self._changes

    @property
    def audit(self) -> AuditStore:
        return self._audit

    async def run_tool(self, tool_name: str, args: dict[str, Any]) -> ToolResult:
        """Immediate (single-phase) path for a mutating tool."""
        admin = find_admin_action(tool_name)
        if admin is not None:
            action = admin.audit_action
            payload = strip_admin_guard_fields(args)

            async def execute() -> Any:
                return await self._execute_admin(admin, payload)

        elif tool_name in OPERATOR_MUTATION_TOOLS:
            action = OPERATOR_AUDIT_ACTIONS[tool_name]

            async def execute() -> Any:
                return await self._execute_operator(tool_name, args)

        else:
            return error_result("BAD_REQUEST", f"Unsupported mutating tool: {tool_name}")

        return await self.guarded_mutation(
            tool=tool_name,
            action=action,
            args=args,
            policy_request=build_policy_request(tool_name, args, action=action),
            execute=execute,
            target=build_mutation_target(tool_name, args),
            admin=admin,
        )

    async def guarded_mutation(
        self,
        *,
        tool: str,
        action: str,
        args: dict[str, Any],
        policy_request: MutationRequest,
        execute: Execute,
        target: dict[str, Any],
        admin: AdminAction | None = None,
    ) -> ToolResult:
        started = time.monotonic()
        decision = self._policy.evaluate_mutation(policy_request)
        reasons = list(decision.reasons)
        effective_dry_run = decision.effective_dry_run
        guard = _admin_guard(policy_request)
        precheck: list[dict[str, Any]] = []

        if admin is not None:
            precheck.append(
                {
                    "check": "policy",
                    "status": "pass" if decision.allowed else "fail",
                    "reasons": list(decision.reasons),
                    "effectiveDryRun": effective_dry_run,
                }
            )
            window_required = not effective_dry_run
            window_ok = not window_required or bool(guard["maintenanceWindowId"])
            precheck.append(
                {
                    "check": "maintenance_window",
                    "status": "pass" if window_ok else "fail",
                    "required": window_required,
                    "maintenanceWindowId": guard["maintenanceWindowId"],
                }
            )
            if not window_ok:
                reasons.append("Admin mutations require maintenanceWindowId when dryRun=false.")

            ticket_required = (
                self._policy.config.admin.require_change_ticket and not effective_dry_run
            )
            ticket_ok = not ticket_required or bool(guard["changeTicket"])
            precheck.append(
                {
                    "check": "change_ticket",
                    "status": "pass" if ticket_ok else "fail",
                    "required": ticket_required,
                    "changeTicket": guard["changeTicket"],
                }
            )
            if not ticket_ok:
                reasons.append("Admin mutations require changeTicket by policy.")

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        def admin_entry(**kwargs: Any) -> AuditEntry:
            return AuditEntry(
                tool=tool,
                action=action,
                operation_tier=guard["operationTier"],
                domain=guard["domain"],
                maintenance_window_id=guard["maintenanceWindowId"],
                change_ticket=guard["changeTicket"],
                target=target,
                duration_ms=elapsed_ms(),
                **kwargs,
            )

        if reasons or not decision.allowed:
            logger.info("Mutation %s blocked by policy: %s", tool, " ".join(reasons))
            if admin is None:
                await self._audit.record(
                    AuditEntry(
                        tool=tool,
                        action=action,
                        result="blocked",
                        dry_run=effective_dry_run,
                        duration_ms=elapsed_ms(),
                        error_code="POLICY_DENY",
                        message=" ".join(reasons),
                        target=target,
                        details={"reasons": reasons},
                    )
                )
                return error_result("POLICY_DENY", "Mutation blocked by policy.", {"reasons": reasons})

            envelope = {
                "result": "failed",
                "precheck": precheck,
                "steps": [{"name": action, "status": "blocked", "reason": "policy_deny"}],
                "rollback": "not_needed",
                **guard,
            }
            entry = await self._audit.record(
                admin_entry(
                    result="blocked",
                    dry_run=effective_dry_run,
                    rollback_result="not_needed",
                    error_code="POLICY_DENY",
                    message=" ".join(reasons),
                    details={"reasons": reasons, "riskLevel": guard["riskLevel"]},
                )
            )
            return error_result(
                "POLICY_DENY",
                "Mutation blocked by policy.",
                {"reasons": reasons, "envelope": {**envelope, "auditRef": entry.id}},
            )

        policy_view = {"reasons": list(decision.reasons), "normalized": decision.normalized.to_dict()}

        if effective_dry_run:
            if admin is not None:
                envelope = {
                    "result": "planned",
                    "precheck": precheck,
                    "steps": [{"name": action, "status": "planned"}],
                    "rollback": "not_needed",
                    **guard,
                    "target": target,
                    "policy": policy_view,
                }
                entry = await self._audit.record(
                    admin_entry(
                        result="dry_run",
                        dry_run=True,
                        rollback_result="not_needed",
                        details={"riskLevel": guard["riskLevel"]},
                    )
                )
                return success_result({**envelope, "auditRef": entry.id})

            dry_run_data = {
                "dryRun": True,
                "action": action,
                "target": target,
                "policy": policy_view,
            }
            await self._audit.record(
                AuditEntry(
                    tool=tool,
                    action=action,
                    result="dry_run",
                    dry_run=True,
                    duration_ms=elapsed_ms(),
                    target=target,
                    details=dry_run_data,
                )
            )
            return success_result(dry_run_data)

        try:
            data = await execute()
        except Exception as exc:
            mapped = as_hs4_error(exc)
            logger.warning("Mutation %s failed: %s %s", tool, mapped.code, mapped.message)
            if admin is None:
                await self._audit.record(
                    AuditEntry(
                        tool=tool,
                        action=action,
                        result="error",
                        dry_run=False,
                        duration_ms=elapsed_ms(),
                        error_code=mapped.code,
                        message=mapped.message,
                        target=target,
                        details={"intent": policy_request.intent, "reason": policy_request.reason},
                    )
                )
                return error_result(mapped.code, mapped.message, mapped.details)

            entry = await self._audit.record(
                admin_entry(
                    result="error",
                    dry_run=False,
                    rollback_result="available",
                    error_code=mapped.code,
                    message=mapped.message,
                    details={"riskLevel": guard["riskLevel"]},
                )
            )
            details = dict(mapped.details) if isinstance(mapped.details, dict) else {}
            details["envelope"] = {
                "result": "failed",
                "precheck": precheck,
                "steps": [
                    {
                        "name": action,
                        "status": "failed",
                        "errorCode": mapped.code,
                        "message": mapped.message,
                    }
                ],
                "rollback": "available",
                "auditRef": entry.id,
                **guard,
            }
            return error_result(mapped.code, mapped.message, details)

        if admin is None:
            await self._audit.record(
                AuditEntry(
                    tool=tool,
                    action=action,
                    result="success",
                    dry_run=False,
                    duration_ms=elapsed_ms(),
                    target=target,
                    details={"intent": policy_request.intent, "reason": policy_request.reason},
                )
            )
            return success_result(data)

        parsed = (
            data if isinstance(data, AdminExecutionResult) else parse_adapter_result(data, action)
        )
        entry = await self._audit.record(
            admin_entry(
                result="success",
                dry_run=False,
                before=parsed.before,
                after=parsed.after,
                diff=parsed.diff,
                rollback_result=parsed.rollback,
                details={
                    "intent": policy_request.intent,
                    "reason": policy_request.reason,
                    "riskLevel": guard["riskLevel"],
                    "result": parsed.result,
                },
            )
        )
        payload: dict[str, Any] = {
            "result": parsed.result,
            "precheck": precheck + list(parsed.precheck or []),
            "steps": parsed.steps,
            "rollback": parsed.rollback,
            "auditRef": entry.id,
            **guard,
        }
        for key, value in (
            ("before", parsed.before),
            ("after", parsed.after),
            ("diff", parsed.diff),
            ("data", parsed.data),
        ):
            if value is not None:
                payload[key] = value
        return success_result(payload)

    async def prepare(
        self, tool_name: str, args: dict[str, Any] | None = None, summary: dict[str, Any] | None = None
    ) -> ToolResult:
        resolved = parse_supported_tool(tool_name)
        if resolved is None:
            return error_result(
                "BAD_REQUEST",
                "toolName is not supported for two-phase prepare/commit.",
                {"toolName": tool_name},
            )
        await self._changes.init()
        args = dict(args or {})
        summary = {**(summary or {}), "requestedToolName": tool_name}

        target = build_mutation_target(resolved, args)
        decision = self._policy.evaluate_mutation(
            build_policy_request(resolved, args, force_dry_run=True)
        )
        reasons = list(decision.reasons)
        if not decision.allowed:
            await self._audit.record(
                AuditEntry(
                    tool=PREPARE_TOOL,
                    action="prepare_mutation",
                    result="blocked",
                    dry_run=True,
                    error_code="POLICY_DENY",
                    message=" ".join(reasons),
                    target=target,
                    details={"toolName": resolved, "policy": decision.normalized.to_dict()},
                )
            )
            return error_result(
                "POLICY_DENY",
                "Prepared change blocked by policy.",
                {"reasons": reasons, "toolName": resolved, "target": target},
            )

        prepared_audit = await self._audit.record(
            AuditEntry(
                tool=PREPARE_TOOL,
                action="prepare_mutation",
                result="dry_run",
                dry_run=True,
                target=target,
                details={
                    "toolName": resolved,
                    "summary": summary,
                    "policy": decision.normalized.to_dict(),
                },
            )
        )
        record = await self._changes.create(
            resolved, args, summary, prepared_audit_ref=prepared_audit.id
        )
        logger.info("Prepared change %s for %s", record.token, resolved)
        return success_result(
            {
                "prepared": True,
                "token": record.token,
                "toolName": resolved,
                "expiresAt": to_iso(record.expires_at),
                "summary": summary,
                "policy": {
                    "reasons": reasons,
                    "normalized": decision.normalized.to_dict(),
                },
                "target": target,
                "preparedAuditRef": prepared_audit.id,
            }
        )

    async def commit(self, token: str) -> ToolResult:
        token = (token or "").strip()
        await self._changes.init()
        record = self._changes.get(token)
        if record is None:
            return error_result(
                "NOT_FOUND", "Prepared change token was not found or has expired.", {"token": token}
            )
        if record.committed_at is not None:
            return error_result(
                "BAD_REQUEST",
                "Prepared change token has already been committed.",
                {"token": token, "committedAt": to_iso(record.committed_at)},
            )
        if token in self._committing:
            return error_result(
                "BAD_REQUEST",
                "Prepared change token is already being committed.",
                {"token": token},
            )

        # Claim the token before the first await.
        self._committing.add(token)
        try:
            return await self._commit_record(token, record)
        finally:
            self._committing.discard(token)

    async def _commit_record(self, token: str, record: PreparedChangeRecord) -> ToolResult:
        tool_name = parse_supported_tool(record.tool_name)
        if tool_name is None:
            return error_result(
                "BAD_REQUEST",
                "Prepared change references an unsupported tool.",
                {"toolName": record.tool_name},
            )

        commit_args = {**record.args, "dryRun": False}
        target = build_mutation_target(tool_name, commit_args)
        decision = self._policy.evaluate_mutation(
            build_policy_request(tool_name, commit_args, force_dry_run=False)
        )
        if not decision.allowed:
            await self._audit.record(
                AuditEntry(
                    tool=COMMIT_TOOL,
                    action="commit_prepared_mutation",
                    result="blocked",
                    dry_run=False,
                    error_code="POLICY_DENY",
                    message=" ".join(decision.reasons),
                    target=target,
                    details={
                        "token": token,
                        "toolName": tool_name,
                        "preparedAuditRef": record.prepared_audit_ref,
                    },
                )
            )
            return error_result(
                "POLICY_DENY",
                "Prepared change commit blocked by policy.",
                {"token": token, "toolName": tool_name, "reasons": list(decision.reasons)},
            )

        started = time.monotonic()
        audit_details = {
            "token": token,
            "toolName": tool_name,
            "preparedAuditRef": record.prepared_audit_ref,
            "summary": record.summary,
        }
        try:
            execution = await self.execute_prepared(tool_name, commit_args)
        except Exception as exc:
            mapped = as_hs4_error(exc)
            logger.warning("Commit of %s failed: %s %s", token, mapped.code, mapped.message)
            await self._audit.record(
                AuditEntry(
                    tool=COMMIT_TOOL,
                    action="commit_prepared_mutation",
                    result="error",
                    dry_run=False,
                    duration_ms=int((time.monotonic() - started) * 1000),
                    error_code=mapped.code,
                    message=mapped.message,
                    target=target,
                    details=audit_details,
                )
            )
            return error_result(mapped.code, mapped.message, mapped.details)

        commit_audit = await self._audit.record(
            AuditEntry(
                tool=COMMIT_TOOL,
                action="commit_prepared_mutation",
                result="success",
                dry_run=False,
                duration_ms=int((time.monotonic() - started) * 1000),
                target=target,
                details=audit_details,
            )
        )
        await self._changes.mark_committed(token, commit_audit.id)
        logger.info("Committed change %s for %s", token, tool_name)
        return success_result(
            {
                "committed": True,
                "token": token,
                "toolName": tool_name,
                "preparedAuditRef": record.prepared_audit_ref,
                "commitAuditRef": commit_audit.id,
                "summary": record.summary,
                "data": execution,
            }
        )

    async def list_changes(self, limit: int | None = None) -> ToolResult:
        await self._changes.init()
        records = self._changes.list(limit)
        return success_result(
            {"count": len(records), "items": [record.to_dict() for record in records]}
        )

    async def execute_prepared(self, tool_name: str, args: dict[str, Any]) -> dict[str, Any]:
        admin = find_admin_action(tool_name)
        if admin is not None:
            execution = await self._execute_admin(admin, strip_admin_guard_fields(args))
            return {
                "toolName": tool_name,
                "result": execution.result,
                "steps": execution.steps,
                "rollback": execution.rollback,
                "data": execution.data,
            }
        if tool_name in OPERATOR_MUTATION_TOOLS:
            return await self._execute_operator(tool_name, args)
        raise BadRequestError(f"Unsupported tool for prepared execution: {tool_name}")

    async def _execute_operator(self, tool_name: str, args: dict[str, Any]) -> dict[str, Any]:
        if tool_name == "hs4.devices.set":
            ref = _read_int(args, "ref")
            mode = _read_str(args, "mode") or "control_value"
            if ref is None:
                raise BadRequestError("ref is required for hs4.devices.set")
            if mode not in ("control_value", "set_status"):
                raise BadRequestError("mode must be one of: control_value, set_status")
            verify = _read_bool(args, "verify")
            execution = await self._verifier.execute_device_set(
                ref,
                mode=mode,  # type: ignore[arg-type]
                value=_read_number(args, "value"),
                status_text=_read_str(args, "statusText"),
                source=_read_str(args, "source"),
                verify=True if verify is None else verify,
            )
            return {"toolName": tool_name, **execution}

        if tool_name == "hs4.events.run":
            event_id = _read_int(args, "id")
            group = _read_str(args, "group")
            name = _read_str(args, "name")
            if event_id is None and not (group and name):
                raise BadRequestError("Provide id, or provide both group and name.")
            raw = await self._client.run_event(event_id=event_id, group=group, name=name)
            return {
                "invoked": True,
                "toolName": tool_name,
                "id": event_id,
                "group": group,
                "name": name,
                "raw": raw,
            }

        if tool_name == "hs4.scripts.run":
            command = _read_str(args, "command")
            if not command:
                raise BadRequestError("command is required for hs4.scripts.run")
            raw = await self._client.run_script_command(command)
            return {"invoked": True, "toolName": tool_name, "command": command, "raw": raw}

        if tool_name == "hs4.plugins.function.call":
            plugin = _read_str(args, "plugin")
            function_name = _read_str(args, "functionName")
            instance = _read_str(args, "instance")
            raw_params = args.get("params")
            params = (
                [item for item in raw_params if isinstance(item, (str, int, float, bool))]
                if isinstance(raw_params, list)
                else []
            )
            if not plugin or not function_name:
                raise BadRequestError(
                    "plugin and functionName are required for hs4.plugins.function.call"
                )
            raw = await self._client.plugin_function(
                plugin, function_name, instance=instance, params=params
            )
            return {
                "invoked": True,
                "toolName": tool_name,
                "plugin": plugin,
                "functionName": function_name,
                "instance": instance,
                "params": params,
                "raw": raw,
            }

        cam_id = _read_int(args, "camId")
        direction = _read_str(args, "direction")
        if cam_id is None or not direction:
            raise BadRequestError("camId and direction are required for hs4.cameras.pan")
        raw = await self._client.pan_camera(cam_id, direction)
        return {
            "applied": True,
            "toolName": tool_name,
            "camId": cam_id,
            "direction": direction,
            "raw": raw,
        }

    async def _execute_admin(
        self, admin: AdminAction, payload: dict[str, Any]
    ) -> AdminExecutionResult:
        if admin.event_selector:
            has_id = _read_number(payload, "eventId") is not None
            if not has_id and not (_read_str(payload, "group") and _read_str(payload, "name")):
                raise BadRequestError(
                    f"Provide eventId, or provide both group and name for {admin.event_selector}."
                )

        before = after = None
        if admin.device_snapshot:
            ref = _read_int(payload, "ref")
            if ref is not None:
                before = after = self._device_snapshot(ref)

        return await self._router.execute(
            admin.domain,
            admin.action,
            payload,
            rollback_hint=admin.rollback_hint,
            before=before,
            after=after,
        )

    def _device_snapshot(self, ref: int) -> Callable[[], Awaitable[Any]]:
        async def snapshot() -> Any:
            payload = await self._client.get_status(ref=ref, everything=True)
            device = normalize_status_payload(payload).find(ref)
            return device.to_dict() if device is not None else None

        return snapshot
