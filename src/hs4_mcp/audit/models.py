"""Data models for audit records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

AuditResult = Literal["allowed", "blocked", "success", "error", "dry_run"]

AUDIT_RESULTS: tuple[AuditResult, ...] = ("allowed", "blocked", "success", "error", "dry_run")

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 10_000


@dataclass
class AuditEntry:
    tool: str
    action: str
    result: AuditResult
    dry_run: bool = False
    operation_tier: str | None = None
    domain: str | None = None
    maintenance_window_id: str | None = None
    change_ticket: str | None = None
    before: Any = None
    after: Any = None
    diff: Any = None
    rollback_attempted: bool | None = None
    rollback_result: str | None = None
    duration_ms: int | None = None
    error_code: str | None = None
    message: str | None = None
    target: dict[str, Any] | None = None
    details: Any = None
    id: str | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "tool": self.tool,
            "action": self.action,
            "result": self.result,
            "dryRun": self.dry_run,
        }
        optional = {
            "operationTier": self.operation_tier,
            "domain": self.domain,
            "maintenanceWindowId": self.maintenance_window_id,
            "changeTicket": self.change_ticket,
            "before": self.before,
            "after": self.after,
            "diff": self.diff,
            "rollbackAttempted": self.rollback_attempted,
            "rollbackResult": self.rollback_result,
            "durationMs": self.duration_ms,
            "errorCode": self.error_code,
            "message": self.message,
            "target": self.target,
            "details": self.details,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AuditEntry":
        return cls(
            id=payload.get("id"),
            timestamp=payload.get("timestamp"),
            tool=payload["tool"],
            action=payload["action"],
            result=payload["result"],
            dry_run=bool(payload.get("dryRun", False)),
            operation_tier=payload.get("operationTier"),
            domain=payload.get("domain"),
            maintenance_window_id=payload.get("maintenanceWindowId"),
            change_ticket=payload.get("changeTicket"),
            before=payload.get("before"),
            after=payload.get("after"),
            diff=payload.get("diff"),
            rollback_attempted=payload.get("rollbackAttempted"),
            rollback_result=payload.get("rollbackResult"),
            duration_ms=payload.get("durationMs"),
            error_code=payload.get("errorCode"),
            message=payload.get("message"),
            target=payload.get("target"),
            details=payload.get("details"),
        )


@dataclass
class AuditQuery:
    tool: str | None = None
    action: str | None = None
    result: AuditResult | None = None
    operation_tier: str | None = None
    domain: str | None = None
    maintenance_window_id: str | None = None
    change_ticket: str | None = None
    rollback_result: str | None = None
    since: str | None = None
    limit: int | None = field(default=DEFAULT_QUERY_LIMIT)
