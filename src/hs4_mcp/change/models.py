"""Prepared change records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from hs4_mcp.utils.time import parse_timestamp, to_iso


@dataclass
class PreparedChangeRecord:
    token: str
    tool_name: str
    args: dict[str, Any]
    summary: dict[str, Any]
    created_at: datetime
    expires_at: datetime
    committed_at: datetime | None = None
    prepared_audit_ref: str | None = None
    commit_audit_ref: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def to_dict(self) -> dict[str, Any]:
        """Wire/log representation (one line of the change log)."""
        payload: dict[str, Any] = {
            "token": self.token,
            "toolName": self.tool_name,
            "args": self.args,
            "summary": self.summary,
            "createdAt": to_iso(self.created_at),
            "expiresAt": to_iso(self.expires_at),
            "committedAt": to_iso(self.committed_at) if self.committed_at else None,
        }
        if self.prepared_audit_ref is not None:
            payload["preparedAuditRef"] = self.prepared_audit_ref
        if self.commit_audit_ref is not None:
            payload["commitAuditRef"] = self.commit_audit_ref
        return payload

    @classmethod
    def from_dict(cls, payload: object) -> "PreparedChangeRecord | None":
        """Parse one log line's object; returns None when it is not a valid record."""
        if not isinstance(payload, dict):
            return None
        token = payload.get("token")
        tool_name = payload.get("toolName")
        args = payload.get("args")
        summary = payload.get("summary")
        if not isinstance(token, str) or not token or not isinstance(tool_name, str):
            return None
        if not isinstance(args, dict) or not isinstance(summary, dict):
            return None

        created_at = parse_timestamp(payload.get("createdAt"))
        expires_at = parse_timestamp(payload.get("expiresAt"))
        if created_at is None or expires_at is None:
            return None

        raw_committed = payload.get("committedAt")
        committed_at = None
        if raw_committed is not None:
            committed_at = parse_timestamp(raw_committed)
            if committed_at is None:
                return None

        prepared_ref = payload.get("preparedAuditRef")
        commit_ref = payload.get("commitAuditRef")
        if prepared_ref is not None and not isinstance(prepared_ref, str):
            return None
        if commit_ref is not None and not isinstance(commit_ref, str):
            return None

        return cls(
            token=token,
            tool_name=tool_name,
            args=args,
            summary=summary,
            created_at=created_at,
            expires_at=expires_at,
            committed_at=committed_at,
            prepared_audit_ref=prepared_ref,
            commit_audit_ref=commit_ref,
        )
