"""Admin execution result envelope and adapter response parsing."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from hs4_mcp.admin.catalog import (
    ADMIN_MUTATION_RESULTS,
    ROLLBACK_RESULTS,
    AdminMutationResult,
    RollbackResult,
)
from hs4_mcp.utils.serialization import json_default, values_equal

_ENVELOPE_KEYS = ("result", "precheck", "steps", "rollback", "before", "after", "diff", "data")


@dataclass
class AdminExecutionResult:
    result: AdminMutationResult
    precheck: list[dict[str, Any]] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)
    rollback: RollbackResult = "not_needed"
    before: Any = None
    after: Any = None
    diff: Any = None
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "result": self.result,
            "precheck": self.precheck,
            "steps": self.steps,
            "rollback": self.rollback,
        }
        for key in ("before", "after", "diff", "data"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


def build_adapter_command(domain: str, action: str, payload: dict[str, Any]) -> str:
    """Script command understood by the HS4-side admin adapter."""
    return f"mcp_admin.{domain}.{action} {json.dumps(payload, default=json_default)}"


def compute_object_diff(before: Any, after: Any) -> dict[str, Any] | None:
    """Shallow diff of two snapshots; None when equal or either side is missing."""
    if before is None or after is None:
        return None
    if not isinstance(before, dict) or not isinstance(after, dict):
        return None if values_equal(before, after) else {"changed": True}
    changed_keys = sorted(
        key
        for key in set(before) | set(after)
        if not values_equal(before.get(key), after.get(key))
    )
    if not changed_keys:
        return None
    return {"changed": True, "changedKeys": changed_keys}


def parse_adapter_result(raw: Any, action: str) -> AdminExecutionResult:
    """Interpret a free-form adapter response, defaulting to one applied step."""
    if not isinstance(raw, dict):
        return AdminExecutionResult(
            result="applied",
            steps=[{"name": action, "status": "applied"}],
            rollback="not_needed",
            data=raw,
        )

    raw_result = raw.get("result")
    result: AdminMutationResult = (
        raw_result if raw_result in ADMIN_MUTATION_RESULTS else "applied"
    )
    raw_precheck = raw.get("precheck")
    precheck = (
        [item for item in raw_precheck if isinstance(item, dict)]
        if isinstance(raw_precheck, list)
        else []
    )
    raw_steps = raw.get("steps")
    steps = (
        [item for item in raw_steps if isinstance(item, dict)]
        if isinstance(raw_steps, list)
        else []
    )
    if not steps:
        steps = [{"name": action, "status": result}]
    raw_rollback = raw.get("rollback")
    rollback: RollbackResult = (
        raw_rollback if raw_rollback in ROLLBACK_RESULTS else "not_needed"
    )

    if "data" in raw:
        data = raw["data"]
    else:
        passthrough = {key: value for key, value in raw.items() if key not in _ENVELOPE_KEYS}
        data = passthrough or None

    return AdminExecutionResult(
        result=result,
        precheck=precheck,
        steps=steps,
        rollback=rollback,
        before=raw.get("before"),
        after=raw.get("after"),
        diff=raw.get("diff"),
        data=data,
    )
