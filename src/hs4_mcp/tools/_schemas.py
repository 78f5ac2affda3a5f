"""JSON Schema definitions for the HS4 tools."""

from __future__ import annotations

from typing import Any

from hs4_mcp.admin.catalog import AdminAction
from hs4_mcp.audit.models import AUDIT_RESULTS, DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from hs4_mcp.policy.models import RISK_LEVELS

PAN_DIRECTIONS = (
    "upstart",
    "upstop",
    "downstart",
    "downstop",
    "leftstart",
    "leftstop",
    "rightstart",
    "rightstop",
)

GUARD_PROPERTIES: dict[str, Any] = {
    "confirm": {
        "type": "boolean",
        "description": "Must be true for mutating operations unless running dry-run.",
    },
    "intent": {
        "type": "string",
        "minLength": 3,
        "description": "High-level intent for this operation.",
    },
    "reason": {
        "type": "string",
        "minLength": 3,
        "description": "Reason/rationale for auditability.",
    },
    "dryRun": {
        "type": "boolean",
        "description": "If true, validates and simulates action without changing HS4.",
    },
}


def admin_guard_properties(domain: str) -> dict[str, Any]:
    return {
        **GUARD_PROPERTIES,
        "operationTier": {
            "type": "string",
            "enum": ["admin"],
            "default": "admin",
            "description": "Privilege tier for this mutation; admin tools always run as admin.",
        },
        "domain": {
            "type": "string",
            "const": domain,
            "description": f"Admin mutation domain; must be '{domain}'.",
        },
        "maintenanceWindowId": {
            "type": "string",
            "minLength": 1,
            "description": "Required for non-dry-run admin mutations.",
        },
        "changeTicket": {
            "type": "string",
            "minLength": 1,
            "description": "Required when policy enforces change-ticket gating.",
        },
        "riskLevel": {
            "type": "string",
            "enum": list(RISK_LEVELS),
            "default": "medium",
            "description": "Declared risk level for this mutation.",
        },
    }


def admin_schema(action: AdminAction) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {**action.properties, **admin_guard_properties(action.domain)},
        "required": list(action.required),
        "additionalProperties": False,
    }


HEALTH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {},
    "additionalProperties": False,
}

DEVICES_SET_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "ref": {"type": "integer", "description": "HS4 device reference."},
        "mode": {
            "type": "string",
            "enum": ["control_value", "set_status"],
            "default": "control_value",
        },
        "value": {"type": "number"},
        "statusText": {"type": "string"},
        "source": {"type": "string"},
        "verify": {"type": "boolean", "default": True},
        **GUARD_PROPERTIES,
    },
    "required": ["ref"],
    "additionalProperties": False,
}

EVENTS_RUN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "integer"},
        "group": {"type": "string"},
        "name": {"type": "string"},
        **GUARD_PROPERTIES,
    },
    "additionalProperties": False,
}

SCRIPTS_RUN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {"type": "string", "minLength": 1},
        **GUARD_PROPERTIES,
    },
    "required": ["command"],
    "additionalProperties": False,
}

PLUGIN_FUNCTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "plugin": {"type": "string", "minLength": 1},
        "functionName": {"type": "string", "minLength": 1},
        "instance": {"type": "string"},
        "params": {
            "type": "array",
            "items": {"type": ["string", "number", "boolean"]},
            "default": [],
            "description": "Positional P1..Pn parameters.",
        },
        **GUARD_PROPERTIES,
    },
    "required": ["plugin", "functionName"],
    "additionalProperties": False,
}

CAMERAS_PAN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "camId": {"type": "integer"},
        "direction": {"type": "string", "enum": list(PAN_DIRECTIONS)},
        **GUARD_PROPERTIES,
    },
    "required": ["camId", "direction"],
    "additionalProperties": False,
}

CHANGE_PREPARE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "toolName": {"type": "string", "minLength": 1},
        "args": {"type": "object", "default": {}},
        "summary": {"type": "object", "default": {}},
    },
    "required": ["toolName"],
    "additionalProperties": False,
}

CHANGE_COMMIT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"token": {"type": "string", "minLength": 1}},
    "required": ["token"],
    "additionalProperties": False,
}

CHANGE_LIST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "limit": {"type": "integer", "minimum": 1, "maximum": 1000, "default": 50},
    },
    "additionalProperties": False,
}

AUDIT_QUERY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "tool": {"type": "string"},
        "action": {"type": "string"},
        "result": {"type": "string", "enum": list(AUDIT_RESULTS)},
        "operationTier": {"type": "string", "enum": ["operator", "admin"]},
        "domain": {"type": "string"},
        "maintenanceWindowId": {"type": "string"},
        "changeTicket": {"type": "string"},
        "rollbackResult": {"type": "string"},
        "since": {"type": "string", "description": "ISO-8601 lower bound on timestamp."},
        "limit": {
            "type": "integer",
            "minimum": 1,
            "maximum": MAX_QUERY_LIMIT,
            "default": DEFAULT_QUERY_LIMIT,
        },
    },
    "additionalProperties": False,
}

SELFTEST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {},
    "additionalProperties": False,
}
