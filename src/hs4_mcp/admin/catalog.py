"""Catalog of admin mutation operations exposed as ``hs4.admin.<domain>.<action>`` tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from hs4_mcp.policy.models import ADMIN_DOMAINS, AdminDomain

AdminMutationResult = Literal["planned", "applied", "partial", "failed", "rolled_back"]
RollbackResult = Literal["not_needed", "available", "applied", "failed"]

ADMIN_MUTATION_RESULTS: tuple[AdminMutationResult, ...] = (
    "planned",
    "applied",
    "partial",
    "failed",
    "rolled_back",
)
ROLLBACK_RESULTS: tuple[RollbackResult, ...] = ("not_needed", "available", "applied", "failed")

# Read-only admin operations; never routed as mutations.
ADMIN_READ_ACTIONS = frozenset(
    {
        "users.list",
        "plugins.catalog.get",
        "interfaces.list",
        "interfaces.diagnostics",
        "system.config.get",
        "cameras.config.list",
        "config.categories.list",
    }
)

ADMIN_TOOL_PREFIX = "hs4.admin."

_STR = {"type": "string", "minLength": 1}
_OPT_STR = {"type": "string"}
_BOOL = {"type": "boolean"}
_INT = {"type": "integer"}
_ID = {"oneOf": [{"type": "integer"}, {"type": "string", "minLength": 1}]}
_OBJECT = {"type": "object"}


@dataclass(frozen=True)
class AdminAction:
    domain: AdminDomain
    action: str
    description: str
    properties: dict[str, Any] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    rollback_hint: RollbackResult | None = None
    # Payload keys reported as policy target ids, in order.
    target_keys: tuple[str, ...] = ()
    # Event update/delete accept eventId or group+name; value is the message noun.
    event_selector: str | None = None
    # Capture device state around the call for before/after/diff.
    device_snapshot: bool = False

    @property
    def key(self) -> str:
        return f"{self.domain}.{self.action}"

    @property
    def tool_name(self) -> str:
        return f"{ADMIN_TOOL_PREFIX}{self.key}"

    @property
    def audit_action(self) -> str:
        return "admin_" + self.key.replace(".", "_")


ADMIN_ACTIONS: tuple[AdminAction, ...] = (
    AdminAction(
        "users",
        "create",
        "Create a user account through admin controls.",
        {
            "username": _STR,
            "password": _STR,
            "displayName": _OPT_STR,
            "email": _OPT_STR,
            "role": _OPT_STR,
            "enabled": {**_BOOL, "default": True},
        },
        required=("username",),
        target_keys=("username",),
    ),
    AdminAction(
        "users",
        "update",
        "Update an existing user account through admin controls.",
        {
            "userId": _ID,
            "displayName": _OPT_STR,
            "email": _OPT_STR,
            "password": _STR,
            "enabled": _BOOL,
            "role": _OPT_STR,
        },
        required=("userId",),
        target_keys=("userId",),
    ),
    AdminAction(
        "users",
        "delete",
        "Delete a user account through admin controls.",
        {"userId": _ID, "hardDelete": {**_BOOL, "default": False}},
        required=("userId",),
        target_keys=("userId",),
    ),
    AdminAction(
        "users",
        "set_role",
        "Set the role for a user account through admin controls.",
        {"userId": _ID, "role": _STR},
        required=("userId", "role"),
        target_keys=("userId",),
    ),
    AdminAction(
        "plugins",
        "install",
        "Install a plugin through admin controls.",
        {"pluginId": _STR, "version": _OPT_STR, "source": _OPT_STR},
        required=("pluginId",),
        target_keys=("pluginId",),
    ),
    AdminAction(
        "plugins",
        "update",
        "Update a plugin through admin controls.",
        {"pluginId": _STR, "targetVersion": _OPT_STR},
        required=("pluginId",),
        target_keys=("pluginId",),
    ),
    AdminAction(
        "plugins",
        "remove",
        "Remove a plugin through admin controls.",
        {"pluginId": _STR},
        required=("pluginId",),
        target_keys=("pluginId",),
    ),
    AdminAction(
        "plugins",
        "set_enabled",
        "Enable or disable a plugin through admin controls.",
        {"pluginId": _STR, "enabled": _BOOL},
        required=("pluginId", "enabled"),
        target_keys=("pluginId",),
    ),
    AdminAction(
        "plugins",
        "restart",
        "Restart a plugin through admin controls.",
        {"pluginId": _STR, "instance": _OPT_STR},
        required=("pluginId",),
        target_keys=("pluginId", "instance"),
    ),
    AdminAction(
        "interfaces",
        "add",
        "Add an interface through admin controls.",
        {"interfaceType": _STR, "interfaceName": _STR, "settings": _OBJECT},
        required=("interfaceType", "interfaceName"),
        target_keys=("interfaceName",),
    ),
    AdminAction(
        "interfaces",
        "update",
        "Update an interface through admin controls.",
        {"interfaceId": _ID, "interfaceName": _OPT_STR, "settings": _OBJECT},
        required=("interfaceId",),
        target_keys=("interfaceId",),
    ),
    AdminAction(
        "interfaces",
        "remove",
        "Remove an interface through admin controls.",
        {"interfaceId": _ID},
        required=("interfaceId",),
        target_keys=("interfaceId",),
    ),
    AdminAction(
        "interfaces",
        "restart",
        "Restart an interface through admin controls.",
        {"interfaceId": _ID},
        required=("interfaceId",),
        target_keys=("interfaceId",),
    ),
    AdminAction(
        "system",
        "backup.start",
        "Start a system backup workflow through admin controls.",
        {"label": _OPT_STR, "includeMedia": {**_BOOL, "default": True}},
        rollback_hint="not_needed",
        target_keys=("label",),
    ),
    AdminAction(
        "system",
        "restore.start",
        "Start a system restore workflow through admin controls.",
        {"backupId": _STR, "verifyOnly": {**_BOOL, "default": False}},
        required=("backupId",),
        rollback_hint="available",
        target_keys=("backupId",),
    ),
    AdminAction(
        "system",
        "service.restart",
        "Restart an HS4 service through admin controls.",
        {"service": {**_STR, "default": "hs4"}},
        target_keys=("service",),
    ),
    AdminAction(
        "system",
        "shutdown",
        "Issue a controlled system shutdown through admin controls.",
        {"graceSeconds": {**_INT, "default": 30}},
        rollback_hint="not_needed",
    ),
    AdminAction(
        "system",
        "config.set",
        "Apply system-level config settings through admin controls.",
        {"key": _STR, "value": {"type": ["string", "number", "boolean"]}},
        required=("key", "value"),
        target_keys=("key",),
    ),
    AdminAction(
        "cameras",
        "config.create",
        "Create a camera config through admin controls.",
        {"name": _STR, "streamUrl": _STR, "profile": _OPT_STR},
        required=("name", "streamUrl"),
        target_keys=("name",),
    ),
    AdminAction(
        "cameras",
        "config.update",
        "Update a camera config through admin controls.",
        {"camId": _INT, "name": _OPT_STR, "streamUrl": _OPT_STR, "profile": _OPT_STR},
        required=("camId",),
        target_keys=("camId",),
    ),
    AdminAction(
        "cameras",
        "config.delete",
        "Delete a camera config through admin controls.",
        {"camId": _INT},
        required=("camId",),
        target_keys=("camId",),
    ),
    AdminAction(
        "cameras",
        "stream_profile.set",
        "Set a camera stream profile through admin controls.",
        {"camId": _INT, "profile": _STR},
        required=("camId", "profile"),
        target_keys=("camId", "profile"),
    ),
    AdminAction(
        "cameras",
        "recording.set",
        "Set a camera recording state through admin controls.",
        {"camId": _INT, "enabled": _BOOL, "retentionDays": _INT},
        required=("camId", "enabled"),
        target_keys=("camId",),
    ),
    AdminAction(
        "events",
        "create",
        "Create an event definition through admin controls.",
        {"group": _STR, "name": _STR, "definition": _OBJECT},
        required=("group", "name"),
        target_keys=("group", "name"),
    ),
    AdminAction(
        "events",
        "update",
        "Update an event definition through admin controls.",
        {"eventId": _INT, "group": _OPT_STR, "name": _OPT_STR, "definition": _OBJECT},
        target_keys=("eventId",),
        event_selector="updates",
    ),
    AdminAction(
        "events",
        "delete",
        "Delete an event definition through admin controls.",
        {"eventId": _INT, "group": _OPT_STR, "name": _OPT_STR},
        target_keys=("eventId",),
        event_selector="deletes",
    ),
    AdminAction(
        "config",
        "device_metadata.set",
        "Set a device metadata property through admin controls.",
        {"ref": _INT, "property": _STR, "value": _STR},
        required=("ref", "property", "value"),
        target_keys=("ref", "property"),
        device_snapshot=True,
    ),
    AdminAction(
        "config",
        "category.upsert",
        "Create or update a category through admin controls.",
        {"category": _STR, "rooms": {"type": "array", "items": _STR, "default": []}},
        required=("category",),
        target_keys=("category",),
    ),
    AdminAction(
        "config",
        "category.delete",
        "Delete a category through admin controls.",
        {"category": _STR},
        required=("category",),
        target_keys=("category",),
    ),
)

_BY_TOOL_NAME = {action.tool_name: action for action in ADMIN_ACTIONS}


def find_admin_action(tool_name: str) -> AdminAction | None:
    """Return the admin mutation behind a tool name, or None for reads/unknown names."""
    normalized = (tool_name or "").strip()
    if not normalized.startswith(ADMIN_TOOL_PREFIX):
        return None
    domain, _, action = normalized[len(ADMIN_TOOL_PREFIX) :].partition(".")
    if domain not in ADMIN_DOMAINS or not action or f"{domain}.{action}" in ADMIN_READ_ACTIONS:
        return None
    return _BY_TOOL_NAME.get(normalized)
