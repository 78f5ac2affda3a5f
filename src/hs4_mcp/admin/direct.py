"""Direct (native HS4 API) route for admin mutations.

Each supported ``domain.action`` has one extraction function that maps the
tool payload onto a client primitive. Payloads the native API cannot express
raise ``UnsupportedOnTargetError`` so the router can fall back to the adapter.
"""

from __future__ import annotations

import json
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from hs4_mcp.errors import BadRequestError, UnsupportedOnTargetError
from hs4_mcp.hs4.client import HS4Client
from hs4_mcp.utils.serialization import json_default


@dataclass(frozen=True)
class DirectDispatch:
    transport: str
    raw: Any


DirectHandler = Callable[[HS4Client, dict[str, Any], str], Awaitable[DirectDispatch]]


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _required_str(payload: dict[str, Any], key: str, operation: str) -> str:
    raw = payload.get(key)
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    if _is_number(raw):
        return _format_number(raw)
    raise BadRequestError(f"{operation} requires '{key}'.")


def _required_number(payload: dict[str, Any], key: str, operation: str) -> int | float:
    raw = payload.get(key)
    if _is_number(raw):
        return raw
    raise BadRequestError(f"{operation} requires numeric '{key}'.")


def _read_str(payload: dict[str, Any], key: str) -> str | None:
    raw = payload.get(key)
    return raw if isinstance(raw, str) and raw.strip() else None


def _read_number(payload: dict[str, Any], key: str) -> int | float | None:
    raw = payload.get(key)
    return raw if _is_number(raw) else None


def _read_bool(payload: dict[str, Any], key: str) -> bool | None:
    raw = payload.get(key)
    return raw if isinstance(raw, bool) else None


def _required_bool(payload: dict[str, Any], key: str, operation: str) -> bool:
    value = _read_bool(payload, key)
    if value is None:
        raise BadRequestError(f"{operation} requires '{key}'.")
    return value


def _settings_json(payload: dict[str, Any]) -> str | None:
    if "settings" not in payload or payload["settings"] is None:
        return None
    return json.dumps(payload["settings"], default=json_default)


def direct_unsupported(
    domain: str, action: str, reason: str, details: dict[str, Any] | None = None
) -> UnsupportedOnTargetError:
    return UnsupportedOnTargetError(
        f"Direct admin route unsupported for {domain}.{action}: {reason}",
        details={"domain": domain, "action": action, **(details or {})},
    )


async def _users_create(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    raw = await client.users_create(
        _required_str(payload, "username", op),
        password=_read_str(payload, "password"),
        role=_read_str(payload, "role"),
        enabled=_read_bool(payload, "enabled"),
        email=_read_str(payload, "email"),
    )
    return DirectDispatch("userscreate", raw)


async def _users_update(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    raw = await client.users_update(
        _required_str(payload, "userId", op),
        password=_read_str(payload, "password"),
        role=_read_str(payload, "role"),
        enabled=_read_bool(payload, "enabled"),
        email=_read_str(payload, "email"),
    )
    return DirectDispatch("usersupdate", raw)


async def _users_delete(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    if _read_bool(payload, "hardDelete") is True:
        raise direct_unsupported(
            "users", "delete", "hardDelete=true requires adapter path.", {"hardDelete": True}
        )
    raw = await client.users_delete(_required_str(payload, "userId", op))
    return DirectDispatch("usersdelete", raw)


async def _users_set_role(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    raw = await client.users_set_role(
        _required_str(payload, "userId", op), _required_str(payload, "role", op)
    )
    return DirectDispatch("userssetrole", raw)


async def _plugins_install(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    source = _read_str(payload, "source")
    if source:
        raise direct_unsupported(
            "plugins", "install", "source override is adapter-only.", {"source": source}
        )
    raw = await client.plugin_install(
        _required_str(payload, "pluginId", op), version=_read_str(payload, "version")
    )
    return DirectDispatch("pluginfunction:updater.installplugin", raw)


async def _plugins_update(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    raw = await client.plugin_update(
        _required_str(payload, "pluginId", op), version=_read_str(payload, "targetVersion")
    )
    return DirectDispatch("pluginfunction:updater.updateplugin", raw)


async def _plugins_remove(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    raw = await client.plugin_remove(_required_str(payload, "pluginId", op))
    return DirectDispatch("pluginfunction:updater.removeplugin", raw)


async def _plugins_set_enabled(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    enabled = _required_bool(payload, "enabled", op)
    raw = await client.plugin_set_enabled(_required_str(payload, "pluginId", op), enabled)
    return DirectDispatch("pluginfunction:updater.setpluginenabled", raw)


async def _plugins_restart(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    raw = await client.plugin_restart(
        _required_str(payload, "pluginId", op), instance=_read_str(payload, "instance")
    )
    return DirectDispatch("pluginfunction:updater.restartplugin", raw)


async def _interfaces_add(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    raw = await client.interface_add(
        _required_str(payload, "interfaceName", op),
        interface_type=_required_str(payload, "interfaceType", op),
        config=_settings_json(payload),
    )
    return DirectDispatch("interfaceadd", raw)


async def _interfaces_update(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.interface_update(
        _required_str(payload, "interfaceId", op),
        name=_read_str(payload, "interfaceName"),
        config=_settings_json(payload),
    )
    return DirectDispatch("interfaceupdate", raw)


async def _interfaces_remove(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.interface_remove(_required_str(payload, "interfaceId", op))
    return DirectDispatch("interfaceremove", raw)


async def _interfaces_restart(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.interface_restart(_required_str(payload, "interfaceId", op))
    return DirectDispatch("interfacerestart", raw)


async def _system_backup_start(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    if payload.get("includeMedia") is False:
        raise direct_unsupported(
            "system",
            "backup.start",
            "includeMedia=false requires adapter path.",
            {"includeMedia": False},
        )
    raw = await client.system_backup_start()
    return DirectDispatch("backup.html", raw)


async def _system_restore_start(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    if _read_bool(payload, "verifyOnly") is True:
        raise direct_unsupported(
            "system", "restore.start", "verifyOnly=true requires adapter path.", {"verifyOnly": True}
        )
    raw = await client.system_restore_start(backup_id=_required_str(payload, "backupId", op))
    return DirectDispatch("systemrestorestart", raw)


async def _system_service_restart(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.system_service_restart(_read_str(payload, "service"))
    return DirectDispatch("run_script_command:hs.RestartService", raw)


async def _system_shutdown(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    raw = await client.system_shutdown(_read_number(payload, "graceSeconds"))
    return DirectDispatch("run_script_command:hs.Shutdown", raw)


async def _system_config_set(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    value = payload.get("value")
    if not isinstance(value, (str, int, float, bool)):
        raise BadRequestError(f"{op} requires key/value.")
    raw = await client.system_config_set(_required_str(payload, "key", op), value)
    return DirectDispatch("systemconfigset", raw)


async def _cameras_config_create(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.camera_config_create(
        _required_str(payload, "name", op),
        _required_str(payload, "streamUrl", op),
        profile=_read_str(payload, "profile"),
    )
    return DirectDispatch("cameraconfigcreate", raw)


async def _cameras_config_update(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.camera_config_update(
        int(_required_number(payload, "camId", op)),
        name=_read_str(payload, "name"),
        source=_read_str(payload, "streamUrl"),
        profile=_read_str(payload, "profile"),
    )
    return DirectDispatch("cameraconfigupdate", raw)


async def _cameras_config_delete(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.camera_config_delete(int(_required_number(payload, "camId", op)))
    return DirectDispatch("cameraconfigdelete", raw)


async def _cameras_stream_profile_set(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.camera_stream_profile_set(
        int(_required_number(payload, "camId", op)), _required_str(payload, "profile", op)
    )
    return DirectDispatch("camerastreamprofileset", raw)


async def _cameras_recording_set(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    if payload.get("retentionDays") is not None:
        raise direct_unsupported(
            "cameras",
            "recording.set",
            "retentionDays requires adapter path.",
            {"retentionDays": payload["retentionDays"]},
        )
    enabled = _required_bool(payload, "enabled", op)
    raw = await client.camera_recording_set(int(_required_number(payload, "camId", op)), enabled)
    return DirectDispatch("camerarecordingset", raw)


async def _events_create(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    if payload.get("definition") is not None:
        raise direct_unsupported("events", "create", "definition payload requires adapter path.")
    raw = await client.events_create(
        _required_str(payload, "group", op), _required_str(payload, "name", op)
    )
    return DirectDispatch("eventscreate", raw)


async def _events_update(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    if payload.get("definition") is not None:
        raise direct_unsupported("events", "update", "definition payload requires adapter path.")
    event_id = _read_number(payload, "eventId")
    if event_id is None:
        raise direct_unsupported(
            "events",
            "update",
            "eventId is required for direct updates.",
            {"eventId": payload.get("eventId")},
        )
    raw = await client.events_update(
        int(event_id), group=_read_str(payload, "group"), name=_read_str(payload, "name")
    )
    return DirectDispatch("eventsupdate", raw)


async def _events_delete(client: HS4Client, payload: dict[str, Any], op: str) -> DirectDispatch:
    event_id = _read_number(payload, "eventId")
    if event_id is None:
        raise direct_unsupported(
            "events",
            "delete",
            "eventId is required for direct deletes.",
            {"eventId": payload.get("eventId")},
        )
    raw = await client.events_delete(int(event_id))
    return DirectDispatch("eventsdelete", raw)


async def _config_device_metadata_set(
    client: HS4Client, payload: dict[str, Any], op: str
) -> DirectDispatch:
    raw = await client.set_device_property(
        int(_required_number(payload, "ref", op)),
        _required_str(payload, "property", op),
        _required_str(payload, "value", op),
    )
    return DirectDispatch("setdeviceproperty", raw)


DIRECT_HANDLERS: dict[str, DirectHandler] = {
    "users.create": _users_create,
    "users.update": _users_update,
    "users.delete": _users_delete,
    "users.set_role": _users_set_role,
    "plugins.install": _plugins_install,
    "plugins.update": _plugins_update,
    "plugins.remove": _plugins_remove,
    "plugins.set_enabled": _plugins_set_enabled,
    "plugins.restart": _plugins_restart,
    "interfaces.add": _interfaces_add,
    "interfaces.update": _interfaces_update,
    "interfaces.remove": _interfaces_remove,
    "interfaces.restart": _interfaces_restart,
    "system.backup.start": _system_backup_start,
    "system.restore.start": _system_restore_start,
    "system.service.restart": _system_service_restart,
    "system.shutdown": _system_shutdown,
    "system.config.set": _system_config_set,
    "cameras.config.create": _cameras_config_create,
    "cameras.config.update": _cameras_config_update,
    "cameras.config.delete": _cameras_config_delete,
    "cameras.stream_profile.set": _cameras_stream_profile_set,
    "cameras.recording.set": _cameras_recording_set,
    "events.create": _events_create,
    "events.update": _events_update,
    "events.delete": _events_delete,
    "config.device_metadata.set": _config_device_metadata_set,
}

# Category management has no native endpoint; it always goes through the adapter.
_ADAPTER_ONLY = {
    "config.category.upsert": "category management currently routes through adapter.",
    "config.category.delete": "category management currently routes through adapter.",
}


async def execute_direct(
    client: HS4Client, domain: str, action: str, payload: Any
) -> DirectDispatch:
    operation = f"{domain}.{action}"
    if not isinstance(payload, dict):
        raise BadRequestError(f"{operation} must be an object payload.")
    handler = DIRECT_HANDLERS.get(operation)
    if handler is None:
        reason = _ADAPTER_ONLY.get(operation, "operation has no direct client mapping.")
        raise direct_unsupported(domain, action, reason)
    return await handler(client, payload, operation)
