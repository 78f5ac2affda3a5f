"""Async HTTP client for the HomeSeer HS4 JSON API."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Literal

import httpx

from hs4_mcp.config import HS4Settings
from hs4_mcp.errors import ErrorCode, HS4Error, UnsupportedOnTargetError
from hs4_mcp.utils.http import sanitize_url_for_log
from hs4_mcp.utils.masking import redact_sensitive_fields

logger = logging.getLogger(__name__)

_ACCEPT = "application/json,text/plain,*/*"

_OPTIONAL_ENDPOINT_UNSUPPORTED_HINTS = (
    "unknown request",
    "unknown action",
    "not supported",
    "unsupported",
    "does not exist",
    "not available",
    "method not found",
    "error, bad request",
)

_HS4_ERROR_MARKERS = ("error", "failed", "invalid", "bad request")

OptionalTransport = Literal["json", "pluginfunction", "runscript", "html_action"]
ScalarParam = str | int | float | bool


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def _query_params(params: Mapping[str, Any]) -> dict[str, str]:
    return {
        key: _format_param(value)
        for key, value in params.items()
        if value is not None and value != ""
    }


def _hs4_error_message(payload: Any) -> str | None:
    if isinstance(payload, str):
        candidate = payload
    elif isinstance(payload, dict):
        candidate = next(
            (
                payload[key]
                for key in ("Response", "response", "Message", "message")
                if payload.get(key) is not None
            ),
            None,
        )
        if not isinstance(candidate, str):
            return None
    else:
        return None
    lowered = candidate.lower()
    return candidate if any(marker in lowered for marker in _HS4_ERROR_MARKERS) else None


def escape_script_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _is_unsupported_signal(error: HS4Error) -> bool:
    if error.code == "UNSUPPORTED_ON_TARGET":
        return True
    if error.code == "BAD_REQUEST" and error.status_code == 404:
        return True
    if error.code not in ("HS4_ERROR", "BAD_REQUEST", "UNKNOWN"):
        return False
    # Last resort: some firmware only says so in the message text.
    lowered = error.message.lower()
    return any(hint in lowered for hint in _OPTIONAL_ENDPOINT_UNSUPPORTED_HINTS)


class HS4Client:
    """Thin async wrapper around the HS4 ``/JSON`` endpoint and script page.

    Reads are retried with linear backoff; mutations are sent exactly once.
    Admin primitives are "optional" endpoints: any signal that the target
    does not implement them is raised as ``UnsupportedOnTargetError``.
    """

    def __init__(
        self,
        settings: HS4Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            headers={"Accept": _ACCEPT},
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._settings.base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self._settings.user:
            params["user"] = self._settings.user
        if self._settings.password:
            params["pass"] = self._settings.password
        return params

    def _script_path(self) -> str:
        path = self._settings.script_page_path
        return path if path.startswith("/") else f"/{path}"

    async def _send(self, request: httpx.Request, *, idempotent: bool) -> httpx.Response:
        retries = self._settings.read_retries if idempotent else 0
        backoff = self._settings.read_retry_backoff_seconds
        last_error: httpx.RequestError | None = None

        for attempt in range(retries + 1):
            try:
                response = await self._client.send(request)
            except httpx.RequestError as exc:
                last_error = exc
                if attempt >= retries:
                    break
                logger.debug(
                    "HS4 request to %s failed (attempt %d): %s",
                    request.url.path,
                    attempt + 1,
                    exc,
                )
                await self._sleep(backoff * (attempt + 1))
                continue

            if idempotent and response.status_code >= 500 and attempt < retries:
                await response.aclose()
                await self._sleep(backoff * (attempt + 1))
                continue
            return response

        if isinstance(last_error, httpx.TimeoutException):
            raise HS4Error("TIMEOUT", f"Request timed out for {request.url.path}") from last_error
        raise HS4Error("NETWORK", f"Network failure for {request.url.path}") from last_error

    @staticmethod
    def _parse_response(response: httpx.Response) -> Any:
        raw_text = response.text
        if not response.is_success:
            code: ErrorCode = "AUTH" if response.status_code in (401, 403) else "BAD_REQUEST"
            raise HS4Error(
                code,
                f"HTTP {response.status_code} {response.reason_phrase}: {raw_text}",
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return json.loads(raw_text)
            except json.JSONDecodeError:
                return raw_text

        trimmed = raw_text.strip()
        if len(trimmed) > 1 and trimmed[0] in "{[":
            try:
                return json.loads(trimmed)
            except json.JSONDecodeError:
                return raw_text
        return raw_text

    async def _request_json(
        self,
        request_name: str,
        params: Mapping[str, Any] | None = None,
        *,
        mutating: bool = False,
    ) -> Any:
        params = dict(params or {})
        query = {"request": request_name, **_query_params(params), **self._auth_params()}
        request = self._client.build_request("GET", "/JSON", params=query)
        logger.debug(
            "HS4 JSON request %s url=%s params=%s",
            request_name,
            sanitize_url_for_log(request.url),
            redact_sensitive_fields(params),
        )

        response = await self._send(request, idempotent=not mutating)
        parsed = self._parse_response(response)
        message = _hs4_error_message(parsed)
        if message:
            raise HS4Error("HS4_ERROR", message)
        return parsed

    async def _post_form(self, path: str, form: Mapping[str, Any], *, label: str) -> Any:
        request = self._client.build_request(
            "POST",
            path,
            params=self._auth_params(),
            data=_query_params(form),
        )
        logger.debug(
            "HS4 %s request url=%s params=%s",
            label,
            sanitize_url_for_log(request.url),
            redact_sensitive_fields(dict(form)),
        )
        response = await self._send(request, idempotent=False)
        return self._parse_response(response)

    @staticmethod
    def _raise_if_unsupported(
        error: HS4Error,
        *,
        operation: str,
        transport: OptionalTransport,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
    ) -> None:
        if not _is_unsupported_signal(error):
            return
        raise UnsupportedOnTargetError(
            f"{operation} is unsupported on this HS4 target.",
            details={
                "transport": transport,
                "endpoint": endpoint,
                "params": redact_sensitive_fields(dict(params or {})),
                "sourceCode": error.code,
                "sourceStatusCode": error.status_code,
            },
        ) from error

    async def _request_optional_json(
        self, operation: str, request_name: str, params: Mapping[str, Any]
    ) -> Any:
        try:
            return await self._request_json(request_name, params, mutating=True)
        except HS4Error as exc:
            self._raise_if_unsupported(
                exc, operation=operation, transport="json", endpoint=request_name, params=params
            )
            raise

    async def _request_optional_plugin_function(
        self,
        operation: str,
        function_name: str,
        call_params: list[ScalarParam],
        *,
        plugin: str = "updater",
        instance: str | None = None,
    ) -> Any:
        try:
            return await self.plugin_function(
                plugin, function_name, instance=instance, params=call_params
            )
        except HS4Error as exc:
            self._raise_if_unsupported(
                exc,
                operation=operation,
                transport="pluginfunction",
                endpoint=f"{plugin}:{function_name}",
                params={"instance": instance, "args": call_params},
            )
            raise

    async def _request_optional_script(
        self, operation: str, command: str, params: Mapping[str, Any]
    ) -> Any:
        try:
            return await self.run_script_command(command)
        except HS4Error as exc:
            self._raise_if_unsupported(
                exc,
                operation=operation,
                transport="runscript",
                endpoint="run_script_command",
                params={**params, "scriptCommand": command},
            )
            raise

    async def _request_optional_html_action(
        self, operation: str, page_path: str, action: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        path = page_path if page_path.startswith("/") else f"/{page_path}"
        try:
            return await self._post_form(
                path, {"action": action, **(params or {})}, label="HTML action"
            )
        except HS4Error as exc:
            self._raise_if_unsupported(
                exc,
                operation=operation,
                transport="html_action",
                endpoint=f"{path}?action={action}",
                params=params,
            )
            raise

    # Reads

    async def get_version(self) -> str:
        payload = await self._request_json("hsversion")
        if isinstance(payload, str):
            return payload
        if isinstance(payload, dict):
            value = payload.get("Response")
            return "unknown" if value is None else str(value)
        return "unknown"

    async def get_status(
        self,
        *,
        ref: int | str | None = None,
        location1: str | None = None,
        location2: str | None = None,
        compress: bool | None = None,
        everything: bool | None = None,
    ) -> Any:
        return await self._request_json(
            "getstatus",
            {
                "ref": ref,
                "location1": location1,
                "location2": location2,
                "compress": compress,
                "everything": everything,
            },
        )

    async def get_events(self) -> Any:
        return await self._request_json("getevents")

    async def get_cameras(self) -> Any:
        return await self._request_json("getcameras")

    # Operator mutations

    async def control_device_by_value(self, ref: int, value: float) -> Any:
        params = {"ref": ref, "value": value}
        try:
            return await self._request_json("controldevicebyvalue", params, mutating=True)
        except HS4Error as exc:
            logger.warning(
                "controldevicebyvalue failed for ref %s, falling back to setdevicevaluebyref: %s",
                ref,
                exc,
            )
            return await self._request_json("setdevicevaluebyref", params, mutating=True)

    async def set_device_status(
        self,
        ref: int,
        *,
        value: float | None = None,
        string: str | None = None,
        source: str | None = None,
    ) -> Any:
        return await self._request_json(
            "setdevicestatus",
            {"ref": ref, "value": value, "string": string, "source": source},
            mutating=True,
        )

    async def run_event(
        self, *, event_id: int | None = None, group: str | None = None, name: str | None = None
    ) -> Any:
        return await self._request_json(
            "runevent", {"id": event_id, "group": group, "name": name}, mutating=True
        )

    async def plugin_function(
        self,
        plugin: str,
        function_name: str,
        *,
        instance: str | None = None,
        params: list[ScalarParam] | None = None,
    ) -> Any:
        query: dict[str, Any] = {"plugin": plugin, "function": function_name, "instance": instance}
        for index, value in enumerate(params or [], start=1):
            query[f"P{index}"] = value
        return await self._request_json("pluginfunction", query, mutating=True)

    async def pan_camera(self, cam_id: int, direction: str) -> Any:
        return await self._request_json(
            "pancamera", {"camid": cam_id, "direction": direction}, mutating=True
        )

    async def set_device_property(self, ref: int, prop: str, value: str) -> Any:
        return await self._request_json(
            "setdeviceproperty", {"ref": ref, "property": prop, "value": value}, mutating=True
        )

    async def run_script_command(self, command: str) -> dict[str, Any]:
        """Run an HS4 script command and pair up the flat response array."""
        parsed = await self._post_form(
            self._script_path(),
            {"action": "run_script_command", "scriptcommand": command},
            label="script",
        )
        if isinstance(parsed, list):
            items = parsed
        elif isinstance(parsed, str):
            try:
                decoded = json.loads(parsed)
            except json.JSONDecodeError:
                decoded = [parsed]
            items = decoded if isinstance(decoded, list) else [decoded]
        else:
            items = [parsed]

        commands = []
        for index in range(0, len(items), 2):
            key = items[index] if isinstance(items[index], str) else f"item_{index}"
            value = items[index + 1] if index + 1 < len(items) else None
            commands.append({"key": key, "value": value})
        return {"responseArray": items, "commands": commands}

    # Admin primitives (optional endpoints)

    async def users_create(
        self,
        username: str,
        *,
        password: str | None = None,
        role: str | None = None,
        enabled: bool | None = None,
        email: str | None = None,
    ) -> Any:
        return await self._request_optional_json(
            "usersCreate",
            "userscreate",
            {
                "username": username,
                "password": password,
                "role": role,
                "enabled": enabled,
                "email": email,
            },
        )

    async def users_update(
        self,
        username: str,
        *,
        password: str | None = None,
        role: str | None = None,
        enabled: bool | None = None,
        email: str | None = None,
    ) -> Any:
        return await self._request_optional_json(
            "usersUpdate",
            "usersupdate",
            {
                "username": username,
                "password": password,
                "role": role,
                "enabled": enabled,
                "email": email,
            },
        )

    async def users_delete(self, username: str) -> Any:
        return await self._request_optional_json(
            "usersDelete", "usersdelete", {"username": username}
        )

    async def users_set_role(self, username: str, role: str) -> Any:
        return await self._request_optional_json(
            "usersSetRole", "userssetrole", {"username": username, "role": role}
        )

    async def plugin_install(self, plugin_id: str, *, version: str | None = None) -> Any:
        params: list[ScalarParam] = [plugin_id] + ([version] if version else [])
        return await self._request_optional_plugin_function(
            "pluginInstall", "InstallPlugin", params
        )

    async def plugin_update(self, plugin_id: str, *, version: str | None = None) -> Any:
        params: list[ScalarParam] = [plugin_id] + ([version] if version else [])
        return await self._request_optional_plugin_function(
            "pluginUpdate", "UpdatePlugin", params
        )

    async def plugin_remove(self, plugin_id: str) -> Any:
        return await self._request_optional_plugin_function(
            "pluginRemove", "RemovePlugin", [plugin_id]
        )

    async def plugin_set_enabled(self, plugin_id: str, enabled: bool) -> Any:
        return await self._request_optional_plugin_function(
            "pluginSetEnabled", "SetPluginEnabled", [plugin_id, enabled]
        )

    async def plugin_restart(self, plugin_id: str, *, instance: str | None = None) -> Any:
        return await self._request_optional_plugin_function(
            "pluginRestart", "RestartPlugin", [plugin_id], instance=instance
        )

    async def interface_add(
        self,
        name: str,
        *,
        interface_type: str | None = None,
        address: str | None = None,
        enabled: bool | None = None,
        config: str | None = None,
    ) -> Any:
        return await self._request_optional_json(
            "interfaceAdd",
            "interfaceadd",
            {
                "name": name,
                "type": interface_type,
                "address": address,
                "enabled": enabled,
                "config": config,
            },
        )

    async def interface_update(
        self,
        interface_id: str,
        *,
        name: str | None = None,
        enabled: bool | None = None,
        config: str | None = None,
    ) -> Any:
        return await self._request_optional_json(
            "interfaceUpdate",
            "interfaceupdate",
            {"id": interface_id, "name": name, "enabled": enabled, "config": config},
        )

    async def interface_remove(self, interface_id: str) -> Any:
        return await self._request_optional_json(
            "interfaceRemove", "interfaceremove", {"id": interface_id}
        )

    async def interface_restart(self, interface_id: str) -> Any:
        return await self._request_optional_json(
            "interfaceRestart", "interfacerestart", {"id": interface_id}
        )

    async def system_backup_start(self) -> Any:
        return await self._request_optional_html_action(
            "systemBackupStart", "/backup.html", "backup"
        )

    async def system_restore_start(
        self, *, backup_id: str | None = None, source_path: str | None = None
    ) -> Any:
        return await self._request_optional_json(
            "systemRestoreStart",
            "systemrestorestart",
            {"backupid": backup_id, "sourcepath": source_path},
        )

    async def system_service_restart(self, service: str | None = None) -> Any:
        command = (
            f'hs.RestartService("{escape_script_string(service)}")'
            if service
            else "hs.RestartService()"
        )
        return await self._request_optional_script(
            "systemServiceRestart", command, {"service": service}
        )

    async def system_shutdown(self, delay_seconds: float | None = None) -> Any:
        delay = 0
        if isinstance(delay_seconds, (int, float)) and math.isfinite(delay_seconds):
            delay = max(0, math.floor(delay_seconds))
        return await self._request_optional_script(
            "systemShutdown", f"hs.Shutdown({delay})", {"delaySeconds": delay}
        )

    async def system_config_set(self, key: str, value: ScalarParam) -> Any:
        return await self._request_optional_json(
            "systemConfigSet", "systemconfigset", {"key": key, "value": value}
        )

    async def camera_config_create(
        self,
        name: str,
        source: str,
        *,
        profile: str | None = None,
        recording: bool | None = None,
    ) -> Any:
        return await self._request_optional_json(
            "cameraConfigCreate",
            "cameraconfigcreate",
            {"name": name, "source": source, "profile": profile, "recording": recording},
        )

    async def camera_config_update(
        self,
        cam_id: int,
        *,
        name: str | None = None,
        source: str | None = None,
        profile: str | None = None,
        recording: bool | None = None,
    ) -> Any:
        return await self._request_optional_json(
            "cameraConfigUpdate",
            "cameraconfigupdate",
            {
                "camid": cam_id,
                "name": name,
                "source": source,
                "profile": profile,
                "recording": recording,
            },
        )

    async def camera_config_delete(self, cam_id: int) -> Any:
        return await self._request_optional_json(
            "cameraConfigDelete", "cameraconfigdelete", {"camid": cam_id}
        )

    async def camera_stream_profile_set(self, cam_id: int, profile: str) -> Any:
        return await self._request_optional_json(
            "cameraStreamProfileSet",
            "camerastreamprofileset",
            {"camid": cam_id, "profile": profile},
        )

    async def camera_recording_set(self, cam_id: int, enabled: bool) -> Any:
        return await self._request_optional_json(
            "cameraRecordingSet",
            "camerarecordingset",
            {"camid": cam_id, "enabled": enabled},
        )

    async def events_create(
        self,
        group: str,
        name: str,
        *,
        trigger: str | None = None,
        action: str | None = None,
    ) -> Any:
        return await self._request_optional_json(
            "eventsCreate",
            "eventscreate",
            {"group": group, "name": name, "trigger": trigger, "action": action},
        )

    async def events_update(
        self,
        event_id: int,
        *,
        group: str | None = None,
        name: str | None = None,
        trigger: str | None = None,
        action: str | None = None,
    ) -> Any:
        return await self._request_optional_json(
            "eventsUpdate",
            "eventsupdate",
            {"id": event_id, "group": group, "name": name, "trigger": trigger, "action": action},
        )

    async def events_delete(self, event_id: int) -> Any:
        return await self._request_optional_json(
            "eventsDelete", "eventsdelete", {"id": event_id}
        )
