from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from hs4_mcp import app, config
from hs4_mcp.config import HS4Settings
from hs4_mcp.hs4.client import HS4Client

_ENV_PREFIXES = ("HS4_", "MCP_")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    import os

    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    # Keep a local policy.yaml out of unit tests.
    policy_file = tmp_path / "policy.yaml"
    policy_file.write_text("version: 1\n", encoding="utf-8")
    monkeypatch.setenv("HS4_POLICY_PATH", str(policy_file))
    config._load_settings_cached.cache_clear()
    app.get_app_context.cache_clear()
    yield
    config._load_settings_cached.cache_clear()
    app.get_app_context.cache_clear()


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


def device(ref: int, *, status: str = "", value: float | None = None, pairs=None, **extra) -> dict:
    record: dict[str, Any] = {"ref": ref, "name": f"Device {ref}", "status": status, "value": value}
    if pairs is not None:
        record["ControlPairs"] = [{"Label": label, "ControlValue": v} for label, v in pairs]
    record.update(extra)
    return record


def status_payload(*devices: dict) -> dict:
    return {"Name": "HomeSeer", "Version": "4.2.19.0", "Devices": list(devices)}


class FakeHS4:
    """Scriptable HS4 endpoint behind ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handlers: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.status_sequence: list[dict] = []

    def on(self, name: str, handler: Callable[[httpx.Request], httpx.Response] | Any) -> None:
        if callable(handler):
            self.handlers[name] = handler
        else:
            self.handlers[name] = lambda request, body=handler: httpx.Response(200, json=body)

    def calls(self, name: str) -> list[httpx.Request]:
        return [request for request in self.requests if _request_name(request) == name]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        name = _request_name(request)
        if name == "getstatus" and self.status_sequence and name not in self.handlers:
            body = self.status_sequence.pop(0) if len(self.status_sequence) > 1 else self.status_sequence[0]
            return httpx.Response(200, json=body)
        handler = self.handlers.get(name)
        if handler is None:
            return httpx.Response(200, json={"Response": "ok"})
        return handler(request)


def _request_name(request: httpx.Request) -> str:
    if request.url.path == "/JSON":
        return request.url.params.get("request", "")
    if request.method == "POST":
        form = dict(httpx.QueryParams(request.content.decode()))
        return f"{request.url.path}:{form.get('action', '')}"
    return request.url.path


def form_of(request: httpx.Request) -> dict[str, str]:
    return dict(httpx.QueryParams(request.content.decode()))


def json_text(response: httpx.Response) -> Any:
    return json.loads(response.text)


async def _no_sleep(_: float) -> None:
    return None


@pytest.fixture
def fake_hs4() -> FakeHS4:
    return FakeHS4()


@pytest.fixture
def hs4_client(fake_hs4: FakeHS4) -> HS4Client:
    settings = HS4Settings(base_url="http://hs4.local", user="admin", password="secret", read_retries=1)
    return HS4Client(settings, transport=httpx.MockTransport(fake_hs4), sleep=_no_sleep)


@pytest.fixture
def no_sleep():
    return _no_sleep


_CONTEXT_CONSUMERS = (
    "hs4_mcp.tools.admin",
    "hs4_mcp.tools.changes",
    "hs4_mcp.tools.health",
    "hs4_mcp.tools.mutations",
    "hs4_mcp.transport.http_server",
)


@pytest.fixture
def app_context(monkeypatch: pytest.MonkeyPatch, hs4_client: HS4Client):
    """Application context wired to the fake HS4 instead of a real hub."""
    import importlib

    ctx = app.build_app_context(config.load_settings(), client=hs4_client)
    for module_name in _CONTEXT_CONSUMERS:
        monkeypatch.setattr(importlib.import_module(module_name), "get_app_context", lambda: ctx)
    yield ctx
    ctx.audit.close()
