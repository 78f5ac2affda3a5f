from __future__ import annotations

import httpx
import pytest

from conftest import FakeHS4, form_of
from hs4_mcp.admin.capability import CapabilityCache
from hs4_mcp.admin.router import AdminExecutionRouter
from hs4_mcp.errors import UnsupportedOnTargetError
from hs4_mcp.hs4.client import HS4Client

ADAPTER = "/runscript.html:run_script_command"


def _unsupported(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, text="Not Found")


@pytest.mark.asyncio
async def test_adapter_mode_runs_script_command(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    router = AdminExecutionRouter(hs4_client, mode="adapter")

    result = await router.execute("users", "create", {"username": "bob"})

    assert fake_hs4.calls("userscreate") == []
    command = form_of(fake_hs4.calls(ADAPTER)[0])["scriptcommand"]
    assert command == 'mcp_admin.users.create {"username": "bob"}'
    assert result.result == "applied"
    assert result.steps[0]["route"] == "adapter"
    assert result.steps[0]["transport"] == "runScriptCommand"
    assert result.rollback == "available"
    assert result.data["command"] == command


@pytest.mark.asyncio
async def test_adapter_envelope_overrides_defaults(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    fake_hs4.on(
        ADAPTER,
        lambda request: httpx.Response(200, json={"Response": "ok"}),
    )
    router = AdminExecutionRouter(hs4_client, mode="adapter")

    result = await router.execute("system", "shutdown", {}, rollback_hint="not_needed")

    assert result.rollback == "not_needed"
    assert result.data["raw"]["commands"] == [{"key": "item_0", "value": None}]


@pytest.mark.asyncio
async def test_direct_mode(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    router = AdminExecutionRouter(hs4_client, mode="direct")

    result = await router.execute("users", "set_role", {"userId": "bob", "role": "admin"})

    assert fake_hs4.calls(ADAPTER) == []
    assert result.steps == [
        {"name": "set_role", "status": "applied", "route": "direct", "transport": "userssetrole"}
    ]
    assert "fallback" not in result.data


@pytest.mark.asyncio
async def test_direct_mode_falls_back_to_adapter(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    fake_hs4.on("userssetrole", _unsupported)
    router = AdminExecutionRouter(hs4_client, mode="direct")

    result = await router.execute("users", "set_role", {"userId": "bob", "role": "admin"})

    assert result.data["fallback"] == {
        "from": "direct",
        "to": "adapter",
        "reason": "unsupported_on_target",
    }
    assert result.steps[0]["fallbackFrom"] == "direct"
    assert len(fake_hs4.calls(ADAPTER)) == 1


@pytest.mark.asyncio
async def test_direct_mode_without_fallback_raises(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    fake_hs4.on("userssetrole", _unsupported)
    router = AdminExecutionRouter(hs4_client, mode="direct", direct_fallback=False)

    with pytest.raises(UnsupportedOnTargetError):
        await router.execute("users", "set_role", {"userId": "bob", "role": "admin"})
    assert fake_hs4.calls(ADAPTER) == []


def test_router_keeps_injected_empty_cache(hs4_client: HS4Client) -> None:
    cache = CapabilityCache(300)

    router = AdminExecutionRouter(hs4_client, mode="auto", capability_cache=cache)

    assert len(cache) == 0
    assert router.capability_cache is cache
    assert router.capability_cache.enabled
    assert AdminExecutionRouter(hs4_client).capability_cache.enabled is False


@pytest.mark.asyncio
async def test_auto_mode_caches_unsupported(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    fake_hs4.on("userssetrole", _unsupported)
    cache = CapabilityCache(300)
    router = AdminExecutionRouter(hs4_client, mode="auto", capability_cache=cache)
    payload = {"userId": "bob", "role": "admin"}

    first = await router.execute("users", "set_role", payload)
    second = await router.execute("users", "set_role", payload)

    assert cache.get("users", "set_role") is False
    assert len(fake_hs4.calls("userssetrole")) == 1
    assert len(fake_hs4.calls(ADAPTER)) == 2
    assert "fallback" in first.data
    assert "fallback" not in second.data


@pytest.mark.asyncio
async def test_auto_mode_records_supported(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    cache = CapabilityCache(300)
    router = AdminExecutionRouter(hs4_client, mode="auto", capability_cache=cache)

    await router.execute("plugins", "restart", {"pluginId": "zwave"})

    assert cache.get("plugins", "restart") is True
    assert len(fake_hs4.calls("pluginfunction")) == 1


@pytest.mark.asyncio
async def test_auto_mode_without_fallback_still_caches(
    hs4_client: HS4Client, fake_hs4: FakeHS4
) -> None:
    cache = CapabilityCache(300)
    router = AdminExecutionRouter(
        hs4_client, mode="auto", direct_fallback=False, capability_cache=cache
    )

    with pytest.raises(UnsupportedOnTargetError):
        await router.execute("config", "category.delete", {"category": "Lights"})
    assert cache.get("config", "category.delete") is False

    # Cached as unsupported: goes straight to the adapter.
    result = await router.execute("config", "category.delete", {"category": "Lights"})
    assert result.steps[0]["route"] == "adapter"


@pytest.mark.asyncio
async def test_snapshots_produce_diff(hs4_client: HS4Client) -> None:
    router = AdminExecutionRouter(hs4_client, mode="direct")
    states = iter([{"name": "Old", "ref": 12}, {"name": "New", "ref": 12}])

    async def snapshot():
        return next(states)

    result = await router.execute(
        "config",
        "device_metadata.set",
        {"ref": 12, "property": "name", "value": "New"},
        before=snapshot,
        after=snapshot,
    )

    assert result.before == {"name": "Old", "ref": 12}
    assert result.after == {"name": "New", "ref": 12}
    assert result.diff == {"changed": True, "changedKeys": ["name"]}
