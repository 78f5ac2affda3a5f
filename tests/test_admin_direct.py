from __future__ import annotations

import pytest

from conftest import FakeHS4, form_of
from hs4_mcp.admin.direct import DIRECT_HANDLERS, execute_direct
from hs4_mcp.admin.catalog import ADMIN_ACTIONS
from hs4_mcp.errors import BadRequestError, UnsupportedOnTargetError
from hs4_mcp.hs4.client import HS4Client


def test_every_direct_handler_is_in_catalog() -> None:
    keys = {action.key for action in ADMIN_ACTIONS}
    assert set(DIRECT_HANDLERS) <= keys


@pytest.mark.asyncio
async def test_users_create(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    result = await execute_direct(
        hs4_client, "users", "create", {"username": "bob", "password": "pw", "enabled": True}
    )

    assert result.transport == "userscreate"
    params = fake_hs4.calls("userscreate")[0].url.params
    assert params["username"] == "bob"
    assert params["enabled"] == "true"


@pytest.mark.asyncio
async def test_missing_required_field(hs4_client: HS4Client) -> None:
    with pytest.raises(BadRequestError, match="users.set_role requires 'role'"):
        await execute_direct(hs4_client, "users", "set_role", {"userId": "bob"})


@pytest.mark.asyncio
async def test_non_object_payload(hs4_client: HS4Client) -> None:
    with pytest.raises(BadRequestError, match="must be an object payload"):
        await execute_direct(hs4_client, "users", "create", ["bob"])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("domain", "action", "payload"),
    [
        ("users", "delete", {"userId": "bob", "hardDelete": True}),
        ("plugins", "install", {"pluginId": "zwave", "source": "http://x"}),
        ("system", "backup.start", {"includeMedia": False}),
        ("system", "restore.start", {"backupId": "b1", "verifyOnly": True}),
        ("cameras", "recording.set", {"camId": 1, "enabled": True, "retentionDays": 3}),
        ("events", "create", {"group": "g", "name": "n", "definition": {}}),
        ("events", "delete", {"group": "g", "name": "n"}),
        ("config", "category.upsert", {"category": "Lights"}),
    ],
)
async def test_adapter_only_payloads(
    hs4_client: HS4Client, fake_hs4: FakeHS4, domain: str, action: str, payload: dict
) -> None:
    with pytest.raises(UnsupportedOnTargetError) as excinfo:
        await execute_direct(hs4_client, domain, action, payload)
    assert excinfo.value.details["domain"] == domain  # type: ignore[index]
    assert fake_hs4.requests == []


@pytest.mark.asyncio
async def test_system_backup_uses_html_action(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    result = await execute_direct(hs4_client, "system", "backup.start", {"label": "nightly"})

    assert result.transport == "backup.html"
    assert form_of(fake_hs4.calls("/backup.html:backup")[0]) == {"action": "backup"}


@pytest.mark.asyncio
async def test_interface_settings_serialized(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    await execute_direct(
        hs4_client,
        "interfaces",
        "add",
        {"interfaceName": "Z-Net", "interfaceType": "zwave", "settings": {"port": 2001}},
    )

    params = fake_hs4.calls("interfaceadd")[0].url.params
    assert params["name"] == "Z-Net"
    assert params["type"] == "zwave"
    assert params["config"] == '{"port": 2001}'


@pytest.mark.asyncio
async def test_numeric_ids_are_formatted(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    await execute_direct(hs4_client, "users", "delete", {"userId": 42.0})
    assert fake_hs4.calls("usersdelete")[0].url.params["username"] == "42"


@pytest.mark.asyncio
async def test_device_metadata(hs4_client: HS4Client, fake_hs4: FakeHS4) -> None:
    result = await execute_direct(
        hs4_client, "config", "device_metadata.set", {"ref": 12, "property": "name", "value": "Porch"}
    )

    assert result.transport == "setdeviceproperty"
    params = fake_hs4.calls("setdeviceproperty")[0].url.params
    assert (params["ref"], params["property"], params["value"]) == ("12", "name", "Porch")
