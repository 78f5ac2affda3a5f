"""Tests for tool registry helpers."""

from __future__ import annotations

from unittest.mock import MagicMock

from hs4_mcp.admin.catalog import ADMIN_ACTIONS
from hs4_mcp.tools import get_tool_registry, get_tool_specs, register_tools


def test_get_tool_specs_and_registry() -> None:
    specs = get_tool_specs()
    names = [tool.name for tool in specs]

    assert names[:8] == [
        "hs4.health.get",
        "hs4.selftest.run",
        "hs4.audit.query",
        "hs4.devices.set",
        "hs4.events.run",
        "hs4.scripts.run",
        "hs4.plugins.function.call",
        "hs4.cameras.pan",
    ]
    assert names[-3:] == ["hs4.change.prepare", "hs4.change.commit", "hs4.change.list"]
    assert len(names) == 11 + len(ADMIN_ACTIONS)
    assert set(get_tool_registry()) == set(names)


def test_register_tools_adds_all_specs() -> None:
    server = MagicMock()

    register_tools(server)

    assert server.add_tool.call_count == len(get_tool_specs())


def test_admin_schemas_pin_domain_and_tier() -> None:
    schema = get_tool_registry()["hs4.admin.plugins.install"].input_schema
    properties = schema["properties"]

    assert properties["domain"]["const"] == "plugins"
    assert properties["operationTier"]["enum"] == ["admin"]
    assert schema["required"] == ["pluginId"]
    assert schema["additionalProperties"] is False


def test_every_schema_is_closed() -> None:
    for tool in get_tool_specs():
        assert tool.input_schema["type"] == "object"
        assert tool.input_schema["additionalProperties"] is False, tool.name
