from __future__ import annotations

from hs4_mcp.admin.catalog import ADMIN_ACTIONS, find_admin_action
from hs4_mcp.admin.results import (
    AdminExecutionResult,
    build_adapter_command,
    compute_object_diff,
    parse_adapter_result,
)


def test_non_dict_adapter_response_is_one_applied_step() -> None:
    parsed = parse_adapter_result("done", "create")
    assert parsed.result == "applied"
    assert parsed.steps == [{"name": "create", "status": "applied"}]
    assert parsed.rollback == "not_needed"
    assert parsed.data == "done"


def test_structured_adapter_response() -> None:
    parsed = parse_adapter_result(
        {
            "result": "partial",
            "precheck": [{"name": "exists", "status": "ok"}, "junk"],
            "steps": [{"name": "copy", "status": "applied"}],
            "rollback": "available",
            "data": {"id": 4},
        },
        "update",
    )
    assert parsed.result == "partial"
    assert parsed.precheck == [{"name": "exists", "status": "ok"}]
    assert parsed.steps == [{"name": "copy", "status": "applied"}]
    assert parsed.rollback == "available"
    assert parsed.data == {"id": 4}


def test_unknown_values_fall_back_and_extra_keys_pass_through() -> None:
    parsed = parse_adapter_result({"result": "weird", "rollback": "maybe", "id": 9}, "delete")
    assert parsed.result == "applied"
    assert parsed.rollback == "not_needed"
    assert parsed.steps == [{"name": "delete", "status": "applied"}]
    assert parsed.data == {"id": 9}


def test_compute_object_diff() -> None:
    assert compute_object_diff(None, {"a": 1}) is None
    assert compute_object_diff({"a": 1}, {"a": 1}) is None
    assert compute_object_diff({"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 0}) == {
        "changed": True,
        "changedKeys": ["b", "c"],
    }
    assert compute_object_diff([1], [2]) == {"changed": True}


def test_to_dict_omits_empty_snapshots() -> None:
    payload = AdminExecutionResult(result="planned").to_dict()
    assert payload == {"result": "planned", "precheck": [], "steps": [], "rollback": "not_needed"}


def test_build_adapter_command() -> None:
    assert (
        build_adapter_command("users", "create", {"username": "bob"})
        == 'mcp_admin.users.create {"username": "bob"}'
    )


def test_catalog_lookup() -> None:
    action = find_admin_action("hs4.admin.users.set_role")
    assert action is not None
    assert action.audit_action == "admin_users_set_role"
    assert find_admin_action("hs4.admin.users.list") is None
    assert find_admin_action("hs4.admin.nope.create") is None
    assert find_admin_action("hs4.devices.set") is None
    assert len({action.tool_name for action in ADMIN_ACTIONS}) == len(ADMIN_ACTIONS)
