from __future__ import annotations

from conftest import device, status_payload
from hs4_mcp.hs4.normalizer import (
    normalize_cameras_payload,
    normalize_control_pairs,
    normalize_events_payload,
    normalize_status_payload,
    to_number,
)


def test_basic_device_fields() -> None:
    snapshot = normalize_status_payload(
        status_payload(device(12, status="On", value=100, pairs=[("On", 100), ("Off", 0)]))
    )

    assert snapshot.name == "HomeSeer"
    assert snapshot.version == "4.2.19.0"
    found = snapshot.find(12)
    assert found is not None
    assert found.status == "On"
    assert found.value == 100.0
    assert [pair.to_dict() for pair in found.control_pairs] == [
        {"label": "On", "value": 100.0},
        {"label": "Off", "value": 0.0},
    ]
    assert snapshot.find(99) is None


def test_children_are_flattened_with_parent_refs() -> None:
    payload = {
        "devices": [
            {
                "Ref": "10",
                "Name": "Thermostat",
                "Children": [{"ref": 11, "name": "Setpoint"}, {"ref": 12, "parentRef": 5}],
            }
        ]
    }

    snapshot = normalize_status_payload(payload)

    assert [d.ref for d in snapshot.devices] == [10, 11, 12]
    assert snapshot.find(10).parent_ref is None  # type: ignore[union-attr]
    assert snapshot.find(11).parent_ref == 10  # type: ignore[union-attr]
    assert snapshot.find(12).parent_ref == 5  # type: ignore[union-attr]


def test_duplicate_refs_merge_control_pairs() -> None:
    payload = status_payload(
        device(7, pairs=[("On", 100)]),
        device(7, pairs=[("On", 100), ("Dim", 50)], relationship="child"),
    )

    snapshot = normalize_status_payload(payload)

    assert len(snapshot.devices) == 1
    merged = snapshot.devices[0]
    assert [pair.label for pair in merged.control_pairs] == ["On", "Dim"]
    assert merged.relationship == "child"


def test_invalid_refs_are_skipped() -> None:
    payload = status_payload({"ref": "abc"}, {"ref": 1.5}, {"name": "no ref"}, device(3))
    assert [d.ref for d in normalize_status_payload(payload).devices] == [3]


def test_nested_device_paths_and_non_dict_payloads() -> None:
    assert normalize_status_payload({"response": {"Devices": [device(4)]}}).find(4) is not None
    assert normalize_status_payload("Error").devices == []
    assert normalize_status_payload(None).name == ""


def test_control_pair_shapes() -> None:
    nested = {"ControlPairs": {"ControlPair": [{"Status": "Open", "Value": "1"}]}}
    assert [p.to_dict() for p in normalize_control_pairs(nested)] == [{"label": "Open", "value": 1.0}]
    direct = [{"label": "x", "value": "nan"}, {"label": "y", "value": 2}, "junk"]
    assert [p.label for p in normalize_control_pairs(direct)] == ["y"]


def test_to_number() -> None:
    assert to_number(" 4.5 ") == 4.5
    assert to_number(True) is None
    assert to_number("inf") is None
    assert to_number("n/a") is None


def test_events_payload_skips_records_without_id() -> None:
    events = normalize_events_payload(
        {"Events": [{"id": "12", "Group": "Lights", "Name": "All Off"}, {"Name": "orphan"}, "junk"]}
    )

    assert [(event.id, event.group, event.name) for event in events] == [(12, "Lights", "All Off")]


def test_cameras_payload_reads_alternate_keys() -> None:
    cameras = normalize_cameras_payload(
        {"response": {"Cameras": [{"CamID": 3, "Name": "Drive", "SupportsPanTilt": True}, {"name": "x"}]}}
    )

    assert len(cameras) == 1
    assert (cameras[0].cam_id, cameras[0].name, cameras[0].supports_pan_tilt) == (3, "Drive", True)
    assert normalize_cameras_payload({"Response": "ok"}) == []
