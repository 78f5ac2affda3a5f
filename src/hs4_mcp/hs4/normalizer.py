"""Normalize raw HS4 JSON payloads into canonical device records."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any

_DEVICE_ARRAY_PATHS = ("Devices", "devices", "response.Devices", "Result.Devices")
_CONTROL_PAIR_PATHS = (
    "control_pairs",
    "ControlPairs",
    "ControlPairs.ControlPair",
    "Controls",
    "controls",
)
_CHILD_DEVICE_PATHS = (
    "Children",
    "children",
    "ChildDevices",
    "child_devices",
    "AssociatedDevices",
    "associated_devices",
)


@dataclass(frozen=True)
class ControlPair:
    label: str
    value: float

    def to_dict(self) -> dict[str, object]:
        return {"label": self.label, "value": self.value}


@dataclass
class NormalizedDevice:
    ref: int
    name: str = ""
    location: str = ""
    location2: str = ""
    status: str = ""
    value: float | None = None
    last_change: str = ""
    interface_name: str = ""
    control_pairs: list[ControlPair] = field(default_factory=list)
    parent_ref: int | None = None
    relationship: str | None = None
    raw: Any = field(default=None, repr=False)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "ref": self.ref,
            "name": self.name,
            "location": self.location,
            "location2": self.location2,
            "status": self.status,
            "value": self.value,
            "lastChange": self.last_change,
            "interfaceName": self.interface_name,
            "controlPairs": [pair.to_dict() for pair in self.control_pairs],
        }
        if self.parent_ref is not None:
            payload["parentRef"] = self.parent_ref
        if self.relationship is not None:
            payload["relationship"] = self.relationship
        return payload


@dataclass
class StatusSnapshot:
    name: str
    version: str
    devices: list[NormalizedDevice]

    def find(self, ref: int) -> NormalizedDevice | None:
        return next((device for device in self.devices if device.ref == ref), None)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "version": self.version,
            "devices": [device.to_dict() for device in self.devices],
        }


def _get_path(value: Any, path: str) -> Any:
    current = value
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _first_list(value: Any, paths: tuple[str, ...]) -> list[Any]:
    for path in paths:
        candidate = _get_path(value, path)
        if isinstance(candidate, list):
            return candidate
    return []


def _first(record: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def to_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _to_ref(value: Any) -> int | None:
    number = to_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _to_text(value: Any) -> str:
    return "" if value is None else str(value)


def normalize_control_pairs(raw: Any) -> list[ControlPair]:
    candidates = raw if isinstance(raw, list) else _first_list(raw, _CONTROL_PAIR_PATHS)
    pairs: list[ControlPair] = []
    for item in candidates:
        if not isinstance(item, dict):
            continue
        value = to_number(_first(item, "ControlValue", "value", "Value"))
        if value is None:
            continue
        label = _to_text(_first(item, "Label", "label", "Status", "status", "Name"))
        pairs.append(ControlPair(label=label, value=value))
    return pairs


def _flatten(devices_raw: list[Any]) -> list[tuple[dict[str, Any], int | None]]:
    flattened: list[tuple[dict[str, Any], int | None]] = []
    seen: set[int] = set()
    queue: deque[tuple[Any, int | None]] = deque((raw, None) for raw in devices_raw)
    while queue:
        raw, inferred_parent = queue.popleft()
        if not isinstance(raw, dict) or id(raw) in seen:
            continue
        seen.add(id(raw))
        flattened.append((raw, inferred_parent))
        own_ref = _to_ref(_first(raw, "ref", "Ref", "id", "ID"))
        parent_for_children = own_ref if own_ref is not None else inferred_parent
        for path in _CHILD_DEVICE_PATHS:
            children = _get_path(raw, path)
            if isinstance(children, list):
                queue.extend((child, parent_for_children) for child in children)
    return flattened


def _merge(target: NormalizedDevice, source: NormalizedDevice) -> None:
    known = {(pair.value, pair.label) for pair in target.control_pairs}
    for pair in source.control_pairs:
        if (pair.value, pair.label) not in known:
            known.add((pair.value, pair.label))
            target.control_pairs.append(pair)
    if target.parent_ref is None:
        target.parent_ref = source.parent_ref
    if target.relationship is None:
        target.relationship = source.relationship


def normalize_status_payload(payload: Any) -> StatusSnapshot:
    """Normalize a ``getstatus`` response, flattening children and merging duplicates."""
    devices: list[NormalizedDevice] = []
    by_ref: dict[int, NormalizedDevice] = {}

    for record, inferred_parent in _flatten(_first_list(payload, _DEVICE_ARRAY_PATHS)):
        ref = _to_ref(_first(record, "ref", "Ref", "id", "ID"))
        if ref is None:
            continue
        parent_ref = _to_ref(_first(record, "parentRef", "ParentRef", "parent_ref"))
        relationship = _first(record, "relationship", "Relationship")
        device = NormalizedDevice(
            ref=ref,
            name=_to_text(_first(record, "name", "Name")),
            location=_to_text(_first(record, "location", "Location")),
            location2=_to_text(_first(record, "location2", "Location2")),
            status=_to_text(_first(record, "status", "Status")),
            value=to_number(_first(record, "value", "Value")),
            last_change=_to_text(_first(record, "last_change", "Last_Change", "LastChange")),
            interface_name=_to_text(_first(record, "interface_name", "Interface_Name")),
            control_pairs=normalize_control_pairs(record),
            parent_ref=parent_ref if parent_ref is not None else inferred_parent,
            relationship=None if relationship is None else str(relationship),
            raw=record,
        )
        existing = by_ref.get(ref)
        if existing is None:
            by_ref[ref] = device
            devices.append(device)
        else:
            _merge(existing, device)

    root = payload if isinstance(payload, dict) else {}
    return StatusSnapshot(
        name=_to_text(_first(root, "Name", "name")),
        version=_to_text(_first(root, "Version", "version")),
        devices=devices,
    )


@dataclass
class NormalizedEvent:
    id: int
    group: str = ""
    name: str = ""
    raw: Any = field(default=None, repr=False)


@dataclass
class NormalizedCamera:
    cam_id: int
    name: str = ""
    supports_pan_tilt: bool | None = None
    raw: Any = field(default=None, repr=False)


def normalize_events_payload(payload: Any) -> list[NormalizedEvent]:
    events: list[NormalizedEvent] = []
    for raw in _first_list(payload, ("Events", "events", "response.Events")):
        if not isinstance(raw, dict):
            continue
        event_id = _to_ref(_first(raw, "id", "ID"))
        if event_id is None:
            continue
        events.append(
            NormalizedEvent(
                id=event_id,
                group=_to_text(_first(raw, "Group", "group")),
                name=_to_text(_first(raw, "Name", "name")),
                raw=raw,
            )
        )
    return events


def normalize_cameras_payload(payload: Any) -> list[NormalizedCamera]:
    cameras: list[NormalizedCamera] = []
    for raw in _first_list(payload, ("Cameras", "cameras", "response.Cameras")):
        if not isinstance(raw, dict):
            continue
        cam_id = _to_ref(_first(raw, "id", "camid", "CamId", "CamID"))
        if cam_id is None:
            continue
        pan_tilt = _first(raw, "supports_pantilt", "SupportsPanTilt")
        cameras.append(
            NormalizedCamera(
                cam_id=cam_id,
                name=_to_text(_first(raw, "name", "Name")),
                supports_pan_tilt=pan_tilt if isinstance(pan_tilt, bool) else None,
                raw=raw,
            )
        )
    return cameras
