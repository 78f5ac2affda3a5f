"""JSON serialization utilities."""

from __future__ import annotations

import base64
import dataclasses
import datetime
import decimal
import json

from hs4_mcp.utils.time import to_iso


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, datetime.datetime):
        return to_iso(obj)
    if isinstance(obj, datetime.date):
        return obj.isoformat()
    if isinstance(obj, decimal.Decimal):
        if obj == obj.to_integral_value():
            return int(obj)
        return float(obj)
    if isinstance(obj, bytes):
        try:
            return obj.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(obj).decode("utf-8")
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    return str(obj)


def canonical_json(value: object) -> str:
    """Deterministic JSON text used for structural equality checks."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=json_default,
    )


def values_equal(left: object, right: object) -> bool:
    return canonical_json(left) == canonical_json(right)


def clone_json(value: object) -> object:
    """Deep copy through a JSON round trip, normalising non-JSON values."""
    return json.loads(json.dumps(value, default=json_default))
