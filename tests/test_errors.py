from __future__ import annotations

import asyncio

import httpx

from hs4_mcp.errors import (
    ERROR_CODES,
    BadRequestError,
    HS4Error,
    UnsupportedOnTargetError,
    actionable_error_fields,
    as_hs4_error,
)


def test_to_dict_omits_empty_fields() -> None:
    assert BadRequestError("nope").to_dict() == {"code": "BAD_REQUEST", "message": "nope"}
    error = UnsupportedOnTargetError("gone", status_code=404, details={"route": "adapter"})
    assert error.to_dict() == {
        "code": "UNSUPPORTED_ON_TARGET",
        "message": "gone",
        "statusCode": 404,
        "details": {"route": "adapter"},
    }


def test_as_hs4_error_maps_timeouts_and_internal() -> None:
    original = HS4Error("AUTH", "denied")
    assert as_hs4_error(original) is original
    assert as_hs4_error(asyncio.TimeoutError()).code == "TIMEOUT"
    assert as_hs4_error(httpx.ReadTimeout("slow")).code == "TIMEOUT"
    internal = as_hs4_error(KeyError("x"))
    assert internal.code == "INTERNAL"


def test_every_code_has_actionable_fields() -> None:
    for code in ERROR_CODES:
        fields = actionable_error_fields(code)
        assert set(fields) == {"retryable", "fixHint", "suggestedNextToolCalls"}


def test_actionable_fields_are_copies() -> None:
    first = actionable_error_fields("NETWORK")
    first["suggestedNextToolCalls"].append({"tool": "x"})
    assert actionable_error_fields("NETWORK")["suggestedNextToolCalls"] == [
        {"tool": "hs4.health.get", "args": {}}
    ]
