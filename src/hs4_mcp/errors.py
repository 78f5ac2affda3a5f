"""Error taxonomy shared by the HS4 client, the mutation pipeline and the tools."""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Literal

import httpx

ErrorCode = Literal[
    "AUTH",
    "NETWORK",
    "BAD_REQUEST",
    "NOT_FOUND",
    "HS4_ERROR",
    "POLICY_DENY",
    "TIMEOUT",
    "UNSUPPORTED_ON_TARGET",
    "INTERNAL",
    "UNKNOWN",
]

ERROR_CODES: tuple[ErrorCode, ...] = (
    "AUTH",
    "NETWORK",
    "BAD_REQUEST",
    "NOT_FOUND",
    "HS4_ERROR",
    "POLICY_DENY",
    "TIMEOUT",
    "UNSUPPORTED_ON_TARGET",
    "INTERNAL",
    "UNKNOWN",
)


class HS4Error(Exception):
    """Error raised anywhere in the gateway, tagged with a stable code."""

    code: ErrorCode = "UNKNOWN"

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"code": self.code, "message": self.message}
        if self.status_code is not None:
            payload["statusCode"] = self.status_code
        if self.details is not None:
            payload["details"] = self.details
        return payload


class BadRequestError(HS4Error):
    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__("BAD_REQUEST", message, details=details)


class NotFoundError(HS4Error):
    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__("NOT_FOUND", message, details=details)


class UnsupportedOnTargetError(HS4Error):
    """The operation is not available on this HS4 deployment or route.

    The admin router treats this as a routing signal, not a terminal failure.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            "UNSUPPORTED_ON_TARGET", message, status_code=status_code, details=details
        )


class DeviceNotConvergedError(HS4Error):
    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__("HS4_ERROR", message, details=details)


def as_hs4_error(exc: BaseException) -> HS4Error:
    """Coerce any exception into an ``HS4Error``."""
    if isinstance(exc, HS4Error):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return HS4Error("TIMEOUT", str(exc) or "Operation timed out")
    return HS4Error("INTERNAL", str(exc) or exc.__class__.__name__)


_ACTIONABLE_DEFAULTS: dict[ErrorCode, dict[str, object]] = {
    "AUTH": {
        "retryable": False,
        "fixHint": "Verify HS4 credentials (HS4_USER/HS4_PASS) and that the account can use the JSON API.",
        "suggestedNextToolCalls": [{"tool": "hs4.health.get", "args": {}}],
    },
    "NETWORK": {
        "retryable": True,
        "fixHint": "Check HS4_BASE_URL reachability and network path, then retry.",
        "suggestedNextToolCalls": [{"tool": "hs4.health.get", "args": {}}],
    },
    "BAD_REQUEST": {
        "retryable": False,
        "fixHint": "Fix the request arguments and retry.",
        "suggestedNextToolCalls": [],
    },
    "NOT_FOUND": {
        "retryable": False,
        "fixHint": "The referenced entity or change token no longer exists; prepare the change again.",
        "suggestedNextToolCalls": [{"tool": "hs4.change.list", "args": {"limit": 20}}],
    },
    "HS4_ERROR": {
        "retryable": False,
        "fixHint": "HS4 rejected or did not apply the operation; inspect details and device state.",
        "suggestedNextToolCalls": [{"tool": "hs4.health.get", "args": {}}],
    },
    "POLICY_DENY": {
        "retryable": False,
        "fixHint": "Satisfy the listed policy reasons (confirm, intent, reason, allowlists, admin gates) or use dryRun.",
        "suggestedNextToolCalls": [
            {"tool": "hs4.audit.query", "args": {"result": "blocked", "limit": 10}}
        ],
    },
    "TIMEOUT": {
        "retryable": True,
        "fixHint": "HS4 did not answer in time; retry or raise HS4_TIMEOUT_MS.",
        "suggestedNextToolCalls": [{"tool": "hs4.health.get", "args": {}}],
    },
    "UNSUPPORTED_ON_TARGET": {
        "retryable": False,
        "fixHint": "This HS4 target does not support the operation; use the adapter route or another tool.",
        "suggestedNextToolCalls": [{"tool": "hs4.health.get", "args": {}}],
    },
    "INTERNAL": {
        "retryable": True,
        "fixHint": "Unexpected gateway error; check server logs and recent audit entries.",
        "suggestedNextToolCalls": [
            {"tool": "hs4.audit.query", "args": {"result": "error", "limit": 20}}
        ],
    },
    "UNKNOWN": {
        "retryable": True,
        "fixHint": "Retry the request; if it persists, inspect recent audit entries.",
        "suggestedNextToolCalls": [
            {"tool": "hs4.audit.query", "args": {"result": "error", "limit": 20}}
        ],
    },
}


def actionable_error_fields(code: ErrorCode) -> dict[str, object]:
    """Static retry/fix guidance for an error code."""
    defaults = _ACTIONABLE_DEFAULTS.get(code, _ACTIONABLE_DEFAULTS["UNKNOWN"])
    return copy.deepcopy(defaults)
