"""Device writes with post-write convergence verification."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from hs4_mcp.errors import BadRequestError, DeviceNotConvergedError
from hs4_mcp.hs4.client import HS4Client
from hs4_mcp.hs4.normalizer import ControlPair, NormalizedDevice, normalize_status_payload

logger = logging.getLogger(__name__)

DeviceSetMode = Literal["control_value", "set_status"]

VALUE_TOLERANCE = 1e-6
MAX_OBSERVED_CONTROL_PAIRS = 32
MAX_VERIFY_ATTEMPTS = 8
_FALLBACK_TRIGGER = "set_status verification mismatch"


def numeric_match(actual: float | None, expected: float) -> bool:
    return (
        actual is not None
        and math.isfinite(actual)
        and abs(actual - expected) < VALUE_TOLERANCE
    )


def status_text_matches(actual: str | None, expected: str | None) -> bool:
    left = (actual or "").strip().lower()
    right = (expected or "").strip().lower()
    if not left or not right:
        return False
    return left == right or right in left or left in right


def find_control_pair_by_value(
    pairs: Iterable[ControlPair], value: float
) -> ControlPair | None:
    return next((pair for pair in pairs if numeric_match(pair.value, value)), None)


@dataclass
class ObservedDevice:
    ref: int
    name: str
    status: str
    value: float | None
    control_pairs: list[ControlPair]

    @classmethod
    def from_device(cls, device: NormalizedDevice) -> "ObservedDevice":
        return cls(
            ref=device.ref,
            name=device.name,
            status=device.status,
            value=device.value,
            control_pairs=list(device.control_pairs[:MAX_OBSERVED_CONTROL_PAIRS]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.ref,
            "name": self.name,
            "status": self.status,
            "value": self.value,
            "controlPairs": [pair.to_dict() for pair in self.control_pairs],
        }


@dataclass
class VerificationChecks:
    device_found: bool = False
    value_match: bool | None = None
    status_match: bool | None = None
    matched_by_control_pair_label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"deviceFound": self.device_found}
        if self.value_match is not None:
            payload["valueMatch"] = self.value_match
        if self.status_match is not None:
            payload["statusMatch"] = self.status_match
        if self.matched_by_control_pair_label is not None:
            payload["matchedByControlPairLabel"] = self.matched_by_control_pair_label
        return payload


@dataclass
class DeviceVerificationResult:
    matched: bool
    attempts: int
    expected: dict[str, Any]
    observed: ObservedDevice | None = None
    checks: VerificationChecks = field(default_factory=VerificationChecks)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "matched": self.matched,
            "attempts": self.attempts,
            "expected": self.expected,
        }
        if self.observed is not None:
            payload["observed"] = self.observed.to_dict()
        payload["checks"] = self.checks.to_dict()
        return payload


def evaluate_device_match(
    device: NormalizedDevice, expected: dict[str, Any]
) -> tuple[bool, VerificationChecks]:
    """Compare an observed device with the requested target.

    Value and status text are alternatives: when both were requested either
    one matching counts as converged.
    """
    checks = VerificationChecks(device_found=True)

    expected_value = expected.get("value")
    if expected_value is not None:
        pair = find_control_pair_by_value(device.control_pairs, expected_value)
        pair_status_match = pair is not None and status_text_matches(device.status, pair.label)
        checks.value_match = numeric_match(device.value, expected_value) or pair_status_match
        if pair_status_match and pair is not None:
            checks.matched_by_control_pair_label = pair.label

    expected_status = expected.get("statusText")
    if expected_status:
        checks.status_match = status_text_matches(device.status, expected_status)

    outcomes = [check for check in (checks.value_match, checks.status_match) if check is not None]
    return (any(outcomes) if outcomes else True), checks


class DeviceWriteVerifier:
    """Write a device value or status and poll until the hub reflects it."""

    def __init__(
        self,
        client: HS4Client,
        *,
        attempts: int = 4,
        delay_seconds: float = 0.25,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._attempts = min(MAX_VERIFY_ATTEMPTS, max(1, int(attempts)))
        self._delay_seconds = max(0.0, float(delay_seconds))
        self._sleep = sleep

    async def read_device(self, ref: int) -> NormalizedDevice | None:
        payload = await self._client.get_status(ref=ref, compress=False, everything=False)
        return normalize_status_payload(payload).find(ref)

    async def verify(self, ref: int, expected: dict[str, Any]) -> DeviceVerificationResult:
        last_observed: ObservedDevice | None = None
        last_checks = VerificationChecks()

        for attempt in range(1, self._attempts + 1):
            device = await self.read_device(ref)
            if device is not None:
                last_observed = ObservedDevice.from_device(device)
                matched, last_checks = evaluate_device_match(device, expected)
                if matched:
                    return DeviceVerificationResult(
                        matched=True,
                        attempts=attempt,
                        expected=expected,
                        observed=last_observed,
                        checks=last_checks,
                    )
            else:
                last_checks = VerificationChecks()

            if attempt < self._attempts and self._delay_seconds > 0:
                await self._sleep(self._delay_seconds)

        return DeviceVerificationResult(
            matched=False,
            attempts=self._attempts,
            expected=expected,
            observed=last_observed,
            checks=last_checks,
        )

    async def execute_device_set(
        self,
        ref: int,
        mode: DeviceSetMode = "control_value",
        value: float | None = None,
        status_text: str | None = None,
        source: str | None = None,
        verify: bool = True,
    ) -> dict[str, Any]:
        has_value = value is not None and math.isfinite(value)
        normalized_status = status_text.strip() if isinstance(status_text, str) else None
        has_status = bool(normalized_status)

        if mode == "control_value" and not has_value:
            raise BadRequestError("value is required when mode=control_value")
        if mode == "set_status" and not has_value and not has_status:
            raise BadRequestError("value or statusText is required when mode=set_status")

        executed_mode: DeviceSetMode = mode
        mode_switch_reason: str | None = None
        preflight: NormalizedDevice | None = None

        if mode == "set_status" and has_value:
            try:
                preflight = await self.read_device(ref)
            except Exception as exc:
                logger.debug(
                    "Device preflight failed for ref %s; proceeding without mode auto-switch: %s",
                    ref,
                    exc,
                )
            pair = find_control_pair_by_value(preflight.control_pairs, value) if preflight else None
            if pair is not None:
                executed_mode = "control_value"
                mode_switch_reason = (
                    f'Requested mode=set_status but device control pair "{pair.label}" maps to '
                    f"value {_format_value(pair.value)}; executed mode=control_value for reliability."
                )

        if executed_mode == "control_value":
            raw = await self._client.control_device_by_value(ref, value)
        else:
            raw = await self._client.set_device_status(
                ref,
                value=value if has_value else None,
                string=normalized_status or None,
                source=source,
            )

        result: dict[str, Any] = {
            "applied": True,
            "ref": ref,
            "mode": executed_mode,
            "requestedMode": mode,
        }
        if has_value:
            result["value"] = value
        if has_status:
            result["statusText"] = normalized_status
        if source:
            result["source"] = source
        if mode_switch_reason:
            result["modeAutoSwitch"] = mode_switch_reason
        result["raw"] = raw

        if not verify:
            result["verification"] = {"performed": False}
            return result

        expected: dict[str, Any] = {}
        if has_value:
            expected["value"] = value
        if has_status:
            expected["statusText"] = normalized_status

        verification = await self.verify(ref, expected)
        fallback: dict[str, Any] | None = None
        if not verification.matched and mode == executed_mode == "set_status" and has_value:
            known_pairs = list(preflight.control_pairs) if preflight else []
            if verification.observed is not None:
                known_pairs.extend(verification.observed.control_pairs)
            if find_control_pair_by_value(known_pairs, value) is not None:
                fallback_raw = await self._client.control_device_by_value(ref, value)
                verification = await self.verify(ref, expected)
                fallback = {
                    "attempted": True,
                    "mode": "control_value",
                    "value": value,
                    "trigger": _FALLBACK_TRIGGER,
                    "matched": verification.matched,
                    "raw": fallback_raw,
                }
            else:
                fallback = {
                    "attempted": False,
                    "trigger": _FALLBACK_TRIGGER,
                    "reason": "No matching control pair discovered for requested value.",
                }

        if not verification.matched:
            details: dict[str, Any] = {
                "ref": ref,
                "requestedMode": mode,
                "executedMode": executed_mode,
                "expected": expected,
                "verification": verification.to_dict(),
            }
            if fallback is not None:
                details["fallback"] = fallback
            raise DeviceNotConvergedError(
                "Device state did not converge to the requested target.", details=details
            )

        result["verification"] = verification.to_dict()
        if fallback is not None:
            result["fallback"] = fallback
        return result


def _format_value(value: float) -> str:
    return str(int(value)) if value.is_integer() else str(value)
