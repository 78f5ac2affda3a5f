"""Policy configuration and decision models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

OperationTier = Literal["operator", "admin"]
AdminDomain = Literal["users", "plugins", "interfaces", "system", "cameras", "events", "config"]
RiskLevel = Literal["low", "medium", "high"]
SafeMode = Literal["read_write", "read_only"]

ADMIN_DOMAINS: tuple[AdminDomain, ...] = (
    "users",
    "plugins",
    "interfaces",
    "system",
    "cameras",
    "events",
    "config",
)
RISK_LEVELS: tuple[RiskLevel, ...] = ("low", "medium", "high")

_UNRESTRICTED = "*"


def _split_tokens(value: Any) -> list[str] | None:
    """Shared front half of allowlist parsing.

    Returns None when the allowlist is unrestricted (null, blank or ``*``).
    """
    if value is None:
        return None
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",")]
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [str(item).strip() for item in value]
    else:
        items = [str(value).strip()]
    items = [item for item in items if item]
    if not items or _UNRESTRICTED in items:
        return None
    return items


def parse_numeric_allowlist(value: Any) -> frozenset[int] | None:
    """Parse ``"1,5,100-120"`` style allowlists into a set of ints."""
    tokens = _split_tokens(value)
    if tokens is None:
        return None
    result: set[int] = set()
    for token in tokens:
        start, sep, end = token.partition("-")
        if sep and start.strip() and end.strip():
            low, high = int(start), int(end)
            if low > high:
                low, high = high, low
            result.update(range(low, high + 1))
        else:
            result.add(int(token))
    return frozenset(result)


def parse_string_allowlist(value: Any, *, lowercase: bool = True) -> frozenset[str] | None:
    tokens = _split_tokens(value)
    if tokens is None:
        return None
    if lowercase:
        return frozenset(token.lower() for token in tokens)
    return frozenset(tokens)


class AdminPolicy(BaseModel):
    enabled: bool = Field(default=False)
    domains: dict[AdminDomain, bool] = Field(default_factory=dict)
    maintenance_window_id: str | None = Field(default=None)
    allowed_maintenance_window_ids: frozenset[str] | None = Field(default=None)
    require_change_ticket: bool = Field(default=True)
    allowed_user_ids: frozenset[str] | None = Field(default=None)
    allowed_plugin_ids: frozenset[str] | None = Field(default=None)
    allowed_interface_ids: frozenset[str] | None = Field(default=None)
    allowed_category_ids: frozenset[str] | None = Field(default=None)

    @field_validator("domains", mode="before")
    @classmethod
    def _validate_domains(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, (list, tuple)):
            return {domain: True for domain in v}
        return v

    @field_validator("maintenance_window_id", mode="before")
    @classmethod
    def _validate_window(cls, v: Any) -> Any:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("allowed_maintenance_window_ids", mode="before")
    @classmethod
    def _validate_window_allowlist(cls, v: Any) -> frozenset[str] | None:
        return parse_string_allowlist(v, lowercase=False)

    @field_validator(
        "allowed_user_ids",
        "allowed_plugin_ids",
        "allowed_interface_ids",
        "allowed_category_ids",
        mode="before",
    )
    @classmethod
    def _validate_id_allowlists(cls, v: Any) -> frozenset[str] | None:
        return parse_string_allowlist(v)

    def domain_enabled(self, domain: str) -> bool:
        return bool(self.domains.get(domain, False))  # type: ignore[call-overload]


class PolicyConfig(BaseModel):
    version: int = Field(default=1)
    safe_mode: SafeMode = Field(default="read_write")
    require_confirm: bool = Field(default=True)
    default_dry_run: bool = Field(default=False)
    allowed_device_refs: frozenset[int] | None = Field(default=None)
    allowed_event_ids: frozenset[int] | None = Field(default=None)
    allowed_camera_ids: frozenset[int] | None = Field(default=None)
    allowed_scripts: frozenset[str] | None = Field(default=None)
    allowed_plugin_functions: frozenset[str] | None = Field(default=None)
    admin: AdminPolicy = Field(default_factory=AdminPolicy)

    @field_validator(
        "allowed_device_refs", "allowed_event_ids", "allowed_camera_ids", mode="before"
    )
    @classmethod
    def _validate_numeric_allowlists(cls, v: Any) -> frozenset[int] | None:
        return parse_numeric_allowlist(v)

    @field_validator("allowed_scripts", "allowed_plugin_functions", mode="before")
    @classmethod
    def _validate_string_allowlists(cls, v: Any) -> frozenset[str] | None:
        return parse_string_allowlist(v)

    @field_validator("admin", mode="before")
    @classmethod
    def _validate_admin(cls, v: Any) -> Any:
        return {} if v is None else v

    @classmethod
    def from_yaml(cls, data: dict[str, Any]) -> "PolicyConfig":
        return cls.model_validate(data)


@dataclass
class MutationRequest:
    """Descriptor of one requested mutation, built per call."""

    tool: str
    action: str
    confirm: bool | None = None
    intent: str | None = None
    reason: str | None = None
    dry_run: bool = False
    operation_tier: OperationTier | None = None
    domain: AdminDomain | None = None
    maintenance_window_id: str | None = None
    change_ticket: str | None = None
    risk_level: RiskLevel | None = None
    target_refs: list[int] = field(default_factory=list)
    event_ids: list[int] = field(default_factory=list)
    camera_ids: list[int] = field(default_factory=list)
    script_command: str | None = None
    plugin_function: str | None = None
    target_ids: list[str | int] = field(default_factory=list)
    user_ids: list[str] = field(default_factory=list)
    plugin_ids: list[str] = field(default_factory=list)
    interface_ids: list[str] = field(default_factory=list)
    category_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NormalizedMutation:
    operation_tier: OperationTier
    domain: AdminDomain | None = None
    maintenance_window_id: str | None = None
    change_ticket: str | None = None
    script_id: str | None = None
    plugin_function: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"operationTier": self.operation_tier}
        optional = {
            "domain": self.domain,
            "maintenanceWindowId": self.maintenance_window_id,
            "changeTicket": self.change_ticket,
            "scriptId": self.script_id,
            "pluginFunction": self.plugin_function,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


@dataclass(frozen=True)
class MutationPolicyDecision:
    allowed: bool
    effective_dry_run: bool
    reasons: tuple[str, ...]
    normalized: NormalizedMutation

    def to_dict(self) -> dict[str, object]:
        return {
            "allowed": self.allowed,
            "effectiveDryRun": self.effective_dry_run,
            "reasons": list(self.reasons),
            "normalized": self.normalized.to_dict(),
        }
