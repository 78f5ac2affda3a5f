"""Policy loader: optional policy.yaml plus HS4_* environment overrides."""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import yaml

from hs4_mcp.config import parse_bool
from hs4_mcp.policy.models import ADMIN_DOMAINS, PolicyConfig


def _text(value: str) -> str:
    return value.strip().lower()


def _raw(value: str) -> str:
    return value


def _flag(default: bool) -> Callable[[str], bool]:
    def parse(value: str) -> bool:
        return parse_bool(value, default)

    return parse


# env var -> (dotted key in the policy document, parser)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "HS4_SAFE_MODE": ("safe_mode", _text),
    "HS4_REQUIRE_CONFIRM": ("require_confirm", _flag(True)),
    "HS4_DEFAULT_DRY_RUN": ("default_dry_run", _flag(False)),
    "HS4_ALLOWED_DEVICE_REFS": ("allowed_device_refs", _raw),
    "HS4_ALLOWED_EVENT_IDS": ("allowed_event_ids", _raw),
    "HS4_ALLOWED_CAMERA_IDS": ("allowed_camera_ids", _raw),
    "HS4_ALLOWED_SCRIPTS": ("allowed_scripts", _raw),
    "HS4_ALLOWED_PLUGIN_FUNCTIONS": ("allowed_plugin_functions", _raw),
    "HS4_ADMIN_ENABLED": ("admin.enabled", _flag(False)),
    "HS4_ADMIN_MAINTENANCE_WINDOW_ID": ("admin.maintenance_window_id", _raw),
    "HS4_ADMIN_ALLOWED_MAINTENANCE_WINDOW_IDS": ("admin.allowed_maintenance_window_ids", _raw),
    "HS4_ADMIN_REQUIRE_CHANGE_TICKET": ("admin.require_change_ticket", _flag(True)),
    "HS4_ADMIN_ALLOWED_USER_IDS": ("admin.allowed_user_ids", _raw),
    "HS4_ADMIN_ALLOWED_PLUGIN_IDS": ("admin.allowed_plugin_ids", _raw),
    "HS4_ADMIN_ALLOWED_INTERFACE_IDS": ("admin.allowed_interface_ids", _raw),
    "HS4_ADMIN_ALLOWED_CATEGORY_IDS": ("admin.allowed_category_ids", _raw),
}
ENV_OVERRIDES.update(
    {
        f"HS4_ADMIN_{domain.upper()}_ENABLED": (f"admin.domains.{domain}", _flag(False))
        for domain in ADMIN_DOMAINS
    }
)


def _set_dotted(document: dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    current = document
    for part in parts[:-1]:
        nested = current.get(part)
        if not isinstance(nested, dict):
            nested = {}
            current[part] = nested
        current = nested
    current[parts[-1]] = value


def apply_env_overrides(
    document: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    merged = dict(document)
    if isinstance(merged.get("admin"), dict):
        merged["admin"] = dict(merged["admin"])
        if isinstance(merged["admin"].get("domains"), dict):
            merged["admin"]["domains"] = dict(merged["admin"]["domains"])
    for env_key, (dotted, parse) in ENV_OVERRIDES.items():
        value = environ.get(env_key)
        if value is None:
            continue
        _set_dotted(merged, dotted, parse(value))
    return merged


def load_policy(
    path: str | None,
    *,
    required: bool = False,
    environ: Mapping[str, str] | None = None,
) -> PolicyConfig:
    """Build the policy from the YAML file (if any) and environment overrides."""
    data: dict[str, Any] = {}
    if path:
        policy_path = Path(path)
        if policy_path.exists():
            with policy_path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"Policy file must contain a mapping: {policy_path}")
            data = loaded
        elif required:
            raise FileNotFoundError(f"Policy file not found: {policy_path}")

    merged = apply_env_overrides(data, os.environ if environ is None else environ)
    return PolicyConfig.from_yaml(merged)
