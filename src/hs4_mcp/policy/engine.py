"""Mutation policy evaluation engine."""

from __future__ import annotations

from collections.abc import Iterable

from hs4_mcp.policy.models import (
    ADMIN_DOMAINS,
    MutationPolicyDecision,
    MutationRequest,
    NormalizedMutation,
    OperationTier,
    PolicyConfig,
)


def extract_script_id(command: str | None) -> str | None:
    """Derive the allowlist identifier of a script command.

    ``'Lights.vb("Main", 1)'`` -> ``"lights.vb"``; a command starting with ``(``
    falls back to its first whitespace-delimited token. Only ever used for
    allowlist matching.
    """
    if not command:
        return None
    cleaned = command.strip()
    if not cleaned:
        return None
    before_paren = cleaned.split("(", 1)[0].strip()
    if before_paren:
        return before_paren.lower()
    tokens = cleaned.split()
    return tokens[0].lower() if tokens else None


def _normalize_optional_text(raw: str | None) -> str | None:
    if raw is None:
        return None
    trimmed = raw.strip()
    return trimmed or None


def _normalize_id_list(values: Iterable[str]) -> list[str]:
    normalized: list[str] = []
    for value in values:
        cleaned = str(value).strip().lower()
        if cleaned:
            normalized.append(cleaned)
    return normalized


def _blocked(allowlist: frozenset | None, values: Iterable) -> list:
    if allowlist is None:
        return []
    return [value for value in values if value not in allowlist]


def _join(values: Iterable[object]) -> str:
    return ", ".join(str(value) for value in values)


class PolicyEngine:
    def __init__(self, config: PolicyConfig) -> None:
        self._config = config

    @property
    def config(self) -> PolicyConfig:
        return self._config

    def evaluate_mutation(self, request: MutationRequest) -> MutationPolicyDecision:
        """Evaluate a mutation request; every violated rule is reported."""
        config = self._config
        reasons: list[str] = []
        effective_dry_run = bool(request.dry_run or config.default_dry_run)
        operation_tier: OperationTier = (
            "admin" if request.operation_tier == "admin" else "operator"
        )
        domain = request.domain
        maintenance_window_id = _normalize_optional_text(request.maintenance_window_id)
        change_ticket = _normalize_optional_text(request.change_ticket)

        if config.safe_mode == "read_only" and not effective_dry_run:
            reasons.append("Server is running in read-only mode (HS4_SAFE_MODE=read_only).")

        if not effective_dry_run:
            if config.require_confirm and request.confirm is not True:
                reasons.append("Mutating operations require confirm=true.")
            if not (request.intent or "").strip():
                reasons.append("Mutating operations require a non-empty intent field.")
            if not (request.reason or "").strip():
                reasons.append("Mutating operations require a non-empty reason field.")

        blocked_refs = _blocked(config.allowed_device_refs, request.target_refs)
        if blocked_refs:
            reasons.append(f"Device refs not allowed by policy: {_join(blocked_refs)}")

        blocked_events = _blocked(config.allowed_event_ids, request.event_ids)
        if blocked_events:
            reasons.append(f"Event IDs not allowed by policy: {_join(blocked_events)}")

        blocked_cameras = _blocked(config.allowed_camera_ids, request.camera_ids)
        if blocked_cameras:
            reasons.append(f"Camera IDs not allowed by policy: {_join(blocked_cameras)}")

        script_id = extract_script_id(request.script_command)
        if (
            config.allowed_scripts is not None
            and script_id
            and script_id not in config.allowed_scripts
        ):
            reasons.append(f"Script command '{script_id}' is not allowed by policy.")

        plugin_function = _normalize_optional_text(request.plugin_function)
        plugin_function = plugin_function.lower() if plugin_function else None
        if (
            config.allowed_plugin_functions is not None
            and plugin_function
            and plugin_function not in config.allowed_plugin_functions
        ):
            reasons.append(f"Plugin function '{plugin_function}' is not allowed by policy.")

        admin = config.admin
        for label, allowlist, values in (
            ("User IDs", admin.allowed_user_ids, request.user_ids),
            ("Plugin IDs", admin.allowed_plugin_ids, request.plugin_ids),
            ("Interface IDs", admin.allowed_interface_ids, request.interface_ids),
            ("Category IDs", admin.allowed_category_ids, request.category_ids),
        ):
            blocked_ids = _blocked(allowlist, _normalize_id_list(values))
            if blocked_ids:
                reasons.append(f"{label} not allowed by policy: {_join(blocked_ids)}")

        if operation_tier == "admin":
            if not admin.enabled:
                reasons.append("Admin operations are disabled (HS4_ADMIN_ENABLED=false).")

            if not domain or domain not in ADMIN_DOMAINS:
                reasons.append(
                    "Admin operations require a domain "
                    "(users/plugins/interfaces/system/cameras/events/config)."
                )
            elif not admin.domain_enabled(domain):
                reasons.append(f"Admin domain '{domain}' is not enabled by policy.")

            if not maintenance_window_id:
                reasons.append("Admin operations require a non-empty maintenanceWindowId.")

            required_window = admin.maintenance_window_id
            if required_window and maintenance_window_id != required_window:
                reasons.append(
                    f"maintenanceWindowId must match the configured value '{required_window}'."
                )

            allowed_windows = admin.allowed_maintenance_window_ids
            if (
                allowed_windows is not None
                and maintenance_window_id
                and maintenance_window_id not in allowed_windows
            ):
                reasons.append(
                    f"maintenanceWindowId '{maintenance_window_id}' is not allowed by policy."
                )

            if admin.require_change_ticket and not change_ticket:
                reasons.append("Admin operations require a non-empty changeTicket.")

        return MutationPolicyDecision(
            allowed=not reasons,
            effective_dry_run=effective_dry_run,
            reasons=tuple(reasons),
            normalized=NormalizedMutation(
                operation_tier=operation_tier,
                domain=domain,
                maintenance_window_id=maintenance_window_id,
                change_ticket=change_ticket,
                script_id=script_id,
                plugin_function=plugin_function,
            ),
        )
