"""Shared sensitive-field masking utilities.

``redact_sensitive_fields`` is used for HS4 request logging and for audit
details, so credentials and raw script commands never reach the log sinks.
"""

from __future__ import annotations

_MAX_REDACT_DEPTH = 6

# Sensitive key markers (substring match, case-insensitive).
SENSITIVE_KEY_MARKERS: list[str] = [
    "pass",
    "secret",
    "token",
    "apikey",
    "api_key",
    "authorization",
    "credential",
    "scriptcommand",
]

# Keys matched exactly, where a substring match would be too broad.
SENSITIVE_EXACT_KEYS = frozenset({"auth"})


def _is_sensitive(key: str) -> bool:
    normalized = key.strip().lower()
    if normalized in SENSITIVE_EXACT_KEYS:
        return True
    return any(marker in normalized for marker in SENSITIVE_KEY_MARKERS)


def redact_sensitive_fields(
    value: object,
    *,
    mask: str = "[REDACTED]",
    depth: int = 0,
    max_depth: int = _MAX_REDACT_DEPTH,
) -> object:
    """Recursively replace sensitive values in dicts/lists.

    When ``max_depth`` is exceeded the entire sub-tree is replaced with *mask*.
    """
    if depth >= max_depth:
        return mask
    if isinstance(value, dict):
        redacted: dict[str, object] = {}
        for key, val in value.items():
            if isinstance(key, str) and _is_sensitive(key):
                redacted[key] = mask
            else:
                redacted[key] = redact_sensitive_fields(
                    val, mask=mask, depth=depth + 1, max_depth=max_depth,
                )
        return redacted
    if isinstance(value, (list, tuple)):
        return [
            redact_sensitive_fields(
                item, mask=mask, depth=depth + 1, max_depth=max_depth,
            )
            for item in value
        ]
    return value
