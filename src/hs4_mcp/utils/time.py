"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_now_iso() -> str:
    return to_iso(utc_now())


def to_iso(value: datetime) -> str:
    """Render an aware timestamp as ISO-8601 UTC with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    rendered = value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    return rendered.replace("+00:00", "Z")


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp; returns None for anything unparseable."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
