"""Advisory cache of which admin operations the direct route supports."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from hs4_mcp.utils.time import utc_now


@dataclass(frozen=True)
class CapabilityCacheEntry:
    supported: bool
    expires_at: datetime


def capability_key(domain: str, action: str) -> str:
    return f"{domain}:{action}"


class CapabilityCache:
    """Remembers direct-route support per ``domain:action`` for a TTL.

    A TTL of zero (or less) disables caching entirely. Entries are only
    hints: a stale entry costs one extra route attempt, never correctness.
    """

    def __init__(
        self, ttl_seconds: float, *, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._ttl_seconds = max(0.0, float(ttl_seconds))
        self._clock = clock
        self._entries: dict[str, CapabilityCacheEntry] = {}

    @property
    def enabled(self) -> bool:
        return self._ttl_seconds > 0

    def get(self, domain: str, action: str) -> bool | None:
        if not self.enabled:
            return None
        key = capability_key(domain, action)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.supported

    def set(self, domain: str, action: str, supported: bool) -> None:
        if not self.enabled:
            return
        self._entries[capability_key(domain, action)] = CapabilityCacheEntry(
            supported=supported,
            expires_at=self._clock() + timedelta(seconds=self._ttl_seconds),
        )

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
