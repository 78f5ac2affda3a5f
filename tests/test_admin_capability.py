from __future__ import annotations

from datetime import datetime, timedelta, timezone

from hs4_mcp.admin.capability import CapabilityCache, capability_key


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = Clock()
    cache = CapabilityCache(60, clock=clock)

    cache.set("users", "create", False)
    assert cache.get("users", "create") is False
    assert cache.get("users", "delete") is None

    clock.now += timedelta(seconds=60)
    assert cache.get("users", "create") is None
    assert len(cache) == 0


def test_zero_ttl_disables_cache() -> None:
    cache = CapabilityCache(0)
    cache.set("users", "create", True)
    assert not cache.enabled
    assert cache.get("users", "create") is None
    assert len(cache) == 0


def test_clear() -> None:
    cache = CapabilityCache(10)
    cache.set("system", "shutdown", True)
    cache.clear()
    assert cache.get("system", "shutdown") is None


def test_capability_key() -> None:
    assert capability_key("system", "backup.start") == "system:backup.start"
