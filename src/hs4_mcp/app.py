"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from hs4_mcp.admin.capability import CapabilityCache
from hs4_mcp.admin.router import AdminExecutionRouter
from hs4_mcp.audit.db import AuditStore
from hs4_mcp.change.store import ChangeTokenStore
from hs4_mcp.config import Settings, load_settings
from hs4_mcp.devices.verifier import DeviceWriteVerifier
from hs4_mcp.gateway import MutationGateway
from hs4_mcp.hs4.client import HS4Client
from hs4_mcp.policy.engine import PolicyEngine
from hs4_mcp.policy.loader import load_policy


@dataclass
class AppContext:
    """Application-wide dependency container.

    Initialized once at startup and cached for the lifetime of the process.
    """

    settings: Settings
    policy_engine: PolicyEngine
    client: HS4Client
    audit: AuditStore
    changes: ChangeTokenStore
    capabilities: CapabilityCache
    router: AdminExecutionRouter
    verifier: DeviceWriteVerifier
    gateway: MutationGateway


def build_app_context(settings: Settings, client: HS4Client | None = None) -> AppContext:
    policy_config = load_policy(settings.policy.path, required=settings.policy.explicit)
    policy_engine = PolicyEngine(policy_config)

    client = client or HS4Client(settings.hs4)
    audit = AuditStore(
        settings.audit.sqlite_path,
        max_entries=settings.audit.max_entries,
        wal=settings.audit.sqlite_wal,
    )
    changes = ChangeTokenStore(
        ttl_seconds=settings.change_tokens.ttl_seconds,
        max_entries=settings.change_tokens.max_entries,
        persist_path=settings.change_tokens.persist_path,
    )
    capabilities = CapabilityCache(settings.admin.capability_cache_ttl_seconds)
    router = AdminExecutionRouter(
        client,
        mode=settings.admin.execution_mode,
        direct_fallback=settings.admin.direct_fallback,
        capability_cache=capabilities,
    )
    verifier = DeviceWriteVerifier(
        client,
        attempts=settings.verification.attempts,
        delay_seconds=settings.verification.delay_seconds,
    )
    gateway = MutationGateway(
        policy=policy_engine,
        client=client,
        changes=changes,
        audit=audit,
        router=router,
        verifier=verifier,
    )
    return AppContext(
        settings=settings,
        policy_engine=policy_engine,
        client=client,
        audit=audit,
        changes=changes,
        capabilities=capabilities,
        router=router,
        verifier=verifier,
        gateway=gateway,
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the cached application context."""
    return build_app_context(load_settings())
