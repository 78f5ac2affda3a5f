"""Route admin mutations to the adapter or the native HS4 API."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

from hs4_mcp.admin.capability import CapabilityCache
from hs4_mcp.admin.catalog import RollbackResult
from hs4_mcp.admin.direct import execute_direct
from hs4_mcp.admin.results import (
    AdminExecutionResult,
    build_adapter_command,
    compute_object_diff,
    parse_adapter_result,
)
from hs4_mcp.errors import UnsupportedOnTargetError
from hs4_mcp.hs4.client import HS4Client

logger = logging.getLogger(__name__)

ExecutionMode = Literal["adapter", "direct", "auto"]
AdminRoute = Literal["adapter", "direct"]
SnapshotHook = Callable[[], Awaitable[Any]]

ADAPTER_TRANSPORT = "runScriptCommand"


@dataclass
class _Dispatch:
    route: AdminRoute
    transport: str
    raw: Any
    command: str | None = None
    fallback_from: AdminRoute | None = None


class AdminExecutionRouter:
    """Dispatch admin mutations according to the configured execution mode.

    ``adapter`` always uses the HS4-side script adapter. ``direct`` uses the
    native API, falling back to the adapter on ``UNSUPPORTED_ON_TARGET`` when
    enabled. ``auto`` behaves like ``direct`` but remembers unsupported
    operations in the capability cache and skips straight to the adapter.
    """

    def __init__(
        self,
        client: HS4Client,
        *,
        mode: ExecutionMode = "adapter",
        direct_fallback: bool = True,
        capability_cache: CapabilityCache | None = None,
    ) -> None:
        self._client = client
        self._mode = mode
        self._direct_fallback = direct_fallback
        self._capabilities = (
            capability_cache if capability_cache is not None else CapabilityCache(0)
        )

    @property
    def mode(self) -> ExecutionMode:
        return self._mode

    @property
    def capability_cache(self) -> CapabilityCache:
        return self._capabilities

    async def execute(
        self,
        domain: str,
        action: str,
        payload: dict[str, Any],
        rollback_hint: RollbackResult | None = None,
        before: SnapshotHook | None = None,
        after: SnapshotHook | None = None,
    ) -> AdminExecutionResult:
        before_state = await before() if before else None
        dispatch = await self._dispatch(domain, action, payload)
        after_state = await after() if after else None
        diff = compute_object_diff(before_state, after_state)

        fallback: dict[str, Any] = {}
        if dispatch.fallback_from:
            fallback["fallback"] = {
                "from": dispatch.fallback_from,
                "to": dispatch.route,
                "reason": "unsupported_on_target",
            }

        if dispatch.route == "direct":
            return AdminExecutionResult(
                result="applied",
                steps=[
                    {
                        "name": action,
                        "status": "applied",
                        "route": dispatch.route,
                        "transport": dispatch.transport,
                    }
                ],
                rollback=rollback_hint or "available",
                before=before_state,
                after=after_state,
                diff=diff,
                data={
                    "route": dispatch.route,
                    "transport": dispatch.transport,
                    "payload": payload,
                    "raw": dispatch.raw,
                    **fallback,
                },
            )

        parsed = parse_adapter_result(dispatch.raw, action)
        steps = []
        for index, step in enumerate(parsed.steps):
            routed = {
                **step,
                "route": dispatch.route,
                "transport": step["transport"]
                if isinstance(step.get("transport"), str)
                else dispatch.transport,
            }
            if dispatch.fallback_from and index == 0:
                routed["fallbackFrom"] = dispatch.fallback_from
            steps.append(routed)

        data: dict[str, Any] = dict(parsed.data) if isinstance(parsed.data, dict) else {}
        data.update(
            {
                "route": dispatch.route,
                "transport": dispatch.transport,
                "command": dispatch.command,
                "payload": payload,
                "raw": dispatch.raw,
                **fallback,
            }
        )
        if parsed.data is not None and not isinstance(parsed.data, dict):
            data["adapterData"] = parsed.data

        raw_has_rollback = isinstance(dispatch.raw, dict) and "rollback" in dispatch.raw
        return AdminExecutionResult(
            result=parsed.result,
            precheck=parsed.precheck,
            steps=steps,
            rollback=parsed.rollback if raw_has_rollback else rollback_hint or "available",
            before=before_state,
            after=after_state,
            diff=diff,
            data=data,
        )

    async def _dispatch(self, domain: str, action: str, payload: dict[str, Any]) -> _Dispatch:
        if self._mode == "adapter":
            return await self._adapter(domain, action, payload)

        if self._mode == "direct":
            try:
                return await self._direct(domain, action, payload)
            except UnsupportedOnTargetError as exc:
                if not self._direct_fallback:
                    raise
                logger.info(
                    "Direct route unsupported for %s.%s, falling back to adapter: %s",
                    domain,
                    action,
                    exc.message,
                )
                return await self._adapter(domain, action, payload, fallback_from="direct")

        if self._capabilities.get(domain, action) is False:
            logger.debug("Capability cache: %s.%s unsupported directly", domain, action)
            return await self._adapter(domain, action, payload)

        try:
            dispatch = await self._direct(domain, action, payload)
        except UnsupportedOnTargetError as exc:
            self._capabilities.set(domain, action, False)
            if not self._direct_fallback:
                raise
            logger.info(
                "Direct route unsupported for %s.%s, falling back to adapter: %s",
                domain,
                action,
                exc.message,
            )
            return await self._adapter(domain, action, payload, fallback_from="direct")
        self._capabilities.set(domain, action, True)
        return dispatch

    async def _direct(self, domain: str, action: str, payload: dict[str, Any]) -> _Dispatch:
        result = await execute_direct(self._client, domain, action, payload)
        return _Dispatch(route="direct", transport=result.transport, raw=result.raw)

    async def _adapter(
        self,
        domain: str,
        action: str,
        payload: dict[str, Any],
        *,
        fallback_from: AdminRoute | None = None,
    ) -> _Dispatch:
        command = build_adapter_command(domain, action, payload)
        raw = await self._client.run_script_command(command)
        return _Dispatch(
            route="adapter",
            transport=ADAPTER_TRANSPORT,
            raw=raw,
            command=command,
            fallback_from=fallback_from,
        )
