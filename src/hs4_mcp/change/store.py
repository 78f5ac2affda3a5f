"""TTL-bounded ledger of prepared changes with an append-only JSONL log."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from hs4_mcp.change.models import PreparedChangeRecord
from hs4_mcp.errors import BadRequestError
from hs4_mcp.utils.serialization import clone_json, json_default
from hs4_mcp.utils.time import utc_now

logger = logging.getLogger(__name__)


def _sort_key(record: PreparedChangeRecord) -> tuple[datetime, str]:
    return (record.created_at, record.token)


class ChangeTokenStore:
    """Prepared-change ledger backing the two-phase prepare/commit flow.

    The in-memory table is authoritative. The optional JSONL log is a
    best-effort changelog replayed on ``init``: persistence failures are
    logged and never surface to callers.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int,
        max_entries: int,
        persist_path: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ttl = timedelta(seconds=max(1, int(ttl_seconds)))
        self._max_entries = max(1, int(max_entries))
        self._persist_path = Path(persist_path) if persist_path else None
        self._clock = clock
        self._records: dict[str, PreparedChangeRecord] = {}
        self._initialized = False
        self._init_future: asyncio.Future[None] | None = None
        self._write_lock = asyncio.Lock()
        self._dir_ready = False

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    @property
    def max_entries(self) -> int:
        return self._max_entries

    async def init(self) -> None:
        """Load the persisted log once; concurrent callers share one load."""
        if self._initialized:
            return
        if self._init_future is not None:
            await self._init_future
            return

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._init_future = future
        try:
            await self._load()
        except BaseException as exc:
            self._init_future = None
            future.set_exception(exc)
            # Mark retrieved so a failure nobody else awaited is not reported as unhandled.
            future.exception()
            raise
        self._initialized = True
        self._init_future = None
        future.set_result(None)

    async def _load(self) -> None:
        if self._persist_path is not None:
            try:
                lines = await asyncio.to_thread(self._read_lines, self._persist_path)
            except OSError as exc:
                logger.warning(
                    "Failed to read change token log %s: %s", self._persist_path, exc
                )
                lines = []

            skipped = 0
            for line in lines:
                if not line.strip():
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    skipped += 1
                    continue
                record = PreparedChangeRecord.from_dict(payload)
                if record is None:
                    skipped += 1
                    continue
                # Later lines for the same token supersede earlier ones.
                self._records[record.token] = record
            if skipped:
                logger.warning(
                    "Skipped %d malformed change token log line(s) in %s",
                    skipped,
                    self._persist_path,
                )

        self.purge_expired()
        self._enforce_max_entries()

    @staticmethod
    def _read_lines(path: Path) -> list[str]:
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as handle:
            return handle.readlines()

    async def create(
        self,
        tool_name: str,
        args: dict[str, Any],
        summary: dict[str, Any],
        prepared_audit_ref: str | None = None,
    ) -> PreparedChangeRecord:
        await self.init()

        normalized_tool = (tool_name or "").strip()
        if not normalized_tool:
            raise BadRequestError("toolName is required to create a change token.")

        self.purge_expired()
        now = self._clock()
        record = PreparedChangeRecord(
            token=str(uuid.uuid4()),
            tool_name=normalized_tool,
            args=clone_json(args or {}),  # type: ignore[arg-type]
            summary=clone_json(summary or {}),  # type: ignore[arg-type]
            created_at=now,
            expires_at=now + self._ttl,
            prepared_audit_ref=prepared_audit_ref or None,
        )
        self._records[record.token] = record
        self._enforce_max_entries()
        snapshot = copy.deepcopy(record)

        await self._append(record)
        return snapshot

    def get(self, token: str) -> PreparedChangeRecord | None:
        self.purge_expired()
        record = self._records.get((token or "").strip())
        return copy.deepcopy(record) if record else None

    async def mark_committed(
        self, token: str, commit_audit_ref: str | None = None
    ) -> PreparedChangeRecord | None:
        self.purge_expired()
        record = self._records.get((token or "").strip())
        if record is None:
            return None

        changed = False
        if record.committed_at is None:
            record.committed_at = self._clock()
            changed = True

        new_ref = (commit_audit_ref or "").strip()
        if new_ref and new_ref != record.commit_audit_ref:
            record.commit_audit_ref = new_ref
            changed = True

        snapshot = copy.deepcopy(record)
        if changed:
            await self._append(record)
        return snapshot

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [token for token, record in self._records.items() if record.is_expired(now)]
        for token in expired:
            del self._records[token]
        return len(expired)

    def list(self, limit: int | None = None) -> list[PreparedChangeRecord]:
        self.purge_expired()
        ordered = sorted(self._records.values(), key=lambda r: r.token)
        ordered.sort(key=lambda r: r.created_at, reverse=True)
        if limit is not None:
            ordered = ordered[: max(0, int(limit))]
        return [copy.deepcopy(record) for record in ordered]

    def __len__(self) -> int:
        return len(self._records)

    def _enforce_max_entries(self) -> None:
        overflow = len(self._records) - self._max_entries
        if overflow <= 0:
            return
        oldest = sorted(self._records.values(), key=_sort_key)[:overflow]
        for record in oldest:
            del self._records[record.token]
        logger.debug("Evicted %d prepared change(s) over capacity", overflow)

    async def _append(self, record: PreparedChangeRecord) -> None:
        """Append the record's current state to the log, in call order.

        The line is rendered before waiting for the queue so it reflects the
        state at the time of the change.
        """
        if self._persist_path is None:
            return
        line = json.dumps(record.to_dict(), default=json_default) + "\n"
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._write_line, line)
            except OSError as exc:
                logger.warning(
                    "Failed to persist change token %s to %s: %s",
                    record.token,
                    self._persist_path,
                    exc,
                )

    def _write_line(self, line: str) -> None:
        assert self._persist_path is not None
        if not self._dir_ready:
            self._persist_path.parent.mkdir(parents=True, exist_ok=True)
            self._dir_ready = True
        with self._persist_path.open("a", encoding="utf-8") as handle:
            handle.write(line)
