"""SQLite-backed audit log for every gateway operation."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import sqlite3
import threading
import uuid
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Mapping, Sequence

from hs4_mcp.audit.models import (
    DEFAULT_QUERY_LIMIT,
    MAX_QUERY_LIMIT,
    AuditEntry,
    AuditQuery,
)
from hs4_mcp.utils.masking import redact_sensitive_fields
from hs4_mcp.utils.serialization import json_default
from hs4_mcp.utils.time import parse_timestamp, to_iso, utc_now

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]

MEMORY_PATH = ":memory:"

# AuditQuery field -> indexed column
_FILTER_COLUMNS = {
    "tool": "tool",
    "action": "action",
    "result": "result",
    "operation_tier": "operation_tier",
    "domain": "domain",
    "maintenance_window_id": "maintenance_window_id",
    "change_ticket": "change_ticket",
    "rollback_result": "rollback_result",
}


class AuditStore:
    """Bounded audit log.

    Rows keep a handful of indexed columns for filtering plus the full entry
    as JSON. The newest ``max_entries`` rows are retained.
    """

    def __init__(
        self,
        path: str = MEMORY_PATH,
        *,
        max_entries: int = 5000,
        wal: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if path != MEMORY_PATH:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        if wal and path != MEMORY_PATH:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS audit_entries (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                timestamp TEXT NOT NULL,
                tool TEXT NOT NULL,
                action TEXT NOT NULL,
                result TEXT NOT NULL,
                dry_run INTEGER NOT NULL,
                operation_tier TEXT,
                domain TEXT,
                maintenance_window_id TEXT,
                change_ticket TEXT,
                rollback_result TEXT,
                error_code TEXT,
                entry TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_audit_tool ON audit_entries(tool);
            CREATE INDEX IF NOT EXISTS idx_audit_result_ts ON audit_entries(result, timestamp);
            CREATE INDEX IF NOT EXISTS idx_audit_domain ON audit_entries(domain);
            """
        )
        self._conn.commit()

    @property
    def path(self) -> str:
        return self._path

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    def record_sync(self, entry: AuditEntry) -> AuditEntry:
        created = dataclasses.replace(
            entry,
            id=str(uuid.uuid4()),
            timestamp=to_iso(self._clock()),
            target=redact_sensitive_fields(entry.target) if entry.target is not None else None,
            details=redact_sensitive_fields(entry.details) if entry.details is not None else None,
        )
        document = json.dumps(created.to_dict(), default=json_default)
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO audit_entries (
                    id, timestamp, tool, action, result, dry_run, operation_tier,
                    domain, maintenance_window_id, change_ticket, rollback_result,
                    error_code, entry
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    created.id,
                    created.timestamp,
                    created.tool,
                    created.action,
                    created.result,
                    1 if created.dry_run else 0,
                    created.operation_tier,
                    created.domain,
                    created.maintenance_window_id,
                    created.change_ticket,
                    created.rollback_result,
                    created.error_code,
                    document,
                ),
            )
            self._prune()
            self._conn.commit()
        return created

    def _prune(self) -> None:
        self._conn.execute(
            """
            DELETE FROM audit_entries
            WHERE seq NOT IN (
                SELECT seq FROM audit_entries ORDER BY seq DESC LIMIT ?
            )
            """,
            (self._max_entries,),
        )

    def query_sync(self, query: AuditQuery | None = None) -> list[AuditEntry]:
        query = query if query is not None else AuditQuery()
        clauses: list[str] = []
        params: list[_SqlValue] = []
        for field_name, column in _FILTER_COLUMNS.items():
            value = getattr(query, field_name)
            if value:
                clauses.append(f"{column} = ?")
                params.append(value)

        since = parse_timestamp(query.since) if query.since else None
        if since is not None:
            clauses.append("timestamp >= ?")
            params.append(to_iso(since))

        limit = query.limit if query.limit and query.limit > 0 else DEFAULT_QUERY_LIMIT
        params.append(min(int(limit), MAX_QUERY_LIMIT))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT entry FROM audit_entries {where} ORDER BY seq DESC LIMIT ?",
                params,
            ).fetchall()
        return [AuditEntry.from_dict(json.loads(row["entry"])) for row in rows]

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS n FROM audit_entries").fetchone()
        return int(row["n"])

    async def record(self, entry: AuditEntry) -> AuditEntry:
        return await asyncio.to_thread(self.record_sync, entry)

    async def query(self, query: AuditQuery | None = None) -> list[AuditEntry]:
        return await asyncio.to_thread(self.query_sync, query)
