"""SQLite implementation of the integration request repository."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from ..models import IntegrationRequest, IntegrationStatus
from .repository import IntegrationRequestRepository

COLUMNS = (
    "id, external_id, source_system, target_system, payload, status, "
    "correlation_id, created_at, updated_at, error_detail"
)


def _from_row(row: sqlite3.Row) -> IntegrationRequest:
    return IntegrationRequest.model_validate(dict(row))


class SQLiteIntegrationRequestRepository(IntegrationRequestRepository):
    """Persist integration requests using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS integration_requests (
                id TEXT PRIMARY KEY,
                external_id TEXT NOT NULL,
                source_system TEXT NOT NULL,
                target_system TEXT NOT NULL,
                payload TEXT NOT NULL,
                status TEXT NOT NULL,
                correlation_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                error_detail TEXT
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS ix_integration_requests_external_id "
            "ON integration_requests (external_id)"
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS ix_integration_requests_status "
            "ON integration_requests (status)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Repository API
    async def get(self, request_id: str) -> IntegrationRequest | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {COLUMNS} FROM integration_requests WHERE id = ?",
            request_id,
        )
        return _from_row(row) if row else None

    async def get_by_external_id(self, external_id: str) -> IntegrationRequest | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {COLUMNS} FROM integration_requests WHERE external_id = ? "
            "ORDER BY created_at DESC LIMIT 1",
            external_id,
        )
        return _from_row(row) if row else None

    async def save(self, request: IntegrationRequest) -> None:
        await asyncio.to_thread(
            self._execute,
            f"""
            INSERT INTO integration_requests ({COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                status = excluded.status,
                updated_at = excluded.updated_at,
                error_detail = excluded.error_detail
            """,
            request.id,
            request.external_id,
            request.source_system,
            request.target_system,
            request.payload,
            request.status.value,
            request.correlation_id,
            request.created_at.isoformat(),
            request.updated_at.isoformat(),
            request.error_detail,
        )

    async def list_all(self) -> list[IntegrationRequest]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {COLUMNS} FROM integration_requests ORDER BY created_at DESC",
        )
        return [_from_row(r) for r in rows]

    async def list_by_status(self, status: IntegrationStatus) -> list[IntegrationRequest]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {COLUMNS} FROM integration_requests WHERE status = ? "
            "ORDER BY created_at DESC",
            IntegrationStatus(status).value,
        )
        return [_from_row(r) for r in rows]

    @asynccontextmanager
    async def scoped(self) -> AsyncIterator["SQLiteIntegrationRequestRepository"]:
        # one shared connection; writes commit per statement
        yield self
