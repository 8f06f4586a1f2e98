"""PostgreSQL implementation of the integration request repository."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from ..models import IntegrationRequest, IntegrationStatus
from .repository import IntegrationRequestRepository

COLUMNS = (
    "id, external_id, source_system, target_system, payload, status, "
    "correlation_id, created_at, updated_at, error_detail"
)


def _from_record(record: asyncpg.Record) -> IntegrationRequest:
    return IntegrationRequest.model_validate(dict(record))


class PostgresIntegrationRequestRepository(IntegrationRequestRepository):
    """Persist integration requests using PostgreSQL.

    Outside a :meth:`scoped` block every call opens and closes its own
    connection. Inside one, calls share the connection borrowed for the
    scope, which is closed when the block exits.
    """

    def __init__(self, dsn: str, _conn: Optional[asyncpg.Connection] = None):
        self._dsn = dsn
        self._bound = _conn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        if self._bound is not None:
            yield self._bound
            return
        conn = await self._connect()
        try:
            yield conn
        finally:
            await conn.close()

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS integration_requests (
                id TEXT PRIMARY KEY,
                external_id TEXT NOT NULL,
                source_system TEXT NOT NULL,
                target_system TEXT NOT NULL,
                payload TEXT NOT NULL,
                status TEXT NOT NULL,
                correlation_id TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                error_detail TEXT
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS ix_integration_requests_external_id "
            "ON integration_requests (external_id)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS ix_integration_requests_status "
            "ON integration_requests (status)"
        )

    # ------------------------------------------------------------------
    async def get(self, request_id: str) -> IntegrationRequest | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {COLUMNS} FROM integration_requests WHERE id = $1",
                request_id,
            )
        return _from_record(row) if row else None

    async def get_by_external_id(self, external_id: str) -> IntegrationRequest | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {COLUMNS} FROM integration_requests WHERE external_id = $1 "
                "ORDER BY created_at DESC LIMIT 1",
                external_id,
            )
        return _from_record(row) if row else None

    async def save(self, request: IntegrationRequest) -> None:
        async with self._connection() as conn:
            await conn.execute(
                f"""
                INSERT INTO integration_requests ({COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                ON CONFLICT (id) DO UPDATE SET
                    status = EXCLUDED.status,
                    updated_at = EXCLUDED.updated_at,
                    error_detail = EXCLUDED.error_detail
                """,
                request.id,
                request.external_id,
                request.source_system,
                request.target_system,
                request.payload,
                request.status.value,
                request.correlation_id,
                request.created_at,
                request.updated_at,
                request.error_detail,
            )

    async def list_all(self) -> list[IntegrationRequest]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"SELECT {COLUMNS} FROM integration_requests ORDER BY created_at DESC"
            )
        return [_from_record(r) for r in rows]

    async def list_by_status(self, status: IntegrationStatus) -> list[IntegrationRequest]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"SELECT {COLUMNS} FROM integration_requests WHERE status = $1 "
                "ORDER BY created_at DESC",
                IntegrationStatus(status).value,
            )
        return [_from_record(r) for r in rows]

    @asynccontextmanager
    async def scoped(self) -> AsyncIterator["PostgresIntegrationRequestRepository"]:
        if self._bound is not None:
            yield self
            return
        conn = await self._connect()
        try:
            yield PostgresIntegrationRequestRepository(self._dsn, _conn=conn)
        finally:
            await conn.close()
