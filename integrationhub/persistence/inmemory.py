"""In-memory implementation of the integration request repository."""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from ..models import IntegrationRequest, IntegrationStatus
from .repository import IntegrationRequestRepository


class InMemoryIntegrationRequestRepository(IntegrationRequestRepository):
    """Store integration requests in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Entities are copied in and out so a
    caller mutating its instance never changes stored state without ``save``.
    """

    def __init__(self) -> None:
        self._requests: Dict[str, IntegrationRequest] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    async def get(self, request_id: str) -> IntegrationRequest | None:
        with self._lock:
            request = self._requests.get(request_id)
        return request.model_copy() if request else None

    async def get_by_external_id(self, external_id: str) -> IntegrationRequest | None:
        with self._lock:
            matches = [r for r in self._requests.values() if r.external_id == external_id]
        if not matches:
            return None
        # newest first, as the SQL backends order it
        return max(matches, key=lambda r: r.created_at).model_copy()

    async def save(self, request: IntegrationRequest) -> None:
        with self._lock:
            self._requests[request.id] = request.model_copy()

    async def list_all(self) -> list[IntegrationRequest]:
        with self._lock:
            requests = [r.model_copy() for r in self._requests.values()]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    async def list_by_status(self, status: IntegrationStatus) -> list[IntegrationRequest]:
        return [r for r in await self.list_all() if r.status == status]

    @asynccontextmanager
    async def scoped(self) -> AsyncIterator["InMemoryIntegrationRequestRepository"]:
        yield self
