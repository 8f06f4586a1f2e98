"""Repository abstraction for integration request persistence."""

from __future__ import annotations

from typing import AsyncContextManager, Protocol

from ..models import IntegrationRequest, IntegrationStatus


class IntegrationRequestRepository(Protocol):
    """Protocol for integration request persistence backends.

    A ``save`` must be visible to the next ``get`` for the same id within the
    process.
    """

    async def get(self, request_id: str) -> IntegrationRequest | None:
        """Retrieve a request by its identity."""

    async def get_by_external_id(self, external_id: str) -> IntegrationRequest | None:
        """Retrieve a request by the partner-supplied reference."""

    async def save(self, request: IntegrationRequest) -> None:
        """Insert or update ``request``."""

    async def list_all(self) -> list[IntegrationRequest]:
        """Return all requests, newest first."""

    async def list_by_status(self, status: IntegrationStatus) -> list[IntegrationRequest]:
        """Return requests currently in ``status``, newest first."""

    def scoped(self) -> AsyncContextManager["IntegrationRequestRepository"]:
        """Borrow a handle for one unit of work, released on exit."""
