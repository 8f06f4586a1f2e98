"""Shared test doubles for the integration hub test suite."""

import asyncio
from typing import List, Optional, Tuple

import pytest

from integrationhub.errors import GatewayFailure
from integrationhub.models import IntegrationRequest, IntegrationStatus
from integrationhub.persistence import InMemoryIntegrationRequestRepository
from integrationhub.transports.inmemory import InMemoryTransport


class StubGateway:
    """Return a fixed outcome (or raise) and remember every call."""

    def __init__(
        self,
        outcome: bool = True,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.outcome = outcome
        self.error = error
        self.delay = delay
        self.calls: List[Tuple[str, str, str]] = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def deliver(self, target_system: str, payload: str, correlation_id: str) -> bool:
        self.calls.append((target_system, payload, correlation_id))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.outcome
        finally:
            self.active -= 1

    async def close(self) -> None:
        self.closed = True


class FailedSaveRepository(InMemoryIntegrationRequestRepository):
    """Refuse to persist the ``Failed`` state, as a broken database would."""

    async def save(self, request: IntegrationRequest) -> None:
        if request.status == IntegrationStatus.FAILED:
            raise GatewayFailure("database unavailable")
        await super().save(request)


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport(poll_interval=0.01)


@pytest.fixture
def repository() -> InMemoryIntegrationRequestRepository:
    return InMemoryIntegrationRequestRepository()


@pytest.fixture
def stub_gateway():
    return StubGateway


@pytest.fixture
def failed_save_repository() -> FailedSaveRepository:
    return FailedSaveRepository()
