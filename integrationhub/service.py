"""Intake entry point: create and query integration requests."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from .constants import REQUEST_CREATED_CHANNEL
from .contracts import IntegrationRequestCreated
from .log import with_correlation
from .models import IntegrationRequest, IntegrationStatus
from .persistence import IntegrationRequestRepository
from .transports import BaseTransport


class IntegrationRequestService:
    """Service responsible for accepting new integration requests."""

    def __init__(
        self,
        repository: IntegrationRequestRepository,
        transport: BaseTransport,
        channel: str = REQUEST_CREATED_CHANNEL,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._transport = transport
        self._channel = channel
        self._logger = logger or logging.getLogger(__name__)

    async def submit(
        self,
        external_id: str,
        source_system: str,
        target_system: str,
        payload: str,
        correlation_id: Optional[str] = None,
    ) -> IntegrationRequest:
        """Record a new request and announce it to the worker.

        Args:
            external_id: Partner-supplied reference.
            source_system: System the request comes from.
            target_system: System the payload must be delivered to.
            payload: Opaque request body.
            correlation_id: Trace id; generated when omitted.

        Returns:
            The persisted request, in the ``Received`` state.

        Raises:
            InvalidArgument: If any field is empty.
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        log = with_correlation(self._logger, correlation_id)
        log.info(
            "Creating integration request. ExternalId: %s, Source: %s, Target: %s",
            external_id,
            source_system,
            target_system,
        )

        request = IntegrationRequest.create(
            external_id, source_system, target_system, payload, correlation_id
        )
        await self._repository.save(request)

        event = IntegrationRequestCreated.from_request(request)
        await self._transport.publish(event, self._channel, request.correlation_id)

        log.info("Integration request created successfully. Id: %s", request.id)
        return request

    async def get(self, request_id: str) -> IntegrationRequest | None:
        self._logger.debug("Fetching integration request by id: %s", request_id)
        return await self._repository.get(request_id)

    async def get_by_external_id(self, external_id: str) -> IntegrationRequest | None:
        self._logger.debug("Fetching integration request by external id: %s", external_id)
        return await self._repository.get_by_external_id(external_id)

    async def list_all(self) -> list[IntegrationRequest]:
        return await self._repository.list_all()

    async def list_by_status(self, status: IntegrationStatus) -> list[IntegrationRequest]:
        return await self._repository.list_by_status(IntegrationStatus(status))
