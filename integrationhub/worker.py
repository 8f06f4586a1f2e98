"""Orchestration worker driving integration requests through their workflow."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Set, Tuple

from .config import IntegrationHubConfig, load_config
from .constants import REQUEST_CREATED_CHANNEL
from .contracts import IntegrationRequestCreated
from .errors import GatewayFailure, NotFound, WorkflowCancelled, delivery_rejected_reason
from .gateways import ExternalSystemGateway, get_gateway
from .log import CorrelationAdapter, with_correlation
from .models import IntegrationRequest, IntegrationStatus
from .persistence import IntegrationRequestRepository, get_repository
from .transports import BaseTransport, get_transport
from .utils.timing import pause, stopped


class OrchestrationWorker:
    """Consumes creation events and advances each request to a terminal state.

    Per event: load, ``Processing``, preparation delay, ``WaitingExternal``,
    one delivery attempt, then ``Completed`` or ``Failed``. Every transition
    is saved before the next step. Errors never leave :meth:`handle`; they
    end in one best-effort attempt to record ``Failed``.
    """

    def __init__(
        self,
        transport: BaseTransport,
        repository: IntegrationRequestRepository,
        gateway: ExternalSystemGateway,
        channel: str = REQUEST_CREATED_CHANNEL,
        preparation_delay: Tuple[float, float] = (0.5, 1.5),
        external_timeout: Optional[float] = None,
        max_in_flight: int = 1,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1")
        self._transport = transport
        self._repository = repository
        self._gateway = gateway
        self._channel = channel
        self._preparation_delay = preparation_delay
        self._external_timeout = external_timeout
        self._max_in_flight = max_in_flight
        self._rng = rng or random.Random()
        self._logger = logger or logging.getLogger(__name__)
        self._stop: Optional[asyncio.Event] = None
        self._slots = asyncio.Semaphore(max_in_flight)
        self._tasks: Set[asyncio.Task] = set()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._owns_transport = False
        self._owns_gateway = False

    @classmethod
    def from_config(
        cls,
        config: Optional[IntegrationHubConfig] = None,
        transport: Optional[BaseTransport] = None,
        repository: Optional[IntegrationRequestRepository] = None,
        gateway: Optional[ExternalSystemGateway] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "OrchestrationWorker":
        """Build a worker from ``config``.

        Collaborators not passed in are created here and are closed by
        :meth:`start` when it returns; passed-in ones stay open.
        """
        config = config or load_config()
        settings = config.worker
        worker = cls(
            transport=transport or get_transport(config=config),
            repository=repository or get_repository(config=config),
            gateway=gateway or get_gateway(config=config),
            channel=settings.channel,
            preparation_delay=(
                settings.preparation_delay_min,
                settings.preparation_delay_max,
            ),
            external_timeout=settings.external_timeout,
            max_in_flight=settings.max_in_flight,
            logger=logger,
        )
        worker._owns_transport = transport is None
        worker._owns_gateway = gateway is None
        return worker

    async def close(self) -> None:
        """Release the gateway and transport this worker created."""
        if self._owns_gateway:
            await self._gateway.close()
        if self._owns_transport:
            await self._transport.disconnect()

    async def start(
        self, lifespan: Optional[float] = None, stop: Optional[asyncio.Event] = None
    ) -> None:
        """Consume creation events until ``stop`` is set or ``lifespan`` expires."""
        self._stop = stop or asyncio.Event()
        self._logger.info(
            "Integration orchestration worker consuming '%s'", self._channel
        )
        try:
            await self._transport.consume(
                self._channel, self._dispatch, stop=self._stop, lifespan=lifespan
            )
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            await self.close()
            self._logger.info("Integration orchestration worker stopped")

    async def _dispatch(self, event: IntegrationRequestCreated, correlation_id: str) -> None:
        if self._max_in_flight == 1:
            await self.handle(event, correlation_id, self._stop)
            return
        await self._slots.acquire()
        task = asyncio.create_task(self._run_slot(event, correlation_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_slot(self, event: IntegrationRequestCreated, correlation_id: str) -> None:
        try:
            await self.handle(event, correlation_id, self._stop)
        finally:
            self._slots.release()

    @asynccontextmanager
    async def _exclusive(self, request_id: str) -> AsyncIterator[None]:
        # one writer per request id; lock entries live only while in use
        lock = self._locks.setdefault(request_id, asyncio.Lock())
        self._lock_users[request_id] = self._lock_users.get(request_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[request_id] -= 1
            if not self._lock_users[request_id]:
                del self._lock_users[request_id]
                del self._locks[request_id]

    async def handle(
        self,
        event: IntegrationRequestCreated,
        correlation_id: str,
        stop: Optional[asyncio.Event] = None,
    ) -> Optional[IntegrationRequest]:
        """Run the workflow for one creation event.

        Returns:
            The request in its last persisted state, or None when it could
            not be loaded.
        """
        log = with_correlation(self._logger, correlation_id)
        log.info(
            "Processing integration request. RequestId: %s, Source: %s, Target: %s",
            event.request_id,
            event.source_system,
            event.target_system,
        )
        async with self._exclusive(event.request_id):
            try:
                return await self._process(event, correlation_id, stop, log)
            except NotFound as exc:
                log.warning("%s; abandoning event", exc)
                return None
            except WorkflowCancelled as exc:
                log.info("Request %s left as last persisted: %s", event.request_id, exc)
                return None
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.exception("Error processing integration request %s", event.request_id)
                return await self._recover(event, exc, log)

    async def _process(
        self,
        event: IntegrationRequestCreated,
        correlation_id: str,
        stop: Optional[asyncio.Event],
        log: CorrelationAdapter,
    ) -> Optional[IntegrationRequest]:
        self._checkpoint(stop, "before loading")
        async with self._repository.scoped() as repository:
            request = await repository.get(event.request_id)
            if request is None:
                raise NotFound(f"Integration request {event.request_id} not found")
            if request.status != IntegrationStatus.RECEIVED:
                log.info(
                    "Integration request %s already %s; skipping duplicate delivery",
                    request.id,
                    request.status,
                )
                return request

            log.info("Marking request %s as Processing", request.id)
            request.mark_processing()
            await repository.save(request)

            self._checkpoint(stop, "before preparation")
            low, high = self._preparation_delay
            if await pause(self._rng.uniform(low, high), stop):
                raise WorkflowCancelled("stopped during preparation")

            log.info("Marking request %s as WaitingExternal", request.id)
            request.mark_waiting_external()
            await repository.save(request)

            self._checkpoint(stop, "before external delivery")
            log.info(
                "Sending data to external system '%s'. RequestId: %s",
                request.target_system,
                request.id,
            )
            success = await self._deliver(request, correlation_id)

            # the partner has answered; record it even when stopping
            if success:
                log.info("Request %s completed successfully", request.id)
                request.mark_completed()
            else:
                log.warning("Request %s failed to send to external system", request.id)
                request.mark_failed(delivery_rejected_reason(request.target_system))
            await repository.save(request)

        log.info(
            "Integration request %s processing finished with status: %s",
            request.id,
            request.status,
        )
        return request

    async def _deliver(self, request: IntegrationRequest, correlation_id: str) -> bool:
        call = self._gateway.deliver(request.target_system, request.payload, correlation_id)
        if self._external_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self._external_timeout)
        except asyncio.TimeoutError:
            raise GatewayFailure(
                f"External system '{request.target_system}' did not respond "
                f"within {self._external_timeout}s"
            ) from None

    async def _recover(
        self,
        event: IntegrationRequestCreated,
        error: Exception,
        log: CorrelationAdapter,
    ) -> Optional[IntegrationRequest]:
        try:
            async with self._repository.scoped() as repository:
                request = await repository.get(event.request_id)
                if request is None:
                    log.warning(
                        "Integration request %s not found while recording failure",
                        event.request_id,
                    )
                    return None
                if request.is_terminal:
                    return request
                request.mark_failed(f"Internal error: {str(error) or type(error).__name__}")
                await repository.save(request)
                return request
        except Exception:
            log.exception("Failed to mark request %s as failed", event.request_id)
            return None

    @staticmethod
    def _checkpoint(stop: Optional[asyncio.Event], where: str) -> None:
        if stopped(stop):
            raise WorkflowCancelled(f"stopped {where}")
