"""Base transport interface for the integration hub message router."""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Optional, Tuple, TypeVar

from ..errors import InvalidArgument
from ..log import with_correlation

RawMessageT = TypeVar("RawMessageT")

Handler = Callable[[Any, str], Awaitable[None]]


def validate_publish(message: Any, channel: str) -> None:
    if message is None:
        raise InvalidArgument("message cannot be null")
    if not channel or not channel.strip():
        raise InvalidArgument("Channel cannot be null or empty")


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Abstract base transport: named channels with FIFO delivery."""

    def __init__(
        self,
        poll_interval: float = 1.0,
        dead_letter_channel: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.poll_interval = poll_interval
        self.dead_letter_channel = dead_letter_channel
        self._logger = logger or logging.getLogger(__name__)

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    @abc.abstractmethod
    async def publish(self, message: Any, channel: str, correlation_id: str) -> None:
        """Append ``(message, correlation_id)`` to ``channel``."""
        raise NotImplementedError

    @abc.abstractmethod
    def subscribe(
        self,
        channel: str,
        lifespan: Optional[float] = None,
        stop: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Tuple[RawMessageT, Any, str]]:
        """Yield ``(raw, message, correlation_id)`` in publish order.

        Args:
            channel: The channel to read from
            lifespan: Maximum time in seconds to keep reading. If None, runs
                until ``stop`` is set.
            stop: Cancellation signal checked on every iteration.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Acknowledge successful processing."""
        raise NotImplementedError

    async def nack(self, raw_message: RawMessageT, requeue: bool = True) -> None:
        """Negatively acknowledge (default to ack if unsupported)."""
        await self.ack(raw_message)

    async def consume(
        self,
        channel: str,
        handler: Handler,
        stop: Optional[asyncio.Event] = None,
        lifespan: Optional[float] = None,
    ) -> None:
        """Run ``handler`` for every message delivered on ``channel``.

        A failing handler never stops the loop: the error is logged, the
        message is sent to the dead-letter channel when one is configured,
        and otherwise dropped.
        """
        if not channel or not channel.strip():
            raise InvalidArgument("Channel cannot be null or empty")
        if handler is None:
            raise InvalidArgument("handler cannot be null")

        self._logger.info("Starting to consume messages from channel '%s'", channel)
        async for raw, message, correlation_id in self.subscribe(
            channel, lifespan=lifespan, stop=stop
        ):
            log = with_correlation(self._logger, correlation_id)
            log.info(
                "Processing %s from channel '%s'", type(message).__name__, channel
            )
            try:
                await handler(message, correlation_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Error processing message from channel '%s'", channel)
                await self._dead_letter(message, channel, correlation_id)
                await self.nack(raw, requeue=False)
                continue
            log.info("Message processed successfully")
            await self.ack(raw)
        self._logger.info("Stopped consuming messages from channel '%s'", channel)

    async def _dead_letter(self, message: Any, channel: str, correlation_id: str) -> None:
        if not self.dead_letter_channel or self.dead_letter_channel == channel:
            return
        try:
            await self.publish(message, self.dead_letter_channel, correlation_id)
        except Exception:
            with_correlation(self._logger, correlation_id).exception(
                "Failed to dead-letter message from channel '%s'", channel
            )
