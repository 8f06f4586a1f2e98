"""Redis transport for cross-process messaging."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Literal, Optional, Tuple

import redis.asyncio as redis
from pydantic import ValidationError

from ..contracts import Envelope
from ..errors import ChannelFull, InvalidArgument
from ..log import with_correlation
from ..utils.timing import stopped
from .base import BaseTransport, validate_publish


class RedisTransport(BaseTransport[str]):
    """Redis list-backed channels.

    Messages are wrapped in an :class:`~integrationhub.contracts.Envelope` and
    pushed with ``LPUSH``; readers pop with ``BRPOP`` so each channel stays
    FIFO. The capacity check and the push are separate commands, so a bounded
    channel can briefly exceed its capacity under concurrent publishers.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        poll_interval: float = 1.0,
        capacity: Optional[int] = None,
        overflow: Literal["reject", "drop_oldest"] = "reject",
        dead_letter_channel: Optional[str] = None,
        prefix: str = "integrationhub",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(
            poll_interval=poll_interval,
            dead_letter_channel=dead_letter_channel,
            logger=logger,
        )
        if capacity is not None and capacity < 1:
            raise InvalidArgument("capacity must be positive")
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.capacity = capacity
        self.overflow = overflow
        self.prefix = prefix
        self._redis: Optional[Any] = None

    def _key(self, channel: str) -> str:
        return f"{self.prefix}:{channel}"

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        # Test connection
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, message: Any, channel: str, correlation_id: str) -> None:
        """Publish message to Redis list (acting as queue)."""
        validate_publish(message, channel)
        if not self._redis:
            await self.connect()

        key = self._key(channel)
        if self.capacity is not None and self.overflow == "reject":
            if await self._redis.llen(key) >= self.capacity:
                raise ChannelFull(f"Channel '{channel}' is full ({self.capacity} pending)")

        envelope = Envelope.wrap(message, correlation_id)
        await self._redis.lpush(key, envelope.to_json())
        if self.capacity is not None and self.overflow == "drop_oldest":
            # newest entries sit at the head of the list
            await self._redis.ltrim(key, 0, self.capacity - 1)

        with_correlation(self._logger, correlation_id).info(
            "Message published to channel '%s'. Type: %s",
            channel,
            envelope.event_type,
        )

    async def subscribe(
        self,
        channel: str,
        lifespan: Optional[float] = None,
        stop: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Tuple[str, Any, str]]:
        """Subscribe to messages from Redis queue."""
        if not self._redis:
            await self.connect()

        key = self._key(channel)
        loop = asyncio.get_running_loop()
        start_time = loop.time() if lifespan else None
        block = max(1, int(round(self.poll_interval)))

        while not stopped(stop):
            if lifespan and start_time is not None:
                if loop.time() - start_time >= lifespan:
                    break

            result = await self._redis.brpop(key, timeout=block)
            if not result:
                continue

            _, raw = result
            try:
                envelope = Envelope.from_json(raw)
                message = envelope.unwrap()
            except (ValidationError, ValueError):
                self._logger.exception(
                    "Discarding undecodable message on channel '%s'", channel
                )
                continue
            yield raw, message, envelope.correlation_id

    async def ack(self, raw_message: str) -> None:
        """No-op acknowledgment for Redis transport (message already consumed)."""
        pass
