"""In-process message router."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict, deque
from typing import Any, AsyncIterator, Deque, Dict, Literal, Optional, Set, Tuple

from ..errors import ChannelFull, InvalidArgument
from ..log import with_correlation
from ..utils.timing import pause, stopped
from .base import BaseTransport, validate_publish

Item = Tuple[Any, str]


class InMemoryTransport(BaseTransport[Item]):
    """Named in-memory channels, safe for concurrent publishers.

    Channels are created on first use. Without a ``capacity`` they grow
    without bound; with one, ``overflow`` decides whether a full channel
    rejects the new message or evicts its oldest pending one. Nothing
    survives a process restart and delivered messages are not redelivered.
    """

    def __init__(
        self,
        poll_interval: float = 1.0,
        capacity: Optional[int] = None,
        overflow: Literal["reject", "drop_oldest"] = "reject",
        dead_letter_channel: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(
            poll_interval=poll_interval,
            dead_letter_channel=dead_letter_channel,
            logger=logger,
        )
        if capacity is not None and capacity < 1:
            raise InvalidArgument("capacity must be positive")
        if overflow not in ("reject", "drop_oldest"):
            raise InvalidArgument(f"Unsupported overflow policy: {overflow}")
        self.capacity = capacity
        self.overflow = overflow
        self._queues: Dict[str, Deque[Item]] = defaultdict(deque)
        self._readers: Set[str] = set()
        self._lock = threading.Lock()

    async def publish(self, message: Any, channel: str, correlation_id: str) -> None:
        """Publish message to in-memory channel."""
        validate_publish(message, channel)
        dropped: Optional[Item] = None
        with self._lock:
            queue = self._queues[channel]
            if self.capacity is not None and len(queue) >= self.capacity:
                if self.overflow == "reject":
                    raise ChannelFull(
                        f"Channel '{channel}' is full ({self.capacity} pending)"
                    )
                dropped = queue.popleft()
            queue.append((message, correlation_id))

        log = with_correlation(self._logger, correlation_id)
        log.info(
            "Message published to channel '%s'. Type: %s",
            channel,
            type(message).__name__,
        )
        if dropped is not None:
            with_correlation(self._logger, dropped[1]).warning(
                "Channel '%s' over capacity; dropped oldest pending %s",
                channel,
                type(dropped[0]).__name__,
            )

    def _pop(self, channel: str) -> Optional[Item]:
        with self._lock:
            queue = self._queues[channel]
            return queue.popleft() if queue else None

    def pending(self, channel: str) -> int:
        """Number of undelivered messages on ``channel``."""
        with self._lock:
            return len(self._queues.get(channel, ()))

    async def subscribe(
        self,
        channel: str,
        lifespan: Optional[float] = None,
        stop: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Tuple[Item, Any, str]]:
        """Subscribe to messages from channel.

        Args:
            channel: The channel to read from
            lifespan: Maximum time in seconds to keep reading. If None, runs
                until ``stop`` is set.
            stop: Cancellation signal checked on every iteration.
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time() if lifespan else None

        with self._lock:
            if channel in self._readers:
                self._logger.warning(
                    "Channel '%s' already has an active consumer; messages will be split",
                    channel,
                )
            self._readers.add(channel)
            self._queues.setdefault(channel, deque())

        try:
            while not stopped(stop):
                if lifespan and start_time is not None:
                    if loop.time() - start_time >= lifespan:
                        break

                item = self._pop(channel)
                if item is not None:
                    yield item, item[0], item[1]
                    continue

                wait = self.poll_interval
                if lifespan and start_time is not None:
                    remaining = lifespan - (loop.time() - start_time)
                    wait = max(0.0, min(wait, remaining))
                await pause(wait, stop)
        finally:
            with self._lock:
                self._readers.discard(channel)

    async def ack(self, raw_message: Item) -> None:
        """No-op acknowledgment for in-memory transport."""
        pass
