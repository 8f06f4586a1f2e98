"""Transport factory and initialization."""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..config import IntegrationHubConfig, load_config
from .base import BaseTransport
from .inmemory import InMemoryTransport


def get_transport(
    backend: Optional[str] = None,
    config: Optional[IntegrationHubConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> BaseTransport:
    """Factory function to get the configured transport."""

    config = config or load_config()
    settings = config.transport
    backend = (
        backend
        or os.getenv("INTEGRATIONHUB_TRANSPORT")
        or settings.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryTransport(
            poll_interval=settings.poll_interval,
            capacity=settings.capacity,
            overflow=settings.overflow,
            dead_letter_channel=settings.dead_letter_channel,
            logger=logger,
        )
    elif backend == "redis":
        from .redis import RedisTransport

        redis_conf = settings.redis
        return RedisTransport(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            poll_interval=settings.poll_interval,
            capacity=settings.capacity,
            overflow=settings.overflow,
            dead_letter_channel=settings.dead_letter_channel,
            logger=logger,
        )
    else:
        raise ValueError(f"Unsupported transport backend: {backend}")


__all__ = ["BaseTransport", "InMemoryTransport", "get_transport"]
