"""External-system gateway factory."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import IntegrationHubConfig, load_config
from .base import ExternalSystemGateway
from .http import HttpExternalSystemGateway
from .retrying import RetryingGateway
from .simulated import SimulatedExternalSystemGateway


def get_gateway(
    backend: Optional[str] = None,
    config: Optional[IntegrationHubConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> ExternalSystemGateway:
    """Factory function to get the configured external-system gateway."""

    config = config or load_config()
    settings = config.gateway
    backend = (backend or settings.backend).lower()

    gateway: ExternalSystemGateway
    if backend == "simulated":
        gateway = SimulatedExternalSystemGateway(
            success_rate=settings.success_rate,
            latency_min=settings.latency_min,
            latency_max=settings.latency_max,
            logger=logger,
        )
    elif backend == "http":
        gateway = HttpExternalSystemGateway(
            endpoints=settings.endpoints,
            timeout=settings.timeout,
            logger=logger,
        )
    else:
        raise ValueError(f"Unsupported gateway backend: {backend}")

    if settings.retry.max_attempts > 1:
        gateway = RetryingGateway(
            gateway,
            max_attempts=settings.retry.max_attempts,
            base=settings.retry.base,
            jitter=settings.retry.jitter,
            logger=logger,
        )
    return gateway


__all__ = [
    "ExternalSystemGateway",
    "HttpExternalSystemGateway",
    "RetryingGateway",
    "SimulatedExternalSystemGateway",
    "get_gateway",
]
