"""Simulated partner system for development and tests."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional

from ..log import with_correlation


class SimulatedExternalSystemGateway:
    """Pretend to call a partner: random latency, configurable success rate."""

    def __init__(
        self,
        success_rate: float = 0.9,
        latency_min: float = 0.1,
        latency_max: float = 0.5,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.success_rate = success_rate
        self.latency_min = latency_min
        self.latency_max = max(latency_min, latency_max)
        self._rng = rng or random.Random()
        self._logger = logger or logging.getLogger(__name__)

    async def deliver(self, target_system: str, payload: str, correlation_id: str) -> bool:
        log = with_correlation(self._logger, correlation_id)
        log.info("Sending data to external system '%s'", target_system)

        await asyncio.sleep(self._rng.uniform(self.latency_min, self.latency_max))
        success = self._rng.random() < self.success_rate

        if success:
            log.info("Data sent successfully to '%s'", target_system)
        else:
            log.warning("Failed to send data to '%s'", target_system)
        return success

    async def close(self) -> None:
        pass
