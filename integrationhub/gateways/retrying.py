"""Bounded retry around another gateway."""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import GatewayFailure
from ..log import with_correlation
from ..utils.retry import schedule_retry
from .base import ExternalSystemGateway


class RetryingGateway:
    """Retry transient :class:`GatewayFailure` errors with jittered backoff.

    A ``False`` outcome is a definitive refusal and is returned as is.
    """

    def __init__(
        self,
        inner: ExternalSystemGateway,
        max_attempts: int = 3,
        base: float = 1.5,
        jitter: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.inner = inner
        self.max_attempts = max_attempts
        self.base = base
        self.jitter = jitter
        self._logger = logger or logging.getLogger(__name__)

    async def deliver(self, target_system: str, payload: str, correlation_id: str) -> bool:
        attempt = 1
        while True:
            try:
                return await self.inner.deliver(target_system, payload, correlation_id)
            except GatewayFailure as exc:
                if attempt >= self.max_attempts:
                    raise
                with_correlation(self._logger, correlation_id).warning(
                    "Delivery to '%s' failed (attempt %d/%d): %s",
                    target_system,
                    attempt,
                    self.max_attempts,
                    exc,
                )
                await schedule_retry(attempt, base=self.base, jitter=self.jitter)
                attempt += 1

    async def close(self) -> None:
        await self.inner.close()
