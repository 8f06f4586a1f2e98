"""External-system gateway interface."""

from __future__ import annotations

from typing import Protocol


class ExternalSystemGateway(Protocol):
    """Delivers a request payload to a partner system."""

    async def deliver(self, target_system: str, payload: str, correlation_id: str) -> bool:
        """Send ``payload`` to ``target_system``.

        Returns:
            True when the partner accepted the data, False when it refused.

        Raises:
            GatewayFailure: On transient errors (network, timeouts).
        """

    async def close(self) -> None:
        """Release held resources."""
