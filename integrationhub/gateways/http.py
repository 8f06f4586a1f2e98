"""HTTP delivery to partner systems."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from ..constants import CORRELATION_ID_HEADER
from ..errors import GatewayFailure
from ..log import with_correlation


class HttpExternalSystemGateway:
    """POST payloads to a per-target endpoint.

    A 2xx response counts as accepted and any other status as refused.
    Connection errors and timeouts raise :class:`GatewayFailure`. A target
    with no configured endpoint is refused without a network call.
    """

    def __init__(
        self,
        endpoints: Dict[str, str],
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.endpoints = dict(endpoints)
        self.timeout = timeout
        self._client = client
        self._logger = logger or logging.getLogger(__name__)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def deliver(self, target_system: str, payload: str, correlation_id: str) -> bool:
        log = with_correlation(self._logger, correlation_id)
        url = self.endpoints.get(target_system)
        if url is None:
            log.warning("No endpoint configured for external system '%s'", target_system)
            return False

        client = await self._get_client()
        log.info("Sending data to external system '%s' at %s", target_system, url)
        try:
            response = await client.post(
                url,
                content=payload.encode("utf-8"),
                headers={CORRELATION_ID_HEADER: correlation_id},
            )
        except httpx.HTTPError as exc:
            raise GatewayFailure(
                f"Request to external system '{target_system}' failed: {exc}"
            ) from exc

        if response.is_success:
            log.info("Data sent successfully to '%s'", target_system)
            return True
        log.warning(
            "External system '%s' refused data with HTTP %s",
            target_system,
            response.status_code,
        )
        return False
