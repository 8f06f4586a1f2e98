"""Logging helpers: one-time setup and correlation-aware adapters."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional, Tuple

from .config import LoggingConfig


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure the root logger from ``config`` (call once at process start)."""
    config = config or LoggingConfig()
    logging.basicConfig(level=config.level.upper(), format=config.format)


class CorrelationAdapter(logging.LoggerAdapter):
    """Prefix every record with the correlation id it concerns."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        correlation_id = self.extra.get("correlation_id") if self.extra else None
        extra = dict(kwargs.pop("extra", None) or {})
        extra.setdefault("correlation_id", correlation_id)
        kwargs["extra"] = extra
        return f"[{correlation_id}] {msg}", kwargs


def with_correlation(logger: logging.Logger, correlation_id: str) -> CorrelationAdapter:
    return CorrelationAdapter(logger, {"correlation_id": correlation_id})
