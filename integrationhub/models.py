"""Workflow entity and status state machine for integration requests."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field

from .errors import IllegalTransition, InvalidArgument


class IntegrationStatus(str, Enum):
    """Lifecycle state of an integration request."""

    RECEIVED = "Received"
    PROCESSING = "Processing"
    WAITING_EXTERNAL = "WaitingExternal"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def __str__(self) -> str:
        return self.value


TERMINAL_STATUSES: FrozenSet[IntegrationStatus] = frozenset(
    {IntegrationStatus.COMPLETED, IntegrationStatus.FAILED}
)

TRANSITIONS: Dict[IntegrationStatus, FrozenSet[IntegrationStatus]] = {
    IntegrationStatus.RECEIVED: frozenset(
        {IntegrationStatus.PROCESSING, IntegrationStatus.FAILED}
    ),
    IntegrationStatus.PROCESSING: frozenset(
        {IntegrationStatus.WAITING_EXTERNAL, IntegrationStatus.FAILED}
    ),
    IntegrationStatus.WAITING_EXTERNAL: frozenset(
        {IntegrationStatus.COMPLETED, IntegrationStatus.FAILED}
    ),
    IntegrationStatus.COMPLETED: frozenset(),
    IntegrationStatus.FAILED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require(name: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgument(f"{name} cannot be null or empty")
    return value


class IntegrationRequest(BaseModel):
    """One integration request and its current lifecycle state.

    Identity, partner reference, routing systems, payload, correlation id and
    creation time are frozen; only ``status``, ``updated_at`` and
    ``error_detail`` change, and only through the ``mark_*`` methods. The
    entity does no locking: callers guarantee a single writer per ``id``.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), frozen=True)
    external_id: str = Field(frozen=True)
    source_system: str = Field(frozen=True)
    target_system: str = Field(frozen=True)
    payload: str = Field(frozen=True)
    correlation_id: str = Field(frozen=True)
    status: IntegrationStatus = IntegrationStatus.RECEIVED
    created_at: datetime = Field(default_factory=_utcnow, frozen=True)
    updated_at: datetime = Field(default_factory=_utcnow)
    error_detail: Optional[str] = None

    @classmethod
    def create(
        cls,
        external_id: str,
        source_system: str,
        target_system: str,
        payload: str,
        correlation_id: str,
    ) -> "IntegrationRequest":
        """Build a new request in the ``Received`` state.

        Raises:
            InvalidArgument: If any argument is empty or missing.
        """
        now = _utcnow()
        return cls(
            external_id=_require("external_id", external_id),
            source_system=_require("source_system", source_system),
            target_system=_require("target_system", target_system),
            payload=_require("payload", payload),
            correlation_id=_require("correlation_id", correlation_id),
            status=IntegrationStatus.RECEIVED,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def can_transition_to(self, status: IntegrationStatus) -> bool:
        return status in TRANSITIONS[self.status]

    def mark_processing(self) -> None:
        self._transition(IntegrationStatus.PROCESSING)

    def mark_waiting_external(self) -> None:
        self._transition(IntegrationStatus.WAITING_EXTERNAL)

    def mark_completed(self) -> None:
        self._transition(IntegrationStatus.COMPLETED)

    def mark_failed(self, reason: str) -> None:
        """Move to ``Failed`` and record ``reason`` as the error detail."""
        if reason is None or not reason.strip():
            raise InvalidArgument("reason cannot be null or empty")
        self._transition(IntegrationStatus.FAILED, reason)

    def _transition(
        self, status: IntegrationStatus, error_detail: Optional[str] = None
    ) -> None:
        if not self.can_transition_to(status):
            raise IllegalTransition(self.status, status)
        self.status = status
        # clock may step backwards; keep updated_at monotonic
        self.updated_at = max(_utcnow(), self.updated_at)
        self.error_detail = error_detail
