"""Event contracts exchanged over the message router."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Type

from pydantic import BaseModel, ConfigDict, Field

from .models import IntegrationRequest


class IntegrationRequestCreated(BaseModel):
    """Published once when a new integration request has been persisted."""

    model_config = ConfigDict(frozen=True)

    event_type: ClassVar[str] = "integration_request_created"

    request_id: str
    external_id: str
    source_system: str
    target_system: str
    correlation_id: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_request(cls, request: IntegrationRequest) -> "IntegrationRequestCreated":
        return cls(
            request_id=request.id,
            external_id=request.external_id,
            source_system=request.source_system,
            target_system=request.target_system,
            correlation_id=request.correlation_id,
        )


EVENT_TYPES: Dict[str, Type[BaseModel]] = {
    IntegrationRequestCreated.event_type: IntegrationRequestCreated,
}


class Envelope(BaseModel):
    """
    Wire form of a published message for transports that leave the process.
    """

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: str
    body: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def wrap(cls, message: BaseModel, correlation_id: str) -> "Envelope":
        event_type = getattr(type(message), "event_type", None)
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unregistered event type: {type(message).__name__}")
        return cls(
            correlation_id=correlation_id,
            event_type=event_type,
            body=message.model_dump(mode="json"),
        )

    def unwrap(self) -> BaseModel:
        """Rebuild the event model registered for ``event_type``."""
        try:
            model = EVENT_TYPES[self.event_type]
        except KeyError:
            raise ValueError(f"Unknown event type: {self.event_type}") from None
        return model.model_validate(self.body)

    def to_json(self) -> str:
        """Serialize envelope to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Envelope":
        """Deserialize envelope from JSON."""
        return cls.model_validate_json(data)
