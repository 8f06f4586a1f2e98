"""Error taxonomy for integration hub."""

from __future__ import annotations


class IntegrationHubError(Exception):
    """Base class for all integration hub errors."""


class InvalidArgument(IntegrationHubError, ValueError):
    """Malformed construction or transition input."""


class IllegalTransition(InvalidArgument):
    """Requested status change is not an edge of the workflow graph."""

    def __init__(self, current: object, requested: object) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Illegal transition from {current} to {requested}")


class NotFound(IntegrationHubError, LookupError):
    """Referenced integration request does not exist."""


class GatewayFailure(IntegrationHubError):
    """A persistence or external-system call raised an error."""


def delivery_rejected_reason(target_system: str) -> str:
    """Failure reason recorded when ``target_system`` refuses a delivery."""
    return f"Failed to send data to external system '{target_system}'"


class DeliveryRejected(IntegrationHubError):
    """The external system explicitly reported a failed delivery."""

    def __init__(self, target_system: str) -> None:
        self.target_system = target_system
        super().__init__(delivery_rejected_reason(target_system))


class ChannelFull(IntegrationHubError):
    """A bounded channel refused a message."""


class WorkflowCancelled(IntegrationHubError):
    """Processing stopped at a cancellation checkpoint."""
