"""Integration hub: event-driven orchestration of partner integration requests."""

from .contracts import Envelope, IntegrationRequestCreated
from .gateways import ExternalSystemGateway, get_gateway
from .models import IntegrationRequest, IntegrationStatus
from .persistence import IntegrationRequestRepository, get_repository
from .service import IntegrationRequestService
from .transports import get_transport
from .worker import OrchestrationWorker

__version__ = "0.1.0"
__all__ = [
    "Envelope",
    "ExternalSystemGateway",
    "IntegrationRequest",
    "IntegrationRequestCreated",
    "IntegrationRequestRepository",
    "IntegrationRequestService",
    "IntegrationStatus",
    "OrchestrationWorker",
    "get_gateway",
    "get_repository",
    "get_transport",
]
