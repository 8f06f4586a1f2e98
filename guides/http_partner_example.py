"""Deliver to a real HTTP endpoint with bounded retries.

Run a worker that posts payloads to partner endpoints over HTTP. Point the
``crm`` endpoint at anything that answers POST, e.g. ``python -m http.server``
will refuse with 501 and the request ends up Failed.
"""

import asyncio

from integrationhub import IntegrationRequestService, OrchestrationWorker
from integrationhub.config import IntegrationHubConfig
from integrationhub.gateways import get_gateway
from integrationhub.log import configure_logging
from integrationhub.persistence import SQLiteIntegrationRequestRepository
from integrationhub.transports import get_transport


async def main():
    config = IntegrationHubConfig(
        transport={"poll_interval": 0.1},
        worker={"preparation_delay_min": 0, "preparation_delay_max": 0.2},
        gateway={
            "backend": "http",
            "endpoints": {"crm": "http://localhost:8000/inbound"},
            "timeout": 5,
            "retry": {"max_attempts": 3},
        },
    )
    configure_logging(config.logging)

    transport = get_transport(config=config)
    repository = SQLiteIntegrationRequestRepository("integrationhub.db")
    gateway = get_gateway(config=config)
    service = IntegrationRequestService(repository, transport)
    worker = OrchestrationWorker.from_config(
        config, transport=transport, repository=repository, gateway=gateway
    )

    for i in range(3):
        await service.submit(f"EXT-{i}", "erp", "crm", f'{{"order": {i}}}')

    await worker.start(lifespan=10)
    await gateway.close()

    for request in await repository.list_all():
        print(f"{request.external_id}: {request.status} {request.error_detail or ''}")
    repository.close()


if __name__ == "__main__":
    asyncio.run(main())
