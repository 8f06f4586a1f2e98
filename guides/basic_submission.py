"""Simple example showing request intake and in-process orchestration."""

import asyncio

from integrationhub import (
    IntegrationRequestService,
    OrchestrationWorker,
    get_gateway,
    get_repository,
    get_transport,
)
from integrationhub.log import configure_logging


async def main():
    """Submit one request and let a worker drive it to a terminal state."""
    configure_logging()

    # Initialize collaborators from config.yaml (or defaults)
    transport = get_transport()
    await transport.connect()
    repository = get_repository()

    service = IntegrationRequestService(repository, transport)
    worker = OrchestrationWorker(transport, repository, get_gateway())

    request = await service.submit(
        external_id="EXT-1",
        source_system="erp",
        target_system="crm",
        payload='{"order": 1}',
    )
    print(f"Request submitted: {request.id}")
    print(f"Correlation ID: {request.correlation_id}")

    # Long enough for preparation plus simulated partner latency
    await worker.start(lifespan=3)

    final = await service.get(request.id)
    print(f"Final status: {final.status}")
    if final.error_detail:
        print(f"Error: {final.error_detail}")

    await transport.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
