"""Command line interface for the integration hub."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from integrationhub import (
    IntegrationRequest,
    IntegrationRequestService,
    IntegrationStatus,
    OrchestrationWorker,
    get_repository,
    get_transport,
)
from integrationhub.config import load_config
from integrationhub.errors import InvalidArgument
from integrationhub.log import configure_logging
from integrationhub.transports import BaseTransport

app = typer.Typer(help="CLI for the integration hub")

# Command groups
request_app = typer.Typer(help="Commands for managing integration requests")
worker_app = typer.Typer(help="Commands for running the orchestration worker")

app.add_typer(request_app, name="request")
app.add_typer(worker_app, name="worker")


@app.callback()
def main() -> None:
    """Integration hub CLI entry point."""
    configure_logging(load_config().logging)


def _format(request: IntegrationRequest) -> str:
    return f"{request.id}\t{request.external_id}\t{request.status}"


async def _submit(
    service: IntegrationRequestService, transport: BaseTransport, fields: dict
) -> IntegrationRequest:
    try:
        return await service.submit(**fields)
    finally:
        await transport.disconnect()


async def _submit_and_wait(
    service: IntegrationRequestService,
    transport: BaseTransport,
    worker: OrchestrationWorker,
    fields: dict,
    poll: float = 0.2,
) -> Optional[IntegrationRequest]:
    stop = asyncio.Event()
    runner = asyncio.create_task(worker.start(stop=stop))
    try:
        request = await service.submit(**fields)
        while True:
            current = await service.get(request.id)
            if current is None or current.is_terminal:
                return current
            await asyncio.sleep(poll)
    finally:
        stop.set()
        await runner
        await transport.disconnect()


@request_app.command("submit")
def request_submit(
    external_id: str,
    source_system: str,
    target_system: str,
    payload: str,
    correlation_id: Optional[str] = typer.Option(None, help="Trace id to propagate"),
    wait: bool = typer.Option(
        False, help="Run a worker in this process until the request finishes"
    ),
) -> None:
    """
    Submit a new integration request.

    The request is stored as Received and a creation event is published for
    the orchestration worker. With --wait the worker runs in-process, which is
    the only way to see progress with the in-memory transport.

    Example:
        integrationhub request submit EXT-1 erp crm '{"order": 1}'
        integrationhub request submit EXT-2 erp crm '{}' --wait
    """
    config = load_config()
    repository = get_repository()
    transport = get_transport(config=config)
    service = IntegrationRequestService(
        repository, transport, channel=config.worker.channel
    )
    fields = dict(
        external_id=external_id,
        source_system=source_system,
        target_system=target_system,
        payload=payload,
        correlation_id=correlation_id,
    )
    try:
        if wait:
            worker = OrchestrationWorker.from_config(
                config, transport=transport, repository=repository
            )
            request = asyncio.run(_submit_and_wait(service, transport, worker, fields))
        else:
            request = asyncio.run(_submit(service, transport, fields))
    except InvalidArgument as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if request is None:
        typer.echo("Request not found")
        raise typer.Exit(code=1)
    typer.echo(f"Request {request.id}: {request.status}")
    typer.echo(f"Correlation ID: {request.correlation_id}")
    if request.error_detail:
        typer.echo(f"Error: {request.error_detail}")


@request_app.command("list")
def request_list(
    status: Optional[IntegrationStatus] = typer.Option(None, help="Filter by status"),
) -> None:
    """
    List integration requests, newest first.

    Example:
        integrationhub request list
        integrationhub request list --status Failed
    """
    repo = get_repository()
    if status is None:
        requests = asyncio.run(repo.list_all())
    else:
        requests = asyncio.run(repo.list_by_status(status))
    if not requests:
        typer.echo("No requests found")
        return
    for request in requests:
        typer.echo(_format(request))


@request_app.command("show")
def request_show(
    request_id: str,
    external: bool = typer.Option(False, help="Look up by external id instead"),
) -> None:
    """
    Show details for one integration request.

    Example:
        integrationhub request show 1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed
        integrationhub request show EXT-1 --external
    """
    repo = get_repository()
    if external:
        request = asyncio.run(repo.get_by_external_id(request_id))
    else:
        request = asyncio.run(repo.get(request_id))
    if request is None:
        typer.echo("Request not found")
        raise typer.Exit(code=1)
    typer.echo(f"Request {request.id}: {request.status}")
    typer.echo(f"External ID: {request.external_id}")
    typer.echo(f"Route: {request.source_system} -> {request.target_system}")
    typer.echo(f"Correlation ID: {request.correlation_id}")
    typer.echo(f"Created: {request.created_at}  Updated: {request.updated_at}")
    if request.error_detail:
        typer.echo(f"Error: {request.error_detail}")


@worker_app.command("run")
def worker_run(
    lifespan: Optional[float] = typer.Option(
        None, help="Stop after this many seconds (default: run until interrupted)"
    ),
) -> None:
    """
    Run the orchestration worker.

    Consumes creation events from the configured transport and drives each
    request to Completed or Failed.

    Example:
        integrationhub worker run
        integrationhub worker run --lifespan 300
    """
    worker = OrchestrationWorker.from_config(load_config())
    typer.echo("Starting orchestration worker")
    try:
        asyncio.run(worker.start(lifespan=lifespan))
    except KeyboardInterrupt:
        typer.echo("Worker interrupted")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
