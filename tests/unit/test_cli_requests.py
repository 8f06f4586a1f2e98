import asyncio

import pytest
from typer.testing import CliRunner

import integrationhub.persistence as persistence
from integrationhub.cli import app
from integrationhub.models import IntegrationRequest
from integrationhub.persistence import InMemoryIntegrationRequestRepository


@pytest.fixture
def repo(monkeypatch, tmp_path) -> InMemoryIntegrationRequestRepository:
    monkeypatch.setenv("INTEGRATIONHUB_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("INTEGRATIONHUB_TRANSPORT", raising=False)
    repository = InMemoryIntegrationRequestRepository()
    monkeypatch.setattr(persistence, "_repository_instance", repository)
    return repository


def _stored(repo, external_id: str, fail: bool = False) -> IntegrationRequest:
    request = IntegrationRequest.create(external_id, "erp", "crm", "{}", f"corr-{external_id}")
    if fail:
        request.mark_failed("partner down")
    asyncio.run(repo.save(request))
    return request


def test_request_list_shows_requests(repo):
    first = _stored(repo, "EXT-1")
    second = _stored(repo, "EXT-2", fail=True)

    runner = CliRunner()
    result = runner.invoke(app, ["request", "list"])
    assert result.exit_code == 0, result.output
    assert first.id in result.output
    assert second.id in result.output
    assert "Failed" in result.output

    filtered = runner.invoke(app, ["request", "list", "--status", "Received"])
    assert filtered.exit_code == 0, filtered.output
    assert first.id in filtered.output
    assert second.id not in filtered.output


def test_request_list_empty(repo):
    result = CliRunner().invoke(app, ["request", "list"])

    assert result.exit_code == 0
    assert "No requests found" in result.output


def test_request_show_details_and_missing(repo):
    request = _stored(repo, "EXT-1", fail=True)
    runner = CliRunner()

    result = runner.invoke(app, ["request", "show", request.id])
    assert result.exit_code == 0, result.output
    assert f"Request {request.id}: Failed" in result.output
    assert "erp -> crm" in result.output
    assert "corr-EXT-1" in result.output
    assert "Error: partner down" in result.output

    by_external = runner.invoke(app, ["request", "show", "EXT-1", "--external"])
    assert by_external.exit_code == 0, by_external.output
    assert request.id in by_external.output

    missing = runner.invoke(app, ["request", "show", "missing-id"])
    assert missing.exit_code == 1
    assert "Request not found" in missing.output


def test_request_submit_records_received(repo):
    result = CliRunner().invoke(
        app,
        ["request", "submit", "EXT-1", "erp", "crm", "{}", "--correlation-id", "corr-cli"],
    )

    assert result.exit_code == 0, result.output
    assert ": Received" in result.output
    assert "Correlation ID: corr-cli" in result.output
    stored = asyncio.run(repo.get_by_external_id("EXT-1"))
    assert stored is not None and stored.correlation_id == "corr-cli"


def test_request_submit_rejects_blank_fields(repo):
    result = CliRunner().invoke(app, ["request", "submit", "EXT-1", " ", "crm", "{}"])

    assert result.exit_code == 1
    assert "source_system" in result.output
    assert asyncio.run(repo.list_all()) == []


def test_request_submit_wait_runs_to_completion(repo, monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  poll_interval: 0.01
worker:
  preparation_delay_min: 0
  preparation_delay_max: 0
gateway:
  success_rate: 1.0
  latency_min: 0
  latency_max: 0
"""
    )
    monkeypatch.setenv("INTEGRATIONHUB_CONFIG", str(config_path))

    result = CliRunner().invoke(
        app, ["request", "submit", "EXT-W", "erp", "crm", "{}", "--wait"]
    )

    assert result.exit_code == 0, result.output
    assert ": Completed" in result.output


def test_request_submit_disconnects_transport(repo, monkeypatch):
    disconnects = []

    async def record_disconnect(self):
        disconnects.append(self)

    monkeypatch.setattr(
        "integrationhub.transports.inmemory.InMemoryTransport.disconnect",
        record_disconnect,
    )

    result = CliRunner().invoke(app, ["request", "submit", "EXT-1", "erp", "crm", "{}"])

    assert result.exit_code == 0, result.output
    assert len(disconnects) == 1
