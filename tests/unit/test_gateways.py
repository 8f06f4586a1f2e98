"""Tests for external-system gateways."""

import random

import httpx
import pytest

from integrationhub.errors import GatewayFailure
from integrationhub.gateways import (
    HttpExternalSystemGateway,
    RetryingGateway,
    SimulatedExternalSystemGateway,
)
from integrationhub.utils.retry import compute_backoff, schedule_retry


def _http_gateway(handler) -> HttpExternalSystemGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpExternalSystemGateway(
        endpoints={"B": "http://partner-b.test/inbound"}, client=client
    )


@pytest.mark.asyncio
async def test_http_gateway_posts_payload_with_correlation_header():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    gateway = _http_gateway(handler)
    assert await gateway.deliver("B", '{"order": 1}', "corr-1") is True
    await gateway.close()

    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "http://partner-b.test/inbound"
    assert seen[0].headers["X-Correlation-ID"] == "corr-1"
    assert seen[0].content == b'{"order": 1}'


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 409, 500, 503])
async def test_http_gateway_maps_error_status_to_refusal(status):
    gateway = _http_gateway(lambda request: httpx.Response(status))

    assert await gateway.deliver("B", "{}", "corr-1") is False


@pytest.mark.asyncio
async def test_http_gateway_raises_on_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _http_gateway(handler)

    with pytest.raises(GatewayFailure, match="'B'"):
        await gateway.deliver("B", "{}", "corr-1")


@pytest.mark.asyncio
async def test_http_gateway_refuses_unknown_target():
    calls = []
    gateway = _http_gateway(lambda request: calls.append(request) or httpx.Response(200))

    assert await gateway.deliver("Z", "{}", "corr-1") is False
    assert calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("rate, expected", [(1.0, True), (0.0, False)])
async def test_simulated_gateway_follows_success_rate(rate, expected):
    gateway = SimulatedExternalSystemGateway(
        success_rate=rate, latency_min=0, latency_max=0, rng=random.Random(7)
    )

    assert await gateway.deliver("B", "{}", "corr-1") is expected


class FlakyGateway:
    def __init__(self, failures: int, outcome: bool = True) -> None:
        self.failures = failures
        self.outcome = outcome
        self.attempts = 0

    async def deliver(self, target_system, payload, correlation_id):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise GatewayFailure(f"attempt {self.attempts} failed")
        return self.outcome

    async def close(self):
        pass


@pytest.fixture
def no_backoff(monkeypatch):
    waits = []

    async def fake_schedule_retry(attempt, base=1.5, jitter=0.5):
        waits.append(attempt)

    monkeypatch.setattr(
        "integrationhub.gateways.retrying.schedule_retry", fake_schedule_retry
    )
    return waits


@pytest.mark.asyncio
async def test_retrying_gateway_recovers_from_transient_failures(no_backoff):
    inner = FlakyGateway(failures=2)
    gateway = RetryingGateway(inner, max_attempts=3)

    assert await gateway.deliver("B", "{}", "corr-1") is True
    assert inner.attempts == 3
    assert no_backoff == [1, 2]


@pytest.mark.asyncio
async def test_retrying_gateway_gives_up_after_max_attempts(no_backoff):
    inner = FlakyGateway(failures=5)
    gateway = RetryingGateway(inner, max_attempts=2)

    with pytest.raises(GatewayFailure, match="attempt 2"):
        await gateway.deliver("B", "{}", "corr-1")
    assert inner.attempts == 2


@pytest.mark.asyncio
async def test_retrying_gateway_does_not_retry_refusals(no_backoff):
    inner = FlakyGateway(failures=0, outcome=False)
    gateway = RetryingGateway(inner, max_attempts=3)

    assert await gateway.deliver("B", "{}", "corr-1") is False
    assert inner.attempts == 1
    assert no_backoff == []


def test_compute_backoff_grows_with_bounded_jitter():
    for attempt in range(1, 5):
        delay = compute_backoff(attempt, base=2.0, jitter=0.5)
        assert 2.0 ** attempt <= delay <= 2.0 ** attempt + 0.5


@pytest.mark.asyncio
async def test_schedule_retry_sleeps_the_computed_backoff(monkeypatch):
    slept = []

    async def fake_sleep(delay):
        slept.append(delay)

    monkeypatch.setattr("integrationhub.utils.retry.asyncio.sleep", fake_sleep)

    assert await schedule_retry(3, base=2.0, jitter=0.0) is None
    assert slept == [8.0]
