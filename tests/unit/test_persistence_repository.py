from datetime import timedelta

import pytest

import integrationhub.persistence as persistence
from integrationhub.config import IntegrationHubConfig
from integrationhub.models import IntegrationRequest, IntegrationStatus
from integrationhub.persistence import (
    InMemoryIntegrationRequestRepository,
    SQLiteIntegrationRequestRepository,
    get_repository,
)


@pytest.fixture(params=["inmemory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "sqlite":
        repository = SQLiteIntegrationRequestRepository(tmp_path / "hub.db")
        yield repository
        repository.close()
    else:
        yield InMemoryIntegrationRequestRepository()


@pytest.mark.asyncio
async def test_repository_crud(repo):
    request = IntegrationRequest.create("EXT-1", "A", "B", '{"k": 1}', "corr-1")
    await repo.save(request)

    loaded = await repo.get(request.id)
    assert loaded == request

    request.mark_processing()
    request.mark_waiting_external()
    request.mark_failed("partner down")
    await repo.save(request)

    loaded = await repo.get(request.id)
    assert loaded is not None
    assert loaded.status == IntegrationStatus.FAILED
    assert loaded.error_detail == "partner down"
    assert loaded.updated_at == request.updated_at
    assert loaded.created_at == request.created_at
    assert loaded.payload == '{"k": 1}'

    by_external = await repo.get_by_external_id("EXT-1")
    assert by_external is not None and by_external.id == request.id

    assert await repo.get("missing") is None
    assert await repo.get_by_external_id("missing") is None


@pytest.mark.asyncio
async def test_repository_listing(repo):
    first = IntegrationRequest.create("EXT-1", "A", "B", "{}", "c1")
    second = IntegrationRequest.create("EXT-2", "A", "C", "{}", "c2")
    second.mark_processing()
    await repo.save(first)
    await repo.save(second)

    all_requests = await repo.list_all()
    assert {r.id for r in all_requests} == {first.id, second.id}
    assert all_requests[0].created_at >= all_requests[1].created_at

    received = await repo.list_by_status(IntegrationStatus.RECEIVED)
    assert [r.id for r in received] == [first.id]
    assert await repo.list_by_status(IntegrationStatus.COMPLETED) == []


@pytest.mark.asyncio
async def test_scoped_handle_shares_state(repo):
    request = IntegrationRequest.create("EXT-1", "A", "B", "{}", "c1")

    async with repo.scoped() as scoped:
        await scoped.save(request)

    assert (await repo.get(request.id)) == request


@pytest.mark.asyncio
async def test_inmemory_repository_stores_copies():
    repo = InMemoryIntegrationRequestRepository()
    request = IntegrationRequest.create("EXT-1", "A", "B", "{}", "c1")
    await repo.save(request)

    request.mark_processing()

    stored = await repo.get(request.id)
    assert stored.status == IntegrationStatus.RECEIVED


@pytest.mark.asyncio
async def test_sqlite_repository_survives_reopen(tmp_path):
    path = tmp_path / "hub.db"
    request = IntegrationRequest.create("EXT-1", "A", "B", "{}", "c1")
    repo = SQLiteIntegrationRequestRepository(path)
    await repo.save(request)
    repo.close()

    reopened = SQLiteIntegrationRequestRepository(path)
    assert (await reopened.get(request.id)) == request
    reopened.close()


def test_get_repository_selects_backend(tmp_path, monkeypatch):
    monkeypatch.delenv("INTEGRATIONHUB_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(persistence, "_repository_instance", None)

    sqlite_repo = get_repository(f"sqlite://{tmp_path / 'hub.db'}")
    assert isinstance(sqlite_repo, SQLiteIntegrationRequestRepository)
    sqlite_repo.close()

    memory_repo = get_repository(config=IntegrationHubConfig())
    assert isinstance(memory_repo, InMemoryIntegrationRequestRepository)
    assert get_repository() is memory_repo

    with pytest.raises(ValueError):
        get_repository("mysql://nope")


@pytest.mark.asyncio
async def test_get_by_external_id_returns_newest(repo):
    older = IntegrationRequest.create("EXT-DUP", "A", "B", "{}", "c1")
    newer = IntegrationRequest.create("EXT-DUP", "A", "C", "{}", "c2").model_copy(
        update={"created_at": older.created_at + timedelta(seconds=1)}
    )
    await repo.save(newer)
    await repo.save(older)

    found = await repo.get_by_external_id("EXT-DUP")

    assert found is not None
    assert found.id == newer.id
