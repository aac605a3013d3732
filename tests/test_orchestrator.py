import pytest

from congress_sync.db.repositories import BillRepository, SyncRunRepository
from congress_sync.exceptions import CongressApiError
from congress_sync.models.sync_models import (
    JobStatus,
    JobType,
    ResourceType,
    SyncOptions,
    SyncRunStatus,
    SyncStrategy,
)

from .factories import bill_payload, hearing_payload, member_payload


def _seed(fake_api) -> None:
    fake_api.bills = [bill_payload(1), bill_payload(2)]
    fake_api.members = [member_payload("M000001")]
    fake_api.hearings = [hearing_payload(100)]


async def _run(services, run_id: int):
    async with services.database.session() as session:
        return await SyncRunRepository(session).get(run_id)


async def test_inline_sync_records_completed_runs(services, fake_api) -> None:
    _seed(fake_api)

    result = await services.orchestrator.sync(SyncOptions())

    assert result.total_fetched == 4
    assert result.total_created == 4
    assert result.total_errors == 0
    assert set(result.results) == {"bills", "members", "hearings"}
    assert result.total_duration >= 0

    run = await _run(services, result.sync_run_ids["bills"])
    assert run.status == SyncRunStatus.COMPLETED.value
    assert run.records_fetched == 2
    assert run.records_created == 2
    assert run.completed_at is not None
    assert run.run_metadata["strategy"] == "incremental"
    assert "duration" in run.run_metadata


async def test_run_with_record_errors_is_partial(services, fake_api) -> None:
    broken = bill_payload(2)
    del broken["type"]
    fake_api.bills = [bill_payload(1), broken]

    result = await services.orchestrator.sync(SyncOptions(resources=[ResourceType.BILLS]))

    run = await _run(services, result.sync_run_ids["bills"])
    assert run.status == SyncRunStatus.PARTIAL.value
    assert len(run.errors) == 1


async def test_unhandled_error_fails_the_run(services, fake_api) -> None:
    fake_api.failures["/hearing/118"] = [401]

    with pytest.raises(CongressApiError):
        await services.orchestrator.sync(SyncOptions(resources=[ResourceType.HEARINGS]))

    async with services.database.session() as session:
        runs = await SyncRunRepository(session).get_recent_runs(resource_type=ResourceType.HEARINGS)
    assert runs[0].status == SyncRunStatus.FAILED.value
    assert "401" in runs[0].errors[0]["error"]
    assert "Traceback" in runs[0].errors[0]["stack"]


async def test_sync_stats_success_rate(services, fake_api) -> None:
    _seed(fake_api)
    await services.orchestrator.sync(SyncOptions(resources=[ResourceType.BILLS, ResourceType.MEMBERS]))
    fake_api.failures["/hearing/118"] = [403]
    with pytest.raises(CongressApiError):
        await services.orchestrator.sync(SyncOptions(resources=[ResourceType.HEARINGS]))

    stats = await services.orchestrator.get_sync_stats(hours_back=24)

    assert stats.recent_syncs == 3
    assert stats.success_rate == pytest.approx(2 / 3)
    assert stats.by_resource["hearings"] == {"syncs": 1, "errors": 1}
    assert stats.by_resource["bills"] == {"syncs": 1, "errors": 0}


async def test_sync_stats_empty(services) -> None:
    stats = await services.orchestrator.get_sync_stats()

    assert stats.recent_syncs == 0
    assert stats.success_rate == 0.0
    assert stats.by_resource == {}


async def test_stale_members_is_a_no_op(services, fake_api) -> None:
    result = await services.orchestrator.sync(SyncOptions(
        strategy=SyncStrategy.STALE,
        resources=[ResourceType.MEMBERS],
    ))

    assert result.results["members"].records_fetched == 0
    assert fake_api.requests == []
    assert (await _run(services, result.sync_run_ids["members"])).status == SyncRunStatus.COMPLETED.value


async def test_priority_strategy_merges_watch_list_and_active_window(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1), bill_payload(2)]
    await services.bill_sync.sync_bills()
    async with services.database.session() as session:
        await BillRepository(session).set_priority(118, "hr", 1, 9)

    result = await services.orchestrator.sync(SyncOptions(
        strategy=SyncStrategy.PRIORITY,
        resources=[ResourceType.BILLS],
    ))

    bills = result.results["bills"]
    # One detail fetch fills in the watched bill, then the two-bill active window
    # keeps what it filled in
    assert bills.records_fetched == 3
    assert (bills.records_updated, bills.records_unchanged) == (1, 2)
    assert fake_api.requests[-2].url.path == "/v3/bill/118/hr/1"


async def test_async_sync_only_enqueues(services, fake_api) -> None:
    result = await services.orchestrator.sync(SyncOptions(strategy=SyncStrategy.FULL, run_async=True))

    assert fake_api.requests == []
    assert result.results == {}
    assert set(result.job_ids) == {"bills", "members", "hearings"}

    jobs = {job["job_type"]: job for job in await services.ledger.get_recent_jobs()}
    assert jobs["sync_bills"]["priority"] == 8
    assert jobs["sync_hearings"]["priority"] == 6
    assert jobs["sync_members"]["priority"] == 5
    assert jobs["sync_bills"]["payload"] == {
        "resource": "bills",
        "strategy": "full",
        "sync_run_id": result.sync_run_ids["bills"],
    }

    run = await _run(services, result.sync_run_ids["bills"])
    assert run.status == SyncRunStatus.RUNNING.value
    assert run.run_metadata["job_id"] == result.job_ids["bills"]


async def test_failed_enqueue_fails_the_run(services, monkeypatch) -> None:
    async def broken_enqueue(*args, **kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(services.ledger, "enqueue", broken_enqueue)

    with pytest.raises(RuntimeError):
        await services.orchestrator.sync(SyncOptions(resources=[ResourceType.BILLS], run_async=True))

    async with services.database.session() as session:
        runs = await SyncRunRepository(session).get_recent_runs(resource_type=ResourceType.BILLS)
    assert runs[0].status == SyncRunStatus.FAILED.value
    assert runs[0].errors[0]["error"] == "ledger unavailable"


async def test_run_job_completes_job_and_run(services, fake_api) -> None:
    _seed(fake_api)
    result = await services.orchestrator.sync(SyncOptions(run_async=True))

    job = await services.ledger.claim_next()
    assert job.job_type == JobType.SYNC_BILLS.value

    outcome = await services.orchestrator.run_job(job)

    assert outcome.records_created == 2
    stored = await services.ledger.get_job(job.id)
    assert stored.status == JobStatus.COMPLETED.value
    assert stored.result["records_created"] == 2
    assert stored.result["error_count"] == 0
    run = await _run(services, result.sync_run_ids["bills"])
    assert run.status == SyncRunStatus.COMPLETED.value


async def test_run_job_failure_is_retried_then_succeeds(services, fake_api) -> None:
    _seed(fake_api)
    result = await services.orchestrator.sync(SyncOptions(resources=[ResourceType.HEARINGS], run_async=True))
    run_id = result.sync_run_ids["hearings"]
    fake_api.failures["/hearing/118"] = [401]

    job = await services.ledger.claim_next()
    assert await services.orchestrator.run_job(job) is None

    assert (await services.ledger.get_job(job.id)).status == JobStatus.PENDING.value
    run = await _run(services, run_id)
    assert run.status == SyncRunStatus.RUNNING.value
    assert run.run_metadata["attempts"] == 1
    assert "401" in run.run_metadata["last_error"]

    retry = await services.ledger.claim_next()
    outcome = await services.orchestrator.run_job(retry)

    assert outcome.records_created == 1
    assert retry.attempts == 2
    assert (await _run(services, run_id)).status == SyncRunStatus.COMPLETED.value


async def test_run_job_final_failure_fails_fresh_run(services, fake_api) -> None:
    fake_api.failures["/member"] = [401]
    job_id = await services.ledger.enqueue(
        JobType.SYNC_MEMBERS,
        {"resource": "members", "strategy": "incremental"},
        max_attempts=1,
    )

    job = await services.ledger.claim_next()
    assert await services.orchestrator.run_job(job) is None

    assert (await services.ledger.get_job(job_id)).status == JobStatus.FAILED.value
    async with services.database.session() as session:
        runs = await SyncRunRepository(session).get_recent_runs(resource_type=ResourceType.MEMBERS)
    assert runs[0].status == SyncRunStatus.FAILED.value
    assert runs[0].run_metadata["job_id"] == job_id
