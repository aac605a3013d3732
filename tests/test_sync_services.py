import pytest

from congress_sync.config import SyncConfig
from congress_sync.db.repositories import BillRepository, MemberRepository
from congress_sync.exceptions import CongressApiError
from congress_sync.models.member import Member
from congress_sync.models.sync_models import BillSyncOptions, BillSyncPriority

from .factories import bill_payload, hearing_payload, member_payload


async def _stored_bill(services, number: int):
    async with services.database.session() as session:
        return await BillRepository(session).get_by_natural_key(118, "hr", number)


async def test_sync_bills_is_idempotent(services, fake_api) -> None:
    fake_api.bills = [bill_payload(n) for n in range(1, 4)]

    first = await services.bill_sync.sync_bills(BillSyncOptions(limit=10))
    second = await services.bill_sync.sync_bills(BillSyncOptions(limit=10))

    assert (first.records_fetched, first.records_created, first.changes_detected) == (3, 3, 3)
    assert (second.records_created, second.records_updated, second.records_unchanged) == (0, 0, 3)
    assert second.changes_detected == 0
    assert second.errors == []

    stats = await services.change_detection.get_change_stats()
    assert stats["by_type"] == {"status": 3}


async def test_sync_bills_uses_priority_window(services, fake_api) -> None:
    await services.bill_sync.sync_bills(BillSyncOptions(priority=BillSyncPriority.ACTIVE))
    await services.bill_sync.sync_bills(BillSyncOptions(priority=BillSyncPriority.ALL))

    assert "fromDateTime" in fake_api.requests[0].url.params
    assert "fromDateTime" not in fake_api.requests[1].url.params


async def test_updated_bill_logs_changes(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1)]
    await services.bill_sync.sync_single_bill(118, "hr", 1)

    fake_api.bills[0] = bill_payload(
        1,
        action_date="2024-03-01",
        action_text="Became Public Law No: 118-5.",
        law="118-5",
    )
    result = await services.bill_sync.sync_single_bill(118, "hr", 1)

    assert result.records_updated == 1
    assert result.changes_detected == 2

    stored = await _stored_bill(services, 1)
    assert stored.is_law is True
    changes = await services.change_detection.get_change_stats()
    assert changes["by_type"] == {"status": 1, "law": 1, "action": 1}


async def test_list_sync_detects_new_action(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1), bill_payload(2)]
    await services.bill_sync.sync_bills()

    fake_api.bills[0] = bill_payload(1, action_date="2024-03-01", action_text="Referred to committee")
    result = await services.bill_sync.sync_bills()

    assert (result.records_updated, result.records_unchanged) == (1, 1)
    assert result.changes_detected == 1
    changes = await services.change_detection.get_change_stats()
    assert changes["by_type"] == {"status": 2, "action": 1}


async def test_list_sync_keeps_detail_fields(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1, law="118-1", policy_area="Health")]
    await services.bill_sync.sync_single_bill(118, "hr", 1)

    listed = await services.bill_sync.sync_bills()

    assert (listed.records_updated, listed.records_unchanged, listed.changes_detected) == (0, 1, 0)
    stored = await _stored_bill(services, 1)
    assert (stored.law_number, stored.is_law) == ("Public Law 118-1", True)
    assert stored.policy_area == "Health"
    assert stored.sponsor_bioguide_id == "A000001"
    assert stored.cosponsor_count == 2
    assert stored.introduced_date is not None

    refreshed = await services.bill_sync.sync_single_bill(118, "hr", 1)

    assert (refreshed.records_unchanged, refreshed.changes_detected) == (1, 0)
    changes = await services.change_detection.get_change_stats()
    assert changes["by_type"] == {"status": 1}


async def test_list_update_merges_with_detail_fields(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1, law="118-1", policy_area="Health")]
    await services.bill_sync.sync_single_bill(118, "hr", 1)

    fake_api.bills[0] = bill_payload(
        1,
        law="118-1",
        policy_area="Health",
        action_date="2024-04-02",
        action_text="Signed by President.",
    )
    listed = await services.bill_sync.sync_bills()

    assert (listed.records_updated, listed.changes_detected) == (1, 1)
    stored = await _stored_bill(services, 1)
    assert stored.latest_action_text == "Signed by President."
    assert (stored.law_number, stored.policy_area) == ("Public Law 118-1", "Health")
    assert stored.api_response_data["policyArea"] == {"name": "Health"}
    changes = await services.change_detection.get_change_stats()
    assert changes["by_type"] == {"status": 1, "action": 1}


async def test_update_date_churn_is_unchanged(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1)]
    await services.bill_sync.sync_bills()

    fake_api.bills[0] = bill_payload(1, update_date="2024-02-02T09:30:00Z")
    result = await services.bill_sync.sync_bills()

    assert (result.records_updated, result.records_unchanged, result.changes_detected) == (0, 1, 0)


async def test_one_bad_record_does_not_stop_the_batch(services, fake_api, monkeypatch) -> None:
    fake_api.bills = [bill_payload(n) for n in range(1, 6)]
    original_upsert = BillRepository.upsert

    async def failing_upsert(self, record):
        if record.bill_number == 3:
            raise RuntimeError("disk full")
        return await original_upsert(self, record)

    monkeypatch.setattr(BillRepository, "upsert", failing_upsert)

    result = await services.bill_sync.sync_bills(BillSyncOptions(limit=5))

    assert result.records_fetched == 5
    assert result.records_created == 4
    assert result.errors == [{"record_id": "118-hr-3", "error": "disk full"}]
    assert await _stored_bill(services, 3) is None
    assert (await _stored_bill(services, 5)).bill_number == 5


async def test_normalization_errors_are_reported(services, fake_api) -> None:
    broken = bill_payload(2)
    broken["number"] = "not-a-number"
    fake_api.bills = [bill_payload(1), broken]

    result = await services.bill_sync.sync_bills()

    assert result.records_fetched == 2
    assert result.records_created == 1
    assert result.errors[0]["record_id"] == "118-hr-not-a-number"


async def test_fetch_failure_after_retries_becomes_error(services, fake_api, fake_sleep) -> None:
    fake_api.failures["/bill"] = [503, 503, 503]

    result = await services.bill_sync.sync_bills()

    assert result.records_fetched == 0
    assert len(result.errors) == 1
    assert result.errors[0]["record_id"] is None
    # Token bucket waits are sub-second; backoff waits are floored at 30s for 503s
    backoff = [delay for delay in fake_sleep.calls if delay >= 1]
    assert len(backoff) == 2
    assert all(delay >= 30 for delay in backoff)


async def test_configuration_error_propagates(services, fake_api) -> None:
    fake_api.failures["/bill"] = [401]

    with pytest.raises(CongressApiError):
        await services.bill_sync.sync_bills()

    recent = await services.error_handler.get_recent_errors(only_critical=True)
    assert recent[0]["error_type"] == "configuration"


async def test_sync_single_bill(services, fake_api) -> None:
    fake_api.bills = [bill_payload(7)]

    found = await services.bill_sync.sync_single_bill(118, "HR", 7)
    missing = await services.bill_sync.sync_single_bill(118, "hr", 8)

    assert found.records_created == 1
    assert missing.errors == [{"record_id": "118-hr-8", "error": "Bill not found upstream"}]


async def test_sync_stale_refreshes_known_bills(services, fake_api) -> None:
    fake_api.bills = [bill_payload(n) for n in range(1, 4)]
    await services.bill_sync.sync_bills()
    del fake_api.bills[2]

    result = await services.bill_sync.sync_stale(hours=0)

    assert result.records_fetched == 2
    # Detail fetches fill in what the list rows lacked
    assert result.records_updated == 2
    assert result.errors == [{"record_id": "118-hr-3", "error": "Bill not found upstream"}]
    assert (await _stored_bill(services, 1)).sponsor_bioguide_id == "A000001"


async def test_sync_stale_skips_recent_bills(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1)]
    await services.bill_sync.sync_bills()

    result = await services.bill_sync.sync_stale(hours=48)

    assert result.records_fetched == 0
    assert result.errors == []


async def test_sync_priority_keeps_local_priority(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1), bill_payload(2)]
    await services.bill_sync.sync_bills()
    async with services.database.session() as session:
        assert await BillRepository(session).set_priority(118, "hr", 2, 8)
    await services.bill_sync.sync_priority(min_priority=5)

    fake_api.bills[1] = bill_payload(2, cosponsors=5)
    result = await services.bill_sync.sync_priority(min_priority=5)

    assert result.records_fetched == 1
    assert result.records_updated == 1
    assert result.changes_detected == 1
    stored = await _stored_bill(services, 2)
    assert stored.priority == 8
    assert stored.cosponsor_count == 5


async def test_sync_all_current_members_retires_missing(services, fake_api) -> None:
    services.member_sync.config = SyncConfig(member_page_size=2, delay_between_seconds=0.0)
    async with services.database.session() as session:
        await MemberRepository(session).upsert(Member(bioguide_id="X000009", name="Gone, Former"))
    fake_api.members = [member_payload(f"M00000{n}") for n in range(1, 4)]

    result = await services.member_sync.sync_all_current_members()

    assert result.records_created == 3
    assert result.errors == []
    assert len(fake_api.requests) == 2
    async with services.database.session() as session:
        repo = MemberRepository(session)
        assert (await repo.get_by_natural_key("X000009")).is_current is False
        assert (await repo.get_by_natural_key("M000001")).is_current is True
        assert await repo.count_current() == 3


async def test_member_paging_stops_at_request_budget(services, fake_api) -> None:
    services.member_sync.config = SyncConfig(member_page_size=2, request_threshold=500)
    services.monitor.hourly_limit = 501
    async with services.database.session() as session:
        await MemberRepository(session).upsert(Member(bioguide_id="X000009", name="Gone, Former"))
    fake_api.members = [member_payload(f"M00000{n}") for n in range(1, 4)]

    result = await services.member_sync.sync_all_current_members()

    assert result.records_created == 2
    assert len(fake_api.requests) == 1
    assert result.errors[0]["error"].startswith("Request budget exhausted")
    async with services.database.session() as session:
        assert (await MemberRepository(session).get_by_natural_key("X000009")).is_current is True


async def test_sync_members_with_filters(services, fake_api) -> None:
    fake_api.members = [member_payload("M000001")]

    result = await services.member_sync.sync_members()

    assert result.records_created == 1
    assert fake_api.requests[0].url.params["limit"] == "100"


async def test_sync_upcoming_hearings(services, fake_api) -> None:
    fake_api.hearings = [hearing_payload(100), hearing_payload(101)]

    first = await services.hearing_sync.sync_upcoming()
    fake_api.hearings[0] = hearing_payload(100, title="Oversight hearing (rescheduled)")
    second = await services.hearing_sync.sync_recent()

    request = fake_api.requests[0]
    assert request.url.path == "/v3/hearing/118"
    assert "fromDateTime" in request.url.params
    assert "toDateTime" in request.url.params
    assert first.records_created == 2
    assert (second.records_updated, second.records_unchanged) == (1, 1)


async def test_enrich_bills_fills_rows_missing_details(services, fake_api) -> None:
    fake_api.bills = [bill_payload(1), bill_payload(2, sponsor=False), bill_payload(3)]
    await services.bill_sync.sync_bills()
    await services.bill_sync.sync_single_bill(118, "hr", 3)

    result = await services.bill_sync.enrich_bills()

    assert result.records_fetched == 2
    assert result.records_updated == 2
    assert {request.url.path for request in fake_api.requests[-2:]} == {"/v3/bill/118/hr/1", "/v3/bill/118/hr/2"}
    assert (await _stored_bill(services, 1)).sponsor_full_name == "Rep. Example [D-CA-1]"

    sponsor_only = await services.bill_sync.enrich_bills(missing_sponsor_only=True)

    # Bill 2 has no sponsor upstream either, so it stays selected
    assert sponsor_only.records_fetched == 1
    assert sponsor_only.records_unchanged == 1
    assert fake_api.requests[-1].url.path == "/v3/bill/118/hr/2"
