from datetime import date
from typing import List, Tuple

import pytest

from congress_sync.db.repositories import BillRepository
from congress_sync.models.bill import Bill
from congress_sync.models.sync_models import ChangeSignificance, ChangeType
from congress_sync.services.change_detection import ChangeDetectionService, detect_changes, most_significant


def _make_bill(**overrides) -> Bill:
    values = dict(
        congress=118,
        bill_type="hr",
        bill_number=1,
        title="Lower Energy Costs Act",
        latest_action_date=date(2024, 1, 10),
        latest_action_text="Referred to committee",
        policy_area="Energy",
        cosponsor_count=2,
    )
    values.update(overrides)
    return Bill(**values)


class RecordingNotifier:
    def __init__(self, fail_for: Tuple[int, ...] = ()) -> None:
        self.calls: List[Tuple[int, str, str]] = []
        self.fail_for = fail_for

    async def notify(self, bill_id: int, significance: str, change_type: str) -> None:
        if bill_id in self.fail_for:
            raise RuntimeError("push gateway down")
        self.calls.append((bill_id, significance, change_type))


async def _store_bill(database, bill: Bill) -> int:
    async with database.session() as session:
        outcome = await BillRepository(session).upsert(bill)
        return outcome.model.id


def test_new_bill_yields_single_introduced_event() -> None:
    changes = detect_changes(None, _make_bill())

    assert len(changes) == 1
    assert changes[0].change_type == ChangeType.STATUS
    assert changes[0].new_value == "introduced"
    assert changes[0].significance == ChangeSignificance.HIGH


def test_identical_snapshots_yield_nothing() -> None:
    assert detect_changes(_make_bill(), _make_bill()) == []


def test_bill_becoming_law() -> None:
    old = _make_bill()
    new = _make_bill(
        law_number="Public Law 118-5",
        latest_action_date=date(2024, 3, 1),
        latest_action_text="Became Public Law No: 118-5.",
    )

    changes = {change.change_type: change for change in detect_changes(old, new)}

    assert set(changes) == {ChangeType.LAW, ChangeType.ACTION}
    assert changes[ChangeType.LAW].previous_value is None
    assert changes[ChangeType.LAW].new_value == "Public Law 118-5"
    assert changes[ChangeType.LAW].significance == ChangeSignificance.HIGH
    assert changes[ChangeType.ACTION].new_value == {
        "date": "2024-03-01",
        "text": "Became Public Law No: 118-5.",
    }


def test_cosponsor_growth_is_medium_and_drop_is_low() -> None:
    grew = detect_changes(_make_bill(cosponsor_count=2), _make_bill(cosponsor_count=5))
    dropped = detect_changes(_make_bill(cosponsor_count=5), _make_bill(cosponsor_count=4))

    assert grew[0].change_type == ChangeType.COSPONSORS
    assert grew[0].previous_value == {"count": 2}
    assert grew[0].new_value == {"count": 5}
    assert grew[0].significance == ChangeSignificance.MEDIUM
    assert dropped[0].significance == ChangeSignificance.LOW


def test_unknown_cosponsor_count_is_not_a_change() -> None:
    assert detect_changes(_make_bill(cosponsor_count=None), _make_bill(cosponsor_count=3)) == []


def test_title_and_policy_area_changes() -> None:
    changes = detect_changes(_make_bill(), _make_bill(title="New Title", policy_area="Taxation"))

    assert [c.change_type for c in changes] == [ChangeType.TITLE, ChangeType.POLICY_AREA]
    assert [c.significance for c in changes] == [ChangeSignificance.MEDIUM, ChangeSignificance.LOW]


def test_most_significant_prefers_law_then_first_seen() -> None:
    entries = [
        {"change_type": "title", "significance": "medium"},
        {"change_type": "action", "significance": "high"},
        {"change_type": "status", "significance": "high"},
        {"change_type": "law", "significance": "high"},
    ]

    assert most_significant(entries)["change_type"] == "law"
    assert most_significant(entries[:3])["change_type"] == "action"


async def test_log_and_read_changes(database) -> None:
    service = ChangeDetectionService(database)
    bill_id = await _store_bill(database, _make_bill())

    logged = await service.log_changes(
        bill_id,
        detect_changes(_make_bill(), _make_bill(cosponsor_count=3, title="Renamed")),
    )

    assert [entry["change_type"] for entry in logged] == ["title", "cosponsors"]
    assert all(entry["notified"] is False for entry in logged)

    history = await service.get_bill_changes(bill_id)
    assert {entry["change_type"] for entry in history} == {"title", "cosponsors"}

    stats = await service.get_change_stats()
    assert stats == {"total_changes": 2, "by_type": {"title": 1, "cosponsors": 1}, "unnotified": 2}

    recent = await service.get_bills_with_recent_changes(hours=1)
    assert recent[0]["bill_id"] == bill_id
    assert recent[0]["bill"] == "118-hr-1"
    assert recent[0]["change_count"] == 2


async def test_mark_as_notified_is_one_way(database) -> None:
    service = ChangeDetectionService(database)
    bill_id = await _store_bill(database, _make_bill())
    logged = await service.log_changes(bill_id, detect_changes(None, _make_bill()))
    ids = [entry["id"] for entry in logged]

    assert await service.mark_as_notified(ids) == 1
    assert await service.mark_as_notified(ids) == 0
    assert await service.mark_as_notified([]) == 0
    assert await service.get_unnotified_changes() == []


async def test_process_unnotified_changes_notifies_once_per_bill(database) -> None:
    notifier = RecordingNotifier()
    service = ChangeDetectionService(database, notifier=notifier)
    first = await _store_bill(database, _make_bill(bill_number=1))
    second = await _store_bill(database, _make_bill(bill_number=2))

    await service.log_changes(first, detect_changes(_make_bill(), _make_bill(title="Renamed", cosponsor_count=9)))
    await service.log_changes(second, detect_changes(None, _make_bill(bill_number=2)))

    result = await service.process_unnotified_changes()

    assert result == {"processed": 3, "notifications_sent": 2}
    assert sorted(notifier.calls) == sorted([
        (first, "medium", "cosponsors"),
        (second, "high", "status"),
    ])
    assert await service.get_unnotified_changes() == []


async def test_failed_notification_keeps_entries_unnotified(database) -> None:
    bill_id = await _store_bill(database, _make_bill())
    service = ChangeDetectionService(database, notifier=RecordingNotifier(fail_for=(bill_id,)))
    await service.log_changes(bill_id, detect_changes(None, _make_bill()))

    result = await service.process_unnotified_changes()

    assert result == {"processed": 1, "notifications_sent": 0}
    pending = await service.get_unnotified_changes([bill_id])
    assert pending[0]["bill_id"] == bill_id
    assert len(pending[0]["changes"]) == 1


async def test_without_notifier_nothing_is_marked(database) -> None:
    service = ChangeDetectionService(database)
    bill_id = await _store_bill(database, _make_bill())
    await service.log_changes(bill_id, detect_changes(None, _make_bill()))

    assert await service.process_unnotified_changes() == {"processed": 1, "notifications_sent": 0}
    assert len(await service.get_unnotified_changes()) == 1


@pytest.mark.parametrize("bill_ids, expected", [([], 0), (None, 1)])
async def test_get_unnotified_changes_filter(database, bill_ids, expected) -> None:
    service = ChangeDetectionService(database)
    bill_id = await _store_bill(database, _make_bill())
    await service.log_changes(bill_id, detect_changes(None, _make_bill()))

    assert len(await service.get_unnotified_changes(bill_ids)) == expected
