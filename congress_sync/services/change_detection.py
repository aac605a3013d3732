"""
Change detection for bill snapshots.

Compares a stored bill snapshot with a freshly fetched one, logs the typed
change events, and fans unnotified events out to a notifier.

Responsibility: Detect, log and hand off bill changes
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol, Sequence, TYPE_CHECKING
import logging

from ..db.repositories import BillRepository, ChangeLogRepository
from ..models.bill import Bill
from ..models.sync_models import ChangeSignificance, ChangeType, DetectedChange

if TYPE_CHECKING:
    from ..db.session import Database

logger = logging.getLogger(__name__)


# Notification priority by change type (higher = more important)
CHANGE_TYPE_PRIORITY: Dict[str, int] = {
    ChangeType.LAW.value: 5,
    ChangeType.ACTION.value: 4,
    ChangeType.STATUS.value: 4,
    ChangeType.COSPONSORS.value: 3,
    ChangeType.TITLE.value: 2,
    ChangeType.SUMMARY.value: 2,
    ChangeType.POLICY_AREA.value: 1,
}


class ChangeNotifier(Protocol):
    """Notifies whoever watches a bill; formatting and delivery are its own business."""

    async def notify(self, bill_id: int, significance: str, change_type: str) -> None:
        ...


def _isoformat(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def detect_changes(old: Optional[Bill], new: Bill) -> List[DetectedChange]:
    """
    Typed differences between two snapshots of the same bill.

    A missing old snapshot yields a single STATUS "introduced" event and
    nothing else. Values are JSON-ready (dates as ISO strings).
    """
    if old is None:
        return [DetectedChange(
            change_type=ChangeType.STATUS,
            previous_value=None,
            new_value="introduced",
            significance=ChangeSignificance.HIGH,
        )]

    changes: List[DetectedChange] = []

    if new.law_number and old.law_number != new.law_number:
        changes.append(DetectedChange(
            change_type=ChangeType.LAW,
            previous_value=old.law_number,
            new_value=new.law_number,
            significance=ChangeSignificance.HIGH,
        ))

    if old.title != new.title:
        changes.append(DetectedChange(
            change_type=ChangeType.TITLE,
            previous_value=old.title,
            new_value=new.title,
            significance=ChangeSignificance.MEDIUM,
        ))

    if (
        old.latest_action_date != new.latest_action_date
        or old.latest_action_text != new.latest_action_text
    ):
        changes.append(DetectedChange(
            change_type=ChangeType.ACTION,
            previous_value={
                "date": _isoformat(old.latest_action_date),
                "text": old.latest_action_text,
            },
            new_value={
                "date": _isoformat(new.latest_action_date),
                "text": new.latest_action_text,
            },
            significance=ChangeSignificance.HIGH,
        ))

    if old.policy_area != new.policy_area:
        changes.append(DetectedChange(
            change_type=ChangeType.POLICY_AREA,
            previous_value=old.policy_area,
            new_value=new.policy_area,
            significance=ChangeSignificance.LOW,
        ))

    old_count, new_count = old.cosponsor_count, new.cosponsor_count
    if old_count is not None and new_count is not None and old_count != new_count:
        changes.append(DetectedChange(
            change_type=ChangeType.COSPONSORS,
            previous_value={"count": old_count},
            new_value={"count": new_count},
            significance=(
                ChangeSignificance.MEDIUM if new_count > old_count else ChangeSignificance.LOW
            ),
        ))

    return changes


def most_significant(entries: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """First entry with the highest change-type priority."""
    best = entries[0]
    for entry in entries[1:]:
        if CHANGE_TYPE_PRIORITY.get(entry["change_type"], 0) > CHANGE_TYPE_PRIORITY.get(best["change_type"], 0):
            best = entry
    return best


class ChangeDetectionService:
    """
    Logs and serves bill change events.

    Example:
        service = ChangeDetectionService(database, notifier=push_notifier)
        changes = service.detect_changes(stored_bill, fetched_bill)
        await service.log_changes(bill_id, changes)
        await service.process_unnotified_changes()
    """

    def __init__(self, database: "Database", notifier: Optional[ChangeNotifier] = None):
        self.database = database
        self.notifier = notifier

    def detect_changes(self, old: Optional[Bill], new: Bill) -> List[DetectedChange]:
        return detect_changes(old, new)

    async def log_changes(
        self,
        bill_id: int,
        changes: Sequence[DetectedChange],
    ) -> List[Dict[str, Any]]:
        """
        Insert one change log row per event, each in its own session.

        A failed insert is logged and does not block the remaining events.

        Returns:
            The created entries as dicts
        """
        created: List[Dict[str, Any]] = []

        for change in changes:
            try:
                async with self.database.session() as session:
                    entry = await ChangeLogRepository(session).create(bill_id, change)
                    created.append(ChangeLogRepository.to_dict(entry))
            except Exception as e:
                logger.error(
                    f"Failed to log {change.change_type.value} change for bill {bill_id}: {e}",
                    exc_info=True,
                )

        if created:
            logger.info(f"Logged {len(created)} changes for bill {bill_id}")

        return created

    async def get_unnotified_changes(
        self,
        bill_ids: Optional[Sequence[int]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Unnotified entries grouped by bill.

        Returns:
            [{"bill_id": id, "changes": [entry, ...]}, ...] in detection order
        """
        async with self.database.session() as session:
            entries = await ChangeLogRepository(session).get_unnotified(bill_ids)

        grouped: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
        for entry in entries:
            grouped[entry.bill_id].append(ChangeLogRepository.to_dict(entry))

        return [{"bill_id": bill_id, "changes": items} for bill_id, items in grouped.items()]

    async def mark_as_notified(self, change_ids: Sequence[int]) -> int:
        if not change_ids:
            return 0

        async with self.database.session() as session:
            flipped = await ChangeLogRepository(session).mark_notified(change_ids)

        logger.info(f"Marked {flipped} changes as notified")
        return flipped

    async def get_change_stats(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        async with self.database.session() as session:
            entries = await ChangeLogRepository(session).get_between(date_from, date_to)

        by_type: Dict[str, int] = defaultdict(int)
        for entry in entries:
            by_type[entry.change_type] += 1

        return {
            "total_changes": len(entries),
            "by_type": dict(by_type),
            "unnotified": sum(1 for entry in entries if not entry.notified),
        }

    async def get_bill_changes(self, bill_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        async with self.database.session() as session:
            entries = await ChangeLogRepository(session).get_for_bill(bill_id, limit=limit)
            return [ChangeLogRepository.to_dict(entry) for entry in entries]

    async def get_bills_with_recent_changes(
        self,
        hours: int = 24,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """Bills changed in the last `hours`, most recently changed first."""
        since = datetime.utcnow() - timedelta(hours=hours)

        async with self.database.session() as session:
            rows = await ChangeLogRepository(session).get_bills_changed_since(since, limit=limit)
            bill_repo = BillRepository(session)

            results = []
            for bill_id, change_count, latest_change in rows:
                model = await bill_repo.get_by_id(bill_id)
                results.append({
                    "bill_id": bill_id,
                    "bill": bill_repo.to_domain(model).record_id if model else None,
                    "change_count": change_count,
                    "latest_change": latest_change,
                })
            return results

    async def process_unnotified_changes(self, auto_notify: bool = True) -> Dict[str, int]:
        """
        Hand unnotified changes to the notifier, one call per bill.

        The call carries the bill's most significant change. A bill whose
        notification fails keeps its entries unnotified for the next pass.
        """
        groups = await self.get_unnotified_changes()
        processed = sum(len(group["changes"]) for group in groups)

        if not groups:
            logger.info("No unnotified changes to process")
            return {"processed": 0, "notifications_sent": 0}

        logger.info(f"Found {processed} unnotified changes across {len(groups)} bills")

        notifications_sent = 0
        if auto_notify and self.notifier is not None:
            for group in groups:
                bill_id = group["bill_id"]
                entries = group["changes"]
                best = most_significant(entries)
                try:
                    await self.notifier.notify(bill_id, best["significance"], best["change_type"])
                    await self.mark_as_notified([entry["id"] for entry in entries])
                    notifications_sent += 1
                except Exception as e:
                    logger.error(f"Failed to notify for bill {bill_id}: {e}", exc_info=True)
        elif auto_notify:
            logger.warning("No notifier configured; changes left unnotified")

        logger.info(f"Processed {processed} changes, sent {notifications_sent} notifications")
        return {"processed": processed, "notifications_sent": notifications_sent}
