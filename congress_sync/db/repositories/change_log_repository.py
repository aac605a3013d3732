"""
Repository for bill change log entries.

Entries are insert-only apart from the `notified` flag, which only
ever moves from False to True.

Responsibility: Change log persistence and notification bookkeeping
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import BillChangeLogModel
from ...models.sync_models import DetectedChange


class ChangeLogRepository:
    """Repository for change log operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, bill_id: int, change: DetectedChange) -> BillChangeLogModel:
        entry = BillChangeLogModel(
            bill_id=bill_id,
            change_type=change.change_type.value,
            previous_value=change.previous_value,
            new_value=change.new_value,
            significance=change.significance.value,
            detected_at=datetime.utcnow(),
            notified=False,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_unnotified(
        self,
        bill_ids: Optional[Iterable[int]] = None,
    ) -> List[BillChangeLogModel]:
        query = select(BillChangeLogModel).where(BillChangeLogModel.notified.is_(False))
        if bill_ids is not None:
            query = query.where(BillChangeLogModel.bill_id.in_(list(bill_ids)))

        result = await self.session.execute(
            query.order_by(BillChangeLogModel.detected_at.asc(), BillChangeLogModel.id.asc())
        )
        return list(result.scalars().all())

    async def mark_notified(self, change_ids: Iterable[int]) -> int:
        """
        Flip `notified` to True for the given entries.

        Already-notified entries are left untouched.

        Returns:
            Number of entries flipped
        """
        ids = list(change_ids)
        if not ids:
            return 0

        result = await self.session.execute(
            update(BillChangeLogModel)
            .where(
                BillChangeLogModel.id.in_(ids),
                BillChangeLogModel.notified.is_(False),
            )
            .values(notified=True)
        )
        return result.rowcount

    async def get_between(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[BillChangeLogModel]:
        query = select(BillChangeLogModel)
        if date_from is not None:
            query = query.where(BillChangeLogModel.detected_at >= date_from)
        if date_to is not None:
            query = query.where(BillChangeLogModel.detected_at <= date_to)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_for_bill(self, bill_id: int, limit: int = 50) -> List[BillChangeLogModel]:
        result = await self.session.execute(
            select(BillChangeLogModel)
            .where(BillChangeLogModel.bill_id == bill_id)
            .order_by(BillChangeLogModel.detected_at.desc(), BillChangeLogModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_bills_changed_since(
        self,
        since: datetime,
        limit: int = 50,
    ) -> List[Tuple[int, int, datetime]]:
        """
        Bills with at least one change since `since`.

        Returns:
            (bill_id, change_count, latest_detected_at) tuples, most recent first
        """
        latest = func.max(BillChangeLogModel.detected_at)
        result = await self.session.execute(
            select(
                BillChangeLogModel.bill_id,
                func.count(BillChangeLogModel.id),
                latest,
            )
            .where(BillChangeLogModel.detected_at >= since)
            .group_by(BillChangeLogModel.bill_id)
            .order_by(latest.desc())
            .limit(limit)
        )
        return [(bill_id, count, last_seen) for bill_id, count, last_seen in result.all()]

    @staticmethod
    def to_dict(entry: BillChangeLogModel) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "bill_id": entry.bill_id,
            "change_type": entry.change_type,
            "previous_value": entry.previous_value,
            "new_value": entry.new_value,
            "significance": entry.significance,
            "detected_at": entry.detected_at,
            "notified": entry.notified,
        }
