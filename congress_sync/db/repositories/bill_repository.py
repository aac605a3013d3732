"""
Repository for bill data operations.

Implements repository pattern for bill snapshots with natural key
lookups, hash-gated upserts that keep detail-only fields, and the
stale/priority/enrichment selections used by the sync strategies.

Responsibility: Abstract database operations for bills
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import select, update, or_
import logging

from ..models import BillModel
from .snapshot_repository import SnapshotRepository
from ...models.bill import Bill
from ...utils.hash_utils import compute_bill_hash

logger = logging.getLogger(__name__)


class BillRepository(SnapshotRepository[Bill, BillModel]):
    """
    Repository for bill data persistence.

    Example:
        repo = BillRepository(session)

        # Find by natural key
        bill = await repo.get_by_natural_key(118, "hr", 1234)

        # Upsert (hash-gated)
        outcome = await repo.upsert(bill)
    """

    model = BillModel
    natural_key_columns = ("congress", "bill_type", "bill_number")
    # Watch-list priority is owned locally, never by the upstream payload
    insert_only_columns = frozenset({"priority"})

    def _compute_content_hash(self, bill: Bill) -> str:
        return compute_bill_hash(bill)

    def _merge_with_stored(self, bill: Bill, stored: Bill) -> Bill:
        return bill.fill_from(stored)

    def _conflict_extras(self) -> Dict[str, Any]:
        return {"sync_attempts": BillModel.sync_attempts + 1}

    async def find_stale(self, hours: int, limit: int) -> List[BillModel]:
        """
        Bills not synced within `hours`, high priority first, oldest sync first.
        """
        cutoff = datetime.utcnow() - timedelta(hours=hours)
        result = await self.session.execute(
            select(BillModel)
            .where(
                or_(
                    BillModel.last_synced_at.is_(None),
                    BillModel.last_synced_at < cutoff,
                )
            )
            .order_by(BillModel.priority.desc(), BillModel.last_synced_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_by_min_priority(self, min_priority: int, limit: int) -> List[BillModel]:
        """Watch-listed bills at or above `min_priority`, highest first."""
        result = await self.session.execute(
            select(BillModel)
            .where(BillModel.priority >= min_priority)
            .order_by(BillModel.priority.desc(), BillModel.last_synced_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_missing_details(
        self,
        limit: int,
        missing_sponsor_only: bool = False,
        min_priority: Optional[int] = None,
    ) -> List[BillModel]:
        """
        Bills whose list rows never got detail data (no sponsor, or no
        policy area unless `missing_sponsor_only`), watched and recently
        updated first.

        Args:
            limit: Maximum rows
            missing_sponsor_only: Only select bills without a sponsor
            min_priority: Restrict to watch-listed bills at or above this priority
        """
        if missing_sponsor_only:
            missing = BillModel.sponsor_full_name.is_(None)
        else:
            missing = or_(
                BillModel.sponsor_full_name.is_(None),
                BillModel.policy_area.is_(None),
            )

        stmt = select(BillModel).where(missing)
        if min_priority is not None:
            stmt = stmt.where(BillModel.priority >= min_priority)

        result = await self.session.execute(
            stmt
            .order_by(BillModel.priority.desc(), BillModel.update_date.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def set_priority(
        self,
        congress: int,
        bill_type: str,
        bill_number: int,
        priority: int
    ) -> bool:
        """
        Set the watch-list priority of a stored bill.

        Returns:
            True if the bill exists
        """
        result = await self.session.execute(
            update(BillModel)
            .where(
                BillModel.congress == congress,
                BillModel.bill_type == bill_type.lower(),
                BillModel.bill_number == bill_number,
            )
            .values(priority=priority, updated_at=BillModel.updated_at)
        )
        return result.rowcount > 0

    def _domain_to_dict(self, bill: Bill, *, content_hash: str) -> Dict[str, Any]:
        """Convert Bill domain model to column values"""
        return {
            "congress": bill.congress,
            "bill_type": bill.bill_type,
            "bill_number": bill.bill_number,
            "title": bill.title,
            "origin_chamber": bill.origin_chamber,
            "introduced_date": bill.introduced_date,
            "update_date": bill.update_date,
            "latest_action_date": bill.latest_action_date,
            "latest_action_text": bill.latest_action_text,
            "policy_area": bill.policy_area,
            "sponsor_bioguide_id": bill.sponsor_bioguide_id,
            "sponsor_full_name": bill.sponsor_full_name,
            "sponsor_state": bill.sponsor_state,
            "sponsor_party": bill.sponsor_party,
            "law_number": bill.law_number,
            "is_law": bill.is_law,
            "cosponsor_count": bill.cosponsor_count,
            "priority": bill.priority,
            "url": bill.url,
            "api_response_data": bill.api_response_data,
            "payload_version": bill.payload_version,
            "content_hash": content_hash,
        }

    def _model_to_domain(self, model: BillModel) -> Bill:
        """Convert BillModel to Bill domain model"""
        return Bill(
            congress=model.congress,
            bill_type=model.bill_type,
            bill_number=model.bill_number,
            title=model.title,
            origin_chamber=model.origin_chamber,
            introduced_date=model.introduced_date,
            update_date=model.update_date,
            latest_action_date=model.latest_action_date,
            latest_action_text=model.latest_action_text,
            policy_area=model.policy_area,
            sponsor_bioguide_id=model.sponsor_bioguide_id,
            sponsor_full_name=model.sponsor_full_name,
            sponsor_state=model.sponsor_state,
            sponsor_party=model.sponsor_party,
            law_number=model.law_number,
            is_law=model.is_law,
            cosponsor_count=model.cosponsor_count,
            priority=model.priority,
            url=model.url,
            api_response_data=model.api_response_data or {},
            payload_version=model.payload_version,
            last_synced_at=model.last_synced_at,
        )

    def to_domain(self, model: BillModel) -> Bill:
        """Public conversion for callers holding a BillModel"""
        return self._model_to_domain(model)
