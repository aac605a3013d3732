"""
Repository for member data operations.

Responsibility: Abstract database operations for members of Congress
"""

from typing import Any, Dict, Iterable
from sqlalchemy import select, update, func
import logging

from ..models import MemberModel
from .snapshot_repository import SnapshotRepository
from ...models.member import Member
from ...utils.hash_utils import compute_member_hash

logger = logging.getLogger(__name__)


class MemberRepository(SnapshotRepository[Member, MemberModel]):
    """
    Repository for member persistence keyed by bioguide id.

    Example:
        repo = MemberRepository(session)
        member = await repo.get_by_natural_key("P000197")
    """

    model = MemberModel
    natural_key_columns = ("bioguide_id",)

    def _compute_content_hash(self, member: Member) -> str:
        return compute_member_hash(member)

    async def mark_not_current(self, keep_bioguide_ids: Iterable[str]) -> int:
        """
        Flag every current member not in `keep_bioguide_ids` as no longer serving.

        Returns:
            Number of members updated
        """
        keep = list(keep_bioguide_ids)
        stmt = (
            update(MemberModel)
            .where(MemberModel.is_current.is_(True))
            # Stored hash covers is_current; clear it so a returning member is rewritten
            .values(is_current=False, content_hash=None)
        )
        if keep:
            stmt = stmt.where(MemberModel.bioguide_id.notin_(keep))

        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.info(f"Marked {result.rowcount} members as not current")
        return result.rowcount

    async def count_current(self) -> int:
        result = await self.session.execute(
            select(func.count(MemberModel.id)).where(MemberModel.is_current.is_(True))
        )
        return int(result.scalar_one())

    def _domain_to_dict(self, member: Member, *, content_hash: str) -> Dict[str, Any]:
        return {
            "bioguide_id": member.bioguide_id,
            "name": member.name,
            "first_name": member.first_name,
            "last_name": member.last_name,
            "party": member.party,
            "state": member.state,
            "district": member.district,
            "chamber": member.chamber,
            "is_current": member.is_current,
            "depiction_url": member.depiction_url,
            "update_date": member.update_date,
            "url": member.url,
            "api_response_data": member.api_response_data,
            "content_hash": content_hash,
        }

    def _model_to_domain(self, model: MemberModel) -> Member:
        return Member(
            bioguide_id=model.bioguide_id,
            name=model.name,
            first_name=model.first_name,
            last_name=model.last_name,
            party=model.party,
            state=model.state,
            district=model.district,
            chamber=model.chamber,
            is_current=model.is_current,
            depiction_url=model.depiction_url,
            update_date=model.update_date,
            url=model.url,
            api_response_data=model.api_response_data or {},
            last_synced_at=model.last_synced_at,
        )
