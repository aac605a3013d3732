"""
Repository for hearing data operations.

Responsibility: Abstract database operations for committee hearings
"""

from typing import Any, Dict

from ..models import HearingModel
from .snapshot_repository import SnapshotRepository
from ...models.hearing import Hearing
from ...utils.hash_utils import compute_hearing_hash


class HearingRepository(SnapshotRepository[Hearing, HearingModel]):
    """
    Repository for hearing persistence keyed by (congress, chamber, jacket_number).
    """

    model = HearingModel
    natural_key_columns = ("congress", "chamber", "jacket_number")

    def _compute_content_hash(self, hearing: Hearing) -> str:
        return compute_hearing_hash(hearing)

    def _domain_to_dict(self, hearing: Hearing, *, content_hash: str) -> Dict[str, Any]:
        return {
            "congress": hearing.congress,
            "chamber": hearing.chamber,
            "jacket_number": hearing.jacket_number,
            "title": hearing.title,
            "hearing_date": hearing.hearing_date,
            "location": hearing.location,
            "committee_code": hearing.committee_code,
            "committee_name": hearing.committee_name,
            "update_date": hearing.update_date,
            "url": hearing.url,
            "api_response_data": hearing.api_response_data,
            "content_hash": content_hash,
        }

    def _model_to_domain(self, model: HearingModel) -> Hearing:
        return Hearing(
            congress=model.congress,
            chamber=model.chamber,
            jacket_number=model.jacket_number,
            title=model.title,
            hearing_date=model.hearing_date,
            location=model.location,
            committee_code=model.committee_code,
            committee_name=model.committee_name,
            update_date=model.update_date,
            url=model.url,
            api_response_data=model.api_response_data or {},
            last_synced_at=model.last_synced_at,
        )
