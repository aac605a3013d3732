"""
Congress.gov adapter for committee hearings.

Responsibility: Fetch and normalize hearings
"""

from datetime import datetime
from typing import Any, Dict, Optional

from .base_adapter import BaseAdapter
from .congress_client import CongressApiClient
from ..models.adapter_models import AdapterResponse
from ..models.hearing import Hearing
from ..utils.rate_limit_monitor import RateLimitMonitor
from ..utils.rate_limiter import RateLimiter


def _location(value: Any) -> Optional[str]:
    """Locations come as plain text or {"room": ..., "building": ...}"""
    if isinstance(value, dict):
        parts = [value.get("room"), value.get("building")]
        return ", ".join(str(part) for part in parts if part) or None
    return value or None


class CongressHearingsAdapter(BaseAdapter[Hearing]):
    """
    Adapter for /hearing endpoints.

    Example:
        adapter = CongressHearingsAdapter(client, monitor)
        response = await adapter.fetch(congress=118, date_from=now, date_to=in_two_weeks)
    """

    def __init__(
        self,
        client: CongressApiClient,
        monitor: RateLimitMonitor,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(
            source_name="congress_hearings",
            client=client,
            monitor=monitor,
            rate_limiter=rate_limiter,
            page_size=client.config.max_page_size,
        )

    async def fetch(
        self,
        congress: Optional[int] = None,
        chamber: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
        **kwargs: Any
    ) -> AdapterResponse[Hearing]:
        """
        Fetch hearings.

        Args:
            congress: Congress number (required when chamber is given)
            chamber: house, senate or nochamber
            date_from: Lower bound of the date window
            date_to: Upper bound of the date window
        """
        if chamber and not congress:
            raise ValueError("chamber filter requires congress")

        path = "/hearing"
        if congress:
            path = f"{path}/{congress}"
            if chamber:
                path = f"{path}/{chamber.lower()}"

        params = {
            "fromDateTime": self._format_datetime(date_from),
            "toDateTime": self._format_datetime(date_to),
        }

        return await self._fetch_collection(path, "hearings", params, limit=limit, offset=offset)

    async def fetch_detail(self, congress: int, chamber: str, jacket_number: str) -> Optional[Hearing]:
        return await self._fetch_detail(
            f"/hearing/{congress}/{chamber.lower()}/{jacket_number}",
            "hearing",
        )

    def record_id(self, raw_data: Dict[str, Any]) -> Optional[str]:
        try:
            jacket = raw_data.get("jacketNumber") or raw_data.get("number")
            return f"{raw_data['congress']}-{str(raw_data['chamber']).lower()}-{jacket}"
        except (KeyError, TypeError, AttributeError):
            return None

    def normalize(self, raw_data: Dict[str, Any]) -> Hearing:
        """
        Normalize a Congress.gov hearing payload.

        The hearing date is the first entry of `dates` when present.
        """
        jacket_number = raw_data.get("jacketNumber") or raw_data.get("number")
        if jacket_number is None:
            raise ValueError("Hearing payload has no jacketNumber")

        hearing_date = raw_data.get("date")
        dates = raw_data.get("dates") or []
        if not hearing_date and dates:
            hearing_date = dates[0].get("date")

        committees = raw_data.get("committees") or []
        committee = committees[0] if committees else {}

        return Hearing(
            congress=int(raw_data["congress"]),
            chamber=str(raw_data["chamber"]).lower(),
            jacket_number=str(jacket_number),
            title=raw_data.get("title"),
            hearing_date=self._parse_datetime(hearing_date),
            location=_location(raw_data.get("location")),
            committee_code=committee.get("systemCode"),
            committee_name=committee.get("name"),
            update_date=self._parse_datetime(raw_data.get("updateDate")),
            url=raw_data.get("url"),
            api_response_data=raw_data,
        )
