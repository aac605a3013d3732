"""
Congress.gov adapter for bills.

Lists bills ordered by update date (latest first) with optional congress,
bill type and update-date window filters, and fetches single bill details.

Responsibility: Fetch and normalize bills from the Congress.gov API
"""

from datetime import datetime
from typing import Any, Dict, Optional

from .base_adapter import BaseAdapter
from .congress_client import CongressApiClient
from ..models.adapter_models import AdapterResponse
from ..models.bill import Bill, BILL_PAYLOAD_VERSION
from ..utils.rate_limit_monitor import RateLimitMonitor
from ..utils.rate_limiter import RateLimiter


def extract_cosponsor_count(payload: Dict[str, Any]) -> Optional[int]:
    """
    Normalize the cosponsor count of a bill payload (payload version 1).

    Checked in order, first match wins:
    1. cosponsors.count   (list/detail endpoints: {"count": 3, "url": ...})
    2. len(cosponsors)    (expanded cosponsor list)
    3. cosponsorsCount    (flat field)

    Returns:
        The count, or None when the payload carries none of the shapes
    """
    cosponsors = payload.get("cosponsors")

    if isinstance(cosponsors, dict) and cosponsors.get("count") is not None:
        return int(cosponsors["count"])

    if isinstance(cosponsors, list):
        return len(cosponsors)

    if payload.get("cosponsorsCount") is not None:
        return int(payload["cosponsorsCount"])

    return None


class CongressBillsAdapter(BaseAdapter[Bill]):
    """
    Adapter for /bill endpoints.

    Example:
        adapter = CongressBillsAdapter(client, monitor)
        response = await adapter.fetch(congress=118, date_from=week_ago, limit=200)
        bill = await adapter.fetch_detail(118, "hr", 1)
    """

    def __init__(
        self,
        client: CongressApiClient,
        monitor: RateLimitMonitor,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(
            source_name="congress_bills",
            client=client,
            monitor=monitor,
            rate_limiter=rate_limiter,
            page_size=client.config.max_page_size,
        )

    async def fetch(
        self,
        congress: Optional[int] = None,
        bill_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
        sort: str = "updateDate desc",
        **kwargs: Any
    ) -> AdapterResponse[Bill]:
        """
        Fetch bills, latest update first.

        Args:
            congress: Congress number (required when bill_type is given)
            bill_type: Bill type code (hr, s, hjres, ...)
            date_from: Lower bound on updateDate
            date_to: Upper bound on updateDate
            limit: Maximum records to fetch (pagination handled automatically)
            offset: Starting offset
        """
        if bill_type and not congress:
            raise ValueError("bill_type filter requires congress")

        path = "/bill"
        if congress:
            path = f"{path}/{congress}"
            if bill_type:
                path = f"{path}/{bill_type.lower()}"

        params = {
            "sort": sort,
            "fromDateTime": self._format_datetime(date_from),
            "toDateTime": self._format_datetime(date_to),
        }

        return await self._fetch_collection(path, "bills", params, limit=limit, offset=offset)

    async def fetch_detail(self, congress: int, bill_type: str, bill_number: int) -> Optional[Bill]:
        """Fetch one bill with its detail payload; None if it does not exist."""
        return await self._fetch_detail(
            f"/bill/{congress}/{bill_type.lower()}/{bill_number}",
            "bill",
        )

    def record_id(self, raw_data: Dict[str, Any]) -> Optional[str]:
        try:
            return f"{raw_data['congress']}-{str(raw_data['type']).lower()}-{raw_data['number']}"
        except (KeyError, TypeError):
            return None

    def normalize(self, raw_data: Dict[str, Any]) -> Bill:
        """
        Normalize a Congress.gov bill payload (list or detail shape).
        """
        latest_action = raw_data.get("latestAction") or {}
        policy_area = raw_data.get("policyArea") or {}

        sponsors = raw_data.get("sponsors") or []
        sponsor = sponsors[0] if sponsors else {}

        laws = raw_data.get("laws") or []
        law_number = None
        if laws:
            law = laws[0]
            law_number = law.get("number")
            if law_number and law.get("type"):
                law_number = f"{law['type']} {law_number}"

        return Bill(
            congress=int(raw_data["congress"]),
            bill_type=str(raw_data["type"]).lower(),
            bill_number=int(raw_data["number"]),
            title=raw_data.get("title"),
            origin_chamber=raw_data.get("originChamber"),
            introduced_date=self._parse_date(raw_data.get("introducedDate")),
            update_date=self._parse_datetime(
                raw_data.get("updateDateIncludingText") or raw_data.get("updateDate")
            ),
            latest_action_date=self._parse_date(latest_action.get("actionDate")),
            latest_action_text=latest_action.get("text"),
            policy_area=policy_area.get("name"),
            sponsor_bioguide_id=sponsor.get("bioguideId"),
            sponsor_full_name=sponsor.get("fullName"),
            sponsor_state=sponsor.get("state"),
            sponsor_party=sponsor.get("party"),
            law_number=law_number,
            is_law=bool(law_number),
            cosponsor_count=extract_cosponsor_count(raw_data),
            url=raw_data.get("url"),
            api_response_data=raw_data,
            payload_version=BILL_PAYLOAD_VERSION,
        )
