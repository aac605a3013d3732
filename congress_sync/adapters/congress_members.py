"""
Congress.gov adapter for members.

Responsibility: Fetch and normalize members of Congress
"""

from typing import Any, Dict, List, Optional

from .base_adapter import BaseAdapter
from .congress_client import CongressApiClient
from ..models.adapter_models import AdapterResponse
from ..models.member import Member
from ..utils.rate_limit_monitor import RateLimitMonitor
from ..utils.rate_limiter import RateLimiter


def _terms(raw_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Terms come as {"item": [...]} on list pages and {"items": [...]} or a list on detail"""
    terms = raw_data.get("terms")
    if isinstance(terms, list):
        return terms
    if isinstance(terms, dict):
        return terms.get("item") or terms.get("items") or []
    return []


class CongressMembersAdapter(BaseAdapter[Member]):
    """
    Adapter for /member endpoints.

    Example:
        adapter = CongressMembersAdapter(client, monitor)
        response = await adapter.fetch(current_member=True, limit=250, offset=250)
    """

    def __init__(
        self,
        client: CongressApiClient,
        monitor: RateLimitMonitor,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(
            source_name="congress_members",
            client=client,
            monitor=monitor,
            rate_limiter=rate_limiter,
            page_size=client.config.max_page_size,
        )

    async def fetch(
        self,
        current_member: bool = True,
        state: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        **kwargs: Any
    ) -> AdapterResponse[Member]:
        """
        Fetch members.

        Args:
            current_member: Only members currently serving
            state: Two-letter state code filter
            limit: Maximum records to fetch
            offset: Starting offset
        """
        path = f"/member/{state.upper()}" if state else "/member"
        params = {"currentMember": "true" if current_member else None}

        return await self._fetch_collection(path, "members", params, limit=limit, offset=offset)

    async def fetch_detail(self, bioguide_id: str) -> Optional[Member]:
        return await self._fetch_detail(f"/member/{bioguide_id}", "member")

    def record_id(self, raw_data: Dict[str, Any]) -> Optional[str]:
        return raw_data.get("bioguideId") if isinstance(raw_data, dict) else None

    def normalize(self, raw_data: Dict[str, Any]) -> Member:
        """
        Normalize a Congress.gov member payload.

        The member is current when the latest term has no end year.
        """
        bioguide_id = raw_data["bioguideId"]

        name = raw_data.get("name") or raw_data.get("directOrderName")
        first_name = raw_data.get("firstName")
        last_name = raw_data.get("lastName")
        if name and "," in name and not (first_name and last_name):
            last, first = (part.strip() for part in name.split(",", 1))
            first_name = first_name or first
            last_name = last_name or last
        if not name:
            name = " ".join(part for part in (first_name, last_name) if part)
        if not name:
            raise ValueError(f"Member {bioguide_id} has no name")

        party = raw_data.get("partyName") or raw_data.get("party")
        if not party:
            history = raw_data.get("partyHistory") or []
            if history:
                party = history[-1].get("partyName") or history[-1].get("partyAbbreviation")

        terms = _terms(raw_data)
        latest_term = terms[-1] if terms else {}
        is_current = not latest_term.get("endYear") if latest_term else True

        district = raw_data.get("district")
        depiction = raw_data.get("depiction") or {}

        return Member(
            bioguide_id=bioguide_id,
            name=name,
            first_name=first_name,
            last_name=last_name,
            party=party,
            state=raw_data.get("state") or latest_term.get("stateName"),
            district=int(district) if district is not None else None,
            chamber=latest_term.get("chamber") or raw_data.get("chamber"),
            is_current=is_current,
            depiction_url=depiction.get("imageUrl") or raw_data.get("depictionImageUrl"),
            update_date=self._parse_datetime(raw_data.get("updateDate")),
            url=raw_data.get("url"),
            api_response_data=raw_data,
        )
