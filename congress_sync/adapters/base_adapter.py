"""
Base adapter interface for Congress.gov resources.

Defines the contract every resource adapter (bills, members, hearings)
implements: paginated list fetches returning normalized records plus a
pagination cursor, and detail fetches returning a record or None.

Responsibility: Abstract base class defining adapter contract
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Generic, TypeVar, Any, Dict, List, Optional
import logging

from .congress_client import CongressApiClient
from ..models.adapter_models import (
    AdapterResponse,
    AdapterStatus,
    AdapterError,
    AdapterMetrics,
    Pagination,
)
from ..utils.rate_limiter import RateLimiter
from ..utils.rate_limit_monitor import RateLimitMonitor


# Generic type for normalized data models
T = TypeVar('T')


class BaseAdapter(ABC, Generic[T]):
    """
    Abstract base class for Congress.gov resource adapters.

    Every adapter MUST:
    1. Implement fetch() to retrieve one filtered slice of records
    2. Implement normalize() to convert a raw payload to a domain model
    3. Go through _fetch_collection()/_fetch_detail(), which consult the
       rate limit monitor and the token bucket before every request

    Page-level failures propagate as exceptions so the caller's retry
    executor can classify them; per-record normalization failures are
    collected into the response instead.
    """

    def __init__(
        self,
        source_name: str,
        client: CongressApiClient,
        monitor: RateLimitMonitor,
        rate_limiter: Optional[RateLimiter] = None,
        page_size: int = 250,
    ):
        """
        Initialize base adapter.

        Args:
            source_name: Identifier for this adapter (e.g., "congress_bills")
            client: Shared Congress.gov HTTP client
            monitor: Process-wide rate limit monitor
            rate_limiter: Token bucket shared across adapters (one is created if omitted)
            page_size: Maximum records requested per page (API max is 250)
        """
        self.source_name = source_name
        self.client = client
        self.monitor = monitor
        self.page_size = page_size

        # burst=1 means no bursting, strict pacing
        self.rate_limiter = rate_limiter or RateLimiter(
            rate=client.config.requests_per_second,
            burst=1
        )

        # Set up logger
        self.logger = logging.getLogger(f"adapter.{source_name}")

    @abstractmethod
    async def fetch(self, **kwargs: Any) -> AdapterResponse[T]:
        """
        Fetch one filtered slice of records (up to `limit`).

        Returns:
            AdapterResponse containing normalized records, errors, pagination
        """
        pass

    @abstractmethod
    def normalize(self, raw_data: Dict[str, Any]) -> T:
        """
        Normalize a raw Congress.gov payload into the domain model.

        Raises:
            ValueError/KeyError: If raw_data cannot be normalized (caught by fetch())
        """
        pass

    def record_id(self, raw_data: Dict[str, Any]) -> Optional[str]:
        """Natural key of a raw record, for error reporting (best effort)"""
        return None

    async def _before_request(self) -> None:
        await self.monitor.wait_if_needed()
        await self.rate_limiter.acquire()

    async def _fetch_collection(
        self,
        path: str,
        collection_key: str,
        params: Dict[str, Any],
        limit: int,
        offset: int = 0,
    ) -> AdapterResponse[T]:
        """
        Page through a collection endpoint until `limit` records are read
        or the upstream has no next page.
        """
        start_time = datetime.utcnow()
        records: List[T] = []
        errors: List[AdapterError] = []
        pagination = Pagination()
        pages = 0
        seen = 0

        self.logger.info(f"Fetching {collection_key}: path={path}, limit={limit}, params={params}")

        while seen < limit:
            await self._before_request()

            page_limit = min(self.page_size, limit - seen)
            data = await self.client.get(
                path,
                params={**params, "limit": page_limit, "offset": offset},
            )
            pages += 1

            raw_records = data.get(collection_key) or []
            pagination = Pagination(**(data.get("pagination") or {}))

            for raw in raw_records[:limit - seen]:
                seen += 1
                try:
                    records.append(self.normalize(raw))
                except Exception as e:
                    self.logger.warning(f"Failed to normalize record: {e}")
                    errors.append(AdapterError(
                        timestamp=datetime.utcnow(),
                        error_type=type(e).__name__,
                        message=str(e),
                        record_id=self.record_id(raw),
                        context={"url": raw.get("url") if isinstance(raw, dict) else None},
                    ))

            if not raw_records or not pagination.has_next:
                break
            offset += len(raw_records)

        self.logger.info(
            f"Fetched {len(records)} {collection_key} in {pages} page(s), {len(errors)} errors"
        )

        return self._build_response(records, errors, pagination, pages, start_time)

    async def _fetch_detail(self, path: str, detail_key: str) -> Optional[T]:
        """Fetch and normalize one record; None when the upstream returns 404."""
        await self._before_request()

        data = await self.client.get_detail(path)
        if data is None or not data.get(detail_key):
            return None
        return self.normalize(data[detail_key])

    def _build_response(
        self,
        data: List[T],
        errors: List[AdapterError],
        pagination: Pagination,
        pages: int,
        start_time: datetime,
    ) -> AdapterResponse[T]:
        """
        Build an AdapterResponse with calculated metrics.
        """
        end_time = datetime.utcnow()
        duration = (end_time - start_time).total_seconds()

        return AdapterResponse(
            status=AdapterStatus.PARTIAL_SUCCESS if errors else AdapterStatus.SUCCESS,
            data=data,
            errors=errors,
            pagination=pagination,
            metrics=AdapterMetrics(
                records_attempted=len(data) + len(errors),
                records_succeeded=len(data),
                records_failed=len(errors),
                pages_fetched=pages,
                duration_seconds=duration,
            ),
            source=self.source_name,
            fetch_timestamp=end_time,
        )

    # MARK: - Parsing helpers

    @staticmethod
    def _parse_datetime(value: Any) -> Optional[datetime]:
        """Parse an ISO timestamp into naive UTC (None on missing/invalid)."""
        if not value:
            return None
        if isinstance(value, datetime):
            parsed = value
        else:
            try:
                parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            except ValueError:
                return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    @staticmethod
    def _parse_date(value: Any) -> Optional[date]:
        """Parse 'YYYY-MM-DD' (or a full timestamp) into a date."""
        if not value:
            return None
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            return None

    @staticmethod
    def _format_datetime(value: Optional[datetime]) -> Optional[str]:
        """Format a naive-UTC datetime as the API's fromDateTime/toDateTime."""
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
