"""
Member sync service.

Responsibility: Keep member snapshots current
"""

from datetime import datetime
from typing import Optional, Set, TYPE_CHECKING
import logging

from .base_sync import BaseSyncService
from ..error_handler import ErrorHandler
from ...adapters.congress_members import CongressMembersAdapter
from ...config import SyncConfig
from ...db.repositories import MemberRepository
from ...models.member import Member
from ...models.sync_models import MemberSyncOptions, ResourceSyncResult, ResourceType
from ...utils.retry import RetryConfig

if TYPE_CHECKING:
    from ...db.session import Database

logger = logging.getLogger(__name__)


class MemberSyncService(BaseSyncService[Member]):
    """
    Synchronizes members of Congress.

    Example:
        service = MemberSyncService(database, adapter, error_handler, sync_config)
        result = await service.sync_all_current_members()
    """

    resource = ResourceType.MEMBERS
    repository_class = MemberRepository

    def __init__(
        self,
        database: "Database",
        adapter: CongressMembersAdapter,
        error_handler: ErrorHandler,
        config: Optional[SyncConfig] = None,
        retry_config: RetryConfig = RetryConfig(),
    ):
        super().__init__(database, error_handler, retry_config)
        self.adapter = adapter
        self.config = config or SyncConfig()

    async def sync_members(self, options: Optional[MemberSyncOptions] = None) -> ResourceSyncResult:
        options = options or MemberSyncOptions()
        started_at = datetime.utcnow()
        result = ResourceSyncResult()

        logger.info(
            f"Syncing members: current={options.current_member}, state={options.state}, "
            f"limit={options.limit}"
        )

        response = await self._fetch(
            lambda: self.adapter.fetch(
                current_member=options.current_member,
                state=options.state,
                limit=options.limit,
                offset=options.offset,
            ),
            result,
            context={"resource": self.resource.value, "operation": "sync_members"},
        )
        if response is not None:
            await self._persist_all(response.data, result)

        return self._finish(result, started_at)

    async def sync_all_current_members(self) -> ResourceSyncResult:
        """
        Page through every current member, then flag stored members that
        were not returned as no longer current.

        Paging stops early once the trailing-hour request count reaches
        the hourly limit minus the reserved threshold; an incomplete pass
        never flags anyone.
        """
        started_at = datetime.utcnow()
        result = ResourceSyncResult()
        page_size = self.config.member_page_size
        budget = self.adapter.monitor.hourly_limit - self.config.request_threshold
        seen: Set[str] = set()
        complete = False
        offset = 0

        while True:
            if self.adapter.monitor.get_stats().requests_last_hour >= budget:
                logger.warning(f"Request budget of {budget}/h reached; stopping member sync at offset {offset}")
                result.add_error(None, f"Request budget exhausted at offset {offset}")
                break

            response = await self._fetch(
                lambda: self.adapter.fetch(current_member=True, limit=page_size, offset=offset),
                result,
                context={"resource": self.resource.value, "operation": "sync_all_current_members", "offset": offset},
            )
            if response is None:
                break

            await self._persist_all(response.data, result)
            seen.update(member.bioguide_id for member in response.data)

            page_records = response.metrics.records_attempted
            if not response.pagination.has_next or page_records < page_size:
                complete = True
                break
            offset += page_records

        if complete and not result.errors:
            async with self.database.session() as session:
                retired = await MemberRepository(session).mark_not_current(seen)
            logger.info(f"Member sync complete: {len(seen)} current, {retired} marked not current")

        return self._finish(result, started_at)
