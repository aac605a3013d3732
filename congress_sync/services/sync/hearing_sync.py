"""
Hearing sync service.

Responsibility: Keep committee hearing snapshots current
"""

from datetime import datetime, timedelta
from typing import Optional, TYPE_CHECKING
import logging

from .base_sync import BaseSyncService
from ..error_handler import ErrorHandler
from ...adapters.congress_hearings import CongressHearingsAdapter
from ...config import SyncConfig
from ...db.repositories import HearingRepository
from ...models.hearing import Hearing
from ...models.sync_models import HearingSyncOptions, ResourceSyncResult, ResourceType
from ...utils.retry import RetryConfig

if TYPE_CHECKING:
    from ...db.session import Database

logger = logging.getLogger(__name__)


class HearingSyncService(BaseSyncService[Hearing]):
    """
    Synchronizes committee hearings.

    Example:
        service = HearingSyncService(database, adapter, error_handler, sync_config)
        result = await service.sync_upcoming()
    """

    resource = ResourceType.HEARINGS
    repository_class = HearingRepository

    def __init__(
        self,
        database: "Database",
        adapter: CongressHearingsAdapter,
        error_handler: ErrorHandler,
        config: Optional[SyncConfig] = None,
        retry_config: RetryConfig = RetryConfig(),
    ):
        super().__init__(database, error_handler, retry_config)
        self.adapter = adapter
        self.config = config or SyncConfig()

    async def sync_hearings(self, options: Optional[HearingSyncOptions] = None) -> ResourceSyncResult:
        options = options or HearingSyncOptions()
        started_at = datetime.utcnow()
        result = ResourceSyncResult()

        logger.info(
            f"Syncing hearings: congress={options.congress}, chamber={options.chamber}, "
            f"from={options.date_from}, to={options.date_to}, limit={options.limit}"
        )

        response = await self._fetch(
            lambda: self.adapter.fetch(
                congress=options.congress,
                chamber=options.chamber,
                date_from=options.date_from,
                date_to=options.date_to,
                limit=options.limit,
                offset=options.offset,
            ),
            result,
            context={"resource": self.resource.value, "operation": "sync_hearings"},
        )
        if response is not None:
            await self._persist_all(response.data, result)

        return self._finish(result, started_at)

    async def sync_upcoming(self, days: Optional[int] = None) -> ResourceSyncResult:
        """Hearings of the current congress in the next `days`."""
        days = days if days is not None else self.config.upcoming_hearing_days
        now = datetime.utcnow()
        return await self.sync_hearings(HearingSyncOptions(
            congress=self.config.current_congress,
            date_from=now,
            date_to=now + timedelta(days=days),
            limit=self.config.hearing_limit,
        ))

    async def sync_recent(self, days: Optional[int] = None) -> ResourceSyncResult:
        """Hearings of the current congress in the last `days`."""
        days = days if days is not None else self.config.recent_hearing_days
        now = datetime.utcnow()
        return await self.sync_hearings(HearingSyncOptions(
            congress=self.config.current_congress,
            date_from=now - timedelta(days=days),
            date_to=now,
            limit=self.config.hearing_limit,
        ))
