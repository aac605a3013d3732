"""
Bill sync service.

List-based syncs page through /bill ordered by update date; stale and
watch-list refreshes re-fetch known bills one by one through the
parallel executor. Every created or updated bill goes through change
detection.

Responsibility: Keep bill snapshots and their change log current
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple, TYPE_CHECKING
import logging

from .base_sync import BaseSyncService
from ..change_detection import ChangeDetectionService
from ..error_handler import ErrorHandler, ErrorType
from ...adapters.congress_bills import CongressBillsAdapter
from ...config import SyncConfig
from ...db.repositories import BillRepository, PersistenceStatus
from ...db.repositories.snapshot_repository import PersistenceOutcome
from ...models.bill import Bill
from ...models.sync_models import (
    BillSyncOptions,
    BillSyncPriority,
    ResourceSyncResult,
    ResourceType,
)
from ...utils.parallel_executor import ParallelExecutor
from ...utils.retry import RetryConfig

if TYPE_CHECKING:
    from ...db.session import Database

logger = logging.getLogger(__name__)

BillKey = Tuple[int, str, int]


class BillSyncService(BaseSyncService[Bill]):
    """
    Synchronizes bills.

    Example:
        service = BillSyncService(database, adapter, error_handler, change_detection, sync_config)
        result = await service.sync_bills(BillSyncOptions(congress=118, limit=200))
    """

    resource = ResourceType.BILLS
    repository_class = BillRepository

    def __init__(
        self,
        database: "Database",
        adapter: CongressBillsAdapter,
        error_handler: ErrorHandler,
        change_detection: ChangeDetectionService,
        config: Optional[SyncConfig] = None,
        executor: Optional[ParallelExecutor] = None,
        retry_config: RetryConfig = RetryConfig(),
    ):
        super().__init__(database, error_handler, retry_config)
        self.adapter = adapter
        self.change_detection = change_detection
        self.config = config or SyncConfig()
        self.executor = executor or ParallelExecutor(
            concurrency=self.config.concurrency,
            delay_between_seconds=self.config.delay_between_seconds,
            retry=self.config.parallel_retry,
            max_retries=self.config.parallel_max_retries,
        )

    def _window_start(self, priority: BillSyncPriority) -> Optional[datetime]:
        if priority == BillSyncPriority.RECENT:
            return datetime.utcnow() - timedelta(days=self.config.incremental_window_days)
        if priority == BillSyncPriority.ACTIVE:
            return datetime.utcnow() - timedelta(days=self.config.priority_window_days)
        return None

    async def sync_bills(self, options: Optional[BillSyncOptions] = None) -> ResourceSyncResult:
        """
        Fetch a filtered slice of bills and persist it.

        Without an explicit date_from the window follows `options.priority`.
        """
        options = options or BillSyncOptions()
        started_at = datetime.utcnow()
        result = ResourceSyncResult()

        date_from = options.date_from or self._window_start(options.priority)
        logger.info(
            f"Syncing bills: congress={options.congress}, type={options.bill_type}, "
            f"from={date_from}, limit={options.limit}, priority={options.priority.value}"
        )

        response = await self._fetch(
            lambda: self.adapter.fetch(
                congress=options.congress,
                bill_type=options.bill_type,
                date_from=date_from,
                date_to=options.date_to,
                limit=options.limit,
                offset=options.offset,
            ),
            result,
            context={"resource": self.resource.value, "operation": "sync_bills"},
        )
        if response is not None:
            await self._persist_all(response.data, result)

        return self._finish(result, started_at)

    async def sync_single_bill(self, congress: int, bill_type: str, bill_number: int) -> ResourceSyncResult:
        """Fetch one bill by natural key and persist it."""
        started_at = datetime.utcnow()
        result = ResourceSyncResult()
        record_id = f"{congress}-{bill_type.lower()}-{bill_number}"
        context = {"resource": self.resource.value, "operation": "sync_single_bill", "bill": record_id}

        try:
            bill = await self.error_handler.with_retry(
                lambda: self.adapter.fetch_detail(congress, bill_type, bill_number),
                self.retry_config,
                context,
            )
        except Exception as e:
            if self.error_handler.classify(e, context).type == ErrorType.CONFIGURATION:
                raise
            result.add_error(record_id, e)
            return self._finish(result, started_at)

        if bill is None:
            result.add_error(record_id, "Bill not found upstream")
            return self._finish(result, started_at)

        result.records_fetched = 1
        await self._persist_all([bill], result)
        return self._finish(result, started_at)

    async def sync_stale(self, hours: Optional[int] = None, limit: Optional[int] = None) -> ResourceSyncResult:
        """Re-fetch stored bills not synced within `hours`."""
        hours = hours if hours is not None else self.config.stale_hours
        limit = limit if limit is not None else self.config.stale_bill_limit

        async with self.database.session() as session:
            stale = await BillRepository(session).find_stale(hours=hours, limit=limit)
            keys = [(bill.congress, bill.bill_type, bill.bill_number) for bill in stale]

        logger.info(f"Found {len(keys)} bills not synced in {hours}h")
        return await self._refresh(keys)

    async def sync_priority(
        self,
        min_priority: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ResourceSyncResult:
        """Re-fetch watch-listed bills at or above `min_priority`."""
        min_priority = min_priority if min_priority is not None else self.config.priority_threshold
        limit = limit if limit is not None else self.config.priority_bill_limit

        async with self.database.session() as session:
            watched = await BillRepository(session).find_by_min_priority(min_priority, limit)
            keys = [(bill.congress, bill.bill_type, bill.bill_number) for bill in watched]

        logger.info(f"Found {len(keys)} bills with priority >= {min_priority}")
        return await self._refresh(keys)

    async def enrich_bills(
        self,
        missing_sponsor_only: bool = False,
        watchlisted_only: bool = False,
        limit: Optional[int] = None,
    ) -> ResourceSyncResult:
        """
        Detail-fetch stored bills that list syncs left without sponsor or
        policy area data.

        Args:
            missing_sponsor_only: Only bills without a sponsor
            watchlisted_only: Only bills at or above the priority threshold
            limit: Maximum bills to fetch (defaults to `enrich_limit`)
        """
        limit = limit if limit is not None else self.config.enrich_limit
        min_priority = self.config.priority_threshold if watchlisted_only else None

        async with self.database.session() as session:
            missing = await BillRepository(session).find_missing_details(
                limit,
                missing_sponsor_only=missing_sponsor_only,
                min_priority=min_priority,
            )
            keys = [(bill.congress, bill.bill_type, bill.bill_number) for bill in missing]

        logger.info(f"Found {len(keys)} bills missing detail data")
        return await self._refresh(keys)

    async def _refresh(self, keys: List[BillKey]) -> ResourceSyncResult:
        """Detail-fetch known bills in parallel, then persist in key order."""
        started_at = datetime.utcnow()
        result = ResourceSyncResult()
        if not keys:
            return self._finish(result, started_at)

        execution = await self.executor.execute([
            (lambda key=key: self.adapter.fetch_detail(*key))
            for key in keys
        ])

        failed = dict(execution.errors)
        for error in failed.values():
            if self.error_handler.classify(error).type == ErrorType.CONFIGURATION:
                raise error

        bills: List[Bill] = []
        for index, key in enumerate(keys):
            record_id = "-".join(str(part) for part in key)
            if index in failed:
                result.add_error(record_id, failed[index])
            elif execution.results[index] is None:
                result.add_error(record_id, "Bill not found upstream")
            else:
                bills.append(execution.results[index])

        result.records_fetched = len(bills)
        await self._persist_all(bills, result)
        return self._finish(result, started_at)

    async def _after_persist(
        self,
        record: Bill,
        outcome: PersistenceOutcome,
        result: ResourceSyncResult,
    ) -> None:
        if outcome.status == PersistenceStatus.UNCHANGED:
            return

        changes = self.change_detection.detect_changes(outcome.previous, outcome.record or record)
        if changes:
            await self.change_detection.log_changes(outcome.model.id, changes)
            result.changes_detected += len(changes)
