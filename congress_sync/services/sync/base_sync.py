"""
Shared fetch/diff/persist loop for resource sync services.

Responsibility: Retry-wrapped fetch and per-record isolated persistence
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Sequence, Type, TypeVar, TYPE_CHECKING
import logging

from ..error_handler import ErrorHandler, ErrorType
from ...db.repositories import PersistenceStatus
from ...db.repositories.snapshot_repository import PersistenceOutcome, SnapshotRepository
from ...models.adapter_models import AdapterResponse
from ...models.sync_models import ResourceSyncResult, ResourceType
from ...utils.retry import RetryConfig

if TYPE_CHECKING:
    from ...db.session import Database

logger = logging.getLogger(__name__)

D = TypeVar("D")


class BaseSyncService(Generic[D]):
    """
    Base class for resource sync services.

    Subclasses set `resource` and `repository_class`; `_after_persist` runs
    once a record's session has committed.
    """

    resource: ResourceType
    repository_class: Type[SnapshotRepository]

    def __init__(
        self,
        database: "Database",
        error_handler: ErrorHandler,
        retry_config: RetryConfig = RetryConfig(),
    ):
        self.database = database
        self.error_handler = error_handler
        self.retry_config = retry_config

    async def _fetch(
        self,
        fetch: Callable[[], Awaitable[AdapterResponse[D]]],
        result: ResourceSyncResult,
        context: Dict[str, Any],
    ) -> Optional[AdapterResponse[D]]:
        """
        Run one adapter fetch through the retry executor.

        A fetch that still fails is recorded as a record-less error and None
        is returned, except for configuration errors, which propagate.
        Normalization errors reported by the adapter are copied into `result`.
        """
        try:
            response = await self.error_handler.with_retry(fetch, self.retry_config, context)
        except Exception as e:
            classified = self.error_handler.classify(e, context)
            if classified.type == ErrorType.CONFIGURATION:
                raise
            logger.error(f"Failed to fetch {self.resource.value}: {e}")
            result.add_error(None, e)
            return None

        result.records_fetched += response.metrics.records_attempted
        for error in response.errors:
            result.add_error(error.record_id, error.message)
        return response

    async def _persist_all(self, records: Sequence[D], result: ResourceSyncResult) -> None:
        """Persist records in order, each in its own session."""
        for record in records:
            record_id = getattr(record, "record_id", None)
            try:
                async with self.database.session() as session:
                    outcome = await self.repository_class(session).upsert(record)

                self._count(outcome, result)
                await self._after_persist(record, outcome, result)
            except Exception as e:
                logger.error(f"Failed to persist {self.resource.value} {record_id}: {e}")
                result.add_error(record_id, e)

    async def _after_persist(
        self,
        record: D,
        outcome: PersistenceOutcome,
        result: ResourceSyncResult,
    ) -> None:
        pass

    @staticmethod
    def _count(outcome: PersistenceOutcome, result: ResourceSyncResult) -> None:
        if outcome.status == PersistenceStatus.CREATED:
            result.records_created += 1
        elif outcome.status == PersistenceStatus.UPDATED:
            result.records_updated += 1
        else:
            result.records_unchanged += 1

    def _finish(self, result: ResourceSyncResult, started_at: datetime) -> ResourceSyncResult:
        result.duration = (datetime.utcnow() - started_at).total_seconds()
        logger.info(
            f"{self.resource.value} sync: {result.records_fetched} fetched, "
            f"{result.records_created} created, {result.records_updated} updated, "
            f"{result.records_unchanged} unchanged, {len(result.errors)} errors "
            f"in {result.duration:.2f}s"
        )
        return result
