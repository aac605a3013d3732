"""
Sync orchestrator.

Maps a named strategy onto per-resource sync calls, records a SyncRun
for each resource, and either runs the sync inline or defers it to the
job ledger.

Responsibility: Strategy dispatch, SyncRun lifecycle, aggregate results
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, TYPE_CHECKING
import logging
import traceback

from .queue_ledger import QueueLedger
from .sync import BillSyncService, HearingSyncService, MemberSyncService
from ..config import SyncConfig
from ..db.models import SyncJobModel
from ..db.repositories import SyncRunRepository
from ..models.sync_models import (
    JOB_PRIORITY_BY_RESOURCE,
    JOB_TYPE_BY_RESOURCE,
    BillSyncOptions,
    BillSyncPriority,
    HearingSyncOptions,
    MemberSyncOptions,
    OrchestratorResult,
    ResourceSyncResult,
    ResourceType,
    SyncOptions,
    SyncRunStatus,
    SyncStats,
    SyncStrategy,
)

if TYPE_CHECKING:
    from ..db.session import Database

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Master coordinator for Congress data synchronization.

    Example:
        orchestrator = services.orchestrator
        result = await orchestrator.sync(SyncOptions(strategy=SyncStrategy.STALE))
        stats = await orchestrator.get_sync_stats(hours_back=24)
    """

    def __init__(
        self,
        database: "Database",
        bill_sync: BillSyncService,
        member_sync: MemberSyncService,
        hearing_sync: HearingSyncService,
        ledger: QueueLedger,
        config: Optional[SyncConfig] = None,
    ):
        self.database = database
        self.bill_sync = bill_sync
        self.member_sync = member_sync
        self.hearing_sync = hearing_sync
        self.ledger = ledger
        self.config = config or SyncConfig()

    async def sync(self, options: Optional[SyncOptions] = None) -> OrchestratorResult:
        """
        Run (or enqueue) one sync per requested resource.

        Raises:
            Whatever escapes a sync service; its SyncRun is marked failed first
        """
        options = options or SyncOptions()
        started_at = datetime.utcnow()
        result = OrchestratorResult(strategy=options.strategy, run_async=options.run_async)

        logger.info(
            f"Starting sync: strategy={options.strategy.value}, "
            f"resources={','.join(r.value for r in options.resources)}, async={options.run_async}"
        )

        for resource in options.resources:
            run_id = await self._start_run(resource, options.strategy)
            result.sync_run_ids[resource.value] = run_id

            if options.run_async:
                try:
                    result.job_ids[resource.value] = await self._enqueue(resource, options.strategy, run_id)
                except Exception as e:
                    logger.error(f"Failed to enqueue {resource.value} sync: {e}", exc_info=True)
                    await self._fail_run(run_id, e)
                    raise
                continue

            resource_result = await self._execute(resource, options.strategy, run_id)
            result.add(resource, resource_result)

        result.total_duration = (datetime.utcnow() - started_at).total_seconds()

        logger.info(
            f"Sync completed in {result.total_duration:.2f}s: {result.total_fetched} fetched, "
            f"{result.total_created} created, {result.total_updated} updated, "
            f"{result.total_unchanged} unchanged, {result.total_errors} errors"
        )
        return result

    async def run_job(self, job: SyncJobModel) -> Optional[ResourceSyncResult]:
        """
        Execute a job claimed from the ledger and report its outcome.

        The SyncRun named in the payload is finalized like an inline run.
        A failure is handed back to the ledger, which decides whether the
        job is retried; the run only fails once the job fails for good.
        """
        payload = job.payload or {}
        resource = ResourceType(payload["resource"])
        strategy = SyncStrategy(payload.get("strategy", SyncStrategy.INCREMENTAL.value))
        run_id = await self._resolve_run(payload.get("sync_run_id"), resource, strategy, job.id)

        try:
            resource_result = await self._run_strategy(resource, strategy)
        except Exception as e:
            logger.error(f"Job {job.id} ({resource.value}/{strategy.value}) failed: {e}", exc_info=True)
            will_retry = await self.ledger.fail(job.id, str(e))
            if will_retry:
                async with self.database.session() as session:
                    await SyncRunRepository(session).merge_metadata(
                        run_id, {"last_error": str(e), "attempts": job.attempts}
                    )
            else:
                await self._fail_run(run_id, e)
            return None

        await self._complete_run(run_id, resource_result)
        await self.ledger.complete(job.id, self._summary(resource_result))
        return resource_result

    async def get_sync_stats(self, hours_back: int = 24) -> SyncStats:
        """Read-only summary of runs started in the last `hours_back` hours."""
        since = datetime.utcnow() - timedelta(hours=hours_back)
        async with self.database.session() as session:
            runs = await SyncRunRepository(session).get_runs_since(since)

        stats = SyncStats(hours_back=hours_back, recent_syncs=len(runs))
        if not runs:
            return stats

        completed = sum(1 for run in runs if run.status == SyncRunStatus.COMPLETED.value)
        stats.success_rate = completed / len(runs)
        stats.avg_duration = sum(
            float((run.run_metadata or {}).get("duration") or 0) for run in runs
        ) / len(runs)

        for run in runs:
            entry = stats.by_resource.setdefault(run.resource_type, {"syncs": 0, "errors": 0})
            entry["syncs"] += 1
            if run.status == SyncRunStatus.FAILED.value:
                entry["errors"] += 1

        return stats

    # MARK: - Strategy table

    async def _run_strategy(self, resource: ResourceType, strategy: SyncStrategy) -> ResourceSyncResult:
        config = self.config

        if resource == ResourceType.BILLS:
            if strategy == SyncStrategy.INCREMENTAL:
                return await self.bill_sync.sync_bills(BillSyncOptions(
                    limit=config.incremental_bill_limit,
                    priority=BillSyncPriority.RECENT,
                ))
            if strategy == SyncStrategy.STALE:
                return await self.bill_sync.sync_stale(config.stale_hours, config.stale_bill_limit)
            if strategy == SyncStrategy.PRIORITY:
                # Watch-listed bills first, then the active session window
                result = await self.bill_sync.sync_priority(config.priority_threshold, config.priority_bill_limit)
                active = await self.bill_sync.sync_bills(BillSyncOptions(
                    limit=config.priority_bill_limit,
                    priority=BillSyncPriority.ACTIVE,
                ))
                result.merge(active)
                result.duration += active.duration
                return result
            return await self.bill_sync.sync_bills(BillSyncOptions(
                congress=config.current_congress,
                limit=config.full_limit,
                priority=BillSyncPriority.ALL,
            ))

        if resource == ResourceType.MEMBERS:
            if strategy == SyncStrategy.INCREMENTAL:
                return await self.member_sync.sync_members(MemberSyncOptions(
                    current_member=True,
                    limit=config.incremental_member_limit,
                ))
            if strategy == SyncStrategy.STALE:
                # Members change rarely; nothing to catch up on
                return ResourceSyncResult()
            return await self.member_sync.sync_all_current_members()

        if resource == ResourceType.HEARINGS:
            if strategy == SyncStrategy.STALE:
                return await self.hearing_sync.sync_recent()
            if strategy == SyncStrategy.FULL:
                return await self.hearing_sync.sync_hearings(HearingSyncOptions(
                    congress=config.current_congress,
                    limit=config.full_limit,
                ))
            return await self.hearing_sync.sync_upcoming()

        raise ValueError(f"Unsupported resource: {resource}")

    # MARK: - SyncRun lifecycle

    async def _execute(self, resource: ResourceType, strategy: SyncStrategy, run_id: int) -> ResourceSyncResult:
        try:
            resource_result = await self._run_strategy(resource, strategy)
        except Exception as e:
            logger.error(f"{resource.value} sync failed: {e}", exc_info=True)
            await self._fail_run(run_id, e)
            raise

        await self._complete_run(run_id, resource_result)
        return resource_result

    async def _start_run(self, resource: ResourceType, strategy: SyncStrategy) -> int:
        async with self.database.session() as session:
            run = await SyncRunRepository(session).create(resource, {"strategy": strategy.value})
            return run.id

    async def _resolve_run(
        self,
        run_id: Optional[int],
        resource: ResourceType,
        strategy: SyncStrategy,
        job_id: int,
    ) -> int:
        """The payload's run if it is still running, else a fresh one."""
        if run_id is not None:
            async with self.database.session() as session:
                run = await SyncRunRepository(session).get(run_id)
            if run is not None and run.status == SyncRunStatus.RUNNING.value:
                return run_id

        run_id = await self._start_run(resource, strategy)
        async with self.database.session() as session:
            await SyncRunRepository(session).merge_metadata(run_id, {"job_id": job_id})
        return run_id

    async def _enqueue(self, resource: ResourceType, strategy: SyncStrategy, run_id: int) -> int:
        job_id = await self.ledger.enqueue(
            JOB_TYPE_BY_RESOURCE[resource],
            {"resource": resource.value, "strategy": strategy.value, "sync_run_id": run_id},
            priority=JOB_PRIORITY_BY_RESOURCE[resource],
        )
        async with self.database.session() as session:
            await SyncRunRepository(session).merge_metadata(run_id, {"job_id": job_id})
        return job_id

    async def _complete_run(self, run_id: int, result: ResourceSyncResult) -> None:
        status = SyncRunStatus.PARTIAL if result.has_errors else SyncRunStatus.COMPLETED
        async with self.database.session() as session:
            await SyncRunRepository(session).finish(
                run_id,
                status,
                records_fetched=result.records_fetched,
                records_created=result.records_created,
                records_updated=result.records_updated,
                records_unchanged=result.records_unchanged,
                errors=result.errors,
                metadata={"duration": result.duration},
            )

    async def _fail_run(self, run_id: int, error: BaseException) -> None:
        async with self.database.session() as session:
            await SyncRunRepository(session).finish(
                run_id,
                SyncRunStatus.FAILED,
                errors=[{
                    "error": str(error),
                    "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
                }],
            )

    @staticmethod
    def _summary(result: ResourceSyncResult) -> Dict[str, Any]:
        return result.model_dump(include={
            "records_fetched",
            "records_created",
            "records_updated",
            "records_unchanged",
            "changes_detected",
            "duration",
        }) | {"error_count": len(result.errors)}
