"""
Prefect flows for the Congress sync engine.

Defines flows for:
- Scheduled strategy runs (inline or deferred to the job ledger)
- Draining the job ledger (the external worker)
- Reporting sync run statistics
- Fanning change notifications out

Responsibility: Orchestrate periodic Congress.gov refreshes
"""

from typing import Any, Dict, List, Optional

from prefect import flow, task, get_run_logger

from ..config import settings
from ..models.sync_models import ResourceType, SyncOptions, SyncStrategy
from ..services.container import build_services


@task(
    name="run_sync",
    description="Run one orchestrator sync",
    retries=1,
    retry_delay_seconds=300,
)
async def run_sync_task(
    strategy: str = SyncStrategy.INCREMENTAL.value,
    resources: Optional[List[str]] = None,
    run_async: bool = False,
) -> Dict[str, Any]:
    logger = get_run_logger()
    options = SyncOptions(
        strategy=SyncStrategy(strategy),
        resources=[ResourceType(r) for r in resources] if resources else SyncOptions().resources,
        run_async=run_async,
    )
    logger.info(
        "Starting sync: strategy=%s, resources=%s, async=%s",
        options.strategy.value,
        [r.value for r in options.resources],
        options.run_async,
    )

    services = await build_services()
    try:
        if not services.settings.sync.enabled:
            logger.warning("Congress sync is disabled (CONGRESS_SYNC_ENABLED=false)")
            return {"skipped": True}

        result = await services.orchestrator.sync(options)
        services.monitor.log_status()

        logger.info(
            "Sync complete: %s fetched, %s created, %s updated, %s unchanged, %s errors",
            result.total_fetched,
            result.total_created,
            result.total_updated,
            result.total_unchanged,
            result.total_errors,
        )
        return result.model_dump(mode="json")
    finally:
        await services.close()


@task(
    name="drain_sync_jobs",
    description="Claim and execute pending sync jobs from the ledger",
)
async def drain_sync_jobs_task(max_jobs: int = 10) -> Dict[str, Any]:
    logger = get_run_logger()
    services = await build_services()

    processed = completed = failed = 0
    try:
        while processed < max_jobs:
            job = await services.ledger.claim_next()
            if job is None:
                break

            processed += 1
            logger.info("Running job %s (%s): %s", job.id, job.job_type, job.payload)
            outcome = await services.orchestrator.run_job(job)
            if outcome is None:
                failed += 1
            else:
                completed += 1

        stats = await services.ledger.get_queue_stats()
        logger.info(
            "Drained %s jobs (%s completed, %s failed); queue: %s",
            processed,
            completed,
            failed,
            stats,
        )
        return {"processed": processed, "completed": completed, "failed": failed, "queue": stats}
    finally:
        await services.close()


@task(
    name="sync_stats",
    description="Summarize recent sync runs and the error log",
    retries=2,
    retry_delay_seconds=30,
)
async def sync_stats_task(hours_back: int = 24) -> Dict[str, Any]:
    logger = get_run_logger()
    services = await build_services()
    try:
        stats = await services.orchestrator.get_sync_stats(hours_back=hours_back)
        error_stats = await services.error_handler.get_error_stats(hours_back=hours_back)
        should_alert = await services.error_handler.should_alert()

        logger.info(
            "Sync stats (%sh): %s runs, %.0f%% success, avg %.2fs",
            hours_back,
            stats.recent_syncs,
            stats.success_rate * 100,
            stats.avg_duration,
        )
        if should_alert:
            logger.error(
                "Alert condition: %s errors logged, %s critical",
                error_stats["total_errors"],
                error_stats["critical_errors"],
            )

        return {
            "sync": stats.model_dump(),
            "errors": {k: v for k, v in error_stats.items() if k != "recent_errors"},
            "should_alert": should_alert,
        }
    finally:
        await services.close()


@task(
    name="process_notifications",
    description="Hand unnotified bill changes to the notifier",
)
async def process_notifications_task(auto_notify: bool = True) -> Dict[str, int]:
    logger = get_run_logger()
    services = await build_services()
    try:
        result = await services.change_detection.process_unnotified_changes(auto_notify=auto_notify)
        logger.info(
            "Processed %s changes, sent %s notifications",
            result["processed"],
            result["notifications_sent"],
        )
        return result
    finally:
        await services.close()


@flow(
    name="congress-scheduled-sync",
    description="Run a Congress.gov sync strategy",
)
async def scheduled_sync_flow(
    strategy: str = SyncStrategy.INCREMENTAL.value,
    resources: Optional[List[str]] = None,
    run_async: bool = False,
) -> Dict[str, Any]:
    """
    Main scheduled flow.

    Args:
        strategy: incremental, stale, priority or full
        resources: Subset of bills/members/hearings (all when omitted)
        run_async: Only enqueue ledger jobs for the drain flow
    """
    logger = get_run_logger()
    logger.info("Starting Congress sync flow (strategy=%s)", strategy)
    return await run_sync_task(strategy=strategy, resources=resources, run_async=run_async)


@flow(
    name="congress-drain-sync-jobs",
    description="Execute deferred sync jobs from the ledger",
)
async def drain_sync_jobs_flow(max_jobs: int = 10) -> Dict[str, Any]:
    return await drain_sync_jobs_task(max_jobs=max_jobs)


@flow(
    name="congress-sync-stats",
    description="Report sync statistics and alert conditions",
)
async def sync_stats_flow(hours_back: int = 24) -> Dict[str, Any]:
    return await sync_stats_task(hours_back=hours_back)


@flow(
    name="congress-process-notifications",
    description="Notify watchers about detected bill changes",
)
async def process_notifications_flow(auto_notify: bool = True) -> Dict[str, int]:
    return await process_notifications_task(auto_notify=auto_notify)


if __name__ == "__main__":
    # Long-running process that triggers the incremental sync on the configured cron
    scheduled_sync_flow.serve(
        name="congress-incremental-sync",
        cron=settings.sync.cron_schedule,
    )
