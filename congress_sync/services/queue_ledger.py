"""
Durable ledger of deferred sync jobs.

The ledger only records work. An external worker (the drain flow) claims
jobs, runs them through the orchestrator and reports the outcome back.

Responsibility: Enqueue, inspect and drive the lifecycle of SyncJobs
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import logging

from ..db.models import SyncJobModel
from ..db.repositories import SyncJobRepository
from ..exceptions import SyncStateError
from ..models.sync_models import JobType

if TYPE_CHECKING:
    from ..db.session import Database

logger = logging.getLogger(__name__)


def job_to_dict(job: SyncJobModel) -> Dict[str, Any]:
    return {
        "id": job.id,
        "job_type": job.job_type,
        "payload": job.payload,
        "status": job.status,
        "priority": job.priority,
        "attempts": job.attempts,
        "max_attempts": job.max_attempts,
        "scheduled_for": job.scheduled_for,
        "started_at": job.started_at,
        "completed_at": job.completed_at,
        "error": job.error,
        "result": job.result,
        "created_at": job.created_at,
    }


class QueueLedger:
    """
    SyncJob ledger.

    Example:
        ledger = QueueLedger(database)
        job_id = await ledger.enqueue(JobType.SYNC_BILLS, {"strategy": "full"}, priority=8)
        job = await ledger.claim_next()
        await ledger.complete(job.id, {"records_fetched": 500})
    """

    def __init__(self, database: "Database"):
        self.database = database

    async def enqueue(
        self,
        job_type: JobType,
        payload: Dict[str, Any],
        priority: int = 5,
        max_attempts: int = 3,
        scheduled_for: Optional[datetime] = None,
    ) -> int:
        """Persist a pending job and return its id."""
        async with self.database.session() as session:
            job = await SyncJobRepository(session).create(
                job_type=JobType(job_type).value,
                payload=payload,
                priority=priority,
                max_attempts=max_attempts,
                scheduled_for=scheduled_for,
            )
            job_id = job.id

        logger.info(f"Enqueued {JobType(job_type).value} job {job_id} (priority={priority})")
        return job_id

    async def get_queue_stats(self) -> Dict[str, int]:
        """Job counts for every status (zeros included)."""
        async with self.database.session() as session:
            return await SyncJobRepository(session).count_by_status()

    async def get_recent_jobs(self, limit: int = 50) -> List[Dict[str, Any]]:
        async with self.database.session() as session:
            jobs = await SyncJobRepository(session).get_recent(limit)
            return [job_to_dict(job) for job in jobs]

    async def get_job(self, job_id: int) -> Optional[SyncJobModel]:
        async with self.database.session() as session:
            return await SyncJobRepository(session).get(job_id)

    async def clear_all(self) -> int:
        async with self.database.session() as session:
            deleted = await SyncJobRepository(session).delete_all()

        logger.warning(f"Cleared {deleted} jobs from the ledger")
        return deleted

    # MARK: - Worker lifecycle

    async def claim_next(self) -> Optional[SyncJobModel]:
        """Claim the next due pending job (highest priority, oldest first)."""
        async with self.database.session() as session:
            job = await SyncJobRepository(session).claim_next()

        if job is not None:
            logger.info(f"Claimed job {job.id} ({job.job_type}), attempt {job.attempts}/{job.max_attempts}")
        return job

    async def complete(self, job_id: int, result: Optional[Dict[str, Any]] = None) -> None:
        async with self.database.session() as session:
            await SyncJobRepository(session).mark_completed(job_id, result)

        logger.info(f"Job {job_id} completed")

    async def fail(self, job_id: int, error: str) -> bool:
        """
        Record a failed attempt.

        The job returns to pending while it has attempts left, otherwise it
        becomes terminally failed.

        Returns:
            True if the job will be retried
        """
        async with self.database.session() as session:
            repo = SyncJobRepository(session)
            job = await repo.get(job_id)
            if job is None:
                raise SyncStateError(f"SyncJob {job_id} not found", context={"job_id": job_id})

            retry = job.attempts < job.max_attempts
            await repo.mark_failed(job_id, error, retry=retry)

        if retry:
            logger.warning(f"Job {job_id} failed (attempt {job.attempts}/{job.max_attempts}), requeued: {error}")
        else:
            logger.error(f"Job {job_id} failed permanently after {job.attempts} attempts: {error}")
        return retry
