"""
Repository for SyncJob ledger rows.

Every lifecycle change is a conditional UPDATE on the current status, so
two workers can never both claim, complete or fail the same job.

Responsibility: SyncJob persistence and state transitions
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import SyncJobModel
from ...exceptions import SyncStateError
from ...models.sync_models import JobStatus

# Attempts at claiming before concluding the queue is empty under contention
_CLAIM_RETRIES = 3


class SyncJobRepository:
    """Repository for sync job ledger operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        job_type: str,
        payload: Dict[str, Any],
        priority: int = 5,
        max_attempts: int = 3,
        scheduled_for: Optional[datetime] = None,
    ) -> SyncJobModel:
        job = SyncJobModel(
            job_type=job_type,
            payload=payload,
            status=JobStatus.PENDING.value,
            priority=priority,
            attempts=0,
            max_attempts=max_attempts,
            scheduled_for=scheduled_for or datetime.utcnow(),
            created_at=datetime.utcnow(),
        )
        self.session.add(job)
        await self.session.flush()
        return job

    async def get(self, job_id: int) -> Optional[SyncJobModel]:
        result = await self.session.execute(
            select(SyncJobModel)
            .where(SyncJobModel.id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def claim_next(self, now: Optional[datetime] = None) -> Optional[SyncJobModel]:
        """
        Move the next due pending job to `processing` and count the attempt.

        Order: highest priority, then earliest schedule, then oldest.

        Returns:
            The claimed job, or None when nothing is due
        """
        now = now or datetime.utcnow()

        for _ in range(_CLAIM_RETRIES):
            result = await self.session.execute(
                select(SyncJobModel.id)
                .where(
                    SyncJobModel.status == JobStatus.PENDING.value,
                    SyncJobModel.scheduled_for <= now,
                )
                .order_by(
                    SyncJobModel.priority.desc(),
                    SyncJobModel.scheduled_for.asc(),
                    SyncJobModel.created_at.asc(),
                    SyncJobModel.id.asc(),
                )
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            job_id = result.scalar_one_or_none()
            if job_id is None:
                return None

            claimed = await self.session.execute(
                update(SyncJobModel)
                .where(
                    SyncJobModel.id == job_id,
                    SyncJobModel.status == JobStatus.PENDING.value,
                )
                .values(
                    status=JobStatus.PROCESSING.value,
                    attempts=SyncJobModel.attempts + 1,
                    started_at=now,
                    error=None,
                )
            )
            if claimed.rowcount == 1:
                return await self.get(job_id)

        return None

    async def mark_completed(self, job_id: int, result: Optional[Dict[str, Any]] = None) -> None:
        await self._transition(
            job_id,
            JobStatus.PROCESSING,
            status=JobStatus.COMPLETED.value,
            completed_at=datetime.utcnow(),
            result=result,
        )

    async def mark_failed(self, job_id: int, error: str, *, retry: bool) -> None:
        """
        Record a failed attempt.

        Args:
            retry: True to return the job to `pending`, False for terminal `failed`
        """
        if retry:
            await self._transition(
                job_id,
                JobStatus.PROCESSING,
                status=JobStatus.PENDING.value,
                error=error,
            )
        else:
            await self._transition(
                job_id,
                JobStatus.PROCESSING,
                status=JobStatus.FAILED.value,
                error=error,
                completed_at=datetime.utcnow(),
            )

    async def _transition(self, job_id: int, expected: JobStatus, **values: Any) -> None:
        result = await self.session.execute(
            update(SyncJobModel)
            .where(
                SyncJobModel.id == job_id,
                SyncJobModel.status == expected.value,
            )
            .values(**values)
        )
        if result.rowcount == 0:
            raise SyncStateError(
                f"SyncJob {job_id} is missing or not {expected.value}",
                context={"job_id": job_id},
            )

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(SyncJobModel.status, func.count(SyncJobModel.id))
            .group_by(SyncJobModel.status)
        )
        counts = {status.value: 0 for status in JobStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    async def get_recent(self, limit: int = 50) -> List[SyncJobModel]:
        result = await self.session.execute(
            select(SyncJobModel)
            .order_by(SyncJobModel.created_at.desc(), SyncJobModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(SyncJobModel))
        return result.rowcount
