"""
Repository for SyncRun records.

SyncRuns are the audit trail of orchestrator invocations, used for
monitoring pipeline health and computing sync statistics.

Responsibility: SyncRun lifecycle persistence
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import SyncRunModel
from ...exceptions import SyncStateError
from ...models.sync_models import ResourceType, SyncRunStatus

TERMINAL_RUN_STATUSES = frozenset({
    SyncRunStatus.COMPLETED,
    SyncRunStatus.PARTIAL,
    SyncRunStatus.FAILED,
})


class SyncRunRepository:
    """Repository for sync run operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        resource_type: ResourceType,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SyncRunModel:
        """
        Create a new run in `running` state.

        Args:
            resource_type: Resource being synced
            metadata: Initial metadata (e.g. {"strategy": "incremental"})

        Returns:
            Created SyncRunModel
        """
        run = SyncRunModel(
            resource_type=resource_type.value,
            status=SyncRunStatus.RUNNING.value,
            started_at=datetime.utcnow(),
            errors=[],
            run_metadata=dict(metadata or {}),
        )
        self.session.add(run)
        await self.session.flush()
        return run

    async def get(self, run_id: int) -> Optional[SyncRunModel]:
        result = await self.session.execute(
            select(SyncRunModel)
            .where(SyncRunModel.id == run_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def merge_metadata(self, run_id: int, extra: Dict[str, Any]) -> None:
        """
        Merge keys into a running run's metadata (e.g. the ledger job id).

        Raises:
            SyncStateError: if the run is missing or already terminal
        """
        run = await self.get(run_id)
        if run is None or run.status != SyncRunStatus.RUNNING.value:
            raise SyncStateError(
                f"SyncRun {run_id} is not running",
                context={"run_id": run_id},
            )

        merged = {**(run.run_metadata or {}), **extra}
        await self._transition(run_id, run_metadata=merged, status=SyncRunStatus.RUNNING.value)

    async def finish(
        self,
        run_id: int,
        status: SyncRunStatus,
        *,
        records_fetched: int = 0,
        records_created: int = 0,
        records_updated: int = 0,
        records_unchanged: int = 0,
        errors: Optional[List[Dict[str, Any]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Move a run from `running` to a terminal status.

        The UPDATE is conditional on status == running, so a terminal
        status is never overwritten.

        Raises:
            SyncStateError: for a non-terminal target or a run that is not running
        """
        if status not in TERMINAL_RUN_STATUSES:
            raise SyncStateError(
                f"Cannot finish SyncRun {run_id} with non-terminal status {status.value}",
                context={"run_id": run_id},
            )

        run = await self.get(run_id)
        merged = {**((run.run_metadata or {}) if run else {}), **(metadata or {})}

        await self._transition(
            run_id,
            status=status.value,
            completed_at=datetime.utcnow(),
            records_fetched=records_fetched,
            records_created=records_created,
            records_updated=records_updated,
            records_unchanged=records_unchanged,
            errors=list(errors or []),
            run_metadata=merged,
        )

    async def _transition(self, run_id: int, **values: Any) -> None:
        result = await self.session.execute(
            update(SyncRunModel)
            .where(
                SyncRunModel.id == run_id,
                SyncRunModel.status == SyncRunStatus.RUNNING.value,
            )
            .values(**values)
        )
        if result.rowcount == 0:
            raise SyncStateError(
                f"SyncRun {run_id} is missing or already finished",
                context={"run_id": run_id},
            )

    async def get_runs_since(self, cutoff_time: datetime) -> List[SyncRunModel]:
        """
        Get runs started at or after the cutoff, newest first.
        """
        result = await self.session.execute(
            select(SyncRunModel)
            .where(SyncRunModel.started_at >= cutoff_time)
            .order_by(SyncRunModel.started_at.desc())
        )
        return list(result.scalars().all())

    async def get_recent_runs(
        self,
        limit: int = 50,
        resource_type: Optional[ResourceType] = None,
    ) -> List[SyncRunModel]:
        query = select(SyncRunModel)
        if resource_type is not None:
            query = query.where(SyncRunModel.resource_type == resource_type.value)

        result = await self.session.execute(
            query.order_by(SyncRunModel.started_at.desc()).limit(limit)
        )
        return list(result.scalars().all())
