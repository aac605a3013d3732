"""
Repository for the durable sync error log.

Responsibility: Persist and query critical sync errors for operator review
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import SyncErrorModel


class SyncErrorRepository:
    """Repository for sync error log operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        error_type: str,
        severity: str,
        message: str,
        stack_trace: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        should_alert: bool = False,
    ) -> SyncErrorModel:
        entry = SyncErrorModel(
            error_type=error_type,
            severity=severity,
            message=message,
            stack_trace=stack_trace,
            context=context or {},
            should_alert=should_alert,
            created_at=datetime.utcnow(),
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_recent(
        self,
        limit: int = 50,
        severities: Optional[List[str]] = None,
    ) -> List[SyncErrorModel]:
        query = select(SyncErrorModel)
        if severities:
            query = query.where(SyncErrorModel.severity.in_(severities))

        result = await self.session.execute(
            query.order_by(SyncErrorModel.created_at.desc(), SyncErrorModel.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_since(self, cutoff_time: datetime) -> List[SyncErrorModel]:
        result = await self.session.execute(
            select(SyncErrorModel)
            .where(SyncErrorModel.created_at >= cutoff_time)
            .order_by(SyncErrorModel.created_at.desc(), SyncErrorModel.id.desc())
        )
        return list(result.scalars().all())
