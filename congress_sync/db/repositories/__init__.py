"""
Repository package for data access operations.

Implements repository pattern for abstracting database operations.
"""

from .snapshot_repository import PersistenceOutcome, PersistenceStatus
from .bill_repository import BillRepository
from .member_repository import MemberRepository
from .hearing_repository import HearingRepository
from .sync_run_repository import SyncRunRepository
from .sync_job_repository import SyncJobRepository
from .change_log_repository import ChangeLogRepository
from .sync_error_repository import SyncErrorRepository

__all__ = [
    "PersistenceOutcome",
    "PersistenceStatus",
    "BillRepository",
    "MemberRepository",
    "HearingRepository",
    "SyncRunRepository",
    "SyncJobRepository",
    "ChangeLogRepository",
    "SyncErrorRepository",
]
