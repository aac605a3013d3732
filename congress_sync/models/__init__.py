"""
Models package for the Congress sync engine.

This package contains all Pydantic models for:
- Adapter responses and pagination
- Domain snapshots (bills, members, hearings)
- Sync options, results and enumerations
"""

from .adapter_models import (
    AdapterStatus,
    AdapterError,
    AdapterMetrics,
    AdapterResponse,
    Pagination,
)
from .bill import Bill, BILL_PAYLOAD_VERSION
from .member import Member
from .hearing import Hearing
from .sync_models import (
    BillSyncOptions,
    BillSyncPriority,
    ChangeSignificance,
    ChangeType,
    DetectedChange,
    HearingSyncOptions,
    JobStatus,
    JobType,
    MemberSyncOptions,
    OrchestratorResult,
    ResourceSyncResult,
    ResourceType,
    SyncOptions,
    SyncRunStatus,
    SyncStats,
    SyncStrategy,
)

__all__ = [
    "AdapterStatus",
    "AdapterError",
    "AdapterMetrics",
    "AdapterResponse",
    "Pagination",
    "Bill",
    "BILL_PAYLOAD_VERSION",
    "Member",
    "Hearing",
    "BillSyncOptions",
    "BillSyncPriority",
    "ChangeSignificance",
    "ChangeType",
    "DetectedChange",
    "HearingSyncOptions",
    "JobStatus",
    "JobType",
    "MemberSyncOptions",
    "OrchestratorResult",
    "ResourceSyncResult",
    "ResourceType",
    "SyncOptions",
    "SyncRunStatus",
    "SyncStats",
    "SyncStrategy",
]
