"""
Sync engine models.

Enumerations, option objects and result containers shared by the
orchestrator, the resource sync services, change detection and the
job ledger.

Responsibility: Data transfer objects for sync operations
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SyncStrategy(str, Enum):
    """Named policy controlling which records a sync call targets"""
    INCREMENTAL = "incremental"
    FULL = "full"
    STALE = "stale"
    PRIORITY = "priority"


class ResourceType(str, Enum):
    """Upstream resources the engine keeps in sync"""
    BILLS = "bills"
    MEMBERS = "members"
    HEARINGS = "hearings"


class SyncRunStatus(str, Enum):
    """
    SyncRun lifecycle.

    RUNNING is the only non-terminal status; a run moves out of it exactly once.
    """
    RUNNING = "running"
    COMPLETED = "completed"  # Finished, no errors
    PARTIAL = "partial"  # Finished, some records failed
    FAILED = "failed"  # Unhandled exception aborted the run


class JobStatus(str, Enum):
    """SyncJob lifecycle: pending -> processing -> completed | failed"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(str, Enum):
    """Kinds of deferred work recorded in the ledger"""
    SYNC_BILLS = "sync_bills"
    SYNC_MEMBERS = "sync_members"
    SYNC_HEARINGS = "sync_hearings"


class ChangeType(str, Enum):
    """Kinds of bill change events"""
    STATUS = "status"
    TITLE = "title"
    ACTION = "action"
    COSPONSORS = "cosponsors"
    SUMMARY = "summary"
    POLICY_AREA = "policy_area"
    LAW = "law"


class ChangeSignificance(str, Enum):
    """How noteworthy a change event is"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BillSyncPriority(str, Enum):
    """Date window selector for list-based bill syncs"""
    RECENT = "recent"  # Last incremental window (30 days)
    ACTIVE = "active"  # Last priority window (90 days)
    ALL = "all"  # No date filter


# Job type for each resource when a sync is deferred to the ledger
JOB_TYPE_BY_RESOURCE: Dict[ResourceType, JobType] = {
    ResourceType.BILLS: JobType.SYNC_BILLS,
    ResourceType.MEMBERS: JobType.SYNC_MEMBERS,
    ResourceType.HEARINGS: JobType.SYNC_HEARINGS,
}

# Ledger priority for each resource (higher runs first)
JOB_PRIORITY_BY_RESOURCE: Dict[ResourceType, int] = {
    ResourceType.BILLS: 8,
    ResourceType.MEMBERS: 5,
    ResourceType.HEARINGS: 6,
}


class DetectedChange(BaseModel):
    """One typed difference between two bill snapshots"""
    change_type: ChangeType
    previous_value: Optional[Any] = None
    new_value: Optional[Any] = None
    significance: ChangeSignificance

    model_config = {"frozen": True}


class ResourceSyncResult(BaseModel):
    """
    Counters returned by every resource sync call.

    `errors` is the channel for partial failure: each entry is
    {"record_id": natural key or None, "error": message}.
    """
    records_fetched: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_unchanged: int = 0
    changes_detected: int = 0
    errors: List[Dict[str, Optional[str]]] = Field(default_factory=list)
    duration: float = Field(default=0.0, description="Seconds")

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def add_error(self, record_id: Optional[str], error: Any) -> None:
        self.errors.append({"record_id": record_id, "error": str(error)})

    def merge(self, other: "ResourceSyncResult") -> None:
        """Fold another result's counters and errors into this one (duration excluded)"""
        self.records_fetched += other.records_fetched
        self.records_created += other.records_created
        self.records_updated += other.records_updated
        self.records_unchanged += other.records_unchanged
        self.changes_detected += other.changes_detected
        self.errors.extend(other.errors)


class BillSyncOptions(BaseModel):
    """Filter for a list-based bill sync"""
    congress: Optional[int] = None
    bill_type: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(default=20, ge=1)
    offset: int = Field(default=0, ge=0)
    priority: BillSyncPriority = BillSyncPriority.RECENT


class MemberSyncOptions(BaseModel):
    """Filter for a list-based member sync"""
    current_member: bool = True
    state: Optional[str] = None
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)


class HearingSyncOptions(BaseModel):
    """Filter for a list-based hearing sync"""
    congress: Optional[int] = None
    chamber: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)


class SyncOptions(BaseModel):
    """Orchestrator input"""
    strategy: SyncStrategy = SyncStrategy.INCREMENTAL
    resources: List[ResourceType] = Field(
        default_factory=lambda: [
            ResourceType.BILLS,
            ResourceType.MEMBERS,
            ResourceType.HEARINGS,
        ]
    )
    run_async: bool = False


class OrchestratorResult(BaseModel):
    """Aggregated outcome of one orchestrator invocation"""
    strategy: SyncStrategy
    run_async: bool = False
    results: Dict[str, ResourceSyncResult] = Field(default_factory=dict)
    sync_run_ids: Dict[str, int] = Field(default_factory=dict)
    job_ids: Dict[str, int] = Field(default_factory=dict)

    total_fetched: int = 0
    total_created: int = 0
    total_updated: int = 0
    total_unchanged: int = 0
    total_errors: int = 0
    total_duration: float = 0.0

    def add(self, resource: ResourceType, result: ResourceSyncResult) -> None:
        self.results[resource.value] = result
        self.total_fetched += result.records_fetched
        self.total_created += result.records_created
        self.total_updated += result.records_updated
        self.total_unchanged += result.records_unchanged
        self.total_errors += len(result.errors)
        self.total_duration += result.duration


class SyncStats(BaseModel):
    """Read-only view over recent SyncRuns"""
    hours_back: int
    recent_syncs: int = 0
    success_rate: float = 0.0
    avg_duration: float = 0.0
    by_resource: Dict[str, Dict[str, int]] = Field(default_factory=dict)
