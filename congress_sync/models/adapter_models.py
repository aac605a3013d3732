"""
Adapter response models.

Defines unified response structures for the Congress.gov resource adapters.
These models keep per-record normalization errors, pagination and metrics
together so sync services handle every resource the same way.

Responsibility: Data transfer objects for adapter operations
"""

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar, Optional, List, Dict, Any

from pydantic import BaseModel, Field


class AdapterStatus(str, Enum):
    """
    Status of an adapter operation.

    Page-level failures are raised (so the retry executor can classify them);
    these statuses only describe pages that were fetched.
    """
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"  # Some records failed to normalize


class AdapterError(BaseModel):
    """
    Structured error information for a record that failed normalization.
    """
    timestamp: datetime = Field(description="When the error occurred (UTC)")
    error_type: str = Field(description="Exception class name or error category")
    message: str = Field(description="Human-readable error message")
    record_id: Optional[str] = Field(
        default=None,
        description="Natural key of the record, when it could be read"
    )
    context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context (URL, raw keys, etc.)"
    )


class AdapterMetrics(BaseModel):
    """
    Operational metrics for adapter execution.
    """
    records_attempted: int = Field(ge=0)
    records_succeeded: int = Field(ge=0)
    records_failed: int = Field(ge=0)
    pages_fetched: int = Field(ge=0, default=0)
    duration_seconds: float = Field(ge=0.0)


class Pagination(BaseModel):
    """Upstream pagination cursor"""
    count: int = Field(default=0, ge=0, description="Total records matching the query")
    next: Optional[str] = Field(default=None, description="URL of the next page")
    previous: Optional[str] = Field(default=None, description="URL of the previous page")

    @property
    def has_next(self) -> bool:
        return bool(self.next)


T = TypeVar('T')


class AdapterResponse(BaseModel, Generic[T]):
    """
    Unified response wrapper for list fetches.

    Generic type T is the normalized domain model (Bill, Member, Hearing).
    """
    status: AdapterStatus = Field(description="Operation status")
    data: List[T] = Field(default_factory=list)
    errors: List[AdapterError] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
    metrics: AdapterMetrics = Field(description="Operation performance metrics")
    source: str = Field(description="Adapter/source identifier")
    fetch_timestamp: datetime = Field(description="When data was fetched (UTC)")
