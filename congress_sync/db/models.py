"""
SQLAlchemy database models for the Congress sync engine.

ORM models that map to database tables with proper indexing,
constraints, and relationships.

Responsibility: Define database schema and ORM mappings
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import (
    String, Integer, Date, DateTime, Boolean, Text, JSON,
    ForeignKey, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


class BillModel(Base):
    """
    Database model for bill snapshots.

    Maps to the 'bills' table; (congress, bill_type, bill_number) is unique.
    """

    __tablename__ = "bills"

    # Primary key (auto-increment)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Natural key fields (unique together)
    congress: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    bill_type: Mapped[str] = mapped_column(String(10), nullable=False)
    bill_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Core fields
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    origin_chamber: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    introduced_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    update_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)

    latest_action_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    latest_action_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    policy_area: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Sponsor
    sponsor_bioguide_id: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        index=True
    )
    sponsor_full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sponsor_state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    sponsor_party: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)

    # Law / support
    law_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_law: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cosponsor_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Watch-list priority (higher = synced first)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)

    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Opaque upstream payload
    api_response_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    payload_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Sync bookkeeping
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        index=True
    )
    sync_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    # Constraints
    __table_args__ = (
        # Natural key uniqueness
        UniqueConstraint(
            'congress',
            'bill_type',
            'bill_number',
            name='uq_bill_natural_key'
        ),
        Index('idx_bill_priority_synced', 'priority', 'last_synced_at'),
        CheckConstraint('congress > 0', name='ck_bill_congress_positive'),
        CheckConstraint('bill_number > 0', name='ck_bill_number_positive'),
    )

    def __repr__(self) -> str:
        return (
            f"<BillModel(id={self.id}, "
            f"congress={self.congress}, "
            f"type={self.bill_type}, "
            f"number={self.bill_number})>"
        )


class MemberModel(Base):
    """
    Database model for members of Congress.

    Natural key: bioguide_id.
    """

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    bioguide_id: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    party: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    district: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    chamber: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    depiction_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    update_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    api_response_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint('bioguide_id', name='uq_member_bioguide_id'),
    )

    def __repr__(self) -> str:
        return f"<MemberModel(id={self.id}, bioguide_id={self.bioguide_id})>"


class HearingModel(Base):
    """
    Database model for committee hearings.

    Natural key: (congress, chamber, jacket_number).
    """

    __tablename__ = "hearings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    congress: Mapped[int] = mapped_column(Integer, nullable=False)
    chamber: Mapped[str] = mapped_column(String(20), nullable=False)
    jacket_number: Mapped[str] = mapped_column(String(30), nullable=False)

    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hearing_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    committee_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    committee_name: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)

    update_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    api_response_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            'congress',
            'chamber',
            'jacket_number',
            name='uq_hearing_natural_key'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<HearingModel(id={self.id}, congress={self.congress}, "
            f"chamber={self.chamber}, jacket={self.jacket_number})>"
        )


class SyncRunModel(Base):
    """
    One orchestrator-invoked sync attempt for one resource type.

    Status leaves 'running' exactly once; terminal statuses are never
    overwritten (see SyncRunRepository.finish).
    """

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Metrics
    records_fetched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_unchanged: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    errors: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)
    # "metadata" is reserved on declarative classes
    run_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    __table_args__ = (
        Index('idx_sync_run_resource_started', 'resource_type', 'started_at'),
        CheckConstraint(
            "status IN ('running', 'completed', 'partial', 'failed')",
            name='ck_sync_run_status'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<SyncRunModel(id={self.id}, "
            f"resource={self.resource_type}, "
            f"status={self.status})>"
        )


class SyncJobModel(Base):
    """
    A unit of deferred sync work recorded in the ledger.
    """

    __tablename__ = "sync_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    job_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    scheduled_for: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        index=True
    )

    __table_args__ = (
        Index('idx_sync_job_claim', 'status', 'scheduled_for', 'priority'),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name='ck_sync_job_status'
        ),
        CheckConstraint('attempts >= 0', name='ck_sync_job_attempts'),
    )

    def __repr__(self) -> str:
        return (
            f"<SyncJobModel(id={self.id}, "
            f"type={self.job_type}, "
            f"status={self.status})>"
        )


class BillChangeLogModel(Base):
    """
    One detected change on one bill.

    Only `notified` may change after insert, and only from False to True.
    """

    __tablename__ = "bill_change_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    bill_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    change_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    previous_value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    significance: Mapped[str] = mapped_column(String(10), nullable=False)

    detected_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        index=True
    )
    notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index('idx_change_log_notified', 'notified', 'detected_at'),
    )

    def __repr__(self) -> str:
        return (
            f"<BillChangeLogModel(id={self.id}, bill_id={self.bill_id}, "
            f"type={self.change_type}, significance={self.significance})>"
        )


class SyncErrorModel(Base):
    """
    Durable error log for critical classifications (operator review).
    """

    __tablename__ = "sync_errors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    error_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    stack_trace: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    context: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    should_alert: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        index=True
    )

    def __repr__(self) -> str:
        return (
            f"<SyncErrorModel(id={self.id}, "
            f"type={self.error_type}, "
            f"severity={self.severity})>"
        )
