"""
Database package for the Congress sync engine.

Provides ORM models, session management, and repository pattern
for data persistence.
"""

from .models import (
    Base,
    BillModel,
    MemberModel,
    HearingModel,
    SyncRunModel,
    SyncJobModel,
    BillChangeLogModel,
    SyncErrorModel,
)
from .session import Database

__all__ = [
    "Base",
    "BillModel",
    "MemberModel",
    "HearingModel",
    "SyncRunModel",
    "SyncJobModel",
    "BillChangeLogModel",
    "SyncErrorModel",
    "Database",
]
