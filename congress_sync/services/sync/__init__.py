"""
Resource sync services.
"""

from .base_sync import BaseSyncService
from .bill_sync import BillSyncService
from .member_sync import MemberSyncService
from .hearing_sync import HearingSyncService

__all__ = [
    "BaseSyncService",
    "BillSyncService",
    "MemberSyncService",
    "HearingSyncService",
]
