"""
Congress.gov adapters.

Each adapter wraps one resource family of the v3 API and normalizes
its payloads into the sync engine's domain models.
"""

from .base_adapter import BaseAdapter
from .congress_client import CongressApiClient
from .congress_bills import CongressBillsAdapter, extract_cosponsor_count
from .congress_members import CongressMembersAdapter
from .congress_hearings import CongressHearingsAdapter

__all__ = [
    "BaseAdapter",
    "CongressApiClient",
    "CongressBillsAdapter",
    "CongressMembersAdapter",
    "CongressHearingsAdapter",
    "extract_cosponsor_count",
]
