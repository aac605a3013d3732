"""Utility helpers for generating deterministic content hashes.

Hashes cover only the significant fields of each snapshot so that
cosmetic churn in the opaque upstream payload never counts as a change.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from ..models.bill import Bill
from ..models.hearing import Hearing
from ..models.member import Member

# Fields whose change makes a snapshot "updated". Everything else
# (opaque payload, upstream updateDate, sync bookkeeping, url) is ignored
# by the hash.
BILL_SIGNIFICANT_FIELDS: frozenset[str] = frozenset({
    "title",
    "latest_action_date",
    "latest_action_text",
    "policy_area",
    "law_number",
    "sponsor_bioguide_id",
    "cosponsor_count",
})

MEMBER_SIGNIFICANT_FIELDS: frozenset[str] = frozenset({
    "name",
    "party",
    "state",
    "district",
    "chamber",
    "is_current",
})

HEARING_SIGNIFICANT_FIELDS: frozenset[str] = frozenset({
    "title",
    "hearing_date",
    "location",
    "committee_code",
})


def _normalized_json(payload: Any) -> str:
    """Serialize payload to a deterministic JSON string."""
    return json.dumps(
        payload,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )


def calculate_hash(payload: Any) -> str:
    """Produce a SHA-256 hash for the given payload."""
    normalized = _normalized_json(payload)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def compute_bill_hash(bill: Bill) -> str:
    """Compute a deterministic content hash over a bill's significant fields."""
    return calculate_hash(bill.model_dump(mode="json", include=set(BILL_SIGNIFICANT_FIELDS)))


def compute_member_hash(member: Member) -> str:
    """Compute a deterministic content hash over a member's significant fields."""
    return calculate_hash(member.model_dump(mode="json", include=set(MEMBER_SIGNIFICANT_FIELDS)))


def compute_hearing_hash(hearing: Hearing) -> str:
    """Compute a deterministic content hash over a hearing's significant fields."""
    return calculate_hash(hearing.model_dump(mode="json", include=set(HEARING_SIGNIFICANT_FIELDS)))
