"""
Bill domain model.

Represents a legislative bill from the U.S. Congress as returned by the
Congress.gov v3 API, normalized into the fields the sync engine diffs.

Responsibility: Single bill snapshot with promoted columns + opaque payload
"""

from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple
from pydantic import BaseModel, Field


# Version of the upstream payload parser that produced the promoted fields.
# Bump when extraction rules (e.g. cosponsor count) change shape.
BILL_PAYLOAD_VERSION = 1

# Payload keys the /bill list endpoint omits, and the fields each one feeds.
# Only the detail endpoint returns them.
DETAIL_ONLY_FIELDS: Dict[str, Tuple[str, ...]] = {
    "introducedDate": ("introduced_date",),
    "policyArea": ("policy_area",),
    "sponsors": (
        "sponsor_bioguide_id",
        "sponsor_full_name",
        "sponsor_state",
        "sponsor_party",
    ),
    "laws": ("law_number", "is_law"),
}
COSPONSOR_KEYS: Tuple[str, ...] = ("cosponsors", "cosponsorsCount")


class Bill(BaseModel):
    """
    Bill snapshot.

    Natural key: (congress, bill_type, bill_number)
    Example: (118, "hr", 1234)
    """

    # MARK: - Natural Key Fields
    congress: int = Field(ge=1, description="Congress number (e.g., 118)")
    bill_type: str = Field(
        description="Bill type code, lower-cased (e.g., 'hr', 's', 'hjres')",
        max_length=10
    )
    bill_number: int = Field(ge=1, description="Bill number within congress/type")

    # MARK: - Core Fields
    title: Optional[str] = Field(default=None, description="Official title")
    origin_chamber: Optional[str] = Field(default=None, description="House or Senate")
    introduced_date: Optional[date] = Field(default=None)
    update_date: Optional[datetime] = Field(
        default=None,
        description="Upstream updateDate (naive UTC)"
    )

    latest_action_date: Optional[date] = Field(default=None)
    latest_action_text: Optional[str] = Field(default=None)

    policy_area: Optional[str] = Field(default=None, description="Policy area name")

    # MARK: - Sponsor
    sponsor_bioguide_id: Optional[str] = Field(default=None, max_length=20)
    sponsor_full_name: Optional[str] = Field(default=None)
    sponsor_state: Optional[str] = Field(default=None, max_length=2)
    sponsor_party: Optional[str] = Field(default=None, max_length=5)

    # MARK: - Law / support
    law_number: Optional[str] = Field(
        default=None,
        description="Public/private law number once enacted (e.g., 'PL 118-1')"
    )
    is_law: bool = Field(default=False)
    cosponsor_count: Optional[int] = Field(
        default=None,
        ge=0,
        description="Normalized at ingestion; None when upstream gives no count"
    )

    # MARK: - Metadata
    priority: int = Field(default=0, description="Watch-list priority (0 = none)")
    url: Optional[str] = Field(default=None)
    api_response_data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque copy of the upstream payload"
    )
    payload_version: int = Field(default=BILL_PAYLOAD_VERSION)
    last_synced_at: Optional[datetime] = Field(default=None)

    def natural_key(self) -> tuple:
        """
        Return natural key tuple for this bill.

        Used for upsert logic in the database.
        """
        return (self.congress, self.bill_type, self.bill_number)

    def fill_from(self, stored: "Bill") -> "Bill":
        """
        Copy of this bill with the fields its payload does not carry taken
        from the stored snapshot.

        A list response has no sponsors, laws, policy area or cosponsors, so
        a list-based sync keeps what an earlier detail fetch stored. Bills
        built without a payload are returned as they are.
        """
        payload = self.api_response_data
        if not payload:
            return self

        update: Dict[str, Any] = {}
        for key, fields in DETAIL_ONLY_FIELDS.items():
            if key not in payload:
                update.update({field: getattr(stored, field) for field in fields})
        if not any(key in payload for key in COSPONSOR_KEYS):
            update["cosponsor_count"] = stored.cosponsor_count

        if not update:
            return self

        update["api_response_data"] = {**stored.api_response_data, **payload}
        return self.model_copy(update=update)

    @property
    def record_id(self) -> str:
        """Human-readable natural key, used in error lists and logs"""
        return f"{self.congress}-{self.bill_type}-{self.bill_number}"
