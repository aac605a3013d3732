"""
Hearing domain model.

Represents a published committee hearing.

Responsibility: Hearing snapshot keyed by (congress, chamber, jacket_number)
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class Hearing(BaseModel):
    """
    Hearing snapshot.

    Natural key: (congress, chamber, jacket_number)
    Example: (118, "house", "54-186")
    """

    congress: int = Field(ge=1)
    chamber: str = Field(description="Chamber, lower-cased ('house', 'senate', 'joint')")
    jacket_number: str = Field(max_length=30)

    title: Optional[str] = Field(default=None)
    hearing_date: Optional[datetime] = Field(default=None, description="Naive UTC")
    location: Optional[str] = Field(default=None)

    committee_code: Optional[str] = Field(
        default=None,
        description="System code of the first listed committee (e.g., 'hsif00')"
    )
    committee_name: Optional[str] = Field(default=None)

    update_date: Optional[datetime] = Field(default=None)
    url: Optional[str] = Field(default=None)

    api_response_data: Dict[str, Any] = Field(default_factory=dict)
    last_synced_at: Optional[datetime] = Field(default=None)

    def natural_key(self) -> tuple:
        """Return natural key tuple for this hearing."""
        return (self.congress, self.chamber, self.jacket_number)

    @property
    def record_id(self) -> str:
        return f"{self.congress}-{self.chamber}-{self.jacket_number}"
