"""
Member domain model.

Represents a member of Congress (Representative, Delegate or Senator).

Responsibility: Member snapshot keyed by bioguide id
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class Member(BaseModel):
    """
    Member snapshot.

    Natural key: bioguide_id (e.g., "P000197")
    """

    bioguide_id: str = Field(max_length=20)

    name: str = Field(description="Display name as returned upstream ('Last, First')")
    first_name: Optional[str] = Field(default=None)
    last_name: Optional[str] = Field(default=None)

    party: Optional[str] = Field(default=None, description="Party name or abbreviation")
    state: Optional[str] = Field(default=None)
    district: Optional[int] = Field(default=None)
    chamber: Optional[str] = Field(default=None, description="Chamber of the latest term")
    is_current: bool = Field(default=True)

    depiction_url: Optional[str] = Field(default=None)
    update_date: Optional[datetime] = Field(default=None)
    url: Optional[str] = Field(default=None)

    api_response_data: Dict[str, Any] = Field(default_factory=dict)
    last_synced_at: Optional[datetime] = Field(default=None)

    def natural_key(self) -> tuple:
        """Return natural key tuple for this member."""
        return (self.bioguide_id,)

    @property
    def record_id(self) -> str:
        return self.bioguide_id
