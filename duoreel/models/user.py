"""
User Models

Profile record stored at user:{uid}.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict


class UserProfile(BaseModel):
    """
    User profile.

    `partner_id` is set on both sides when a partner request is accepted
    and cleared on both sides when either partner disconnects.
    """
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoUrl")
    partner_id: Optional[str] = Field(None, alias="partnerId")
    last_matches_seen: int = Field(0, alias="lastMatchesSeen")
    created_at: Optional[int] = Field(None, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def has_partner(self) -> bool:
        return bool(self.partner_id)

    def display_name(self, fallback: str = "Your partner") -> str:
        return self.name or fallback

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, uid: str, record: Optional[Dict[str, Any]]) -> "UserProfile":
        """Load a stored profile, tolerating missing or partial rows."""
        data = dict(record or {})
        data.setdefault("id", uid)
        return cls.model_validate(data)
