"""
Notification Models

In-app notifications stored per user in the key-value table.
"""

import random
import string
import time
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict


class NotificationType(str, Enum):
    """Notification categories the client knows how to render."""
    PARTNERSHIP_REQUEST = "partnership_request"
    PARTNERSHIP_ACCEPTED = "partnership_accepted"
    MOVIE_MATCH = "movie_match"
    MATCH_MILESTONE = "match_milestone"
    IMPORT_COMPLETE = "import_complete"


class NotificationData(BaseModel):
    """Free-form payload; only the fields relevant to the type are set."""
    from_user_id: Optional[str] = Field(None, alias="fromUserId")
    from_name: Optional[str] = Field(None, alias="fromName")
    movie_id: Optional[int] = Field(None, alias="movieId")
    movie_title: Optional[str] = Field(None, alias="movieTitle")
    poster_path: Optional[str] = Field(None, alias="posterPath")
    milestone_count: Optional[int] = Field(None, alias="milestoneCount")
    import_type: Optional[str] = Field(None, alias="importType")
    imported_count: Optional[int] = Field(None, alias="importedCount")
    failed_count: Optional[int] = Field(None, alias="failedCount")
    total_count: Optional[int] = Field(None, alias="totalCount")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


def new_notification_id() -> str:
    """Millisecond timestamp plus a short random suffix."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{int(time.time() * 1000)}-{suffix}"


class Notification(BaseModel):
    """A single notification as persisted and returned to clients."""
    id: str = Field(default_factory=new_notification_id)
    type: NotificationType
    read: bool = False
    created_at: int = Field(
        default_factory=lambda: int(time.time() * 1000),
        alias="createdAt",
    )
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_record(self) -> Dict[str, Any]:
        """Shape stored in the KV table (camelCase, enum as string)."""
        return self.model_dump(by_alias=True)
