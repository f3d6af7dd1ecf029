from typing import Optional
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timedelta, timezone

from sharegate.utils.time_utils import utcnow


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class ShareLinkPolicy(BaseModel):
    # Expiry policy: relative hours or an absolute UTC timestamp, absolute wins
    expires_in_hours: Optional[int] = Field(None, gt=0)
    expires_at: Optional[datetime] = None
    # Download policy: None for unlimited
    max_downloads: Optional[int] = Field(None, gt=0)
    password: Optional[str] = Field(None, min_length=1, max_length=128)

    @field_validator("expires_at")
    @classmethod
    def expires_at_in_future(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and to_naive_utc(value) <= utcnow():
            raise ValueError("expires_at must be in the future")
        return value

    def resolve_expires_at(self, now: datetime) -> Optional[datetime]:
        if self.expires_at is not None:
            return to_naive_utc(self.expires_at)
        if self.expires_in_hours is not None:
            return now + timedelta(hours=self.expires_in_hours)
        return None

class ShareLinkCreate(ShareLinkPolicy):
    file_id: int

class ShareLinkInDBBase(BaseModel):
    id: int
    file_id: int
    token: str
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None
    current_downloads: int
    is_active: bool
    requires_password: bool = False
    created_at: datetime

    class Config:
        from_attributes = True

class ShareLink(ShareLinkInDBBase):
    pass

# Public info for the download page (hide owner and storage details)
class ShareLinkPublic(BaseModel):
    filename: str
    original_filename: str
    file_size: int
    content_type: str
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None
    current_downloads: int
    remaining_downloads: Optional[int] = None
    requires_password: bool = False
