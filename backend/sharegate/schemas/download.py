from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime

class DownloadRequest(BaseModel):
    # Optional here so a missing token is reported as 400, not 422
    token: Optional[str] = None
    password: Optional[str] = None

class DownloadGrant(BaseModel):
    signed_url: str = Field(..., serialization_alias="signedUrl")
    filename: str

class DownloadLog(BaseModel):
    id: int
    share_link_id: int
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    downloaded_at: datetime

    class Config:
        from_attributes = True
