from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime
from .share_link import ShareLink, ShareLinkPolicy

# Shared properties
class FileBase(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    original_filename: str = Field(..., min_length=1, max_length=255)
    file_size: int = Field(..., ge=0)
    content_type: str = "application/octet-stream"
    storage_path: str = Field(..., min_length=1, max_length=1024)
    is_encrypted: bool = True

# Properties to receive once the object has been written to the blob store
class FileCreate(FileBase):
    share: ShareLinkPolicy = Field(default_factory=ShareLinkPolicy)

# Properties shared by models stored in DB
class FileInDBBase(FileBase):
    id: int
    user_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# Properties to return to client
class File(FileInDBBase):
    share_links: List[ShareLink] = []

# Response for file list
class FileList(BaseModel):
    items: List[File]
    total: int
