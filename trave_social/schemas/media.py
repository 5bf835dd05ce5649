"""
Pydantic schemas for media uploads.
"""
from typing import Optional

from pydantic import BaseModel, Field


class MediaUploadResponse(BaseModel):
    """Schema for a completed upload."""

    url: str = Field(..., description="Public URL of the uploaded file")
    thumbnail_url: Optional[str] = Field(None, description="Thumbnail URL (images only)")
    file_size: int = Field(..., description="File size in bytes")
    key: str = Field(..., description="Object key in the bucket")
    content_type: str = Field(..., description="Sniffed MIME type")
