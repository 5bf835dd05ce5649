"""
Pydantic schemas for notification responses.
"""
from typing import List, Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    """Schema for a notification."""

    id: str
    recipient_id: str
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    sender_avatar: Optional[str] = None
    type: str
    message: str
    conversation_id: Optional[str] = None
    post_id: Optional[str] = None
    read: bool
    read_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class NotificationListResponse(BaseModel):
    data: List[NotificationResponse]
    total: int
    unread_count: int


class NotificationBulkResponse(BaseModel):
    updated_count: int


class NotificationDeleteResponse(BaseModel):
    deleted: bool
    id: str
