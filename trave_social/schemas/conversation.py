"""
Pydantic schemas for conversation requests and responses.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from trave_social.schemas.message import MessageResponse


class ConversationCreate(BaseModel):
    """Schema for getting or creating a conversation with another user."""

    participant_id: str = Field(..., min_length=1, description="Other participant in any identifier form")

    class Config:
        json_schema_extra = {
            "example": {
                "participant_id": "Xy7FirebaseUid42"
            }
        }


class ParticipantSummary(BaseModel):
    """Public profile of the other participant."""

    id: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None


class ConversationResponse(BaseModel):
    """Schema for one logical thread as seen by the caller."""

    id: str = Field(..., description="Canonical conversation key")
    document_id: Optional[str] = Field(None, description="Primary document id")
    participants: List[str]
    other_user: ParticipantSummary
    last_message: Optional[MessageResponse] = None
    last_message_at: Optional[str] = None
    unread_count: int = 0
    archived: bool = False


class ConversationListResponse(BaseModel):
    data: List[ConversationResponse]
    total: int


class ConversationStateResponse(BaseModel):
    """Schema for archive/unarchive/delete results."""

    conversation_id: str
    archived: bool
    deleted: bool
