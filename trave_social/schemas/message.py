"""
Pydantic schemas for message requests and responses.
Handles validation for message-related API endpoints.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Request Schemas
# ============================================================================

class MessageCreate(BaseModel):
    """
    Schema for sending a message to a conversation.

    The sender always comes from the session. A blank text or an
    undeterminable recipient is rejected by the service with 400.
    """

    text: Optional[str] = Field(None, max_length=10000, description="Message text")
    recipient_id: Optional[str] = Field(
        None,
        description="Recipient in any identifier form (defaults to the other participant)"
    )
    reply_to: Optional[str] = Field(None, description="ID of the message being replied to")

    class Config:
        json_schema_extra = {
            "example": {
                "text": "Landed in Lisbon!",
                "recipient_id": "4f1c2b7e9a8d4c3b",
                "reply_to": None
            }
        }


class MessageReply(BaseModel):
    """Schema for replying to a message."""

    text: Optional[str] = Field(None, max_length=10000, description="Reply text")


class MessageUpdate(BaseModel):
    """Schema for editing a message."""

    text: Optional[str] = Field(None, max_length=10000, description="Updated message text")

    class Config:
        json_schema_extra = {
            "example": {
                "text": "Landed in Porto actually"
            }
        }


class ReactionToggle(BaseModel):
    """Schema for toggling a reaction on a message."""

    reaction: str = Field(..., min_length=1, max_length=32, description="Reaction label (usually an emoji)")

    @field_validator("reaction")
    @classmethod
    def validate_reaction(cls, v: str) -> str:
        """Reject whitespace-only reactions."""
        if not v.strip():
            raise ValueError("Reaction cannot be empty")
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "reaction": "❤️"
            }
        }


# ============================================================================
# Response Schemas
# ============================================================================

class MessageResponse(BaseModel):
    """Schema for an embedded message."""

    id: str
    conversation_id: str = Field(..., description="Canonical conversation key")
    sender_id: Optional[str] = None
    recipient_id: Optional[str] = None
    text: str = ""
    timestamp: Optional[str] = Field(None, description="ISO 8601 UTC timestamp")
    read: bool = False
    delivered: bool = False
    edited_at: Optional[str] = None
    reply_to: Optional[str] = None
    reactions: Dict[str, List[str]] = Field(default_factory=dict)


class MessageListResponse(BaseModel):
    """Schema for a page of a thread's merged timeline."""

    conversation_id: str
    messages: List[MessageResponse]
    has_more: bool = False


class ReactionResponse(BaseModel):
    message_id: str
    reaction: str
    reactions: Dict[str, List[str]]
    added: bool


class MessageDeleteResponse(BaseModel):
    conversation_id: str
    message_id: str
    deleted: bool = True


class MarkReadResponse(BaseModel):
    conversation_id: str
    updated_count: int
