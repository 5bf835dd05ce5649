"""
Conversation model.

A conversation row is a document: the two-party thread's messages,
reaction maps and per-user membership sets are embedded as JSON.

Embedded message shape:
    {
        "id": str,
        "sender_id": str,
        "recipient_id": str,
        "text": str,
        "timestamp": ISO-8601 str,
        "read": bool,
        "delivered": bool,
        "edited_at": ISO-8601 str | None,
        "deleted_at": ISO-8601 str | None,
        "reply_to": str | None,
        "reactions": {label: [user_id, ...]}
    }
"""
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import DateTime, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trave_social.models.base import Base, IDMixin, TimestampMixin


class Conversation(Base, IDMixin, TimestampMixin):
    """
    Two-party conversation document.

    conversation_key is the sorted participant pair ("idA_idB"). Rows written
    before canonical keys existed may have no key, unsorted participants, or
    participants stored in their external id form.
    """

    __tablename__ = "conversations"

    conversation_key: Mapped[str | None] = mapped_column(
        String(511),
        unique=True,
        nullable=True,
        index=True,
        doc="Canonical sorted participant pair"
    )

    participant_one_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        doc="First participant (any identifier variant for legacy rows)"
    )

    participant_two_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        doc="Second participant (any identifier variant for legacy rows)"
    )

    messages: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        doc="Embedded messages in append order"
    )

    last_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Denormalized text of the latest message"
    )

    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Denormalized timestamp of the latest message"
    )

    archived_by: Mapped[List[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        doc="Users who archived this thread"
    )

    deleted_by: Mapped[List[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        doc="Users who hid (soft-deleted) this thread"
    )

    @property
    def participants(self) -> List[str]:
        return [self.participant_one_id, self.participant_two_id]

    def __repr__(self) -> str:
        return (
            f"<Conversation(id={self.id}, key={self.conversation_key}, "
            f"messages={len(self.messages or [])})>"
        )


Index("idx_conversations_last_message_at", Conversation.last_message_at)
