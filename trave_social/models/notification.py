"""
Notification model.

Covers likes, comments, follows, mentions and new-message notifications.
Unread "message" notifications are coalesced per (recipient, sender,
conversation) and refreshed in place.
"""
import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trave_social.models.base import Base, IDMixin, TimestampMixin


class NotificationType(str, enum.Enum):
    """Enum for notification types."""
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    MESSAGE = "message"
    STORY = "story"
    LIVE = "live"
    MENTION = "mention"


class Notification(Base, IDMixin, TimestampMixin):
    """Notification addressed to a single user."""

    __tablename__ = "notifications"

    recipient_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        doc="Canonical id of the user being notified"
    )

    sender_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Canonical id of the user who triggered the notification"
    )

    sender_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sender_avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)

    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="NotificationType value"
    )

    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        doc="Human readable notification text"
    )

    conversation_key: Mapped[str | None] = mapped_column(
        String(511),
        nullable=True,
        doc="Conversation for message notifications"
    )

    post_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Related post for like/comment notifications"
    )

    read: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, recipient_id={self.recipient_id}, "
            f"type={self.type}, read={self.read})>"
        )


Index("idx_notifications_recipient_read", Notification.recipient_id, Notification.read)
# At most one unread message notification per (recipient, sender, conversation)
Index(
    "idx_notifications_message_coalesce",
    Notification.recipient_id,
    Notification.sender_id,
    Notification.conversation_key,
    unique=True,
    postgresql_where=(Notification.type == "message") & Notification.read.is_(False),
    sqlite_where=(Notification.type == "message") & Notification.read.is_(False),
)
