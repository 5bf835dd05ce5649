"""
Notification repository for database operations.
Handles per-user notification queries and coalesced message notifications.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, and_, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.models.notification import Notification, NotificationType
from trave_social.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Repository for notification database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize notification repository."""
        super().__init__(Notification, db)

    async def get_unread_message_notification(
        self,
        recipient_id: str,
        sender_id: str,
        conversation_key: str
    ) -> Optional[Notification]:
        """
        Get the coalesced unread message notification for a thread.

        Args:
            recipient_id: Canonical recipient id
            sender_id: Canonical sender id
            conversation_key: Canonical conversation key

        Returns:
            Notification or None if there is no unread one
        """
        result = await self.db.execute(
            select(Notification)
            .where(
                and_(
                    Notification.recipient_id == recipient_id,
                    Notification.sender_id == sender_id,
                    Notification.conversation_key == conversation_key,
                    Notification.type == NotificationType.MESSAGE.value,
                    Notification.read.is_(False),
                )
            )
            .order_by(desc(Notification.updated_at))
        )
        return result.scalars().first()

    async def get_for_recipient(
        self,
        recipient_id: str,
        limit: int = 50,
        offset: int = 0
    ) -> List[Notification]:
        """
        Get notifications for a user, newest first.

        Args:
            recipient_id: Canonical user id
            limit: Maximum notifications
            offset: Number to skip

        Returns:
            List of notifications
        """
        result = await self.db.execute(
            select(Notification)
            .where(Notification.recipient_id == recipient_id)
            .order_by(desc(Notification.updated_at))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def mark_all_read(self, recipient_id: str, read_at: datetime) -> int:
        """
        Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        result = await self.db.execute(
            update(Notification)
            .where(
                and_(
                    Notification.recipient_id == recipient_id,
                    Notification.read.is_(False),
                )
            )
            .values(read=True, read_at=read_at)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.flush()
        return result.rowcount

    async def mark_conversation_read(
        self,
        recipient_id: str,
        conversation_key: str,
        read_at: datetime
    ) -> int:
        """
        Mark the user's unread message notifications for one thread as read.

        Returns:
            Number of notifications updated
        """
        result = await self.db.execute(
            update(Notification)
            .where(
                and_(
                    Notification.recipient_id == recipient_id,
                    Notification.conversation_key == conversation_key,
                    Notification.type == NotificationType.MESSAGE.value,
                    Notification.read.is_(False),
                )
            )
            .values(read=True, read_at=read_at)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.flush()
        return result.rowcount
