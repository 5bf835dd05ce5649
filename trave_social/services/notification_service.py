"""
Notification service for business logic.
Handles activity notifications and the coalesced new-message notification.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.events import EventType, side_effect_bus
from trave_social.models.notification import Notification, NotificationType
from trave_social.repositories.notification_repo import NotificationRepository
from trave_social.services.identity_service import IdentityService
from trave_social.utils.datetime_utils import ensure_utc, parse_iso_utc, to_iso_utc, utc_now
from trave_social.utils.helpers import truncate

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "recipient_id": notification.recipient_id,
        "sender_id": notification.sender_id,
        "sender_name": notification.sender_name,
        "sender_avatar": notification.sender_avatar,
        "type": notification.type,
        "message": notification.message,
        "conversation_id": notification.conversation_key,
        "post_id": notification.post_id,
        "read": notification.read,
        "read_at": to_iso_utc(notification.read_at),
        "created_at": to_iso_utc(notification.created_at),
        "updated_at": to_iso_utc(notification.updated_at),
    }


class NotificationService:
    """Service for notification operations."""

    def __init__(self, db: AsyncSession, identity: Optional[IdentityService] = None):
        """
        Initialize notification service.

        Args:
            db: Database session
            identity: Request-scoped identity service (created if omitted)
        """
        self.db = db
        self.identity = identity or IdentityService(db)
        self.notification_repo = NotificationRepository(db)

    async def upsert_message_notification(
        self,
        recipient_id: str,
        sender_id: str,
        sender_name: Optional[str],
        conversation_key: str,
        text: str,
        timestamp: Optional[datetime | str] = None,
        sender_avatar: Optional[str] = None
    ) -> Notification:
        """
        Create or refresh the recipient's unread message notification.

        At most one unread "message" notification exists per
        (recipient, sender, conversation); a new message refreshes it in
        place with the latest text and timestamp.

        Args:
            recipient_id: Canonical recipient id
            sender_id: Canonical sender id
            sender_name: Sender display name
            conversation_key: Canonical conversation key
            text: Latest message text
            timestamp: Message timestamp (defaults to now)
            sender_avatar: Sender avatar URL

        Returns:
            The created or refreshed notification
        """
        when = parse_iso_utc(timestamp) or utc_now()
        body = truncate(text)

        notification = await self.notification_repo.get_unread_message_notification(
            recipient_id, sender_id, conversation_key
        )

        if notification:
            await self._refresh_message_notification(notification, body, when, sender_name, sender_avatar)
        else:
            try:
                notification = await self.notification_repo.create(
                    recipient_id=recipient_id,
                    sender_id=sender_id,
                    sender_name=sender_name,
                    sender_avatar=sender_avatar,
                    type=NotificationType.MESSAGE.value,
                    message=body,
                    conversation_key=conversation_key,
                    read=False,
                    created_at=when,
                    updated_at=when,
                )
            except IntegrityError:
                # Another writer inserted the unread notification first
                await self.db.rollback()
                notification = await self.notification_repo.get_unread_message_notification(
                    recipient_id, sender_id, conversation_key
                )
                if notification is None:
                    raise
                logger.info(
                    f"Message notification for {recipient_id} in {conversation_key} "
                    f"created concurrently, refreshing existing one"
                )
                await self._refresh_message_notification(notification, body, when, sender_name, sender_avatar)

        await self.db.commit()
        return notification

    async def _refresh_message_notification(
        self,
        notification: Notification,
        body: str,
        when: datetime,
        sender_name: Optional[str],
        sender_avatar: Optional[str]
    ) -> None:
        # A retried or late job must not roll the text back to an older message
        current = ensure_utc(notification.updated_at)
        if current is not None and when < current:
            return

        notification.message = body
        notification.sender_name = sender_name or notification.sender_name
        notification.sender_avatar = sender_avatar or notification.sender_avatar
        notification.updated_at = when
        self.db.add(notification)
        await self.db.flush()

    async def create_notification(
        self,
        recipient_id: str,
        sender_id: Optional[str],
        type: NotificationType | str,
        message: str,
        post_id: Optional[str] = None,
        sender_name: Optional[str] = None,
        sender_avatar: Optional[str] = None
    ) -> Optional[Notification]:
        """
        Create an activity notification and publish it for push delivery.

        Notifications a user would send to themselves are skipped.

        Returns:
            The notification, or None when skipped

        Raises:
            HTTPException: 404 if the recipient does not exist
        """
        recipient = await self.identity.resolve(recipient_id)
        sender = await self.identity.resolve_optional(sender_id) if sender_id else None

        if sender and sender.canonical_id == recipient.canonical_id:
            logger.debug(f"Skipping self-notification for {recipient.canonical_id}")
            return None

        type_value = type.value if isinstance(type, NotificationType) else type

        notification = await self.notification_repo.create(
            recipient_id=recipient.canonical_id,
            sender_id=sender.canonical_id if sender else sender_id,
            sender_name=sender_name,
            sender_avatar=sender_avatar,
            type=type_value,
            message=message,
            post_id=post_id,
            read=False,
        )
        await self.db.commit()

        await side_effect_bus.publish(EventType.NOTIFICATION_CREATED, {
            "notification_id": notification.id,
            "recipient_id": notification.recipient_id,
            "sender_name": sender_name or "Someone",
            "type": type_value,
            "message": message,
            "post_id": post_id,
        })

        return notification

    async def list_notifications(
        self,
        user_id: str,
        limit: int = 50,
        skip: int = 0
    ) -> Dict[str, Any]:
        """
        List the user's notifications, newest first.

        Returns:
            {"data": [...], "total": int, "unread_count": int}
        """
        user = await self.identity.resolve(user_id)

        notifications = await self.notification_repo.get_for_recipient(
            user.canonical_id, limit=limit, offset=skip
        )
        total = await self.notification_repo.count(recipient_id=user.canonical_id)
        unread_count = await self.notification_repo.count(recipient_id=user.canonical_id, read=False)

        return {
            "data": [serialize_notification(n) for n in notifications],
            "total": total,
            "unread_count": unread_count,
        }

    async def _get_owned(self, notification_id: str, user_id: str) -> Notification:
        user = await self.identity.resolve(user_id)
        notification = await self.notification_repo.get(notification_id)

        if not notification or not user.matches(notification.recipient_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notification not found"
            )
        return notification

    async def mark_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        """
        Mark one notification as read.

        Raises:
            HTTPException: 404 if unknown or addressed to someone else
        """
        notification = await self._get_owned(notification_id, user_id)

        if not notification.read:
            notification.read = True
            notification.read_at = utc_now()
            self.db.add(notification)
            await self.db.flush()
            await self.db.commit()

        return serialize_notification(notification)

    async def mark_all_read(self, user_id: str) -> Dict[str, Any]:
        """Mark every unread notification of the user as read."""
        user = await self.identity.resolve(user_id)
        updated = await self.notification_repo.mark_all_read(user.canonical_id, utc_now())
        await self.db.commit()
        return {"updated_count": updated}

    async def delete_notification(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        """Delete one of the user's notifications."""
        notification = await self._get_owned(notification_id, user_id)
        await self.notification_repo.delete(notification.id)
        await self.db.commit()
        return {"deleted": True, "id": notification_id}
