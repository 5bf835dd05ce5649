"""
Message service for business logic.
Handles sending, reading, editing, deleting and reacting to embedded messages.

Every operation commits its write before publishing a side-effect event,
so notifications, socket emits and pushes never affect the response.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.events import EventType, side_effect_bus
from trave_social.models.conversation import Conversation
from trave_social.repositories.conversation_repo import ConversationRepository
from trave_social.repositories.notification_repo import NotificationRepository
from trave_social.repositories.user_repo import UserRepository
from trave_social.services.conversation_service import (
    ConversationService,
    Thread,
    is_addressed_to,
    merge_messages,
    refresh_summary,
    serialize_message,
)
from trave_social.services.identity_service import IdentityService, ResolvedIdentity
from trave_social.utils.datetime_utils import parse_iso_utc, to_iso_utc, utc_now
from trave_social.utils.helpers import generate_id, split_canonical_key

logger = logging.getLogger(__name__)


def _without_variants(values: List[str], identities: List[ResolvedIdentity]) -> List[str]:
    return [
        value for value in values or []
        if not any(identity.matches(value) for identity in identities)
    ]


class MessageService:
    """Service for message operations."""

    def __init__(self, db: AsyncSession, identity: Optional[IdentityService] = None):
        """
        Initialize message service.

        Args:
            db: Database session
            identity: Request-scoped identity service (created if omitted)
        """
        self.db = db
        self.identity = identity or IdentityService(db)
        self.conversations = ConversationService(db, identity=self.identity)
        self.conversation_repo = ConversationRepository(db)
        self.notification_repo = NotificationRepository(db)
        self.user_repo = UserRepository(db)

    @staticmethod
    def _locate(thread: Thread, message_id: str) -> List[Tuple[Conversation, int]]:
        """Find every (document, index) holding a visible copy of a message."""
        locations = []
        for document in thread.documents:
            for index, message in enumerate(document.messages or []):
                if message.get("id") == message_id and not message.get("deleted_at"):
                    locations.append((document, index))
        return locations

    async def _find_message(
        self,
        reference: str,
        message_id: str,
        user_id: str
    ) -> Tuple[Thread, Dict[str, Any], List[Tuple[Conversation, int]]]:
        thread = await self.conversations.resolve_thread(reference, user_id)
        locations = self._locate(thread, message_id)
        merged = next(
            (
                message for message in merge_messages(thread.documents, include_deleted=True)
                if message.get("id") == message_id
            ),
            None
        )
        if not locations or merged is None or merged.get("deleted_at"):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Message not found"
            )
        return thread, merged, locations

    async def _write_message(
        self,
        locations: List[Tuple[Conversation, int]],
        **changes: Any
    ) -> None:
        """Apply field changes to every copy of a message and save."""
        touched = []
        for document, index in locations:
            messages = list(document.messages or [])
            messages[index] = {**messages[index], **changes}
            document.messages = messages
            if document not in touched:
                touched.append(document)

        for document in touched:
            refresh_summary(document)
            await self.conversation_repo.save(document, "messages")

    def _room_payload(self, thread: Thread) -> Dict[str, Any]:
        return {
            "conversation_id": thread.key,
            "participant_ids": thread.participant_ids,
        }

    async def resolve_recipient(
        self,
        reference: str,
        sender_id: str,
        explicit: Optional[str] = None
    ) -> str:
        """
        Work out who a message posted to a conversation path is for.

        The path reference decides: the other participant of the referenced
        document, else the other half of an "a_b" key. An explicit recipient
        is only used when the reference names neither, and must otherwise
        be the same user as the one the reference implies.

        Raises:
            HTTPException: 400 if no recipient can be determined or the
                           explicit recipient contradicts the reference,
                           403 if the sender is not part of the conversation
        """
        sender = await self.identity.resolve(sender_id)
        inferred = await self._recipient_from_reference(reference, sender)

        if inferred is None:
            if explicit:
                return explicit
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="recipient_id is required"
            )

        if explicit and not await self._same_user(explicit, inferred):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="recipient_id does not match the conversation"
            )
        return inferred

    async def _recipient_from_reference(self, reference: str, sender: ResolvedIdentity) -> Optional[str]:
        document = await self.conversation_repo.get(reference)
        if document is None:
            document = await self.conversation_repo.get_by_key(reference)

        if document is not None:
            if not any(sender.matches(p) for p in document.participants):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Not a participant of this conversation"
                )
            other = next((p for p in document.participants if not sender.matches(p)), None)
            if other:
                return other

        pair = split_canonical_key(reference)
        if not pair:
            return None

        first, second = pair
        if sender.matches(first):
            return second
        if sender.matches(second):
            return first
        first_identity = await self.identity.resolve_optional(first)
        if first_identity and first_identity.canonical_id == sender.canonical_id:
            return second
        second_identity = await self.identity.resolve_optional(second)
        if second_identity and second_identity.canonical_id == sender.canonical_id:
            return first
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a participant of this conversation"
        )

    async def _same_user(self, first: str, second: str) -> bool:
        if first == second:
            return True
        first_identity = await self.identity.resolve_optional(first)
        second_identity = await self.identity.resolve_optional(second)
        return bool(
            first_identity and second_identity
            and first_identity.canonical_id == second_identity.canonical_id
        )

    async def send_message(
        self,
        sender_id: str,
        recipient_id: Optional[str],
        text: Optional[str],
        reply_to: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send a message to another user.

        Resolves (or lazily creates) the pair's conversation, appends the
        message to its primary document and resurfaces the thread for both
        participants if either had deleted it.

        Args:
            sender_id: Authenticated user (never taken from the request body)
            recipient_id: Recipient in any identifier form
            text: Message text
            reply_to: Optional id of a message in the same thread

        Returns:
            Serialized message including conversation_id

        Raises:
            HTTPException: 400 on missing recipient or text,
                           404 on unknown recipient or reply target
        """
        if not sender_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="sender is required"
            )
        if not recipient_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="recipient_id is required"
            )
        text = (text or "").strip()
        if not text:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Message text is required"
            )

        sender = await self.identity.resolve(sender_id)
        recipient = await self.identity.resolve(recipient_id)
        thread = await self.conversations.resolve_conversation(sender.canonical_id, recipient.canonical_id)

        if reply_to and not any(m.get("id") == reply_to for m in merge_messages(thread.documents)):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Reply target not found"
            )

        now = utc_now()
        message = {
            "id": generate_id(),
            "sender_id": sender.canonical_id,
            "recipient_id": recipient.canonical_id,
            "text": text,
            "timestamp": to_iso_utc(now),
            "read": False,
            "delivered": False,
            "edited_at": None,
            "deleted_at": None,
            "reply_to": reply_to,
            "reactions": {},
        }

        primary = thread.primary
        primary.messages = [*(primary.messages or []), message]
        primary.last_message = text
        primary.last_message_at = now
        primary.updated_at = now

        for document in thread.documents:
            deleted_by = _without_variants(document.deleted_by, [sender, recipient])
            fields = ["deleted_by"] if deleted_by != (document.deleted_by or []) else []
            document.deleted_by = deleted_by
            if document is primary:
                await self.conversation_repo.save(document, "messages", *fields)
            elif fields:
                await self.conversation_repo.save(document, *fields)

        await self.db.commit()

        sender_user = await self.user_repo.get(sender.canonical_id)
        serialized = serialize_message(message, thread.key)

        logger.info(f"Message {message['id']} sent in {thread.key}")

        await side_effect_bus.publish(EventType.MESSAGE_CREATED, {
            **self._room_payload(thread),
            "message": serialized,
            "sender_id": sender.canonical_id,
            "recipient_id": recipient.canonical_id,
            "sender_name": sender_user.name if sender_user else None,
            "sender_avatar": sender_user.avatar if sender_user else None,
        })

        return serialized

    async def reply_to_message(
        self,
        reference: str,
        message_id: str,
        sender_id: str,
        text: Optional[str]
    ) -> Dict[str, Any]:
        """Send a message in the referenced thread that replies to message_id."""
        recipient_id = await self.resolve_recipient(reference, sender_id)
        return await self.send_message(sender_id, recipient_id, text, reply_to=message_id)

    async def get_thread_messages(
        self,
        reference: str,
        user_id: str,
        limit: int = 50,
        before: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Get the merged timeline of a thread.

        Args:
            reference: Conversation reference (id, key or "a_b" pair)
            user_id: Requesting user
            limit: Most recent N messages to return
            before: Only messages strictly older than this timestamp

        Returns:
            {"conversation_id", "messages" (ascending), "has_more"}
        """
        thread = await self.conversations.resolve_thread(reference, user_id)
        messages = merge_messages(thread.documents)

        if before is not None:
            cutoff = parse_iso_utc(before)
            messages = [
                m for m in messages
                if (parse_iso_utc(m.get("timestamp")) or cutoff) < cutoff
            ]

        has_more = len(messages) > limit
        page = messages[-limit:] if limit > 0 else []

        return {
            "conversation_id": thread.key,
            "messages": [serialize_message(m, thread.key) for m in page],
            "has_more": has_more,
        }

    async def get_message(self, reference: str, message_id: str, user_id: str) -> Dict[str, Any]:
        """
        Get a single message.

        Raises:
            HTTPException: 404 if the message is unknown or deleted
        """
        thread, message, _ = await self._find_message(reference, message_id, user_id)
        return serialize_message(message, thread.key)

    async def mark_thread_read(self, reference: str, user_id: str) -> Dict[str, Any]:
        """
        Mark every message addressed to the user as read.

        Messages the user sent are left untouched. Only documents with
        changes are saved. The user's unread message notification for the
        thread is cleared as well.

        Returns:
            {"conversation_id", "updated_count"}
        """
        thread = await self.conversations.resolve_thread(reference, user_id)
        user = await self.identity.resolve(user_id)

        updated_count = 0
        for document in thread.documents:
            changed = False
            messages = []
            for message in document.messages or []:
                if is_addressed_to(message, user) and not message.get("read"):
                    message = {**message, "read": True}
                    changed = True
                    updated_count += 1
                messages.append(message)

            if changed:
                document.messages = messages
                await self.conversation_repo.save(document, "messages")

        await self.notification_repo.mark_conversation_read(user.canonical_id, thread.key, utc_now())
        await self.db.commit()

        if updated_count:
            await side_effect_bus.publish(EventType.CONVERSATION_READ, {
                **self._room_payload(thread),
                "user_id": user.canonical_id,
                "updated_count": updated_count,
            })

        return {"conversation_id": thread.key, "updated_count": updated_count}

    async def toggle_reaction(
        self,
        reference: str,
        message_id: str,
        user_id: str,
        reaction: str
    ) -> Dict[str, Any]:
        """
        Toggle the user's reaction on a message.

        Applying a reaction the user already gave removes it; a bucket left
        empty is dropped from the map.

        Returns:
            {"message_id", "reaction", "reactions", "added"}
        """
        reaction = (reaction or "").strip()
        if not reaction:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Reaction is required"
            )

        thread, message, locations = await self._find_message(reference, message_id, user_id)
        user = await self.identity.resolve(user_id)

        reactions = {label: list(users) for label, users in (message.get("reactions") or {}).items()}
        bucket = reactions.get(reaction, [])

        if any(user.matches(member) for member in bucket):
            bucket = [member for member in bucket if not user.matches(member)]
            added = False
        else:
            bucket = [*bucket, user.canonical_id]
            added = True

        if bucket:
            reactions[reaction] = bucket
        else:
            reactions.pop(reaction, None)

        await self._write_message(locations, reactions=reactions)
        await self.db.commit()

        await side_effect_bus.publish(EventType.MESSAGE_REACTION, {
            **self._room_payload(thread),
            "message_id": message_id,
            "user_id": user.canonical_id,
            "reaction": reaction,
            "reactions": reactions,
            "added": added,
        })

        return {
            "message_id": message_id,
            "reaction": reaction,
            "reactions": reactions,
            "added": added,
        }

    async def edit_message(
        self,
        reference: str,
        message_id: str,
        user_id: str,
        text: Optional[str]
    ) -> Dict[str, Any]:
        """
        Edit a message's text (sender only).

        Raises:
            HTTPException: 400 on empty text, 403 if the user is not the
                           sender, 404 if the message does not exist
        """
        text = (text or "").strip()
        if not text:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Message text is required"
            )

        thread, message, locations = await self._find_message(reference, message_id, user_id)
        user = await self.identity.resolve(user_id)

        if not user.matches(message.get("sender_id")):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only edit your own messages"
            )

        edited_at = to_iso_utc(utc_now())
        await self._write_message(locations, text=text, edited_at=edited_at)
        await self.db.commit()

        updated = serialize_message({**message, "text": text, "edited_at": edited_at}, thread.key)

        await side_effect_bus.publish(EventType.MESSAGE_UPDATED, {
            **self._room_payload(thread),
            "message": updated,
        })

        return updated

    async def delete_message(self, reference: str, message_id: str, user_id: str) -> Dict[str, Any]:
        """
        Soft-delete a message (sender only).

        The message stays in the document with deleted_at set and is
        excluded from every read.
        """
        thread, message, locations = await self._find_message(reference, message_id, user_id)
        user = await self.identity.resolve(user_id)

        if not user.matches(message.get("sender_id")):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only delete your own messages"
            )

        await self._write_message(locations, deleted_at=to_iso_utc(utc_now()))
        await self.db.commit()

        await side_effect_bus.publish(EventType.MESSAGE_DELETED, {
            **self._room_payload(thread),
            "message_id": message_id,
        })

        return {"conversation_id": thread.key, "message_id": message_id, "deleted": True}
