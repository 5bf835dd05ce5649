"""
Conversation service for business logic.

A logical thread between two users is identified by its canonical key
(sorted canonical ids joined with "_"). Older data can hold several
conversation documents for the same pair: rows without a key, rows whose
participants are stored in auth-provider form, or rows written with an
unsorted key. Every read merges all of them and every write reaches the
document that holds the affected message.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.models.conversation import Conversation
from trave_social.repositories.conversation_repo import ConversationRepository
from trave_social.repositories.user_repo import UserRepository
from trave_social.services.identity_service import IdentityService, ResolvedIdentity
from trave_social.utils.datetime_utils import ensure_utc, parse_iso_utc, to_iso_utc, utc_now
from trave_social.utils.helpers import canonical_key, split_canonical_key

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class Thread:
    """
    One logical conversation: its key, both participants and every
    document that belongs to it (primary document first).
    """
    key: str
    participants: Tuple[ResolvedIdentity, ResolvedIdentity]
    documents: List[Conversation] = field(default_factory=list)

    @property
    def primary(self) -> Optional[Conversation]:
        return self.documents[0] if self.documents else None

    @property
    def participant_ids(self) -> List[str]:
        return [identity.canonical_id for identity in self.participants]

    def other(self, user: ResolvedIdentity) -> ResolvedIdentity:
        """The participant that is not the given user."""
        first, second = self.participants
        return second if first.canonical_id == user.canonical_id else first


def _timestamp(message: Dict[str, Any]) -> datetime:
    return parse_iso_utc(message.get("timestamp")) or _EPOCH


def _revision(message: Dict[str, Any]) -> datetime:
    return max(
        parse_iso_utc(message.get("edited_at")) or _EPOCH,
        parse_iso_utc(message.get("deleted_at")) or _EPOCH,
    )


def merge_messages(
    documents: List[Conversation],
    include_deleted: bool = False
) -> List[Dict[str, Any]]:
    """
    Merge the embedded messages of several documents into one timeline.

    Messages are deduplicated by id (the most recently edited copy wins and
    a copy marked read keeps the merged message read) and sorted by timestamp.

    Args:
        documents: Conversation documents of one thread
        include_deleted: Keep soft-deleted messages

    Returns:
        Messages in ascending time order
    """
    merged: Dict[str, Dict[str, Any]] = {}

    for document in documents:
        for message in document.messages or []:
            message_id = message.get("id")
            if not message_id:
                continue

            existing = merged.get(message_id)
            if existing is None:
                merged[message_id] = dict(message)
                continue

            read = bool(existing.get("read") or message.get("read"))
            if _revision(message) > _revision(existing):
                merged[message_id] = dict(message)
            merged[message_id]["read"] = read

    messages = list(merged.values())
    if not include_deleted:
        messages = [message for message in messages if not message.get("deleted_at")]

    messages.sort(key=_timestamp)
    return messages


def is_addressed_to(message: Dict[str, Any], user: ResolvedIdentity) -> bool:
    """Check whether a message was sent to the user (under any variant)."""
    recipient = message.get("recipient_id")
    if recipient:
        return user.matches(recipient)
    return not user.matches(message.get("sender_id"))


def serialize_message(message: Dict[str, Any], conversation_key: str) -> Dict[str, Any]:
    """Shape an embedded message for API responses and socket payloads."""
    return {
        "id": message.get("id"),
        "conversation_id": conversation_key,
        "sender_id": message.get("sender_id"),
        "recipient_id": message.get("recipient_id"),
        "text": message.get("text") or "",
        "timestamp": message.get("timestamp"),
        "read": bool(message.get("read")),
        "delivered": bool(message.get("delivered")),
        "edited_at": message.get("edited_at"),
        "reply_to": message.get("reply_to"),
        "reactions": dict(message.get("reactions") or {}),
    }


def refresh_summary(document: Conversation) -> None:
    """Recompute the denormalized last message of a document."""
    visible = [m for m in document.messages or [] if not m.get("deleted_at")]
    if not visible:
        document.last_message = None
        return

    latest = max(visible, key=_timestamp)
    document.last_message = latest.get("text")
    document.last_message_at = parse_iso_utc(latest.get("timestamp")) or document.last_message_at


def _without_variants(values: List[str], user: ResolvedIdentity) -> List[str]:
    return [value for value in values or [] if not user.matches(value)]


class ConversationService:
    """Service for conversation resolution, listing and per-user visibility."""

    def __init__(self, db: AsyncSession, identity: Optional[IdentityService] = None):
        """
        Initialize conversation service.

        Args:
            db: Database session
            identity: Request-scoped identity service (created if omitted)
        """
        self.db = db
        self.identity = identity or IdentityService(db)
        self.conversation_repo = ConversationRepository(db)
        self.user_repo = UserRepository(db)

    @staticmethod
    def canonical_key(id_a: str, id_b: str) -> str:
        return canonical_key(id_a, id_b)

    async def _create_document(self, key: str, first: str, second: str) -> Conversation:
        try:
            return await self.conversation_repo.create(
                conversation_key=key,
                participant_one_id=first,
                participant_two_id=second,
                messages=[],
                archived_by=[],
                deleted_by=[],
            )
        except IntegrityError:
            # Another request created the thread first
            await self.db.rollback()
            existing = await self.conversation_repo.get_by_key(key)
            if not existing:
                raise
            logger.info(f"Conversation {key} created concurrently, using existing document")
            return existing

    @staticmethod
    def _order_documents(documents: List[Conversation], key: str) -> List[Conversation]:
        """Primary first: the keyed document, else the most recently updated."""
        def recency(document: Conversation) -> datetime:
            return ensure_utc(document.updated_at) or _EPOCH

        ordered = sorted(documents, key=recency, reverse=True)
        keyed = [document for document in ordered if document.conversation_key == key]
        if keyed:
            ordered.remove(keyed[0])
            ordered.insert(0, keyed[0])
        return ordered

    async def _load_thread(
        self,
        user_a: ResolvedIdentity,
        user_b: ResolvedIdentity,
        create: bool
    ) -> Thread:
        if user_a.canonical_id == user_b.canonical_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot start a conversation with yourself"
            )

        key = canonical_key(user_a.canonical_id, user_b.canonical_id)
        participants = tuple(sorted((user_a, user_b), key=lambda identity: identity.canonical_id))

        documents = await self.conversation_repo.find_for_pair(key, user_a.variants, user_b.variants)

        if not documents:
            if not create:
                return Thread(key=key, participants=participants, documents=[])
            first, second = (identity.canonical_id for identity in participants)
            document = await self._create_document(key, first, second)
            logger.info(f"Created conversation {key}")
            return Thread(key=key, participants=participants, documents=[document])

        documents = self._order_documents(documents, key)
        primary = documents[0]
        if primary.conversation_key != key:
            logger.info(
                f"Stamping canonical key {key} on legacy conversation {primary.id} "
                f"({len(documents)} document(s) in thread)"
            )
            primary.conversation_key = key
            await self.conversation_repo.save(primary)

        return Thread(key=key, participants=participants, documents=documents)

    async def resolve_conversation(self, id_a: str, id_b: str) -> Thread:
        """
        Get or create the single logical conversation for a participant pair.

        Both identifiers may be given in any variant. Idempotent: resolving
        the same pair again returns the same primary document.

        Args:
            id_a: First participant identifier
            id_b: Second participant identifier

        Returns:
            Thread with the primary document first

        Raises:
            HTTPException: 404 if a participant does not exist,
                           400 for a conversation with oneself
        """
        user_a = await self.identity.resolve(id_a)
        user_b = await self.identity.resolve(id_b)
        return await self._load_thread(user_a, user_b, create=True)

    async def resolve_thread(self, reference: str, user_id: str, create: bool = False) -> Thread:
        """
        Resolve a conversation reference from a request path.

        The reference can be a document id, a canonical key, or an "a_b"
        participant pair in any identifier form.

        Args:
            reference: Conversation reference
            user_id: Requesting user
            create: Create the thread when the pair has no document yet

        Returns:
            Thread (documents may be empty for a pair that never talked)

        Raises:
            HTTPException: 404 if the reference is unknown,
                           403 if the user is not a participant
        """
        user = await self.identity.resolve(user_id)

        document = await self.conversation_repo.get(reference)
        if document is None:
            document = await self.conversation_repo.get_by_key(reference)

        if document is not None:
            if not any(user.matches(participant) for participant in document.participants):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Not a participant of this conversation"
                )
            other_ref = next(
                (p for p in document.participants if not user.matches(p)),
                None
            )
            other = await self.identity.resolve_optional(other_ref)
            if other is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Participant not found"
                )
            return await self._load_thread(user, other, create=create)

        pair = split_canonical_key(reference)
        if pair is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Conversation not found"
            )

        resolved = await self.identity.resolve_many(pair)
        user_a, user_b = resolved.get(pair[0]), resolved.get(pair[1])
        if user_a is None or user_b is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Conversation not found"
            )

        if user.canonical_id not in (user_a.canonical_id, user_b.canonical_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not a participant of this conversation"
            )

        return await self._load_thread(user_a, user_b, create=create)

    async def _profiles(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        users = await self.user_repo.get_many(user_ids)
        return {
            user.id: {
                "id": user.id,
                "display_name": user.name,
                "avatar": user.avatar,
            }
            for user in users
        }

    @staticmethod
    def _summarize(
        key: str,
        documents: List[Conversation],
        user: ResolvedIdentity,
        other_id: str,
        profiles: Dict[str, Dict[str, Any]]
    ) -> Dict[str, Any]:
        messages = merge_messages(documents)
        last = messages[-1] if messages else None

        activity = [
            ensure_utc(document.last_message_at or document.updated_at)
            for document in documents
            if document.last_message_at or document.updated_at
        ]

        return {
            "id": key,
            "document_id": documents[0].id if documents else None,
            "participants": sorted([user.canonical_id, other_id]),
            "other_user": profiles.get(other_id) or {"id": other_id, "display_name": None, "avatar": None},
            "last_message": serialize_message(last, key) if last else None,
            "last_message_at": to_iso_utc(max(activity)) if activity else None,
            "unread_count": sum(
                1 for message in messages
                if is_addressed_to(message, user) and not message.get("read")
            ),
            "archived": any(
                user.matches(value) for document in documents for value in document.archived_by or []
            ),
        }

    async def describe_thread(self, thread: Thread, user_id: str) -> Dict[str, Any]:
        """Summary of one thread as seen by the given user."""
        user = await self.identity.resolve(user_id)
        other = thread.other(user)
        profiles = await self._profiles([other.canonical_id])
        return self._summarize(thread.key, thread.documents, user, other.canonical_id, profiles)

    async def list_conversations(
        self,
        user_id: str,
        archived: bool = False,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        """
        List the user's threads, newest activity first.

        Legacy duplicates are grouped into one entry per canonical key.
        Threads the user deleted are hidden. Archived threads are listed
        only when archived=True.

        Args:
            user_id: Requesting user
            archived: List archived threads instead of the inbox
            limit: Maximum threads to return

        Returns:
            List of conversation summaries
        """
        user = await self.identity.resolve(user_id)
        documents = await self.conversation_repo.find_for_user(user.variants)

        other_refs = []
        for document in documents:
            other_ref = next((p for p in document.participants if not user.matches(p)), None)
            other_refs.append(other_ref)

        identities = await self.identity.resolve_many([ref for ref in other_refs if ref])

        groups: Dict[str, List[Conversation]] = {}
        others: Dict[str, str] = {}
        for document, other_ref in zip(documents, other_refs):
            if other_ref is None:
                continue
            other = identities.get(other_ref)
            other_id = other.canonical_id if other else other_ref
            key = canonical_key(user.canonical_id, other_id)
            groups.setdefault(key, []).append(document)
            others[key] = other_id

        profiles = await self._profiles(list(set(others.values())))

        summaries = []
        for key, group in groups.items():
            if any(user.matches(value) for document in group for value in document.deleted_by or []):
                continue
            is_archived = any(
                user.matches(value) for document in group for value in document.archived_by or []
            )
            if is_archived != archived:
                continue
            group = self._order_documents(group, key)
            summaries.append(self._summarize(key, group, user, others[key], profiles))

        summaries.sort(key=lambda item: parse_iso_utc(item["last_message_at"]) or _EPOCH, reverse=True)
        return summaries[:limit]

    async def _update_membership(
        self,
        reference: str,
        user_id: str,
        archive: Optional[bool],
        delete: Optional[bool]
    ) -> Thread:
        thread = await self.resolve_thread(reference, user_id)
        if not thread.documents:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Conversation not found"
            )

        user = await self.identity.resolve(user_id)
        for document in thread.documents:
            archived_by = list(document.archived_by or [])
            deleted_by = list(document.deleted_by or [])
            if archive is not None:
                archived_by = _without_variants(archived_by, user)
                if archive:
                    archived_by.append(user.canonical_id)
            if delete is not None:
                deleted_by = _without_variants(deleted_by, user)
                if delete:
                    deleted_by.append(user.canonical_id)

            if archived_by != (document.archived_by or []) or deleted_by != (document.deleted_by or []):
                document.archived_by = archived_by
                document.deleted_by = deleted_by
                await self.conversation_repo.save(document, "archived_by", "deleted_by")

        await self.db.commit()
        return thread

    async def archive_thread(self, reference: str, user_id: str) -> Dict[str, Any]:
        """
        Archive a thread for the user (clears the user's deletion flag).

        Applied to every document of the thread.
        """
        thread = await self._update_membership(reference, user_id, archive=True, delete=False)
        logger.info(f"User {user_id} archived conversation {thread.key}")
        return {"conversation_id": thread.key, "archived": True, "deleted": False}

    async def unarchive_thread(self, reference: str, user_id: str) -> Dict[str, Any]:
        """Move an archived thread back to the user's inbox."""
        thread = await self._update_membership(reference, user_id, archive=False, delete=None)
        return {"conversation_id": thread.key, "archived": False, "deleted": False}

    async def delete_thread(self, reference: str, user_id: str) -> Dict[str, Any]:
        """
        Hide a thread for the user (clears the user's archive flag).

        The documents are kept; a new message in the thread resurfaces it.
        """
        thread = await self._update_membership(reference, user_id, archive=False, delete=True)
        logger.info(f"User {user_id} deleted conversation {thread.key}")
        return {"conversation_id": thread.key, "archived": False, "deleted": True}
