"""
Conversation API routes.
Provides endpoints for threads and the messages embedded in them.

A {reference} path segment accepts a conversation document id, a
canonical key, or an "a_b" participant pair in any identifier form.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.database import get_db
from trave_social.core.rate_limit import limiter
from trave_social.dependencies import get_current_user, get_identity_service
from trave_social.schemas.conversation import (
    ConversationCreate,
    ConversationListResponse,
    ConversationResponse,
    ConversationStateResponse,
)
from trave_social.schemas.message import (
    MarkReadResponse,
    MessageCreate,
    MessageDeleteResponse,
    MessageListResponse,
    MessageReply,
    MessageResponse,
    MessageUpdate,
    ReactionResponse,
    ReactionToggle,
)
from trave_social.services.conversation_service import ConversationService
from trave_social.services.identity_service import IdentityService
from trave_social.services.message_service import MessageService

router = APIRouter()


@router.get(
    "/",
    response_model=ConversationListResponse,
    summary="List conversations",
    description="List the caller's threads, newest first. Deleted threads are hidden."
)
async def list_conversations(
    archived: bool = Query(False, description="List archived threads instead of the inbox"),
    limit: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = ConversationService(db, identity=identity)
    conversations = await service.list_conversations(current_user["id"], archived=archived, limit=limit)
    return {"data": conversations, "total": len(conversations)}


@router.post(
    "/",
    response_model=ConversationResponse,
    summary="Get or create a conversation",
    description="Return the single conversation with another user, creating it if absent."
)
async def get_or_create_conversation(
    data: ConversationCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = ConversationService(db, identity=identity)
    thread = await service.resolve_conversation(current_user["id"], data.participant_id)
    await db.commit()
    return await service.describe_thread(thread, current_user["id"])


@router.get(
    "/{reference}/messages",
    response_model=MessageListResponse,
    summary="Get thread messages",
    description="Merged timeline of every document in the thread, oldest first."
)
async def get_messages(
    reference: str,
    limit: int = Query(50, ge=1, le=200, description="Most recent N messages"),
    before: Optional[datetime] = Query(None, description="Only messages older than this timestamp"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = MessageService(db, identity=identity)
    return await service.get_thread_messages(reference, current_user["id"], limit=limit, before=before)


@router.post(
    "/{reference}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message"
)
@limiter.limit("30/minute")
async def send_message(
    request: Request,
    reference: str,
    data: MessageCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    """
    Send a message.

    - **text**: Message text (required)
    - **recipient_id**: Recipient in any identifier form; defaults to the
      other participant of the referenced thread
    - **reply_to**: Optional id of a message in the same thread
    """
    service = MessageService(db, identity=identity)
    recipient_id = await service.resolve_recipient(reference, current_user["id"], data.recipient_id)
    return await service.send_message(
        sender_id=current_user["id"],
        recipient_id=recipient_id,
        text=data.text,
        reply_to=data.reply_to,
    )


@router.get(
    "/{reference}/messages/{message_id}",
    response_model=MessageResponse,
    summary="Get a message"
)
async def get_message(
    reference: str,
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = MessageService(db, identity=identity)
    return await service.get_message(reference, message_id, current_user["id"])


@router.patch(
    "/{reference}/messages/{message_id}",
    response_model=MessageResponse,
    summary="Edit a message",
    description="Only the sender can edit a message."
)
async def edit_message(
    reference: str,
    message_id: str,
    data: MessageUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = MessageService(db, identity=identity)
    return await service.edit_message(reference, message_id, current_user["id"], data.text)


@router.delete(
    "/{reference}/messages/{message_id}",
    response_model=MessageDeleteResponse,
    summary="Delete a message",
    description="Soft-delete a message. Only the sender can delete it."
)
async def delete_message(
    reference: str,
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = MessageService(db, identity=identity)
    return await service.delete_message(reference, message_id, current_user["id"])


@router.post(
    "/{reference}/messages/{message_id}/reactions",
    response_model=ReactionResponse,
    summary="Toggle a reaction"
)
async def toggle_reaction(
    reference: str,
    message_id: str,
    data: ReactionToggle,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    """Applying the same reaction twice removes it."""
    service = MessageService(db, identity=identity)
    return await service.toggle_reaction(reference, message_id, current_user["id"], data.reaction)


@router.post(
    "/{reference}/messages/{message_id}/replies",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to a message"
)
@limiter.limit("30/minute")
async def reply_to_message(
    request: Request,
    reference: str,
    message_id: str,
    data: MessageReply,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = MessageService(db, identity=identity)
    return await service.reply_to_message(reference, message_id, current_user["id"], data.text)


@router.patch(
    "/{reference}/read",
    response_model=MarkReadResponse,
    summary="Mark thread as read",
    description="Mark every message addressed to the caller as read."
)
async def mark_read(
    reference: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = MessageService(db, identity=identity)
    return await service.mark_thread_read(reference, current_user["id"])


@router.post(
    "/{reference}/archive",
    response_model=ConversationStateResponse,
    summary="Archive a conversation"
)
async def archive_conversation(
    reference: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = ConversationService(db, identity=identity)
    return await service.archive_thread(reference, current_user["id"])


@router.delete(
    "/{reference}/archive",
    response_model=ConversationStateResponse,
    summary="Unarchive a conversation"
)
async def unarchive_conversation(
    reference: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = ConversationService(db, identity=identity)
    return await service.unarchive_thread(reference, current_user["id"])


@router.delete(
    "/{reference}",
    response_model=ConversationStateResponse,
    summary="Delete a conversation",
    description="Hide the thread for the caller. The other participant keeps it."
)
async def delete_conversation(
    reference: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = ConversationService(db, identity=identity)
    return await service.delete_thread(reference, current_user["id"])
