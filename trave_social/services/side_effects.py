"""
Side-effect handlers for published events.

Each handler runs as an independent bus job after the originating write
has been committed. Handlers that need the database open their own
session, since the request session is closed by the time they run.
"""
import asyncio
import logging
import weakref
from typing import Any, Dict

from trave_social.core import database
from trave_social.core.events import EventType, SideEffectBus
from trave_social.core.push_client import push_client
from trave_social.core.websocket import connection_manager, message_rooms
from trave_social.repositories.user_repo import UserRepository
from trave_social.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

# One lock per (recipient, sender, conversation) so bus workers serialize the upsert
_notification_locks: "weakref.WeakValueDictionary[tuple, asyncio.Lock]" = weakref.WeakValueDictionary()


def _notification_lock(*key: str) -> asyncio.Lock:
    lock = _notification_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _notification_locks[key] = lock
    return lock


def _rooms(payload: Dict[str, Any]):
    return message_rooms(payload["conversation_id"], *payload.get("participant_ids", []))


async def upsert_message_notification(payload: Dict[str, Any]) -> None:
    """Create or refresh the recipient's coalesced message notification."""
    message = payload["message"]
    lock = _notification_lock(payload["recipient_id"], payload["sender_id"], payload["conversation_id"])
    async with lock:
        async with database.AsyncSessionLocal() as db:
            await NotificationService(db).upsert_message_notification(
                recipient_id=payload["recipient_id"],
                sender_id=payload["sender_id"],
                sender_name=payload.get("sender_name"),
                sender_avatar=payload.get("sender_avatar"),
                conversation_key=payload["conversation_id"],
                text=message.get("text") or "",
                timestamp=message.get("timestamp"),
            )


async def emit_new_message(payload: Dict[str, Any]) -> None:
    await connection_manager.broadcast_new_message(
        payload["conversation_id"], payload["message"], _rooms(payload)
    )


async def push_new_message(payload: Dict[str, Any]) -> None:
    """Push the new message to the recipient's device, if registered."""
    async with database.AsyncSessionLocal() as db:
        recipient = await UserRepository(db).get(payload["recipient_id"])

    if not recipient or not recipient.push_token:
        return

    message = payload["message"]
    await push_client.send_event(
        "message",
        recipient.push_token,
        payload.get("sender_name") or "New message",
        {
            "message": message.get("text"),
            "conversation_id": payload["conversation_id"],
            "sender_id": payload["sender_id"],
        },
    )


async def emit_message_updated(payload: Dict[str, Any]) -> None:
    await connection_manager.broadcast_message_edited(
        payload["conversation_id"], payload["message"], _rooms(payload)
    )


async def emit_message_deleted(payload: Dict[str, Any]) -> None:
    await connection_manager.broadcast_message_deleted(
        payload["conversation_id"], payload["message_id"], _rooms(payload)
    )


async def emit_reaction(payload: Dict[str, Any]) -> None:
    await connection_manager.broadcast_reaction(
        conversation_id=payload["conversation_id"],
        message_id=payload["message_id"],
        reactions=payload["reactions"],
        user_id=payload["user_id"],
        reaction=payload["reaction"],
        added=payload["added"],
        rooms=_rooms(payload),
    )


async def emit_messages_read(payload: Dict[str, Any]) -> None:
    await connection_manager.broadcast_messages_read(
        payload["conversation_id"], payload["user_id"], payload["updated_count"], _rooms(payload)
    )


async def push_notification(payload: Dict[str, Any]) -> None:
    """Push an activity notification to the recipient's device."""
    async with database.AsyncSessionLocal() as db:
        recipient = await UserRepository(db).get(payload["recipient_id"])

    if not recipient or not recipient.push_token:
        return

    await push_client.send_event(
        payload["type"],
        recipient.push_token,
        payload.get("sender_name") or "Someone",
        {"notification_id": payload["notification_id"], "post_id": payload.get("post_id")},
    )


def register_handlers(bus: SideEffectBus) -> None:
    """Subscribe every side-effect handler to its event."""
    bus.subscribe(EventType.MESSAGE_CREATED, upsert_message_notification)
    bus.subscribe(EventType.MESSAGE_CREATED, emit_new_message)
    bus.subscribe(EventType.MESSAGE_CREATED, push_new_message)
    bus.subscribe(EventType.MESSAGE_UPDATED, emit_message_updated)
    bus.subscribe(EventType.MESSAGE_DELETED, emit_message_deleted)
    bus.subscribe(EventType.MESSAGE_REACTION, emit_reaction)
    bus.subscribe(EventType.CONVERSATION_READ, emit_messages_read)
    bus.subscribe(EventType.NOTIFICATION_CREATED, push_notification)
    logger.info("Side-effect handlers registered")
