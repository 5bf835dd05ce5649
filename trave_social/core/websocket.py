"""
WebSocket manager for real-time messaging.
Handles Socket.IO connections, rooms, and message broadcasting.

Rooms:
    <conversation_key>  every client that joined the conversation
    user_<id>           every device of one user (joined on connect)
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

import socketio
from fastapi import HTTPException

from trave_social.config import settings

logger = logging.getLogger(__name__)


def user_room(user_id: str) -> str:
    """Personal room name for a user."""
    return f"user_{user_id}"


def message_rooms(conversation_key: str, *user_ids: Optional[str]) -> List[str]:
    """
    Rooms a conversation event is delivered to.

    Args:
        conversation_key: Canonical conversation key
        *user_ids: Participants whose personal rooms also receive the event

    Returns:
        Conversation room followed by each participant's personal room
    """
    rooms = [conversation_key]
    for user_id in user_ids:
        if user_id and user_room(user_id) not in rooms:
            rooms.append(user_room(user_id))
    return rooms


class ConnectionManager:
    """
    WebSocket connection manager using Socket.IO.

    Manages WebSocket connections, rooms, and message broadcasting
    for real-time messaging features.
    """

    def __init__(self):
        """Initialize the connection manager."""
        cors_origins = settings.get_allowed_origins_list() or ["*"]
        if cors_origins == ["*"]:
            cors_origins = "*"

        self.sio = socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins=cors_origins,
            logger=False,
            engineio_logger=False,
            ping_timeout=settings.ws_heartbeat_interval,
            ping_interval=settings.ws_heartbeat_interval // 2,
        )

        # Track connections: {sid: user_id}
        self.connections: Dict[str, str] = {}

        # Track user sessions: {user_id: set of sids}
        self.user_sessions: Dict[str, Set[str]] = {}

        # Track conversation rooms: {conversation_key: set of sids}
        self.conversation_rooms: Dict[str, Set[str]] = {}

        self._setup_handlers()

    def _setup_handlers(self):
        """Setup Socket.IO event handlers."""

        @self.sio.event
        async def connect(sid, environ, auth):
            """
            Handle client connection.

            Client should provide auth token in handshake: {'token': '<jwt>'}
            """
            token = auth.get("token") if auth else None

            if not token:
                logger.warning(f"Connection rejected - no token: {sid}")
                return False

            try:
                from trave_social.core.database import AsyncSessionLocal
                from trave_social.core.security import decode_token
                from trave_social.services.identity_service import IdentityService

                payload = decode_token(token)
                subject = payload.get("sub") or payload.get("user_id")
                if not subject:
                    logger.warning(f"Connection rejected - token has no subject: {sid}")
                    return False

                async with AsyncSessionLocal() as db:
                    identity = await IdentityService(db).resolve_optional(subject)

                if not identity:
                    logger.warning(f"Connection rejected - user not found: {sid}")
                    return False

                user_id = identity.canonical_id
                self.connections[sid] = user_id
                self.user_sessions.setdefault(user_id, set()).add(sid)

                await self.sio.enter_room(sid, user_room(user_id))
                logger.info(f"Client connected: {sid} (user: {user_id})")
                return True

            except HTTPException as e:
                logger.warning(f"Connection rejected - {e.detail}: {sid}")
                return False
            except Exception as e:
                logger.error(f"Connection error: {type(e).__name__}: {e}", exc_info=True)
                return False

        @self.sio.event
        async def disconnect(sid):
            """Handle client disconnection."""
            user_id = self.connections.pop(sid, None)
            if not user_id:
                return

            sessions = self.user_sessions.get(user_id)
            if sessions is not None:
                sessions.discard(sid)
                if not sessions:
                    del self.user_sessions[user_id]

            for key, sids in list(self.conversation_rooms.items()):
                sids.discard(sid)
                if not sids:
                    del self.conversation_rooms[key]

            logger.info(f"Client disconnected: {sid} (user: {user_id})")

        @self.sio.event
        async def join_conversation(sid, data):
            """
            Join a conversation room.

            Expected data: {'conversation_id': '<id, key or a_b pair>'}
            """
            user_id = self.connections.get(sid)
            if not user_id:
                await self.sio.emit("error", {"message": "Unauthorized"}, to=sid)
                return

            try:
                from trave_social.core.database import AsyncSessionLocal
                from trave_social.services.conversation_service import ConversationService

                reference = data["conversation_id"]
                async with AsyncSessionLocal() as db:
                    thread = await ConversationService(db).resolve_thread(reference, user_id)

                await self.sio.enter_room(sid, thread.key)
                self.conversation_rooms.setdefault(thread.key, set()).add(sid)

                await self.sio.emit("joined_conversation", {
                    "conversation_id": thread.key
                }, to=sid)

            except HTTPException as e:
                logger.warning(f"[join_conversation] {user_id} rejected: {e.detail}")
                await self.sio.emit("error", {"message": e.detail}, to=sid)
            except (KeyError, TypeError):
                await self.sio.emit("error", {"message": "conversation_id is required"}, to=sid)
            except Exception as e:
                logger.error(f"Error joining conversation: {e}", exc_info=True)
                await self.sio.emit("error", {"message": "Failed to join conversation"}, to=sid)

        @self.sio.event
        async def leave_conversation(sid, data):
            """
            Leave a conversation room.

            Expected data: {'conversation_id': '<conversation key>'}
            """
            try:
                key = data["conversation_id"]
                await self.sio.leave_room(sid, key)

                if key in self.conversation_rooms:
                    self.conversation_rooms[key].discard(sid)
                    if not self.conversation_rooms[key]:
                        del self.conversation_rooms[key]

                await self.sio.emit("left_conversation", {"conversation_id": key}, to=sid)

            except Exception as e:
                logger.error(f"Error leaving conversation: {e}")

        @self.sio.event
        async def typing_start(sid, data):
            """Expected data: {'conversation_id': '<conversation key>'}"""
            await self._emit_typing(sid, data, True)

        @self.sio.event
        async def typing_stop(sid, data):
            """Expected data: {'conversation_id': '<conversation key>'}"""
            await self._emit_typing(sid, data, False)

    async def _emit_typing(self, sid: str, data: Dict[str, Any], is_typing: bool):
        try:
            key = data["conversation_id"]
            user_id = self.connections.get(sid)

            if not user_id:
                return

            # Only rooms this session joined through join_conversation
            if sid not in self.conversation_rooms.get(key, set()):
                logger.debug(f"Ignoring typing from {sid} for unjoined room {key}")
                return

            await self.sio.emit("user_typing", {
                "conversation_id": key,
                "user_id": user_id,
                "is_typing": is_typing,
            }, room=key, skip_sid=sid)

        except Exception as e:
            logger.error(f"Error in typing event: {e}")

    async def _emit(self, event: str, data: Dict[str, Any], rooms: Iterable[str]):
        room_list = list(rooms)
        logger.debug(f"Emitting {event} to rooms {room_list}")
        await self.sio.emit(event, data, room=room_list)

    async def broadcast_new_message(
        self,
        conversation_id: str,
        message_data: Dict[str, Any],
        rooms: List[str]
    ):
        """
        Broadcast a new message.

        Args:
            conversation_id: Canonical conversation key
            message_data: Serialized message
            rooms: Conversation room plus participants' personal rooms
        """
        await self._emit("new_message", {**message_data, "conversation_id": conversation_id}, rooms)

    async def broadcast_message_edited(
        self,
        conversation_id: str,
        message_data: Dict[str, Any],
        rooms: List[str]
    ):
        """Broadcast a message edit (payload is the updated message)."""
        await self._emit("message_edited", {**message_data, "conversation_id": conversation_id}, rooms)

    async def broadcast_message_deleted(
        self,
        conversation_id: str,
        message_id: str,
        rooms: List[str]
    ):
        """Broadcast a message deletion."""
        await self._emit("message_deleted", {
            "conversation_id": conversation_id,
            "message_id": message_id,
        }, rooms)

    async def broadcast_reaction(
        self,
        conversation_id: str,
        message_id: str,
        reactions: Dict[str, List[str]],
        user_id: str,
        reaction: str,
        added: bool,
        rooms: List[str]
    ):
        """
        Broadcast a reaction toggle.

        The payload carries the full reaction map so clients can replace
        their copy instead of replaying toggles.
        """
        await self._emit("message_reaction", {
            "conversation_id": conversation_id,
            "message_id": message_id,
            "reactions": reactions,
            "user_id": user_id,
            "reaction": reaction,
            "added": added,
        }, rooms)

    async def broadcast_messages_read(
        self,
        conversation_id: str,
        user_id: str,
        updated_count: int,
        rooms: List[str]
    ):
        """Broadcast that a participant read their incoming messages."""
        await self._emit("messages_read", {
            "conversation_id": conversation_id,
            "user_id": user_id,
            "updated_count": updated_count,
        }, rooms)

    def is_user_online(self, user_id: str) -> bool:
        """Check whether a user has at least one connected socket."""
        return bool(self.user_sessions.get(user_id))

    def get_asgi_app(self, fastapi_app):
        """
        Get the ASGI app for Socket.IO wrapping FastAPI.

        Socket.IO wraps FastAPI, not the other way around. Clients connect
        to /socket.io/?EIO=4&transport=websocket.
        """
        return socketio.ASGIApp(self.sio, fastapi_app)


# Global connection manager instance
connection_manager = ConnectionManager()
