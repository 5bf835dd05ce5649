"""
Expo push gateway client.
Sends device push notifications for social events and new messages.
"""
import logging
import re
from typing import Any, Dict, Optional, Tuple

import httpx

from trave_social.config import settings
from trave_social.utils.helpers import truncate

logger = logging.getLogger(__name__)

_EXPO_TOKEN_RE = re.compile(r"^Expo(nent)?PushToken\[.+\]$")
_LEGACY_TOKEN_RE = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE)


class ExpoPushClient:
    """
    Client for the Expo push send API.

    send() never raises: delivery is a best-effort side effect, so every
    failure is reported through the returned result dict.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize push client.

        Args:
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.url = settings.expo_push_url
        self.timeout = settings.push_timeout
        self.access_token = settings.expo_access_token
        self._transport = transport

    @staticmethod
    def is_push_token(token: Optional[str]) -> bool:
        """Check whether a value looks like an Expo push token."""
        if not token or not isinstance(token, str):
            return False
        return bool(_EXPO_TOKEN_RE.match(token) or _LEGACY_TOKEN_RE.match(token))

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Send one push notification.

        Args:
            token: Expo push token of the device
            title: Notification title
            body: Notification body
            data: Extra data delivered to the app

        Returns:
            {"success": True, "ticket": {...}} or {"success": False, "error": "..."}
        """
        if not self.is_push_token(token):
            logger.warning(f"Invalid Expo push token: {token}")
            return {"success": False, "error": "Invalid Expo push token"}

        message = {
            "to": token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": data or {},
            "priority": "high",
            "channelId": "default",
            "badge": 1,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=[message], headers=self._get_headers())

            if not response.is_success:
                logger.warning(
                    f"Push gateway returned {response.status_code}: {response.text[:200]}"
                )
                return {"success": False, "error": f"Push gateway error ({response.status_code})"}

            tickets = response.json().get("data") or []
            ticket = tickets[0] if isinstance(tickets, list) and tickets else tickets
            if isinstance(ticket, dict) and ticket.get("status") == "error":
                logger.warning(f"Push ticket error for {token}: {ticket.get('message')}")
                return {"success": False, "error": ticket.get("message") or "Push ticket error"}

            logger.info(f"Push notification sent: {title}")
            return {"success": True, "ticket": ticket}

        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Push notification error: {e}", exc_info=True)
            return {"success": False, "error": str(e) or "Failed to send push notification"}

    @staticmethod
    def build_event_content(
        type: str,
        sender_name: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Tuple[str, str]:
        """
        Build title and body for an event notification.

        Args:
            type: Event type (like, comment, follow, message, story, live, mention)
            sender_name: Display name of the triggering user
            data: Event data ("comment" and "message" texts are used)

        Returns:
            Tuple of (title, body)
        """
        data = data or {}

        if type == "like":
            return "❤️ New Like", f"{sender_name} liked your post"
        if type == "comment":
            return "💬 New Comment", truncate(f"{sender_name} commented: {data.get('comment') or ''}")
        if type == "follow":
            return "👥 New Follower", f"{sender_name} started following you"
        if type == "message":
            return sender_name, data.get("message") or "New message"
        if type == "story":
            return "📸 Story Update", f"{sender_name} posted a new story"
        if type == "live":
            return "🔴 Live Now", f"{sender_name} is live!"
        if type == "mention":
            return "🔔 Mention", f"{sender_name} mentioned you"
        return "New Notification", f"{sender_name} interacted with you"

    async def send_event(
        self,
        type: str,
        token: str,
        sender_name: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Send a push for a social event, with content built from its type."""
        data = data or {}
        title, body = self.build_event_content(type, sender_name, data)
        return await self.send(token, title, body, {"type": type, **data})


# Global push client instance
push_client = ExpoPushClient()
