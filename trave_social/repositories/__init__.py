"""
Repository layer for database operations.
"""
from trave_social.repositories.base import BaseRepository
from trave_social.repositories.user_repo import UserRepository, FollowRepository
from trave_social.repositories.conversation_repo import ConversationRepository
from trave_social.repositories.notification_repo import NotificationRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "FollowRepository",
    "ConversationRepository",
    "NotificationRepository",
]
