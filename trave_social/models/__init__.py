"""
SQLAlchemy models for the Trave Social server.

All models must be imported here for Alembic auto-generation to work.
"""

# Import Base first
from trave_social.models.base import Base, TimestampMixin, IDMixin

from trave_social.models.user import User, Follow
from trave_social.models.conversation import Conversation
from trave_social.models.notification import Notification, NotificationType

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "IDMixin",
    # Users
    "User",
    "Follow",
    # Conversations
    "Conversation",
    # Notifications
    "Notification",
    "NotificationType",
]
