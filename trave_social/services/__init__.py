"""
Service layer exports.
Provides business logic for the application.
"""
from trave_social.services.auth_service import AuthService
from trave_social.services.conversation_service import ConversationService, Thread
from trave_social.services.identity_service import IdentityService, ResolvedIdentity
from trave_social.services.media_service import MediaService
from trave_social.services.message_service import MessageService
from trave_social.services.notification_service import NotificationService
from trave_social.services.user_service import UserService

__all__ = [
    "AuthService",
    "ConversationService",
    "Thread",
    "IdentityService",
    "ResolvedIdentity",
    "MediaService",
    "MessageService",
    "NotificationService",
    "UserService",
]
