"""
Pydantic schema exports.
Provides request/response models for API endpoints.
"""
from trave_social.schemas.message import (
    MessageCreate,
    MessageReply,
    MessageUpdate,
    ReactionToggle,
    MessageResponse,
    MessageListResponse,
    ReactionResponse,
    MessageDeleteResponse,
    MarkReadResponse,
)
from trave_social.schemas.conversation import (
    ConversationCreate,
    ConversationResponse,
    ConversationListResponse,
    ConversationStateResponse,
)
from trave_social.schemas.notification import (
    NotificationResponse,
    NotificationListResponse,
    NotificationBulkResponse,
    NotificationDeleteResponse,
)
from trave_social.schemas.user import (
    RegisterRequest,
    LoginRequest,
    FirebaseLoginRequest,
    VerifyRequest,
    AuthResponse,
    VerifyResponse,
    CurrentUserResponse,
    ProfileUpdate,
    PushTokenUpdate,
    UserProfileResponse,
    UserSummary,
    FollowResponse,
)
from trave_social.schemas.media import MediaUploadResponse

__all__ = [
    # Message schemas
    "MessageCreate",
    "MessageReply",
    "MessageUpdate",
    "ReactionToggle",
    "MessageResponse",
    "MessageListResponse",
    "ReactionResponse",
    "MessageDeleteResponse",
    "MarkReadResponse",
    # Conversation schemas
    "ConversationCreate",
    "ConversationResponse",
    "ConversationListResponse",
    "ConversationStateResponse",
    # Notification schemas
    "NotificationResponse",
    "NotificationListResponse",
    "NotificationBulkResponse",
    "NotificationDeleteResponse",
    # Auth and user schemas
    "RegisterRequest",
    "LoginRequest",
    "FirebaseLoginRequest",
    "VerifyRequest",
    "AuthResponse",
    "VerifyResponse",
    "CurrentUserResponse",
    "ProfileUpdate",
    "PushTokenUpdate",
    "UserProfileResponse",
    "UserSummary",
    "FollowResponse",
    # Media schemas
    "MediaUploadResponse",
]
