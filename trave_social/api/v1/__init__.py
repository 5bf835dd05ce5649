"""
API v1 router exports.
Provides API endpoint routers.
"""
from trave_social.api.v1 import auth, conversations, media, notifications, users

__all__ = [
    "auth",
    "conversations",
    "media",
    "notifications",
    "users",
]
