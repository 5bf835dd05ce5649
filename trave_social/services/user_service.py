"""
User service for business logic.
Handles public profiles, profile updates, push tokens and follows.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.push_client import ExpoPushClient
from trave_social.models.notification import NotificationType
from trave_social.models.user import User
from trave_social.repositories.user_repo import FollowRepository, UserRepository
from trave_social.services.identity_service import IdentityService
from trave_social.services.notification_service import NotificationService
from trave_social.utils.datetime_utils import to_iso_utc

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("display_name", "bio", "avatar", "website", "is_private")


def serialize_user_summary(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "display_name": user.name,
        "avatar": user.avatar,
    }


class UserService:
    """Service for user profile and follow operations."""

    def __init__(self, db: AsyncSession, identity: Optional[IdentityService] = None):
        self.db = db
        self.identity = identity or IdentityService(db)
        self.user_repo = UserRepository(db)
        self.follow_repo = FollowRepository(db)

    async def get_profile(self, identifier: str, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Get a public profile by any identifier variant.

        Args:
            identifier: Internal id, firebase_uid or uid
            viewer_id: Optional requesting user (adds is_following)

        Returns:
            Profile with follower and following counts
        """
        user = await self.identity.get_user(identifier)

        profile = {
            "id": user.id,
            "firebase_uid": user.firebase_uid,
            "display_name": user.name,
            "avatar": user.avatar,
            "bio": user.bio,
            "website": user.website,
            "is_private": user.is_private,
            "followers_count": await self.follow_repo.count_followers(user.id),
            "following_count": await self.follow_repo.count_following(user.id),
            "created_at": to_iso_utc(user.created_at),
        }

        if viewer_id:
            viewer = await self.identity.resolve(viewer_id)
            profile["is_following"] = bool(
                await self.follow_repo.get_follow(viewer.canonical_id, user.id)
            )

        return profile

    async def update_profile(self, user_id: str, **changes: Any) -> Dict[str, Any]:
        """
        Update profile fields of the user.

        Only display_name, bio, avatar, website and is_private are writable;
        None values are ignored.
        """
        user = await self.identity.get_user(user_id)

        values = {
            field: value for field, value in changes.items()
            if field in PROFILE_FIELDS and value is not None
        }
        if values:
            await self.user_repo.update(user.id, **values)
            await self.db.commit()
            logger.info(f"Updated profile of {user.id}: {sorted(values)}")

        return await self.get_profile(user.id)

    async def set_push_token(self, user_id: str, push_token: str) -> Dict[str, Any]:
        """
        Register the device push token of the user.

        Raises:
            HTTPException: 400 if the token is not an Expo push token
        """
        if not ExpoPushClient.is_push_token(push_token):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid Expo push token"
            )

        user = await self.identity.get_user(user_id)
        await self.user_repo.update(user.id, push_token=push_token)
        await self.db.commit()
        return {"success": True}

    async def follow(self, follower_id: str, target: str) -> Dict[str, Any]:
        """
        Follow a user (idempotent).

        A "follow" notification is created for the target on a new follow.

        Raises:
            HTTPException: 400 when following oneself, 404 for unknown users
        """
        follower = await self.identity.get_user(follower_id)
        target_user = await self.identity.get_user(target)

        if follower.id == target_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot follow yourself"
            )

        existing = await self.follow_repo.get_follow(follower.id, target_user.id)
        if existing is None:
            await self.follow_repo.create(follower_id=follower.id, following_id=target_user.id)
            await self.db.commit()

            await NotificationService(self.db, identity=self.identity).create_notification(
                recipient_id=target_user.id,
                sender_id=follower.id,
                type=NotificationType.FOLLOW,
                message=f"{follower.name} started following you",
                sender_name=follower.name,
                sender_avatar=follower.avatar,
            )

        return {
            "following": True,
            "followers_count": await self.follow_repo.count_followers(target_user.id),
        }

    async def unfollow(self, follower_id: str, target: str) -> Dict[str, Any]:
        """Unfollow a user (idempotent)."""
        follower = await self.identity.get_user(follower_id)
        target_user = await self.identity.get_user(target)

        if await self.follow_repo.remove(follower.id, target_user.id):
            await self.db.commit()

        return {
            "following": False,
            "followers_count": await self.follow_repo.count_followers(target_user.id),
        }

    async def get_followers(self, identifier: str, limit: int = 50, skip: int = 0) -> List[Dict[str, Any]]:
        user = await self.identity.get_user(identifier)
        followers = await self.follow_repo.get_followers(user.id, limit=limit, offset=skip)
        return [serialize_user_summary(u) for u in followers]

    async def get_following(self, identifier: str, limit: int = 50, skip: int = 0) -> List[Dict[str, Any]]:
        user = await self.identity.get_user(identifier)
        following = await self.follow_repo.get_following(user.id, limit=limit, offset=skip)
        return [serialize_user_summary(u) for u in following]
