"""
User repository for database operations.
Handles identifier-variant lookups and follow edges.
"""
from typing import List, Optional

from sqlalchemy import select, or_, and_, func, delete, desc
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.models.user import User, Follow
from trave_social.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user database operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_by_identifier(self, identifier: str) -> Optional[User]:
        """
        Get a user by any identifier variant.

        Probes the internal id, the auth-provider id and the generic uid.
        An exact id match wins over a firebase_uid or uid match.

        Args:
            identifier: Internal id, firebase_uid or uid

        Returns:
            User or None if no column matches
        """
        result = await self.db.execute(
            select(User).where(
                or_(
                    User.id == identifier,
                    User.firebase_uid == identifier,
                    User.uid == identifier,
                )
            )
        )
        users = list(result.scalars().all())
        if not users:
            return None

        for user in users:
            if user.id == identifier:
                return user
        return users[0]

    async def get_by_identifiers(self, identifiers: List[str]) -> List[User]:
        """
        Get all users matching any of the given identifier variants.

        Args:
            identifiers: Mixed list of ids, firebase_uids and uids

        Returns:
            Matching users (each at most once)
        """
        if not identifiers:
            return []

        result = await self.db.execute(
            select(User).where(
                or_(
                    User.id.in_(identifiers),
                    User.firebase_uid.in_(identifiers),
                    User.uid.in_(identifiers),
                )
            )
        )
        return list(result.scalars().all())

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by (lowercased) email."""
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_firebase_uid(self, firebase_uid: str) -> Optional[User]:
        """Get a user by auth-provider id."""
        result = await self.db.execute(
            select(User).where(User.firebase_uid == firebase_uid)
        )
        return result.scalar_one_or_none()


class FollowRepository(BaseRepository[Follow]):
    """Repository for follow edges."""

    def __init__(self, db: AsyncSession):
        super().__init__(Follow, db)

    async def get_follow(self, follower_id: str, following_id: str) -> Optional[Follow]:
        """Get the follow edge between two canonical ids, if any."""
        result = await self.db.execute(
            select(Follow).where(
                and_(
                    Follow.follower_id == follower_id,
                    Follow.following_id == following_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def remove(self, follower_id: str, following_id: str) -> bool:
        """
        Remove a follow edge.

        Returns:
            True if an edge was removed
        """
        result = await self.db.execute(
            delete(Follow).where(
                and_(
                    Follow.follower_id == follower_id,
                    Follow.following_id == following_id,
                )
            )
        )
        await self.db.flush()
        return result.rowcount > 0

    async def count_followers(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
        )
        return result.scalar()

    async def count_following(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
        )
        return result.scalar()

    async def get_followers(self, user_id: str, limit: int = 50, offset: int = 0) -> List[User]:
        """
        Get users following the given user, most recent first.

        Args:
            user_id: Canonical user id
            limit: Maximum users to return
            offset: Number of users to skip

        Returns:
            List of follower users
        """
        result = await self.db.execute(
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.following_id == user_id)
            .order_by(desc(Follow.created_at))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_following(self, user_id: str, limit: int = 50, offset: int = 0) -> List[User]:
        """
        Get users the given user follows, most recent first.

        Args:
            user_id: Canonical user id
            limit: Maximum users to return
            offset: Number of users to skip

        Returns:
            List of followed users
        """
        result = await self.db.execute(
            select(User)
            .join(Follow, Follow.following_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(desc(Follow.created_at))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())
