"""
User and Follow models.

A user can be referenced by three identifier variants: the internal id,
the external auth-provider id (firebase_uid) and a generic legacy uid.
"""
from datetime import datetime
from typing import List

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trave_social.models.base import Base, IDMixin, TimestampMixin
from trave_social.utils.datetime_utils import utc_now
from trave_social.utils.helpers import unique_ordered


class User(Base, IDMixin, TimestampMixin):
    """
    User model.

    The internal id is the canonical identifier. firebase_uid and uid are
    accepted wherever a user id is expected and resolved to the canonical id.
    """

    __tablename__ = "users"

    # External identity
    firebase_uid: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        index=True,
        doc="Auth-provider user id (Firebase UID)"
    )

    uid: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        doc="Generic legacy uid carried over from older clients"
    )

    # Credentials
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="Lowercased email address"
    )

    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="bcrypt hash (null for auth-provider-only accounts)"
    )

    # Profile
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_private: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether the profile is private"
    )

    # Push delivery
    push_token: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Expo push token of the user's latest device"
    )

    @property
    def identifier_variants(self) -> List[str]:
        """All identifiers that refer to this user, canonical id first."""
        return unique_ordered([self.id, self.firebase_uid, self.uid])

    @property
    def name(self) -> str:
        """Display name with a stable fallback."""
        return self.display_name or f"User_{self.id[-6:]}"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, firebase_uid={self.firebase_uid}, email={self.email})>"


class Follow(Base):
    """Follow edge between two users (canonical ids)."""

    __tablename__ = "follows"

    follower_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        doc="User who follows"
    )

    following_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        doc="User being followed"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Follow(follower_id={self.follower_id}, following_id={self.following_id})>"


Index("idx_follows_following", Follow.following_id)
