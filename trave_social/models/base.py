"""
Base model classes and mixins for SQLAlchemy ORM.
Provides common functionality for all database models.
"""
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from trave_social.utils.datetime_utils import utc_now
from trave_social.utils.helpers import generate_id


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Includes AsyncAttrs mixin for async relationship access.
    All models should inherit from this class.
    """
    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="Timestamp when the record was created"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
        doc="Timestamp when the record was last updated"
    )


class IDMixin:
    """
    Mixin for string ID primary key.

    Generated ids are 32-character hex strings. Legacy rows imported from
    the previous document store keep their original ids, so the column is
    a plain string rather than a UUID type.
    """

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        default=generate_id,
        doc="String ID primary key"
    )
