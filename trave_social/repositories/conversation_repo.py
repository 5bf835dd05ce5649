"""
Conversation repository for database operations.
Handles conversation documents and their embedded JSON fields.
"""
from typing import List, Optional

from sqlalchemy import select, and_, or_, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from trave_social.models.conversation import Conversation
from trave_social.repositories.base import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for conversation database operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(Conversation, db)

    async def get_by_key(self, conversation_key: str) -> Optional[Conversation]:
        """Get the conversation carrying a canonical key."""
        result = await self.db.execute(
            select(Conversation).where(Conversation.conversation_key == conversation_key)
        )
        return result.scalar_one_or_none()

    async def find_for_pair(
        self,
        conversation_key: str,
        variants_a: List[str],
        variants_b: List[str]
    ) -> List[Conversation]:
        """
        Find every document belonging to a participant pair.

        Matches the canonical key, or a participant pair stored in any
        identifier variant and in either order. Returns legacy duplicates
        alongside the canonical document.

        Args:
            conversation_key: Canonical sorted key
            variants_a: Identifier variants of the first participant
            variants_b: Identifier variants of the second participant

        Returns:
            Matching conversations, most recently updated first
        """
        query = (
            select(Conversation)
            .where(
                or_(
                    Conversation.conversation_key == conversation_key,
                    and_(
                        Conversation.participant_one_id.in_(variants_a),
                        Conversation.participant_two_id.in_(variants_b),
                    ),
                    and_(
                        Conversation.participant_one_id.in_(variants_b),
                        Conversation.participant_two_id.in_(variants_a),
                    ),
                )
            )
            .order_by(desc(Conversation.updated_at))
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_for_user(self, variants: List[str]) -> List[Conversation]:
        """
        Find every document the user participates in under any variant.

        Args:
            variants: Identifier variants of the user

        Returns:
            Conversations, most recent activity first
        """
        query = (
            select(Conversation)
            .where(
                or_(
                    Conversation.participant_one_id.in_(variants),
                    Conversation.participant_two_id.in_(variants),
                )
            )
            .order_by(desc(Conversation.updated_at))
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def save(self, conversation: Conversation, *fields: str) -> Conversation:
        """
        Persist in-place changes to a conversation document.

        JSON columns are not change-tracked, so the mutated fields are
        flagged explicitly before flushing.

        Args:
            conversation: Conversation instance
            *fields: JSON attribute names that were mutated

        Returns:
            The same conversation instance
        """
        for field in fields:
            flag_modified(conversation, field)
        self.db.add(conversation)
        await self.db.flush()
        return conversation
