"""
Identity resolution service.

Users can be referenced by their internal id, their auth-provider id
(firebase_uid) or a generic uid. Every lookup goes through this service,
which maps any variant to the canonical internal id and caches the result
per instance (one instance per request) and in Redis.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.cache import cache_identity, get_cached_identity, invalidate_identity_cache
from trave_social.models.user import User
from trave_social.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedIdentity:
    """A user's canonical id together with every identifier variant."""
    canonical_id: str
    variants: List[str] = field(default_factory=list)

    def matches(self, identifier: Optional[str]) -> bool:
        """Check whether an identifier refers to this user."""
        return bool(identifier) and identifier in self.variants

    def to_dict(self) -> dict:
        return {"canonical_id": self.canonical_id, "variants": list(self.variants)}

    @classmethod
    def from_user(cls, user: User) -> "ResolvedIdentity":
        return cls(canonical_id=user.id, variants=user.identifier_variants)


class IdentityService:
    """Service for resolving identifier variants to canonical user ids."""

    def __init__(self, db: AsyncSession):
        """
        Initialize identity service.

        Args:
            db: Database session
        """
        self.db = db
        self.user_repo = UserRepository(db)
        self._resolved: Dict[str, ResolvedIdentity] = {}

    def _remember(self, identity: ResolvedIdentity, *identifiers: str) -> None:
        for identifier in (*identifiers, *identity.variants):
            self._resolved[identifier] = identity

    async def resolve_optional(self, identifier: Optional[str]) -> Optional[ResolvedIdentity]:
        """
        Resolve an identifier variant, returning None when unknown.

        Args:
            identifier: Internal id, firebase_uid or uid

        Returns:
            ResolvedIdentity or None
        """
        if not identifier:
            return None

        identifier = identifier.strip()
        if identifier in self._resolved:
            return self._resolved[identifier]

        cached = await get_cached_identity(identifier)
        if cached:
            identity = ResolvedIdentity(
                canonical_id=cached["canonical_id"],
                variants=list(cached.get("variants") or [cached["canonical_id"]]),
            )
            self._remember(identity, identifier)
            return identity

        user = await self.user_repo.get_by_identifier(identifier)
        if not user:
            return None

        identity = ResolvedIdentity.from_user(user)
        self._remember(identity, identifier)
        await cache_identity(identifier, identity.to_dict())
        return identity

    async def resolve(self, identifier: Optional[str]) -> ResolvedIdentity:
        """
        Resolve an identifier variant to the canonical identity.

        Args:
            identifier: Internal id, firebase_uid or uid

        Returns:
            ResolvedIdentity

        Raises:
            HTTPException: 404 if no user matches any variant
        """
        identity = await self.resolve_optional(identifier)
        if not identity:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Participant not found"
            )
        return identity

    async def resolve_many(self, identifiers: Iterable[str]) -> Dict[str, ResolvedIdentity]:
        """
        Resolve several identifiers with a single query for the uncached ones.

        Unknown identifiers are skipped.

        Returns:
            Mapping of each resolvable input identifier to its identity
        """
        result: Dict[str, ResolvedIdentity] = {}
        pending: List[str] = []

        for identifier in identifiers:
            if not identifier:
                continue
            if identifier in self._resolved:
                result[identifier] = self._resolved[identifier]
            elif identifier not in pending:
                pending.append(identifier)

        if not pending:
            return result

        users = await self.user_repo.get_by_identifiers(pending)
        for user in users:
            identity = ResolvedIdentity.from_user(user)
            self._remember(identity)
            for identifier in pending:
                if identity.matches(identifier) and identifier not in result:
                    result[identifier] = identity

        return result

    async def get_user(self, identifier: str) -> User:
        """
        Get the user row for any identifier variant.

        Raises:
            HTTPException: 404 if the user does not exist
        """
        identity = await self.resolve(identifier)
        user = await self.user_repo.get(identity.canonical_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        return user

    async def invalidate(self, user: User, *previous_identifiers: str) -> None:
        """
        Drop cached mappings after identity fields of a user change.

        Args:
            user: Updated user
            *previous_identifiers: Identifiers the user had before the change
        """
        identifiers = [*user.identifier_variants, *previous_identifiers]
        for identifier in identifiers:
            self._resolved.pop(identifier, None)
        await invalidate_identity_cache(*identifiers)
        logger.debug(f"Invalidated identity cache for user {user.id}")
