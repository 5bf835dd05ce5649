"""
Dependency injection for FastAPI routes.
Provides reusable dependencies for authentication, identity resolution and paging.
"""
import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.database import get_db
from trave_social.core.security import SecurityException, decode_token, extract_token_from_header
from trave_social.services.identity_service import IdentityService

logger = logging.getLogger(__name__)


async def get_identity_service(db: AsyncSession = Depends(get_db)) -> IdentityService:
    """
    Request-scoped identity service.

    FastAPI caches dependencies per request, so the auth dependency and the
    route share one instance and each identifier is resolved at most once.
    """
    return IdentityService(db)


async def get_current_user(
    authorization: Optional[str] = Header(None),
    identity: IdentityService = Depends(get_identity_service)
) -> dict:
    """
    Dependency to get the current authenticated user.

    Flow:
    1. Extract the bearer token and verify it locally (PyJWT, shared secret)
    2. Resolve the token subject (any identifier variant) to the canonical user
    3. Return the user dict used by every route

    Args:
        authorization: Authorization header containing Bearer token
        identity: Request-scoped identity service

    Returns:
        {"id", "variants", "email", "display_name", "avatar"}

    Raises:
        HTTPException: 401 if the token is missing, invalid, or names an unknown user

    Example:
        ```python
        @router.get("/protected")
        async def protected_route(current_user: dict = Depends(get_current_user)):
            return {"user": current_user["id"]}
        ```
    """
    token = extract_token_from_header(authorization)
    payload = decode_token(token)

    subject = payload.get("sub") or payload.get("userId") or payload.get("firebase_uid")
    if not subject:
        raise SecurityException("Invalid token payload")

    resolved = await identity.resolve_optional(str(subject))
    if not resolved:
        logger.warning(f"Token subject {subject} does not match any user")
        raise SecurityException("User not found")

    user = await identity.user_repo.get(resolved.canonical_id)
    if not user:
        raise SecurityException("User not found")

    return {
        "id": user.id,
        "variants": resolved.variants,
        "email": user.email,
        "display_name": user.name,
        "avatar": user.avatar,
    }


def get_pagination_params(
    skip: int = 0,
    limit: int = 50
) -> dict:
    """
    Dependency for offset pagination parameters.

    Args:
        skip: Number of items to skip (min 0)
        limit: Number of items to return (default: 50, max: 100)

    Returns:
        Dictionary with pagination parameters
    """
    if limit > 100:
        limit = 100
    elif limit < 1:
        limit = 1

    return {
        "skip": max(skip, 0),
        "limit": limit,
    }
