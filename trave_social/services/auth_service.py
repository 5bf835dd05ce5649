"""
Authentication service.
Handles email/password accounts, auth-provider sign-in and token issuance.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.security import (
    SecurityException,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)
from trave_social.models.user import User
from trave_social.repositories.user_repo import UserRepository
from trave_social.services.identity_service import IdentityService

logger = logging.getLogger(__name__)


def serialize_auth_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "firebase_uid": user.firebase_uid,
        "email": user.email,
        "display_name": user.name,
        "avatar": user.avatar,
    }


def issue_token(user: User) -> str:
    """Issue the 7-day access token for a user."""
    return create_access_token(
        data={"sub": user.id, "firebase_uid": user.firebase_uid, "email": user.email}
    )


class AuthService:
    """Service for authentication flows."""

    def __init__(self, db: AsyncSession, identity: Optional[IdentityService] = None):
        self.db = db
        self.identity = identity or IdentityService(db)
        self.user_repo = UserRepository(db)

    def _session(self, user: User) -> Dict[str, Any]:
        return {"token": issue_token(user), "user": serialize_auth_user(user)}

    async def register(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Register an email/password account.

        Raises:
            HTTPException: 409 if the email is already registered
        """
        email = email.lower()
        if await self.user_repo.get_by_email(email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User already exists"
            )

        user = await self.user_repo.create(
            email=email,
            password_hash=hash_password(password),
            display_name=display_name or email.split("@")[0],
        )
        await self.db.commit()

        logger.info(f"User registered: {user.id}")
        return self._session(user)

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Log in with email and password.

        Raises:
            SecurityException: 401 on unknown email or wrong password
        """
        user = await self.user_repo.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise SecurityException("Invalid email or password")

        return self._session(user)

    async def login_firebase(
        self,
        firebase_uid: str,
        email: str,
        display_name: Optional[str] = None,
        avatar: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Sign in with an auth-provider identity, creating the user on first login.

        Looks the user up by firebase_uid, then by email; an existing
        email account gets the provider id linked to it.
        """
        email = email.lower()
        user = await self.user_repo.get_by_firebase_uid(firebase_uid)

        if user is None:
            user = await self.user_repo.get_by_email(email)
            if user is not None:
                if user.firebase_uid and user.firebase_uid != firebase_uid:
                    raise HTTPException(
                        status_code=status.HTTP_409_CONFLICT,
                        detail="Email is linked to another account"
                    )
                logger.info(f"Linking auth-provider id to existing user {user.id}")
                user.firebase_uid = firebase_uid

        if user is None:
            user = await self.user_repo.create(
                firebase_uid=firebase_uid,
                uid=firebase_uid,
                email=email,
                display_name=display_name or email.split("@")[0],
                avatar=avatar,
            )
            logger.info(f"New user created on login: {user.id}")
        else:
            user.display_name = display_name or user.display_name
            user.avatar = avatar or user.avatar
            self.db.add(user)
            await self.db.flush()

        await self.db.commit()
        await self.identity.invalidate(user)
        return self._session(user)

    async def verify(self, token: str) -> Dict[str, Any]:
        """Check a token and report the canonical user it belongs to."""
        try:
            payload = decode_token(token)
        except SecurityException:
            return {"valid": False, "user_id": None}

        identity = await self.identity.resolve_optional(payload.get("sub"))
        if not identity:
            return {"valid": False, "user_id": None}
        return {"valid": True, "user_id": identity.canonical_id}
