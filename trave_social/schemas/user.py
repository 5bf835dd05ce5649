"""
Pydantic schemas for auth and user endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Auth
# ============================================================================

class RegisterRequest(BaseModel):
    """Schema for email/password registration."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=128, description="At least 6 characters")
    display_name: Optional[str] = Field(None, max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Basic email shape check, normalized to lowercase."""
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "email": "traveler@example.com",
                "password": "secret123",
                "display_name": "Traveler"
            }
        }


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class FirebaseLoginRequest(BaseModel):
    """Schema for signing in with an auth-provider identity."""

    firebase_uid: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    display_name: Optional[str] = Field(None, max_length=255)
    avatar: Optional[str] = Field(None, max_length=500)


class VerifyRequest(BaseModel):
    token: str


class AuthUser(BaseModel):
    id: str
    firebase_uid: Optional[str] = None
    email: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None


class AuthResponse(BaseModel):
    token: str
    user: AuthUser


class VerifyResponse(BaseModel):
    valid: bool
    user_id: Optional[str] = None


class CurrentUserResponse(BaseModel):
    """Schema for the authenticated user."""

    id: str
    variants: List[str]
    email: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None


# ============================================================================
# Users
# ============================================================================

class ProfileUpdate(BaseModel):
    """Schema for updating the caller's profile."""

    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = Field(None, max_length=500)
    is_private: Optional[bool] = None


class PushTokenUpdate(BaseModel):
    push_token: str = Field(..., min_length=1, max_length=255, description="Expo push token")


class UserProfileResponse(BaseModel):
    """Schema for a public profile."""

    id: str
    firebase_uid: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    is_private: bool = False
    followers_count: int = 0
    following_count: int = 0
    is_following: Optional[bool] = None
    created_at: Optional[str] = None


class UserSummary(BaseModel):
    id: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None


class FollowResponse(BaseModel):
    following: bool
    followers_count: int
