"""
Authentication API routes.
Issues 7-day bearer tokens for email/password and auth-provider sign-in.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.database import get_db
from trave_social.core.rate_limit import limiter
from trave_social.dependencies import get_current_user, get_identity_service
from trave_social.schemas.user import (
    AuthResponse,
    CurrentUserResponse,
    FirebaseLoginRequest,
    LoginRequest,
    RegisterRequest,
    VerifyRequest,
    VerifyResponse,
)
from trave_social.services.auth_service import AuthService
from trave_social.services.identity_service import IdentityService

router = APIRouter()


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register with email and password"
)
@limiter.limit("10/minute")
async def register(
    request: Request,
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    return await AuthService(db, identity=identity).register(data.email, data.password, data.display_name)


@router.post("/login", response_model=AuthResponse, summary="Log in with email and password")
@limiter.limit("10/minute")
async def login(
    request: Request,
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    return await AuthService(db, identity=identity).login(data.email, data.password)


@router.post(
    "/login-firebase",
    response_model=AuthResponse,
    summary="Sign in with an auth-provider identity",
    description="Find or create the user by firebase_uid, then by email (linking the uid)."
)
@limiter.limit("10/minute")
async def login_firebase(
    request: Request,
    data: FirebaseLoginRequest,
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    return await AuthService(db, identity=identity).login_firebase(
        firebase_uid=data.firebase_uid,
        email=data.email,
        display_name=data.display_name,
        avatar=data.avatar,
    )


@router.post("/verify", response_model=VerifyResponse, summary="Verify a token")
async def verify(
    data: VerifyRequest,
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    return await AuthService(db, identity=identity).verify(data.token)


@router.get("/me", response_model=CurrentUserResponse, summary="Get the authenticated user")
async def me(current_user: dict = Depends(get_current_user)):
    return current_user
