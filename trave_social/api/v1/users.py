"""
User API routes.
Profiles, push tokens and follows. {identifier} accepts any identifier variant.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.database import get_db
from trave_social.dependencies import get_current_user, get_identity_service, get_pagination_params
from trave_social.schemas.user import (
    FollowResponse,
    ProfileUpdate,
    PushTokenUpdate,
    UserProfileResponse,
    UserSummary,
)
from trave_social.services.identity_service import IdentityService
from trave_social.services.user_service import UserService

router = APIRouter()


@router.patch("/me", response_model=UserProfileResponse, summary="Update my profile")
async def update_me(
    data: ProfileUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = UserService(db, identity=identity)
    return await service.update_profile(current_user["id"], **data.model_dump(exclude_unset=True))


@router.put("/me/push-token", summary="Register my device push token")
async def set_push_token(
    data: PushTokenUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = UserService(db, identity=identity)
    return await service.set_push_token(current_user["id"], data.push_token)


@router.get("/{identifier}", response_model=UserProfileResponse, summary="Get a user profile")
async def get_user(
    identifier: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = UserService(db, identity=identity)
    return await service.get_profile(identifier, viewer_id=current_user["id"])


@router.post("/{identifier}/follow", response_model=FollowResponse, summary="Follow a user")
async def follow(
    identifier: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = UserService(db, identity=identity)
    return await service.follow(current_user["id"], identifier)


@router.delete("/{identifier}/follow", response_model=FollowResponse, summary="Unfollow a user")
async def unfollow(
    identifier: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = UserService(db, identity=identity)
    return await service.unfollow(current_user["id"], identifier)


@router.get("/{identifier}/followers", response_model=List[UserSummary], summary="List followers")
async def followers(
    identifier: str,
    pagination: dict = Depends(get_pagination_params),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = UserService(db, identity=identity)
    return await service.get_followers(identifier, limit=pagination["limit"], skip=pagination["skip"])


@router.get("/{identifier}/following", response_model=List[UserSummary], summary="List followed users")
async def following(
    identifier: str,
    pagination: dict = Depends(get_pagination_params),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = UserService(db, identity=identity)
    return await service.get_following(identifier, limit=pagination["limit"], skip=pagination["skip"])
