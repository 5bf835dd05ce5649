"""
Notification API routes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trave_social.core.database import get_db
from trave_social.dependencies import get_current_user, get_identity_service, get_pagination_params
from trave_social.schemas.notification import (
    NotificationBulkResponse,
    NotificationDeleteResponse,
    NotificationListResponse,
    NotificationResponse,
)
from trave_social.services.identity_service import IdentityService
from trave_social.services.notification_service import NotificationService

router = APIRouter()


@router.get(
    "/",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="The caller's notifications, newest first, with the unread count."
)
async def list_notifications(
    pagination: dict = Depends(get_pagination_params),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = NotificationService(db, identity=identity)
    return await service.list_notifications(
        current_user["id"], limit=pagination["limit"], skip=pagination["skip"]
    )


@router.patch("/read-all", response_model=NotificationBulkResponse, summary="Mark all as read")
async def mark_all_read(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = NotificationService(db, identity=identity)
    return await service.mark_all_read(current_user["id"])


@router.patch("/{notification_id}/read", response_model=NotificationResponse, summary="Mark as read")
async def mark_read(
    notification_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = NotificationService(db, identity=identity)
    return await service.mark_read(notification_id, current_user["id"])


@router.delete("/{notification_id}", response_model=NotificationDeleteResponse, summary="Delete a notification")
async def delete_notification(
    notification_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service)
):
    service = NotificationService(db, identity=identity)
    return await service.delete_notification(notification_id, current_user["id"])
