"""
Media API routes.
"""
from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from trave_social.dependencies import get_current_user
from trave_social.schemas.media import MediaUploadResponse
from trave_social.services.media_service import MediaService

router = APIRouter()


def get_media_service() -> MediaService:
    return MediaService()


@router.post(
    "/upload",
    response_model=MediaUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a media file",
    description="Upload an image or video. Images also get a 300x300 JPEG thumbnail."
)
async def upload_media(
    file: UploadFile = File(...),
    folder: str = Form("posts"),
    current_user: dict = Depends(get_current_user),
    service: MediaService = Depends(get_media_service)
):
    return await service.upload(file, folder, current_user["id"])
