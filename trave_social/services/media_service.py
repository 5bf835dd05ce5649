"""
Media upload service backed by Alibaba Cloud OSS.

Validates uploads by size and sniffed MIME type, stores them under a
per-user prefix and generates JPEG thumbnails for images.
"""
import io
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import magic
import oss2
from fastapi import HTTPException, UploadFile, status
from PIL import Image

from trave_social.config import settings
from trave_social.utils.helpers import generate_id

logger = logging.getLogger(__name__)

MEDIA_FOLDERS = ("avatars", "posts", "stories", "messages")
THUMBNAIL_SIZE = (300, 300)
CACHE_CONTROL = "public, max-age=31536000"


def public_url(key: str) -> str:
    """Public URL of an object (internal endpoints are rewritten)."""
    endpoint = settings.oss_endpoint.replace("-internal", "")
    return f"https://{settings.oss_bucket_name}.{endpoint}/{key}"


def object_key(folder: str, user_id: str, filename: Optional[str]) -> str:
    """
    Build a collision-free object key.

    Example:
        >>> object_key("avatars", "u1", "../me.PNG").startswith("avatars/u1/")
        True
    """
    extension = Path((filename or "").replace("\\", "/")).suffix.lower()[:10]
    return f"{folder}/{user_id}/{generate_id()[:16]}{extension}"


class MediaService:
    """Service for media uploads."""

    def __init__(self, bucket: Optional[oss2.Bucket] = None):
        """
        Initialize media service.

        Args:
            bucket: Optional preconfigured bucket (tests pass a mock)
        """
        if bucket is None:
            if not settings.oss_access_key_id or not settings.oss_access_key_secret:
                logger.warning("OSS credentials not configured. Media upload will fail.")
            auth = oss2.Auth(settings.oss_access_key_id, settings.oss_access_key_secret)
            bucket = oss2.Bucket(auth, settings.oss_endpoint, settings.oss_bucket_name)
        self.bucket = bucket

    @staticmethod
    def detect_mime_type(content: bytes, fallback: Optional[str]) -> Optional[str]:
        try:
            return magic.Magic(mime=True).from_buffer(content[:8192])
        except magic.MagicException as e:
            logger.warning(f"Failed to detect MIME type: {e}")
            return fallback

    def validate(self, content: bytes, declared_type: Optional[str]) -> str:
        """
        Validate upload size and type.

        Returns:
            The sniffed MIME type

        Raises:
            HTTPException: 400 empty, 413 too large, 415 unsupported type
        """
        if not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="File is empty"
            )

        if len(content) > settings.max_upload_size:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large ({len(content)} bytes). Maximum: {settings.max_upload_size} bytes"
            )

        mime_type = self.detect_mime_type(content, declared_type)
        allowed = settings.get_allowed_file_types_list()
        if mime_type not in allowed:
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail=f"File type not supported: {mime_type}"
            )

        return mime_type

    def _put(self, key: str, content: bytes, content_type: str) -> None:
        try:
            result = self.bucket.put_object(
                key,
                content,
                headers={"Content-Type": content_type, "Cache-Control": CACHE_CONTROL},
            )
        except oss2.exceptions.OssError as e:
            logger.error(f"OSS upload failed for {key}: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="File storage service temporarily unavailable"
            )

        if result.status != 200:
            logger.error(f"OSS upload for {key} returned HTTP {result.status}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to store file"
            )

    @staticmethod
    def make_thumbnail(content: bytes, size: Tuple[int, int] = THUMBNAIL_SIZE) -> Optional[bytes]:
        """Render a JPEG thumbnail, or None if the image cannot be decoded."""
        try:
            image = Image.open(io.BytesIO(content))
            if image.mode in ("RGBA", "LA", "P"):
                image = image.convert("RGBA")
                background = Image.new("RGB", image.size, (255, 255, 255))
                background.paste(image, mask=image.split()[-1])
                image = background
            elif image.mode != "RGB":
                image = image.convert("RGB")

            image.thumbnail(size, Image.Resampling.LANCZOS)
            output = io.BytesIO()
            image.save(output, format="JPEG", quality=85, optimize=True)
            return output.getvalue()
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to generate thumbnail: {e}")
            return None

    async def upload(self, file: UploadFile, folder: str, user_id: str) -> Dict[str, Any]:
        """
        Validate and upload a file.

        Args:
            file: Multipart upload
            folder: One of avatars, posts, stories, messages
            user_id: Canonical id of the uploader

        Returns:
            {"url", "thumbnail_url", "file_size", "key", "content_type"}
        """
        if folder not in MEDIA_FOLDERS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"folder must be one of: {', '.join(MEDIA_FOLDERS)}"
            )

        content = await file.read()
        mime_type = self.validate(content, file.content_type)

        key = object_key(folder, user_id, file.filename)
        self._put(key, content, mime_type)

        thumbnail_url = None
        if mime_type.startswith("image/"):
            thumbnail = self.make_thumbnail(content)
            if thumbnail:
                thumbnail_key = f"{key.rsplit('.', 1)[0]}_thumb.jpg"
                try:
                    self._put(thumbnail_key, thumbnail, "image/jpeg")
                    thumbnail_url = public_url(thumbnail_key)
                except HTTPException:
                    logger.warning(f"Continuing without thumbnail for {key}")

        logger.info(f"Uploaded {key} ({len(content)} bytes, {mime_type})")

        return {
            "url": public_url(key),
            "thumbnail_url": thumbnail_url,
            "file_size": len(content),
            "key": key,
            "content_type": mime_type,
        }
