# =============================================================================
# core/services/storage_service.py - Supabase Storage Operations
# =============================================================================
# Handles avatar upload/removal with Supabase Storage.
# Files live at users/{user_id}/avatar-{timestamp}.{ext} in the avatars bucket.
# =============================================================================

import logging

from lib.supabase_client import SupabaseClient
from lib.utils import utc_now
from app.config import settings
from app.exceptions import FileTooLargeError, InvalidFileTypeError, StorageUploadError

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
}


class StorageService:
    """
    Service for Supabase Storage operations.

    Handles validating, uploading and deleting avatar images.
    """

    @staticmethod
    def validate_avatar(content: bytes, content_type: str | None) -> None:
        """
        Check avatar type and size before anything is uploaded.

        Raises:
            InvalidFileTypeError: If the content type isn't an allowed image type
            FileTooLargeError: If the file exceeds MAX_AVATAR_SIZE_MB
        """
        allowed = settings.allowed_avatar_types_list
        if (content_type or "").lower() not in allowed:
            raise InvalidFileTypeError(content_type, allowed)

        if len(content) > settings.max_avatar_size_bytes:
            raise FileTooLargeError(len(content) / (1024 * 1024), settings.MAX_AVATAR_SIZE_MB)

    @staticmethod
    def upload_avatar(
        user_id: str,
        content: bytes,
        content_type: str,
    ) -> tuple[str, str]:
        """
        Upload an avatar image.

        Args:
            user_id: Owner UUID
            content: Image bytes
            content_type: MIME type of the image

        Returns:
            (storage path, public URL)

        Raises:
            StorageUploadError: If upload fails
        """
        client = SupabaseClient.get_client()
        bucket = settings.SUPABASE_AVATAR_BUCKET

        extension = EXTENSIONS.get(content_type.lower(), "img")
        path = f"users/{user_id}/avatar-{int(utc_now().timestamp() * 1000)}.{extension}"

        try:
            client.storage.from_(bucket).upload(
                path=path,
                file=content,
                file_options={"content-type": content_type, "upsert": "true"}
            )
            public_url = client.storage.from_(bucket).get_public_url(path)

            logger.info(f"Uploaded avatar to storage: {path}")
            return path, public_url

        except Exception as e:
            logger.error(f"Storage upload failed: {e}")
            raise StorageUploadError(str(e))

    @staticmethod
    def delete_file(storage_path: str) -> bool:
        """
        Delete a file from the avatars bucket.

        Failures are logged, not raised: a leftover file must not block
        profile changes or account deletion.
        """
        client = SupabaseClient.get_client()

        try:
            client.storage.from_(settings.SUPABASE_AVATAR_BUCKET).remove([storage_path])
            logger.info(f"Deleted file from storage: {storage_path}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete file: {e}")
            return False
