"""
File Storage Management for Post Images
Handles upload validation, saving, and best-effort removal of feed images
"""

import os
import io
import uuid
import logging
import aiofiles
import aiofiles.os
from fastapi import UploadFile
from PIL import Image
from typing import Optional
from . import core

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {'image/png', 'image/jpg', 'image/jpeg'}
ALLOWED_EXTENSIONS = {'.png', '.jpg', '.jpeg'}


class FileStorageManager:
    """Manages post image uploads and deletions on the local filesystem"""

    @staticmethod
    def generate_filename(original_filename: str) -> str:
        """Prefix the client's file name with a unique id"""
        name = os.path.basename(original_filename.replace('\\', '/')) or 'image'
        return f"{uuid.uuid4().hex}-{name}"

    @staticmethod
    def relative_path(filename: str) -> str:
        """Path recorded on the post, relative to BASE_DIR with forward slashes"""
        return os.path.join(core.UPLOAD_DIR, filename).replace('\\', '/')

    @staticmethod
    def absolute_path(stored_path: str) -> str:
        return os.path.join(core.BASE_DIR, stored_path)

    @staticmethod
    async def is_acceptable(file: UploadFile, content: bytes) -> bool:
        """Only png/jpg/jpeg images under the size cap are kept"""
        if file.content_type not in ALLOWED_CONTENT_TYPES:
            return False
        file_ext = os.path.splitext(file.filename or '')[1].lower()
        if file_ext not in ALLOWED_EXTENSIONS:
            return False
        if not content or len(content) > core.MAX_IMAGE_SIZE:
            return False
        try:
            with Image.open(io.BytesIO(content)) as img:
                img.verify()
        except Exception:
            return False
        return True

    @classmethod
    async def save_post_image(cls, file: Optional[UploadFile]) -> Optional[str]:
        """Write an uploaded image to the upload directory.

        Returns the stored relative path, or None when there is no file or the
        file is not an accepted image.
        """
        if file is None or not file.filename:
            return None
        if file.size and file.size > core.MAX_IMAGE_SIZE:
            logger.info({'msg': 'image_too_large', 'filename': file.filename, 'size': file.size})
            return None
        content = await file.read()
        if not await cls.is_acceptable(file, content):
            logger.info({'msg': 'image_rejected', 'filename': file.filename, 'content_type': file.content_type})
            return None

        filename = cls.generate_filename(file.filename)
        stored_path = cls.relative_path(filename)
        await aiofiles.os.makedirs(core.upload_path(), exist_ok=True)
        async with aiofiles.open(cls.absolute_path(stored_path), 'wb') as f:
            await f.write(content)
        return stored_path

    @classmethod
    async def clear_image(cls, stored_path: Optional[str]) -> bool:
        """Remove a stored image; failures are logged, never raised"""
        if not stored_path:
            return False
        file_path = cls.absolute_path(stored_path)
        upload_root = os.path.realpath(core.upload_path())
        if os.path.commonpath([upload_root, os.path.realpath(file_path)]) != upload_root:
            logger.warning({'msg': 'image_cleanup_refused', 'path': stored_path})
            return False
        try:
            await aiofiles.os.remove(file_path)
            return True
        except OSError as e:
            logger.warning({'msg': 'image_cleanup_failed', 'path': file_path, 'error': str(e)})
            return False


# Global instance
file_storage = FileStorageManager()
