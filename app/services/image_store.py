"""
Image upload storage.

Streams an uploaded image to UPLOAD_DIR under a collision-free name and
returns the absolute URL it will be served from (``IMAGE_URL_PREFIX``).
"""
from __future__ import annotations

import dataclasses
import logging
import mimetypes
import os
import time
import uuid
from pathlib import Path
from typing import List, Optional

import aiofiles
from fastapi import UploadFile
from starlette.staticfiles import StaticFiles

from app.config import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MB slices
IMAGE_CACHE_CONTROL = "public, max-age=31536000, immutable"

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class ImageRejectedError(Exception):
    """Upload refused before or while writing; carries the HTTP status to report."""

    status_code = 400


class UnsupportedImageType(ImageRejectedError):
    status_code = 400


class ImageTooLarge(ImageRejectedError):
    status_code = 413


@dataclasses.dataclass
class StoredImage:
    filename: str
    url: str
    size: int


def _safe_remove(path: str) -> None:
    """Delete a file silently, logging warnings but never raising."""
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except Exception as exc:
        logger.warning(f"Could not remove file {path!r}: {exc}")


class ImageStore:
    """Writes uploads to disk; ``store(file) -> url``."""

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        url_prefix: Optional[str] = None,
        max_size: Optional[int] = None,
        allowed_types: Optional[List[str]] = None,
    ) -> None:
        self.upload_dir = upload_dir or settings.UPLOAD_DIR
        self.url_prefix = (url_prefix or settings.IMAGE_URL_PREFIX).rstrip("/")
        self.max_size = max_size or settings.MAX_IMAGE_SIZE
        self.allowed_types = [t.lower() for t in (allowed_types or settings.ALLOWED_IMAGE_TYPES)]

    def _extension(self, file: UploadFile, content_type: str) -> str:
        suffix = Path(file.filename or "").suffix.lower()
        if suffix and mimetypes.guess_type(f"x{suffix}")[0] in self.allowed_types:
            return suffix
        return _EXTENSIONS.get(content_type) or mimetypes.guess_extension(content_type) or ".img"

    async def store(self, file: UploadFile, base_url: str) -> StoredImage:
        """
        Persist *file* and return where it is served.

        Raises:
            UnsupportedImageType: MIME type outside ALLOWED_IMAGE_TYPES.
            ImageTooLarge: More than MAX_IMAGE_SIZE bytes.
        """
        content_type = (file.content_type or "").split(";")[0].strip().lower()
        if content_type not in self.allowed_types:
            raise UnsupportedImageType(
                "Only image files are allowed (JPEG, PNG, GIF, WEBP)"
            )

        os.makedirs(self.upload_dir, exist_ok=True)
        stored_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{self._extension(file, content_type)}"
        file_path = os.path.join(self.upload_dir, stored_name)
        size = 0

        try:
            # Stream to disk while enforcing the size limit
            async with aiofiles.open(file_path, "wb") as out:
                while True:
                    chunk = await file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_size:
                        raise ImageTooLarge(
                            f"File too large. Maximum {self.max_size // (1024 * 1024)}MB allowed"
                        )
                    await out.write(chunk)
        except Exception:
            _safe_remove(file_path)
            raise

        origin = settings.PUBLIC_BASE_URL or base_url
        url = f"{origin.rstrip('/')}{self.url_prefix}/{stored_name}"
        logger.info(f"Saved image {file.filename!r} → {file_path} ({size:,} bytes)")
        return StoredImage(filename=stored_name, url=url, size=size)


class ImageFiles(StaticFiles):
    """Static file app for uploaded images with long-lived cache headers."""

    async def get_response(self, path, scope):
        response = await super().get_response(path, scope)
        if response.status_code == 200:
            response.headers["Cache-Control"] = IMAGE_CACHE_CONTROL
        return response
