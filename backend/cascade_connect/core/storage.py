"""
Cascade Connect - File Storage
===============================

Cloudinary uploads for homeowner documents and chat attachments.
"""

import asyncio
from dataclasses import dataclass
from typing import BinaryIO, Optional

import cloudinary
import cloudinary.uploader
import structlog
from cloudinary.exceptions import Error as CloudinaryError

from cascade_connect.core.config import settings
from cascade_connect.core.exceptions import IntegrationNotConfigured, UploadError

logger = structlog.get_logger()


@dataclass
class UploadedFile:
    url: str
    public_id: str
    resource_type: str
    format: Optional[str] = None
    bytes: int = 0


def document_type_for(filename: str, content_type: Optional[str]) -> str:
    """Document type shown in the UI: PDF, IMAGE or FILE."""
    lowered = (filename or "").lower()
    if (content_type or "") == "application/pdf" or lowered.endswith(".pdf"):
        return "PDF"
    if (content_type or "").startswith("image/") or lowered.endswith(
        (".png", ".jpg", ".jpeg", ".gif", ".webp", ".heic")
    ):
        return "IMAGE"
    return "FILE"


class FileStorage:
    """Uploads files to Cloudinary under a per-purpose folder."""

    def __init__(self):
        self.enabled = settings.cloudinary_enabled
        if self.enabled:
            cloudinary.config(
                cloud_name=settings.CLOUDINARY_CLOUD_NAME,
                api_key=settings.CLOUDINARY_API_KEY,
                api_secret=settings.CLOUDINARY_API_SECRET,
                secure=True,
            )
            logger.info("file_storage_initialized", mode="live")
        else:
            logger.info("file_storage_initialized", mode="disabled")

    async def upload(self, file: BinaryIO, folder: str, filename: str) -> UploadedFile:
        """
        Upload a file stream.

        Raises:
            IntegrationNotConfigured: Cloudinary credentials are missing
            UploadError: Cloudinary rejected the upload
        """
        if not self.enabled:
            raise IntegrationNotConfigured("File uploads are not configured")

        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                file,
                folder=f"{settings.CLOUDINARY_FOLDER}/{folder}",
                resource_type="auto",
                use_filename=True,
                filename_override=filename,
            )
        except CloudinaryError as e:
            logger.error("upload_failed", folder=folder, filename=filename, error=str(e))
            raise UploadError(f"Upload failed: {e}") from e

        logger.info("file_uploaded", folder=folder, public_id=result.get("public_id"))
        return UploadedFile(
            url=result["secure_url"],
            public_id=result["public_id"],
            resource_type=result.get("resource_type", "raw"),
            format=result.get("format"),
            bytes=result.get("bytes", 0),
        )


_file_storage: Optional[FileStorage] = None


def get_file_storage() -> FileStorage:
    """Get or create the shared file storage client."""
    global _file_storage
    if _file_storage is None:
        _file_storage = FileStorage()
    return _file_storage
