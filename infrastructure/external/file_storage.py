# infrastructure/external/file_storage.py
import logging
import mimetypes
import os
import uuid
from typing import Optional

from core.errors import InternalServerError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

class FileStorage:
    """Blob storage for uploaded media, addressed by key and served from a public base URL."""

    def __init__(self, upload_dir: str = "uploads", base_url: str = "/uploads"):
        self.upload_dir = os.path.abspath(upload_dir)
        self.base_url = base_url.rstrip("/")
        if not os.path.exists(self.upload_dir):
            os.makedirs(self.upload_dir)
            logger.info(f"Created upload directory: {self.upload_dir}")

    @staticmethod
    def new_key(prefix: str, extension: Optional[str] = None) -> str:
        """Build a unique key under ``prefix``."""
        suffix = f".{extension.lstrip('.')}" if extension else ""
        return f"{prefix.strip('/')}/{uuid.uuid4()}{suffix}"

    @staticmethod
    def extension_for(filename: Optional[str], content_type: Optional[str] = None) -> Optional[str]:
        """File extension from the filename, else guessed from the content type."""
        if filename and "." in filename:
            return filename.rsplit(".", 1)[-1].lower()
        if content_type:
            return (mimetypes.guess_extension(content_type) or "").lstrip(".") or None
        return None

    def _path_for(self, key: str) -> str:
        if not key or not isinstance(key, str):
            raise ValidationError("Storage key must be a non-empty string")
        full_path = os.path.abspath(os.path.join(self.upload_dir, key))
        if os.path.commonpath([full_path, self.upload_dir]) != self.upload_dir:
            raise ValidationError(f"Storage key escapes the upload directory: {key}")
        return full_path

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def put(self, key: str, data: bytes) -> str:
        """Store ``data`` under ``key`` and return its public URL."""
        file_path = self._path_for(key)
        try:
            os.makedirs(os.path.dirname(file_path), exist_ok=True)
            with open(file_path, "wb") as buffer:
                buffer.write(data)
            logger.info(f"Blob saved: {key} ({len(data)} bytes)")
            return self.url_for(key)
        except OSError as e:
            logger.error(f"Failed to save blob {key}: {str(e)}", exc_info=True)
            raise InternalServerError("Failed to store file")

    def get(self, key: str) -> bytes:
        """Return the bytes stored under ``key``."""
        file_path = self._path_for(key)
        if not os.path.exists(file_path):
            raise NotFoundError(f"Blob not found: {key}")
        try:
            with open(file_path, "rb") as buffer:
                return buffer.read()
        except OSError as e:
            logger.error(f"Failed to read blob {key}: {str(e)}", exc_info=True)
            raise InternalServerError("Failed to read file")

    def delete(self, key: str) -> None:
        """Delete the blob stored under ``key``; a missing blob is only logged."""
        file_path = self._path_for(key)
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
                logger.info(f"Blob deleted: {key}")
            else:
                logger.warning(f"Blob not found for delete: {key}")
        except OSError as e:
            logger.error(f"Failed to delete blob {key}: {str(e)}", exc_info=True)
            raise InternalServerError("Failed to delete file")
