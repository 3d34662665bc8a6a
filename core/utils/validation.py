# core/utils/validation.py
from typing import Optional
from bson import ObjectId
from core.errors import ValidationError, UnsupportedMediaError, PayloadTooLargeError

def validate_object_id(value: str, field_name: str) -> None:
    """Validate that a string is a valid MongoDB ObjectId."""
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {field_name} format: {value}")

def require_text(value: Optional[str], field_name: str) -> str:
    """Return a stripped, non-empty string or raise ValidationError."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()

def validate_upload(content_type: Optional[str], size: Optional[int], allowed_prefixes: tuple, max_size: int) -> None:
    """Validate an uploaded file's content type and size.

    Raises:
        ValidationError: If the file is empty.
        UnsupportedMediaError: If the content type does not start with an allowed prefix.
        PayloadTooLargeError: If the file exceeds ``max_size`` bytes.
    """
    if not size:
        raise ValidationError("Uploaded file is empty")
    if not content_type or not content_type.lower().startswith(allowed_prefixes):
        raise UnsupportedMediaError(f"File type {content_type} not allowed. Allowed types: {', '.join(allowed_prefixes)}*")
    if size > max_size:
        raise PayloadTooLargeError(f"File exceeds {max_size / (1024 * 1024):g}MB limit")
