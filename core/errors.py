# core/errors.py
import logging
from typing import Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)

class BaseError(HTTPException):
    """Base class for custom HTTP exceptions.

    Args:
        status_code (int): HTTP status code for the error.
        detail (str): Detailed message describing the error.
    """
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)
        logger.error(f"Error occurred: {detail} (Status: {status_code})")

class NotFoundError(BaseError):
    """Exception raised for resources that cannot be found.

    Args:
        detail (str, optional): Specific detail about what was not found. Defaults to "Item not found".
    """

    def __init__(self, detail: Optional[str] = "Item not found"):
        super().__init__(status_code=404, detail=detail)

class ValidationError(BaseError):
    """Exception raised for invalid input data.

    Args:
        detail (str, optional): Specific detail about the validation failure. Defaults to "Invalid input".
    """

    def __init__(self, detail: Optional[str] = "Invalid input"):
        super().__init__(status_code=400, detail=detail)

class PayloadTooLargeError(BaseError):
    """Exception raised when an uploaded file exceeds the configured size limit."""

    def __init__(self, detail: Optional[str] = "Payload too large"):
        super().__init__(status_code=413, detail=detail)

class UnsupportedMediaError(BaseError):
    """Exception raised when an uploaded file has a content type we do not accept."""

    def __init__(self, detail: Optional[str] = "Unsupported media type"):
        super().__init__(status_code=415, detail=detail)

class StoreUnavailableError(BaseError):
    """Exception raised when the key-value cache store cannot be reached or answers with an error.

    The detail returned to clients is always generic; the underlying reason is only logged.

    Args:
        reason (str, optional): Internal description of the failure, written to the log.
    """

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "unknown store failure"
        logger.error(f"Cache store unavailable: {self.reason}")
        super().__init__(status_code=500, detail="Cache store unavailable")

class UpstreamUnavailableError(BaseError):
    """Exception raised when the upstream inventory feed cannot be fetched.

    Args:
        detail (str, optional): Specific detail about the feed failure. Defaults to "Inventory feed unavailable".
    """

    def __init__(self, detail: Optional[str] = "Inventory feed unavailable"):
        super().__init__(status_code=502, detail=detail)

class NotImplementedFeatureError(BaseError):
    """Exception raised for operations that are intentionally unsupported."""

    def __init__(self, detail: Optional[str] = "Not implemented"):
        super().__init__(status_code=501, detail=detail)

class InternalServerError(BaseError):
    """Exception raised for unexpected server-side errors.

    Args:
        detail (str, optional): Specific detail about the server error. Defaults to "Internal server error".
    """

    def __init__(self, detail: Optional[str] = "Internal server error"):
        super().__init__(status_code=500, detail=detail)
