# app/middleware/logging.py
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from core.errors import InternalServerError

logger = logging.getLogger("showroom_app")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log incoming requests and outgoing responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        """Log request and response details.

        Args:
            request (Request): The incoming HTTP request.
            call_next: The next middleware or endpoint to process the request.

        Returns:
            Response: The HTTP response after processing.

        Raises:
            InternalServerError: If an unexpected error escapes request processing.
        """
        client_host = request.client.host if request.client else "unknown"
        started = time.perf_counter()
        try:
            logger.info(f"Request: {request.method} {request.url.path} from {client_host}")

            response = await call_next(request)

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"Response: {request.method} {request.url.path} "
                f"status={response.status_code} duration_ms={elapsed_ms:.1f}"
            )

            return response

        except Exception as e:
            logger.error(f"Unexpected error in request processing: {str(e)}", exc_info=True)
            raise InternalServerError("Internal server error")
