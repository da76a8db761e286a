"""
Request Size Limit Middleware
Rejects oversized request bodies from their Content-Length before they are read
"""
import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..exceptions import ErrorResponse

logger = logging.getLogger(__name__)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Enforce request body size limits

    Multipart bodies (uploads, payment screenshots) get `max_upload_bytes`;
    everything else gets `max_request_bytes`.

    Usage:
        app.add_middleware(
            RequestSizeLimitMiddleware,
            max_request_bytes=2_000_000,
            max_upload_bytes=config.MAX_UPLOAD_BYTES
        )
    """

    def __init__(
        self,
        app,
        max_request_bytes: int = 2_000_000,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ):
        super().__init__(app)
        self.max_request_bytes = max_request_bytes
        self.max_upload_bytes = max_upload_bytes

    def _error(self, request: Request, message: str, code: str, status_code: int, details: dict = None):
        body = ErrorResponse.create(
            message=message,
            code=code,
            status_code=status_code,
            details=details,
            use_legacy_format=request.url.path.startswith("/api/"),
        )
        return JSONResponse(content=body, status_code=status_code)

    async def dispatch(self, request: Request, call_next: Callable):
        if request.method in ["GET", "HEAD", "OPTIONS", "DELETE"]:
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length is None:
            # Chunked bodies are checked by the upload handler after reading
            return await call_next(request)

        try:
            size = int(content_length)
        except ValueError:
            return self._error(request, "Invalid Content-Length header", "INVALID_CONTENT_LENGTH", 400)

        is_upload = "multipart/form-data" in request.headers.get("content-type", "").lower()
        max_size = self.max_upload_bytes if is_upload else self.max_request_bytes

        if size > max_size:
            logger.warning(
                f"Request size limit exceeded: {size} > {max_size} bytes "
                f"(path: {request.url.path}, method: {request.method})"
            )
            return self._error(
                request,
                f"Request body too large. Maximum allowed size is {max_size / 1_000_000:.1f}MB.",
                "REQUEST_TOO_LARGE",
                413,
                details={"max_size_bytes": max_size, "received_bytes": size},
            )

        return await call_next(request)
