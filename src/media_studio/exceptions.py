"""
Domain exceptions and exception handlers with request ID support
Standardized error response format: { code, message, details?, request_id }
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from typing import Optional, Dict, Any

from .logging_config import get_request_id

logger = logging.getLogger(__name__)


# ============================================================================
# Domain exceptions
# ============================================================================

class StudioError(Exception):
    """Base class for errors surfaced to API clients"""

    code = "STUDIO_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInput(StudioError):
    code = "BAD_REQUEST"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(StudioError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class UsageLimitExceeded(StudioError):
    """Raised when a user has no remaining credits of a kind"""

    code = "USAGE_LIMIT_EXCEEDED"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, kind: str, used: int, limit: int, needed: int = 1):
        details = {"kind": kind, "used": used, "limit": limit}
        if needed > 1:
            message = (
                f"This request needs {needed} {kind} credits but only "
                f"{max(0, limit - used)} remain on your account"
            )
            details["needed"] = needed
        else:
            message = f"You have used all {limit} {kind} generations available on your account"
        super().__init__(message, details=details)
        self.kind = kind
        self.needed = needed


class ApiKeyMissing(StudioError):
    code = "API_KEY_REQUIRED"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, vendor: str):
        super().__init__(f"No API key configured for {vendor}", details={"vendor": vendor})
        self.vendor = vendor


class VendorError(StudioError):
    """
    A vendor API call failed

    transient=True marks failures worth polling through (timeouts, 5xx on a
    status check); everything else stops the generation.
    """

    code = "VENDOR_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        vendor: Optional[str] = None,
        vendor_status: Optional[int] = None,
        transient: bool = False,
    ):
        details = {"vendor": vendor} if vendor else {}
        if vendor_status is not None:
            details["vendor_status"] = vendor_status
        super().__init__(message, details=details or None)
        self.vendor = vendor
        self.vendor_status = vendor_status
        self.transient = transient


class GenerationFailed(StudioError):
    """The vendor reported the job as failed"""

    code = "GENERATION_FAILED"
    status_code = status.HTTP_502_BAD_GATEWAY


class NoResultUrl(StudioError):
    """The vendor reported success but the payload has no usable result URL"""

    code = "NO_RESULT_URL"
    status_code = status.HTTP_502_BAD_GATEWAY


class GenerationTimeout(StudioError):
    code = "GENERATION_TIMEOUT"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


class GenerationCancelled(StudioError):
    code = "GENERATION_CANCELLED"
    status_code = status.HTTP_409_CONFLICT


class PaymentAlreadyResolved(StudioError):
    code = "PAYMENT_ALREADY_RESOLVED"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, request_id: int, current_status: str):
        super().__init__(
            f"Payment request {request_id} is already {current_status}",
            details={"payment_request_id": request_id, "status": current_status},
        )
        self.current_status = current_status


# ============================================================================
# Response format
# ============================================================================

class ErrorResponse:
    """
    Standard error response format

    Schema: { code, message, details?, request_id }
    """

    @staticmethod
    def create(
        message: str,
        code: str,
        status_code: int,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        use_legacy_format: bool = False
    ) -> dict:
        """
        Create standardized error response

        Args:
            message: Human-readable error message
            code: Error code (e.g., "VALIDATION_ERROR", "AUTH_ERROR", "USAGE_LIMIT_EXCEEDED")
            status_code: HTTP status code
            request_id: Request ID from context (auto-fetched if None)
            details: Optional additional error details
            use_legacy_format: If True, use the flat format served under /api

        Returns:
            Dictionary with error details
        """
        if request_id is None:
            request_id = get_request_id()

        if use_legacy_format:
            response = {
                "detail": message,
                "status_code": status_code,
            }
            if request_id:
                response["request_id"] = request_id
            if code:
                response["error_code"] = code
            if details:
                response.update(details)
        else:
            response = {
                "code": code,
                "message": message,
                "status_code": status_code,
            }
            if request_id:
                response["request_id"] = request_id
            if details:
                response["details"] = details

        return response


def _use_legacy_format(request: Request) -> bool:
    return request.url.path.startswith("/api/")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with request ID"""
    request_id = get_request_id()

    error_code_map = {
        400: "BAD_REQUEST",
        401: "AUTH_ERROR",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        409: "CONFLICT",
        413: "REQUEST_TOO_LARGE",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
        503: "SERVICE_UNAVAILABLE"
    }
    error_code = error_code_map.get(exc.status_code, "HTTP_ERROR")

    detail = exc.detail
    error_message = str(detail) if detail else f"HTTP {exc.status_code} error"
    error_details = None

    if isinstance(detail, dict):
        error_message = detail.get("message", str(detail))
        error_code = detail.get("error", error_code)
        error_details = {k: v for k, v in detail.items() if k not in ["error", "message", "code"]} or None

    error_response = ErrorResponse.create(
        message=error_message,
        code=error_code,
        status_code=exc.status_code,
        request_id=request_id,
        details=error_details,
        use_legacy_format=_use_legacy_format(request)
    )

    logger.warning(
        f"HTTP {exc.status_code}: {detail}",
        extra={"path": request.url.path}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response,
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation exceptions with request ID"""
    errors = exc.errors()
    detail = "; ".join(f"{err['loc']}: {err['msg']}" for err in errors)

    error_response = ErrorResponse.create(
        message=f"Validation error: {detail}",
        code="VALIDATION_ERROR",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in errors]},
        use_legacy_format=_use_legacy_format(request)
    )

    logger.warning(f"Validation error: {detail}", extra={"path": request.url.path})

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response
    )


async def studio_exception_handler(request: Request, exc: StudioError) -> JSONResponse:
    """Render domain errors with their own code and status"""
    error_response = ErrorResponse.create(
        message=exc.message,
        code=exc.code,
        status_code=exc.status_code,
        details=exc.details,
        use_legacy_format=_use_legacy_format(request)
    )

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{exc.code}: {exc.message}", extra={"path": request.url.path})

    return JSONResponse(status_code=exc.status_code, content=error_response)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions with request ID"""
    # Don't expose internal error details outside dev
    from .config import config
    error_message = "Internal server error"
    error_details = None

    if config.ENV == "dev":
        error_message = f"Internal server error: {str(exc)}"
        error_details = {"exception_type": type(exc).__name__}

    error_response = ErrorResponse.create(
        message=error_message,
        code="INTERNAL_ERROR",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        details=error_details,
        use_legacy_format=_use_legacy_format(request)
    )

    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={"path": request.url.path}
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response
    )
