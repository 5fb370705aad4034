"""
Error hierarchy and the global error handler.

Production-grade error handling includes:
- Structured error responses
- Correlation IDs
- Safe error messages (no internal details leaked)
"""

from typing import Optional, Dict, Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from essence.core.logging import get_logger

logger = get_logger(__name__)


class EssenceError(Exception):
    """Base exception for all service errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        # Internal message for logging, not exposed to client
        self.internal_message = internal_message or message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(EssenceError):
    """Request validation failed."""

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class NotFoundError(EssenceError):
    """Resource absent, or owned by someone else. The two are never told apart."""

    def __init__(
        self,
        resource: str,
        resource_id: str,
    ):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id},
        )


class AuthenticationError(EssenceError):
    """Authentication failed."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="AUTHENTICATION_ERROR",
            status_code=HTTP_401_UNAUTHORIZED,
        )


class InvalidSlotIndexError(EssenceError):
    """Recording slot index outside [0, N)."""

    def __init__(self, slot_index: int, slot_count: int):
        super().__init__(
            message=f"Invalid slot index. Must be between 0 and {slot_count - 1}",
            code="INVALID_SLOT_INDEX",
            status_code=HTTP_400_BAD_REQUEST,
            details={"slot_index": slot_index, "slot_count": slot_count},
        )


class VoiceNotReadyError(EssenceError):
    """The profile has no trained voice model yet."""

    def __init__(self, profile_id: str, status: str):
        super().__init__(
            message="Voice model is not ready",
            code="VOICE_NOT_READY",
            status_code=HTTP_409_CONFLICT,
            details={"profile_id": profile_id, "voice_model_status": status},
        )


class EmptyContentError(EssenceError):
    """Message text is empty."""

    def __init__(self):
        super().__init__(
            message="Message content cannot be empty",
            code="EMPTY_CONTENT",
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        )


class ContentTooLongError(EssenceError):
    """Message text exceeds the maximum length."""

    def __init__(self, length: int, max_length: int):
        super().__init__(
            message=f"Message content exceeds {max_length} characters",
            code="CONTENT_TOO_LONG",
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            details={"length": length, "max_length": max_length},
        )


class ProviderError(EssenceError):
    """The external voice provider failed or timed out."""

    def __init__(
        self,
        operation: str,
        internal_message: Optional[str] = None,
    ):
        super().__init__(
            message="Voice provider unavailable",
            code="PROVIDER_ERROR",
            status_code=HTTP_503_SERVICE_UNAVAILABLE,
            details={"operation": operation},
            internal_message=internal_message,
        )
        self.operation = operation


class CircuitBreakerOpenError(ProviderError):
    """Circuit breaker is open."""

    def __init__(self, service: str, operation: str = "unknown"):
        super().__init__(
            operation=operation,
            internal_message=f"Circuit breaker '{service}' is open",
        )
        self.code = "CIRCUIT_BREAKER_OPEN"
        self.details["service"] = service


class SynthesisFailedError(EssenceError):
    """Speech synthesis for an explicit message request failed."""

    def __init__(self, internal_message: Optional[str] = None):
        super().__init__(
            message="Speech synthesis failed",
            code="SYNTHESIS_FAILED",
            status_code=HTTP_502_BAD_GATEWAY,
            internal_message=internal_message,
        )


async def error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global error handler for all exceptions.

    - Logs errors with correlation ID
    - Returns safe error messages
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    if isinstance(exc, EssenceError):
        logger.warning(
            "Request failed",
            extra={
                "error_code": exc.code,
                "error_message": exc.internal_message,
                "path": request.url.path,
                "method": request.method,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={"X-Correlation-ID": correlation_id},
        )

    # Unexpected errors - don't leak internal details
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "correlation_id": correlation_id,
            }
        },
        headers={"X-Correlation-ID": correlation_id},
    )
