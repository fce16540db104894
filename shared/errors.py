"""
Shared error handling for the AppData service core.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class AppDataException(Exception):
    """Base exception for the AppData service core."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthenticationError(AppDataException):
    """Authentication-related errors."""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "AUTHENTICATION_ERROR"):
        super().__init__(code, message, details)


class MissingCredentialError(AuthenticationError):
    """No Authorization header, or one without the bearer scheme."""

    def __init__(self, message: str = "Authorization required", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="MISSING_CREDENTIAL")


class InvalidCredentialError(AuthenticationError):
    """Malformed, expired, wrong-audience or provider-rejected token."""

    def __init__(self, message: str = "Mismatched or malformed authorization",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="INVALID_CREDENTIAL")


class IdentityMismatchError(AppDataException):
    """Credentials belong to a different user than the one verified for the request."""

    def __init__(self, expected: str, actual: str):
        super().__init__(
            "IDENTITY_MISMATCH",
            f"user ID = {actual}; want {expected}",
            {"expected": expected, "actual": actual}
        )


class ExternalServiceError(AppDataException):
    """External service errors."""

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None,
                 code: str = "EXTERNAL_SERVICE_ERROR"):
        self.service = service
        super().__init__(code, f"{service}: {message}", details)


class RemoteTransportError(ExternalServiceError):
    """Network failure or non-success status from the identity provider or document store."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(service, message, details, code="REMOTE_TRANSPORT_ERROR")


class CacheTransientError(AppDataException):
    """Cache backend failure that outlived the retry budget."""

    def __init__(self, message: str, last_exception: Optional[Exception] = None, attempts: int = 0):
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__("CACHE_TRANSIENT_ERROR", message, {"attempts": attempts})


class TokenProviderError(AppDataException):
    """Service token misconfiguration or failed grant."""

    def __init__(self, provider: str, message: str):
        super().__init__("TOKEN_PROVIDER_ERROR", f"{provider}: {message}", {"provider": provider})
