"""
FastAPI glue: bearer authentication dependency and error responses.
"""

from typing import Awaitable, Callable, Dict, Optional, Type

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from shared.errors import (
    AppDataException,
    CacheTransientError,
    IdentityMismatchError,
    InvalidCredentialError,
    MissingCredentialError,
    RemoteTransportError,
)
from shared.logging import get_logger
from .auth.token_verifier import TokenVerifier
from .models import VerifiedIdentity

logger = get_logger("appdata.http")

STATUS_BY_ERROR: Dict[Type[AppDataException], int] = {
    MissingCredentialError: 401,
    InvalidCredentialError: 403,
    IdentityMismatchError: 403,
    RemoteTransportError: 502,
    CacheTransientError: 503,
}


def status_for(exc: AppDataException) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 400


def require_identity(verifier: TokenVerifier) -> Callable[..., Awaitable[VerifiedIdentity]]:
    """Build a dependency resolving the request's VerifiedIdentity."""

    async def dependency(authorization: Optional[str] = Header(default=None)) -> VerifiedIdentity:
        return await verifier.authenticate(authorization)

    return dependency


def register_exception_handlers(app: FastAPI) -> None:
    """Map AppDataException subclasses to HTTP responses."""

    @app.exception_handler(AppDataException)
    async def app_data_exception_handler(request: Request, exc: AppDataException):
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 or isinstance(exc, IdentityMismatchError) else logger.info
        log(
            "Request failed",
            path=request.url.path,
            code=exc.code,
            message=exc.message,
            status_code=status_code,
        )
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return JSONResponse(
            status_code=status_code,
            content=exc.to_response().model_dump(),
            headers=headers,
        )
