"""Global exception handlers for the staff API.

Every ``CMSError`` is rendered as ``{"detail": ..., "error": <kind>}`` with a
status code chosen by its class.
"""

import logging
from typing import Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.exceptions import (
    CMSError,
    ConfigurationError,
    ConflictError,
    CryptoError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidTransitionError,
    InviteCodeExpiredError,
    InviteCodeInvalidError,
    NotificationFailedError,
    PermissionDeniedError,
    ResetTokenExpiredError,
    ResetTokenInvalidError,
    SettingsNotFoundError,
    SetupAlreadyCompletedError,
    StaffNotFoundError,
    UnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order, so subclasses must come before their bases
STATUS_BY_ERROR: Dict[Type[CMSError], int] = {
    StaffNotFoundError: status.HTTP_404_NOT_FOUND,
    SettingsNotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateEmailError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    SetupAlreadyCompletedError: status.HTTP_409_CONFLICT,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    InviteCodeInvalidError: status.HTTP_400_BAD_REQUEST,
    ResetTokenInvalidError: status.HTTP_400_BAD_REQUEST,
    InviteCodeExpiredError: status.HTTP_410_GONE,
    ResetTokenExpiredError: status.HTTP_410_GONE,
    InvalidTransitionError: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotificationFailedError: status.HTTP_502_BAD_GATEWAY,
    UnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    CryptoError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: CMSError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """Register the CMSError handler on the FastAPI app."""

    @app.exception_handler(CMSError)
    async def cms_error_handler(request: Request, exc: CMSError):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        else:
            logger.info("%s on %s", type(exc).__name__, request.url.path)
        content = {"detail": str(exc), "error": type(exc).__name__}
        if isinstance(exc, NotificationFailedError) and exc.staff is not None:
            # The pending record was kept and can still be redeemed
            content["staff_id"] = exc.staff.staff_id
        headers = {"Retry-After": "5"} if isinstance(exc, UnavailableError) else None
        return JSONResponse(
            status_code=status_code,
            content=content,
            headers=headers,
        )
