"""Translate service exceptions into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from productivity_talk.core.errors import (
    AuthError,
    AuthErrorCode,
    InvalidStatusTransition,
    NotFoundError,
    ServiceError,
    UploadError,
    UploadTooLargeError,
)

logger = logging.getLogger(__name__)

_AUTH_STATUS = {
    AuthErrorCode.EMAIL_IN_USE: status.HTTP_409_CONFLICT,
    AuthErrorCode.WEAK_PASSWORD: status.HTTP_400_BAD_REQUEST,
    AuthErrorCode.INVALID_CREDENTIALS: status.HTTP_400_BAD_REQUEST,
    AuthErrorCode.NETWORK_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    AuthErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def _detail(status_code: int, message: str, **extra: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, **extra})


async def _auth_error(request: Request, exc: AuthError) -> JSONResponse:
    status_code = _AUTH_STATUS.get(exc.code, status.HTTP_401_UNAUTHORIZED)
    return _detail(status_code, str(exc), code=exc.code.value)


async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return _detail(status.HTTP_404_NOT_FOUND, str(exc))


async def _upload_error(request: Request, exc: UploadError) -> JSONResponse:
    if isinstance(exc, UploadTooLargeError):
        return _detail(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, str(exc))
    return _detail(status.HTTP_400_BAD_REQUEST, str(exc))


async def _conflict(request: Request, exc: InvalidStatusTransition) -> JSONResponse:
    return _detail(status.HTTP_409_CONFLICT, str(exc))


async def _service_error(request: Request, exc: ServiceError) -> JSONResponse:
    logger.warning("Upstream service failed", extra={"path": request.url.path, "error": str(exc)})
    return _detail(status.HTTP_502_BAD_GATEWAY, str(exc))


async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
    return _detail(status.HTTP_400_BAD_REQUEST, str(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, _auth_error)
    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(UploadError, _upload_error)
    app.add_exception_handler(InvalidStatusTransition, _conflict)
    app.add_exception_handler(ServiceError, _service_error)
    app.add_exception_handler(ValueError, _value_error)
