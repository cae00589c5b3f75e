"""Centralized FastAPI exception handlers with structured logging."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from workforce_api.common.logging import log_context
from workforce_api.core.errors import (
    AccessControlError,
    AccessDenied,
    ApprovalRequestNotFound,
    ApprovalValidationError,
    InvalidTransition,
    NoApproverConfigured,
    ScopeResolutionError,
)

_UNHANDLED_LOGGER = logging.getLogger("workforce_api.errors")
_HTTP_LOGGER = logging.getLogger("workforce_api.http")

# Most specific class first; handlers are looked up along the exception MRO.
_STATUS_BY_ERROR: tuple[tuple[type[AccessControlError], int], ...] = (
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (ScopeResolutionError, status.HTTP_409_CONFLICT),
    (NoApproverConfigured, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ApprovalValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ApprovalRequestNotFound, status.HTTP_404_NOT_FOUND),
)


def status_for(exc: AccessControlError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def access_control_exception_handler(
    request: Request,
    exc: AccessControlError,
) -> JSONResponse:
    """Translate domain failures into a status plus a machine readable ``error`` code."""
    status_code = status_for(exc)
    _HTTP_LOGGER.info(
        "http.domain_error",
        extra=log_context(
            path=str(request.url.path),
            method=request.method,
            status_code=status_code,
            error=exc.code,
        ),
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.to_detail()})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler: HTTP 500 plus an ERROR log with the stack trace."""
    _UNHANDLED_LOGGER.exception(
        "unhandled_exception",
        extra=log_context(
            path=str(request.url.path),
            method=request.method,
            exception_type=type(exc).__name__,
            detail=str(exc),
        ),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """4xx pass through quietly; 5xx are logged at ERROR."""
    if exc.status_code >= 500:
        _HTTP_LOGGER.error(
            "http_exception",
            extra=log_context(
                path=str(request.url.path),
                method=request.method,
                status_code=exc.status_code,
                detail=exc.detail,
            ),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessControlError, access_control_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "access_control_exception_handler",
    "http_exception_handler",
    "register_exception_handlers",
    "status_for",
    "unhandled_exception_handler",
]
