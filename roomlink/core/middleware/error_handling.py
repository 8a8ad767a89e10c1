"""
Centralized exception handlers.

Every error leaves the API in the same envelope:

    {"success": false,
     "error": {"code": ..., "message": ..., "details": {...}},
     "request_id": ..., "timestamp": ...}
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from roomlink.core.exceptions import BaseAppException, ErrorCode

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES = {
    401: ErrorCode.AUTHENTICATION_FAILED,
    403: ErrorCode.AUTHORIZATION_FAILED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
}


def error_envelope(
    request: Request,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        },
        "request_id": getattr(request.state, "request_id", None),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def format_validation_errors(exc: RequestValidationError) -> Dict[str, Any]:
    field_errors = {}
    for error in exc.errors():
        # Drop the leading "body"/"query" location segment
        loc = [str(part) for part in error.get("loc", ())]
        field = ".".join(loc[1:] if len(loc) > 1 else loc)
        field_errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return {"field_errors": field_errors, "error_count": len(field_errors)}


async def app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application exception: {exc.error_code.value} - {exc.message}",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(request, exc.error_code.value, exc.message, exc.details),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = format_validation_errors(exc)
    logger.warning(
        f"Validation error: {details['error_count']} field(s) failed validation",
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope(
            request, ErrorCode.VALIDATION_ERROR.value, "Request validation failed", details
        ),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    if exc.status_code < 500 and exc.status_code not in _HTTP_ERROR_CODES:
        code = ErrorCode.VALIDATION_ERROR
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(request, code.value, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(
            request, ErrorCode.INTERNAL_ERROR.value, "An unexpected error occurred"
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
