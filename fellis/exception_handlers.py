"""
Exception handlers for the fellis API.

Every error leaves the API in the same envelope so the SPA can localize it
by ``error_code``:

    {"error": {"status_code": 400, "message": "...", "type": "Bad Request",
               "error_code": "VALIDATION_INVALID_CONSENT_PURPOSE",
               "details": {...}, "path": "/api/privacy/consent"}}

Database errors that escape a service are mapped here as well: a unique
constraint violation (two concurrent registrations or Facebook links racing
on the same email) becomes a 409, anything else a 500 without internals.
"""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fellis.exceptions import ErrorCode, FellisError

logger = logging.getLogger(__name__)

# status code -> (human-readable type, default error code)
STATUS_INFO: dict[int, tuple[str, ErrorCode]] = {
    400: ("Bad Request", ErrorCode.VALIDATION_FAILED),
    401: ("Unauthorized", ErrorCode.AUTH_FAILED),
    403: ("Forbidden", ErrorCode.AUTH_PERMISSION_DENIED),
    404: ("Not Found", ErrorCode.RESOURCE_NOT_FOUND),
    405: ("Method Not Allowed", ErrorCode.VALIDATION_FAILED),
    409: ("Conflict", ErrorCode.VALIDATION_DUPLICATE_RESOURCE),
    422: ("Validation Error", ErrorCode.VALIDATION_FAILED),
    500: ("Internal Server Error", ErrorCode.INTERNAL_ERROR),
    502: ("Bad Gateway", ErrorCode.EXTERNAL_SERVICE_ERROR),
    503: ("Service Unavailable", ErrorCode.SERVICE_UNAVAILABLE),
}


def get_error_type(status_code: int) -> str:
    return STATUS_INFO.get(status_code, ("Error", ErrorCode.UNKNOWN_ERROR))[0]


def get_http_error_code(status_code: int) -> ErrorCode:
    return STATUS_INFO.get(status_code, ("Error", ErrorCode.UNKNOWN_ERROR))[1]


def create_error_response(
    status_code: int,
    message: str,
    error_code: ErrorCode | str | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    """Build the error envelope. Empty details and path are left out."""
    body: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": get_error_type(status_code),
    }
    if error_code:
        body["error_code"] = getattr(error_code, "value", error_code)
    if details:
        body["details"] = details
    if path:
        body["path"] = path
    return JSONResponse(status_code=status_code, content={"error": body})


async def fellis_exception_handler(request: Request, exc: FellisError) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{type(exc).__name__}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value, "path": request.url.path},
    )
    return create_error_response(exc.status_code, exc.message, exc.error_code, exc.details, request.url.path)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}", extra={"path": request.url.path})
    return create_error_response(
        exc.status_code, str(exc.detail), get_http_error_code(exc.status_code), path=request.url.path
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError | PydanticValidationError
) -> JSONResponse:
    """Flatten pydantic errors into [{field, message, type}]; the body prefix is dropped from field paths."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}: {len(errors)} field(s)")
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        ErrorCode.VALIDATION_FAILED,
        {"validation_errors": errors},
        request.url.path,
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    if isinstance(exc, IntegrityError):
        logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
        return create_error_response(
            status.HTTP_409_CONFLICT,
            "The resource conflicts with an existing one",
            ErrorCode.VALIDATION_DUPLICATE_RESOURCE,
            path=request.url.path,
        )
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "A database error occurred",
        ErrorCode.DATABASE_ERROR,
        path=request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort. The exception is logged with its traceback; the client only sees a generic message."""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(FellisError, fellis_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
