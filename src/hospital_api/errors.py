from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto a JSON error response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Server Error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None) -> None:
        super().__init__(message)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}], message=message)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        return cls(_field_errors(exc.errors()))


class DuplicateKey(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Duplicate field value entered"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized to access this route"

    def __init__(self, message: Optional[str] = None, *, reason: Optional[str] = None) -> None:
        super().__init__(message)
        # Internal detail (expired, bad signature, ...); logged, never sent.
        self.reason = reason


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized to access this route"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


def _field_errors(raw_errors) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    for err in raw_errors:
        # Drop the "body"/"query" location prefix FastAPI adds.
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "__root__", "message": err.get("msg", "Invalid value")})
    return errors


def _error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if isinstance(exc, Unauthorized) and exc.reason:
        logger.info("Rejected credential on %s %s: %s", request.method, request.url.path, exc.reason)
    if isinstance(exc, ValidationError):
        return _error_response(exc.status_code, exc.message, errors=exc.errors)
    return _error_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        ValidationError.default_message,
        errors=_field_errors(exc.errors()),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, ApiError.default_message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
