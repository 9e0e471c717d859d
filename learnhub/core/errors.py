"""
Centralized Error Handling

Every error leaves the API in the shared envelope:
{
    "success": false,
    "message": "Human-readable description",
    "errors": [...]   (validation failures only)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input, malformed request, duplicate unique value
- 401: Authentication missing, invalid or expired
- 403: Role or ownership mismatch
- 404: Resource does not exist
- 409: Concurrent modification of the same course curriculum
- 500: Unexpected (stack trace only outside production)
"""

import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnhub.core.config import IS_PRODUCTION

logger = logging.getLogger(__name__)


class LMSError(Exception):
    """Base exception for domain errors surfaced to the caller"""
    status_code: int = 500
    default_message: str = "Server Error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, Any]]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class BadRequestError(LMSError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(LMSError):
    status_code = 401
    default_message = "Not authorized to access this route"


class ForbiddenError(LMSError):
    status_code = 403
    default_message = "You are not authorized to perform this action"


class NotFoundError(LMSError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(LMSError):
    """Duplicate value for a unique field"""
    status_code = 400
    default_message = "Duplicate value"


class ConcurrentModificationError(LMSError):
    status_code = 409
    default_message = "Resource was modified by another request. Please retry."


class PaymentGatewayError(BadRequestError):
    default_message = "Payment gateway request failed"


def error_body(message: str, errors: Optional[list] = None, **extra) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return body


# ==================== HANDLERS ====================

async def lms_error_handler(request: Request, exc: LMSError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({
            "field": ".".join(location) or None,
            "message": err.get("msg", "Invalid value"),
        })
    return JSONResponse(status_code=400, content=error_body("Validation failed", errors))


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    key_value = (exc.details or {}).get("keyValue") or {}
    field = next(iter(key_value), None)
    message = (
        f"Duplicate value for {field}. Please use another value."
        if field else "Duplicate value. Please use another value."
    )
    return JSONResponse(status_code=400, content=error_body(message))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    extra = {}
    if not IS_PRODUCTION:
        extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    message = "Server Error" if IS_PRODUCTION else (str(exc) or "Server Error")
    return JSONResponse(status_code=500, content=error_body(message, **extra))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(LMSError, lms_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
