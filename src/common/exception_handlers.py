# src/common/exception_handlers.py
"""Map exceptions to the error envelope."""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, NoResultFound
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.common.exceptions import AppException, ConflictError, InternalError, NotFoundError, ValidationError
from src.common.responses import build_error_envelope

logger = logging.getLogger(__name__)

HTTP_ERROR_NAMES = {
    400: "ValidationError",
    401: "UnauthenticatedError",
    403: "ForbiddenError",
    404: "NotFoundError",
    405: "MethodNotAllowed",
    409: "ConflictError",
}


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details=None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=build_error_envelope(request, status_code, error, message, details),
        headers=headers,
    )


def classify_integrity_error(exc: IntegrityError) -> str:
    """Reduce a driver-specific integrity error to a stable code."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == "23505":
        return "unique_violation"
    if sqlstate == "23503":
        return "foreign_key_violation"

    text = str(orig or exc).lower()
    if "unique" in text or "duplicate" in text:
        return "unique_violation"
    if "foreign key" in text:
        return "foreign_key_violation"
    return "integrity_violation"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[%s] %s -> %s | %s | %s", request.method, request.url.path, exc.status_code, exc.error, exc.message)
    else:
        logger.info("[%s] %s -> %s | %s | %s", request.method, request.url.path, exc.status_code, exc.error, exc.message)

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _error_response(request, exc.status_code, exc.error, exc.message, exc.details, headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("[%s] %s -> 400 | invalid request", request.method, request.url.path)
    return _error_response(
        request,
        400,
        ValidationError.__name__,
        ValidationError.default_message,
        jsonable_encoder(exc.errors()),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(
        request,
        exc.status_code,
        HTTP_ERROR_NAMES.get(exc.status_code, "HTTPError"),
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    code = classify_integrity_error(exc)
    logger.warning("[%s] %s -> 409 | %s", request.method, request.url.path, code)
    return _error_response(
        request, 409, ConflictError.__name__, ConflictError.default_message, {"code": code}
    )


async def no_result_handler(request: Request, exc: NoResultFound) -> JSONResponse:
    return _error_response(
        request, 404, NotFoundError.__name__, NotFoundError.default_message, {"code": "record_not_found"}
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[%s] %s -> 500 | unhandled %s", request.method, request.url.path, type(exc).__name__)
    return _error_response(request, 500, InternalError.__name__, InternalError.default_message)


def register_exception_handlers(app: FastAPI) -> None:
    """Register every error mapping on the application."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(NoResultFound, no_result_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
