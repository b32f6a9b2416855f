# src/common/exceptions.py
"""Typed application errors raised by services and mapped to HTTP by the handlers."""

from typing import Any, Optional


class AppException(Exception):
    """Base class for every error the API surfaces with a known status code."""

    status_code: int = 500
    default_message: str = "Internal server error."

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Any] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def error(self) -> str:
        return type(self).__name__


class ValidationError(AppException):
    status_code = 400
    default_message = "The request is invalid."


class UnauthenticatedError(AppException):
    status_code = 401
    default_message = "Could not validate credentials. Please log in again."


class InvalidTokenError(UnauthenticatedError):
    default_message = "Token is invalid or has expired."


class UnauthorizedError(UnauthenticatedError):
    """The refresh session was revoked, rotated or never existed."""
    default_message = "Refresh token is not valid."


class ForbiddenError(AppException):
    status_code = 403
    default_message = "You do not have permission to perform this action."


class NotFoundError(AppException):
    status_code = 404
    default_message = "Resource not found."


class ConflictError(AppException):
    status_code = 409
    default_message = "The resource conflicts with an existing one."


class AlreadyConsumedError(ConflictError):
    default_message = "This prescription has already been consumed."


class TranscriptionError(AppException):
    status_code = 502
    default_message = "Audio transcription failed."


class ExtractionError(AppException):
    status_code = 502
    default_message = "Prescription extraction failed."


class InternalError(AppException):
    status_code = 500
    default_message = "Internal server error."
