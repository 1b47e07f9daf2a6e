"""Error taxonomy shared by routes, services and the exception handlers."""

from typing import Optional


class AppError(Exception):
    """Base class for errors rendered as a JSON `{message, code}` body."""

    status_code: int = 500
    code: Optional[str] = None

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class AuthenticationError(AppError):
    status_code = 401


class PermissionDeniedError(AppError):
    status_code = 403


class LimitReachedError(AppError):
    """Free-tier ceiling hit; the client should offer an upgrade."""

    status_code = 403
    code = "LIMIT_REACHED"


class ValidationFailedError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class UpstreamError(AppError):
    """A database, model, speech or storage dependency failed."""

    status_code = 500


class StoreUnavailableError(UpstreamError):
    """The relational store could not be reached."""
