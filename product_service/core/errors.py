"""Error taxonomy shared by repositories, services and the HTTP layer.

Every error that reaches a client carries a stable machine-readable ``code``.
Services raise the kinds below; anything else is converted by
``convert_error`` before it leaves a service.
"""
from typing import Any, Optional

from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError


class ApiError(Exception):
    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Any = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status_code={self.status_code}, code={self.code!r}, message={self.message!r})"


class ValidationError(ApiError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class UnauthorizedError(ApiError):
    status_code = 401
    default_code = "UNAUTHORIZED"


class ForbiddenError(ApiError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(ApiError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(ApiError):
    status_code = 409
    default_code = "CONFLICT"


class InternalError(ApiError):
    status_code = 500
    default_code = "INTERNAL_ERROR"


class ServiceUnavailableError(ApiError):
    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"


class MediaHostError(ApiError):
    """Raised by the media host client when an upload or delete is rejected."""

    status_code = 502
    default_code = "IMAGEKIT_UPLOAD_ERROR"


def convert_error(
    exc: BaseException,
    code: str = "INTERNAL_ERROR",
    message: str = "Internal server error",
) -> ApiError:
    """Classify ``exc``; unknown errors are wrapped with ``code`` and the original message."""
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, DuplicateKeyError):
        key_value = (getattr(exc, "details", None) or {}).get("keyValue") or {}
        return ConflictError(
            "Duplicate value violates a unique constraint",
            code="DB_DUPLICATE",
            details={"keyValue": {field: str(value) for field, value in key_value.items()}},
        )
    if isinstance(exc, InvalidId):
        return ValidationError(str(exc), code="INVALID_ID")
    return InternalError(message, code=code, details=str(exc))
