"""Domain error hierarchy.

Every failure the core reports carries a stable machine-readable ``code``
and a human-readable message. The HTTP layer maps codes to status codes in
``libs.common.error_handler``.
"""

import enum
from typing import Any, Optional


class ErrorCode(str, enum.Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    GATEWAY_FAILURE = "GATEWAY_FAILURE"
    CREATION_FAILED = "CREATION_FAILED"
    INTERNAL = "INTERNAL"


class ServiceError(Exception):
    """Base class for expected, reportable failures."""

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class ValidationError(ServiceError):
    code = ErrorCode.VALIDATION


class NotFoundError(ServiceError):
    code = ErrorCode.NOT_FOUND


class ConflictError(ServiceError):
    code = ErrorCode.CONFLICT


class InsufficientStockError(ServiceError):
    code = ErrorCode.INSUFFICIENT_STOCK


class InvalidStateTransitionError(ServiceError):
    code = ErrorCode.INVALID_STATE_TRANSITION


class GatewayError(ServiceError):
    code = ErrorCode.GATEWAY_FAILURE


class OrderCreationError(ServiceError):
    code = ErrorCode.CREATION_FAILED


class InternalError(ServiceError):
    code = ErrorCode.INTERNAL
