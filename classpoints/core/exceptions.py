from enum import Enum
from typing import Any

from fastapi import status


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _KIND_STATUS[self]


_KIND_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.TIMEOUT: status.HTTP_408_REQUEST_TIMEOUT,
    ErrorKind.PAYLOAD_TOO_LARGE: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppError(Exception):
    """Base error raised by the core; carries a kind and a stable code."""

    kind: ErrorKind = ErrorKind.INTERNAL
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"
    status_code: int | None = None

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.code = code or self.code
        self.details = details or {}
        if self.status_code is None:
            self.status_code = self.kind.status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION
    code = "VALIDATION_ERROR"
    message = "Invalid request"


class AuthenticationError(AppError):
    kind = ErrorKind.AUTHENTICATION
    code = "TOKEN_INVALID"
    message = "Authentication required"


class AuthorizationError(AppError):
    kind = ErrorKind.AUTHORIZATION
    code = "PERMISSION_DENIED"
    message = "Access forbidden"


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND
    code = "NOT_FOUND"
    message = "Resource not found"


class ConflictError(AppError):
    kind = ErrorKind.CONFLICT
    code = "CONFLICT"
    message = "Conflicting state"


class RateLimitError(AppError):
    kind = ErrorKind.RATE_LIMITED
    code = "RATE_LIMITED"
    message = "Too many requests"


class RequestTimeoutError(AppError):
    kind = ErrorKind.TIMEOUT
    code = "REQUEST_TIMEOUT"
    message = "Request timed out"


class PayloadTooLargeError(AppError):
    kind = ErrorKind.PAYLOAD_TOO_LARGE
    code = "PAYLOAD_TOO_LARGE"
    message = "Request body too large"


class InternalServerError(AppError):
    kind = ErrorKind.INTERNAL
    code = "INTERNAL_ERROR"
    message = "Internal server error"


class StudentNotFound(NotFoundError):
    code = "STUDENT_NOT_FOUND"
    message = "Student not found"


class ProductNotFound(NotFoundError):
    code = "PRODUCT_NOT_FOUND"
    message = "Product not found"


class OrderNotFound(NotFoundError):
    code = "ORDER_NOT_FOUND"
    message = "Order not found"


class ProductInactive(ValidationError):
    code = "PRODUCT_INACTIVE"
    message = "Product is not available"


class InsufficientPoints(ConflictError):
    code = "INSUFFICIENT_POINTS"
    message = "Insufficient points"
    status_code = status.HTTP_400_BAD_REQUEST


class OutOfStock(ConflictError):
    code = "OUT_OF_STOCK"
    message = "Product is out of stock"


class DuplicateReservation(ConflictError):
    code = "DUPLICATE_RESERVATION"
    message = "A pending reservation for this product already exists"


class InvalidOrderStatus(ConflictError):
    code = "INVALID_ORDER_STATUS"
    message = "Order is not pending"


class DuplicateStudent(ConflictError):
    code = "STUDENT_EXISTS"
    message = "Student id already exists"


class StudentIdInUse(DuplicateStudent):
    code = "STUDENT_ID_IN_USE"
    message = "Student id still owns ledger records or pending orders"


class ProductNameExists(ConflictError):
    code = "PRODUCT_NAME_EXISTS"
    message = "An active product with this name already exists"


class ResetDisabled(AuthorizationError):
    code = "RESET_DISABLED"
    message = "Points reset is disabled"
