"""
Custom exceptions for RoomLink.

Every service raises one of these; the centralized handlers in
``roomlink.core.middleware.error_handling`` turn them into the JSON error envelope.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Standard error codes for the application"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Authentication & Authorization
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Business logic errors
    CONFLICT = "CONFLICT"
    INVALID_STATE = "INVALID_STATE"
    BOOKING_CONFLICT = "BOOKING_CONFLICT"
    ROOM_UNAVAILABLE = "ROOM_UNAVAILABLE"
    INSUFFICIENT_CAPACITY = "INSUFFICIENT_CAPACITY"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    GUEST_ALREADY_CHECKED_IN = "GUEST_ALREADY_CHECKED_IN"
    GUEST_NOT_CHECKED_IN = "GUEST_NOT_CHECKED_IN"
    CHECK_IN_TOO_EARLY = "CHECK_IN_TOO_EARLY"
    DUPLICATE_REVIEW = "DUPLICATE_REVIEW"
    HOSTEL_LIMIT_REACHED = "HOSTEL_LIMIT_REACHED"

    # Payments
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    INVALID_PHONE_NUMBER = "INVALID_PHONE_NUMBER"
    REFUND_NOT_ALLOWED = "REFUND_NOT_ALLOWED"


class BaseAppException(Exception):
    """
    Base exception class for all application exceptions.

    Carries an error code, a human readable message, structured details
    and the HTTP status the API layer should answer with.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format"""
        return {
            "code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


# ========================================
# Validation
# ========================================

class ValidationError(BaseAppException):
    """Exception raised when input fails business validation"""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, List[str]]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if field_errors:
            details["field_errors"] = field_errors
        super().__init__(message, error_code, details, status_code=400)


class InvalidDateRangeError(ValidationError):
    def __init__(self, check_in: datetime, check_out: datetime):
        super().__init__(
            "Check-out date must be after check-in date",
            error_code=ErrorCode.INVALID_DATE_RANGE,
            details={
                "check_in_date": check_in.isoformat(),
                "check_out_date": check_out.isoformat(),
            },
        )


class InvalidPhoneNumberError(ValidationError):
    def __init__(self, phone_number: str):
        super().__init__(
            "Invalid phone number format. Use 254XXXXXXXXX or 07XXXXXXXX",
            error_code=ErrorCode.INVALID_PHONE_NUMBER,
            details={"phone_number": phone_number},
        )


# ========================================
# Not found
# ========================================

class ResourceNotFoundError(BaseAppException):
    """Exception raised when a requested resource does not exist"""

    resource_name = "Resource"

    def __init__(self, resource_id: Optional[str] = None, message: Optional[str] = None):
        message = message or f"{self.resource_name} not found"
        details = {"resource": self.resource_name}
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        super().__init__(message, ErrorCode.RESOURCE_NOT_FOUND, details, status_code=404)


class UserNotFoundError(ResourceNotFoundError):
    resource_name = "User"


class HostelNotFoundError(ResourceNotFoundError):
    resource_name = "Hostel"


class RoomNotFoundError(ResourceNotFoundError):
    resource_name = "Room"


class BookingNotFoundError(ResourceNotFoundError):
    resource_name = "Booking"


class PaymentNotFoundError(ResourceNotFoundError):
    resource_name = "Payment"


class ReviewNotFoundError(ResourceNotFoundError):
    resource_name = "Review"


class ComplaintNotFoundError(ResourceNotFoundError):
    resource_name = "Complaint"


# ========================================
# Authentication & Authorization
# ========================================

class AuthenticationError(BaseAppException):
    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: ErrorCode = ErrorCode.AUTHENTICATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details, status_code=401)


class TokenExpiredError(AuthenticationError):
    def __init__(self):
        super().__init__("Token has expired", ErrorCode.TOKEN_EXPIRED)


class InvalidTokenError(AuthenticationError):
    def __init__(self, message: str = "Invalid authentication token"):
        super().__init__(message, ErrorCode.TOKEN_INVALID)


class AuthorizationError(BaseAppException):
    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        error_code: ErrorCode = ErrorCode.AUTHORIZATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details, status_code=403)


class AccountLockedError(AuthorizationError):
    def __init__(self, lockout_until: datetime):
        super().__init__(
            "Account is locked due to too many failed login attempts",
            ErrorCode.ACCOUNT_LOCKED,
            {"lockout_until": lockout_until.isoformat()},
        )


# ========================================
# Conflicts and state
# ========================================

class ConflictError(BaseAppException):
    """Request clashes with existing data (overlapping stays, duplicates)"""

    def __init__(
        self,
        message: str = "Conflict with existing data",
        error_code: ErrorCode = ErrorCode.CONFLICT,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
    ):
        super().__init__(message, error_code, details, status_code)


class BookingConflictError(ConflictError):
    def __init__(self, room_id: str, message: str = "Room not available for selected dates"):
        super().__init__(message, ErrorCode.BOOKING_CONFLICT, {"room_id": room_id})


class DuplicateReviewError(ConflictError):
    def __init__(self, booking_id: str):
        super().__init__(
            "You have already reviewed this booking",
            ErrorCode.DUPLICATE_REVIEW,
            {"booking_id": booking_id},
        )


class DuplicateEntryError(ConflictError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.DUPLICATE_ENTRY,
            {"field": field} if field else None,
            status_code=409,
        )


class InvalidStateError(BaseAppException):
    """Lifecycle transition not allowed from the current status"""

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.INVALID_STATE,
    ):
        details = {"current_status": current_status} if current_status else None
        super().__init__(message, error_code, details, status_code=400)


# ========================================
# Payments
# ========================================

class PaymentGatewayError(BaseAppException):
    def __init__(self, provider: str, message: str = "Payment provider request failed"):
        super().__init__(
            message,
            ErrorCode.PAYMENT_GATEWAY_ERROR,
            {"provider": provider},
            status_code=502,
        )
