"""
Enumerations shared by models, schemas and services.
"""

import enum


class UserRole(str, enum.Enum):
    USER = "user"
    HOST = "host"
    STAFF = "staff"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class StaffType(str, enum.Enum):
    MANAGER = "MANAGER"
    RECEPTIONIST = "RECEPTIONIST"
    CLEANER = "CLEANER"


class UserAccountStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    LOCKED = "locked"
    DELETED = "deleted"


class HostelStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"
    DEACTIVATED = "Deactivated"


class CancellationPolicy(str, enum.Enum):
    FLEXIBLE = "Flexible"
    MODERATE = "Moderate"
    STRICT = "Strict"
    NON_REFUNDABLE = "Non-refundable"


class RoomType(str, enum.Enum):
    SINGLE = "Single"
    DOUBLE = "Double"
    TWIN = "Twin"
    DORMITORY = "Dormitory"
    SUITE = "Suite"
    FAMILY = "Family"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingPaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class CancelledBy(str, enum.Enum):
    USER = "User"
    ADMIN = "Admin"


class PaymentProvider(str, enum.Enum):
    MPESA = "mpesa"
    CARD = "card"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class RefundStatus(str, enum.Enum):
    NONE = "none"
    REQUESTED = "requested"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ComplaintCategory(str, enum.Enum):
    MAINTENANCE = "maintenance"
    HYGIENE = "hygiene"
    STAFF = "staff"
    NOISE = "noise"
    SAFETY = "safety"
    OTHER = "other"


class ComplaintPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    ComplaintPriority.LOW: 0,
    ComplaintPriority.MEDIUM: 1,
    ComplaintPriority.HIGH: 2,
    ComplaintPriority.URGENT: 3,
}


class ComplaintStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
