"""
Capability-based authorization.

Routes declare the capability they need (``Permission.BOOKING_CHECK_IN``)
instead of listing roles. ``ROLE_PERMISSIONS`` is the single place that
decides which role holds which capability.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Optional

from roomlink.core.exceptions import AuthorizationError, ErrorCode
from roomlink.models.enums import StaffType, UserRole


class Permission(str, enum.Enum):
    # Hostels and rooms
    HOSTEL_CREATE = "hostel:create"
    HOSTEL_MANAGE = "hostel:manage"
    HOSTEL_MANAGE_ANY = "hostel:manage_any"

    # Bookings
    BOOKING_CREATE = "booking:create"
    BOOKING_VIEW_ALL = "booking:view_all"
    BOOKING_VIEW_OWN_HOSTELS = "booking:view_own_hostels"
    BOOKING_MANAGE_ANY = "booking:manage_any"
    BOOKING_CHECK_IN = "booking:check_in"
    BOOKING_CHECK_OUT = "booking:check_out"

    # Payments
    PAYMENT_CREATE = "payment:create"
    PAYMENT_VIEW_ANY = "payment:view_any"
    PAYMENT_REFUND_PROCESS = "payment:refund_process"
    PAYMENT_RECONCILE = "payment:reconcile"

    # Reviews
    REVIEW_CREATE = "review:create"
    REVIEW_MODERATE = "review:moderate"
    REVIEW_REPLY = "review:reply"

    # Complaints
    COMPLAINT_CREATE = "complaint:create"
    COMPLAINT_VIEW_ALL = "complaint:view_all"
    COMPLAINT_HANDLE = "complaint:handle"
    COMPLAINT_REASSIGN = "complaint:reassign"

    # Users
    USER_MANAGE = "user:manage"

    # Dashboards
    DASHBOARD_ADMIN = "dashboard:admin"
    DASHBOARD_HOST = "dashboard:host"
    DASHBOARD_STAFF = "dashboard:staff"


_GUEST = frozenset({
    Permission.BOOKING_CREATE,
    Permission.PAYMENT_CREATE,
    Permission.REVIEW_CREATE,
    Permission.COMPLAINT_CREATE,
})

_HOST = _GUEST | frozenset({
    Permission.HOSTEL_CREATE,
    Permission.HOSTEL_MANAGE,
    Permission.BOOKING_VIEW_OWN_HOSTELS,
    Permission.BOOKING_CHECK_IN,
    Permission.BOOKING_CHECK_OUT,
    Permission.REVIEW_REPLY,
    Permission.DASHBOARD_HOST,
})

_STAFF = frozenset({
    Permission.BOOKING_VIEW_ALL,
    Permission.BOOKING_CHECK_IN,
    Permission.BOOKING_CHECK_OUT,
    Permission.COMPLAINT_VIEW_ALL,
    Permission.COMPLAINT_HANDLE,
    Permission.DASHBOARD_STAFF,
})

_ADMIN = _HOST | _STAFF | frozenset({
    Permission.HOSTEL_MANAGE_ANY,
    Permission.BOOKING_MANAGE_ANY,
    Permission.PAYMENT_VIEW_ANY,
    Permission.PAYMENT_REFUND_PROCESS,
    Permission.PAYMENT_RECONCILE,
    Permission.REVIEW_MODERATE,
    Permission.COMPLAINT_REASSIGN,
    Permission.USER_MANAGE,
    Permission.DASHBOARD_ADMIN,
})

ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[Permission]] = {
    UserRole.USER: _GUEST,
    UserRole.HOST: _HOST,
    UserRole.STAFF: _STAFF,
    UserRole.ADMIN: _ADMIN,
    UserRole.SUPER_ADMIN: frozenset(Permission),
}

PRIVILEGED_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})


@dataclass(frozen=True)
class Principal:
    """The authenticated caller as seen by the service layer."""

    user_id: str
    role: UserRole
    email: Optional[str] = None
    staff_type: Optional[StaffType] = None

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


def has_permission(
    principal: Principal,
    permission: Permission,
    matrix: Mapping[UserRole, FrozenSet[Permission]] = ROLE_PERMISSIONS,
) -> bool:
    return permission in matrix.get(principal.role, frozenset())


def ensure_permission(principal: Principal, permission: Permission) -> None:
    if not has_permission(principal, permission):
        raise AuthorizationError(
            f"Role '{principal.role.value}' lacks permission '{permission.value}'",
            ErrorCode.INSUFFICIENT_PERMISSIONS,
            {"required_permission": permission.value},
        )
