"""
Read-only dashboard aggregates for admins, hosts and staff.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from roomlink.core.constants import RECENT_ITEMS_LIMIT, TOP_HOSTELS_LIMIT, TREND_DAYS_DEFAULT, TREND_DAYS_MAX
from roomlink.core.exceptions import ValidationError
from roomlink.core.permissions import Permission, Principal, ensure_permission
from roomlink.models.enums import ComplaintStatus, HostelStatus, PaymentStatus
from roomlink.models.payment import Payment
from roomlink.repositories.booking_repository import BookingRepository
from roomlink.repositories.complaint_repository import ComplaintRepository
from roomlink.repositories.hostel_repository import HostelRepository, RoomRepository
from roomlink.repositories.payment_repository import PaymentRepository
from roomlink.repositories.review_repository import ReviewRepository
from roomlink.repositories.user_repository import UserRepository
from roomlink.services.base import BaseService
from roomlink.utils.datetime_utils import Clock, start_of_day, utcnow

_CLOSED_COMPLAINT_STATES = (ComplaintStatus.RESOLVED.value, ComplaintStatus.CLOSED.value)
_OPEN_COMPLAINT_STATES = (ComplaintStatus.OPEN.value, ComplaintStatus.IN_PROGRESS.value)


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class DashboardService(BaseService):

    def __init__(self, db: Session, clock: Clock = utcnow):
        super().__init__(db, clock=clock)
        self.users = UserRepository(db)
        self.hostels = HostelRepository(db)
        self.rooms = RoomRepository(db)
        self.bookings = BookingRepository(db)
        self.payments = PaymentRepository(db)
        self.reviews = ReviewRepository(db)
        self.complaints = ComplaintRepository(db)

    @staticmethod
    def _check_window(start: Optional[datetime], end: Optional[datetime]) -> None:
        if start and end and end <= start:
            raise ValidationError("Dashboard window end must be after its start")

    def admin_dashboard(
        self,
        principal: Principal,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        ensure_permission(principal, Permission.DASHBOARD_ADMIN)
        self._check_window(start, end)

        users_by_role = self.users.count_by_role()
        hostels_by_status = self.hostels.count_by_status()
        complaints = self.complaints.count_by_status(start=start, end=end)
        total_complaints = sum(complaints.values())
        closed = sum(complaints[state] for state in _CLOSED_COMPLAINT_STATES)
        average, review_count = self.reviews.rating_stats_for()

        return {
            "users": {
                "total": sum(users_by_role.values()),
                "new": self.users.count_created_between(start, end),
                "by_role": users_by_role,
            },
            "hostels": {
                "total": sum(hostels_by_status.values()),
                "active": hostels_by_status.get(HostelStatus.ACTIVE.value, 0),
                "by_status": hostels_by_status,
            },
            "bookings": self.bookings.count_by_status(start=start, end=end),
            "revenue": {
                "total": self.payments.completed_revenue(start, end),
                "by_provider": self.payments.summarize_by(
                    Payment.provider, start, end, status=PaymentStatus.COMPLETED
                ),
            },
            "complaints": {
                "total": total_complaints,
                "by_status": complaints,
                "resolution_rate": _percent(closed, total_complaints),
            },
            "reviews": {
                "total": review_count,
                "average_rating": round(average, 2) if average is not None else 0.0,
            },
            "monthly_trend": self._monthly_trend(start, end),
            "top_hostels": self.hostels.top_by_bookings(TOP_HOSTELS_LIMIT),
        }

    def top_hostels(self, principal: Principal, limit: int = TOP_HOSTELS_LIMIT) -> List[Dict[str, Any]]:
        ensure_permission(principal, Permission.DASHBOARD_ADMIN)
        if limit < 1:
            raise ValidationError("Limit must be at least 1")
        return self.hostels.top_by_bookings(limit)

    def trends(self, principal: Principal, days: int = TREND_DAYS_DEFAULT) -> Dict[str, Any]:
        """Daily revenue and user sign-ups over the last ``days`` days."""
        ensure_permission(principal, Permission.DASHBOARD_ADMIN)
        if not 1 <= days <= TREND_DAYS_MAX:
            raise ValidationError(f"Trend window must be between 1 and {TREND_DAYS_MAX} days")
        since = start_of_day(self.clock()) - timedelta(days=days - 1)
        return {
            "days": days,
            "since": since,
            "revenue": self.payments.daily_revenue(since),
            "user_growth": self.users.daily_signups(since),
        }

    def _monthly_trend(self, start: Optional[datetime], end: Optional[datetime]) -> List[Dict[str, Any]]:
        """Bookings per month merged with the revenue actually collected."""
        rows = {row["month"]: row for row in self.bookings.monthly_trend(start=start, end=end)}
        revenue = self.payments.monthly_revenue(start, end)
        for month in revenue:
            rows.setdefault(month, {"month": month, "bookings": 0, "booking_value": Decimal("0.00")})
        for month, row in rows.items():
            row["revenue"] = revenue.get(month, Decimal("0.00"))
        return [rows[month] for month in sorted(rows)]

    def host_dashboard(self, principal: Principal) -> Dict[str, Any]:
        ensure_permission(principal, Permission.DASHBOARD_HOST)
        hostels = self.hostels.list_owned_by(principal.user_id)
        ids = [hostel.id for hostel in hostels]

        bookings = self.bookings.count_by_hostel_and_status(ids) if ids else {}
        revenue = self.bookings.paid_revenue_by_hostel(ids) if ids else {}
        inventory = self.rooms.total_inventory(ids)
        occupied = self.bookings.occupied_units_by_hostel(ids) if ids else {}

        rows = []
        for hostel in hostels:
            complaints = self.complaints.count_by_status(hostel_ids=[hostel.id])
            total_units = inventory.get(hostel.id, 0)
            units_in_use = occupied.get(hostel.id, 0)
            rows.append({
                "hostel_id": hostel.id,
                "name": hostel.name,
                "status": hostel.account_status.value,
                "bookings": bookings.get(hostel.id, {}),
                "revenue": revenue.get(hostel.id, Decimal("0.00")),
                "total_units": total_units,
                "occupied_units": units_in_use,
                "occupancy_rate": _percent(units_in_use, total_units),
                "average_rating": hostel.average_rating,
                "total_reviews": hostel.total_reviews,
                "open_complaints": sum(complaints[state] for state in _OPEN_COMPLAINT_STATES),
            })

        return {
            "total_hostels": len(hostels),
            "total_revenue": sum((row["revenue"] for row in rows), Decimal("0.00")),
            "total_bookings": sum(sum(row["bookings"].values()) for row in rows),
            "hostels": rows,
        }

    def staff_dashboard(self, principal: Principal) -> Dict[str, Any]:
        ensure_permission(principal, Permission.DASHBOARD_STAFF)
        today = start_of_day(self.clock())
        tomorrow = today + timedelta(days=1)

        return {
            "complaints": {
                "by_status": self.complaints.count_by_status(handled_by=principal.user_id),
                "by_priority": self.complaints.count_by_priority(handled_by=principal.user_id),
                "recent": [
                    {
                        "id": complaint.id,
                        "title": complaint.title,
                        "status": complaint.status.value,
                        "priority": complaint.priority.value,
                        "created_at": complaint.created_at,
                    }
                    for complaint in self.complaints.recent(principal.user_id, RECENT_ITEMS_LIMIT)
                ],
            },
            "today": {
                "check_ins": [
                    self._desk_row(booking) for booking in self.bookings.list_arrivals_between(today, tomorrow)
                ],
                "check_outs": [
                    self._desk_row(booking) for booking in self.bookings.list_departures_between(today, tomorrow)
                ],
            },
        }

    @staticmethod
    def _desk_row(booking) -> Dict[str, Any]:
        return {
            "booking_id": booking.id,
            "guest_name": (booking.guest_details or {}).get("name"),
            "hostel_id": booking.hostel_id,
            "room_id": booking.room_id,
            "check_in_date": booking.check_in_date,
            "check_out_date": booking.check_out_date,
            "status": booking.status.value,
        }
