"""
Booking repository: availability counts, scoped listings and booking
statistics.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, extract, func, select
from sqlalchemy.orm import Session

from roomlink.core.pagination import PaginationParams
from roomlink.models.booking import ACTIVE_BOOKING_STATUSES, Booking
from roomlink.models.enums import BookingPaymentStatus, BookingStatus
from roomlink.repositories.base import BaseRepository, PaginatedResult
from roomlink.utils.datetime_utils import month_key


class BookingRepository(BaseRepository[Booking]):

    def __init__(self, db: Session):
        super().__init__(Booking, db)

    # ==================== Availability ====================

    def count_overlapping_units(
        self,
        room_id: str,
        check_in: datetime,
        check_out: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> int:
        """
        Room units held by active bookings overlapping [check_in, check_out).

        Two stays overlap when ``start < other_end AND end > other_start``;
        back-to-back stays (one checks out the day the other checks in) do not.
        """
        conditions = [
            Booking.room_id == room_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.check_in_date < check_out,
            Booking.check_out_date > check_in,
        ]
        if exclude_booking_id:
            conditions.append(Booking.id != exclude_booking_id)

        query = select(func.coalesce(func.sum(Booking.number_of_rooms), 0)).where(and_(*conditions))
        return int(self.db.execute(query).scalar_one())

    # ==================== Listings ====================

    def search(
        self,
        params: PaginationParams,
        user_id: Optional[str] = None,
        hostel_ids: Optional[List[str]] = None,
        status: Optional[BookingStatus] = None,
    ) -> PaginatedResult[Booking]:
        query = select(Booking)
        if user_id:
            query = query.where(Booking.user_id == user_id)
        if hostel_ids is not None:
            query = query.where(Booking.hostel_id.in_(hostel_ids))
        if status:
            query = query.where(Booking.status == status)
        query = query.order_by(Booking.created_at.desc())
        return self.paginate(query, params)

    def list_for_export(
        self,
        user_id: Optional[str] = None,
        hostel_ids: Optional[List[str]] = None,
    ) -> List[Booking]:
        query = select(Booking)
        if user_id:
            query = query.where(Booking.user_id == user_id)
        if hostel_ids is not None:
            query = query.where(Booking.hostel_id.in_(hostel_ids))
        return list(self.db.execute(query.order_by(Booking.check_in_date)).scalars().all())

    def list_arrivals_between(self, start: datetime, end: datetime) -> List[Booking]:
        query = select(Booking).where(
            and_(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.check_in_date >= start,
                Booking.check_in_date < end,
            )
        )
        return list(self.db.execute(query).scalars().all())

    def list_departures_between(self, start: datetime, end: datetime) -> List[Booking]:
        query = select(Booking).where(
            and_(
                Booking.status == BookingStatus.CHECKED_IN,
                Booking.check_out_date >= start,
                Booking.check_out_date < end,
            )
        )
        return list(self.db.execute(query).scalars().all())

    # ==================== Statistics ====================

    def _window(self, query, hostel_ids, start, end):
        if hostel_ids is not None:
            query = query.where(Booking.hostel_id.in_(hostel_ids))
        if start:
            query = query.where(Booking.created_at >= start)
        if end:
            query = query.where(Booking.created_at < end)
        return query

    def count_by_status(
        self,
        hostel_ids: Optional[List[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, int]:
        query = select(Booking.status, func.count(Booking.id)).group_by(Booking.status)
        query = self._window(query, hostel_ids, start, end)
        counts = {status.value: 0 for status in BookingStatus}
        for status, count in self.db.execute(query).all():
            counts[status.value] = count
        return counts

    def count_by_hostel_and_status(self, hostel_ids: List[str]) -> Dict[str, Dict[str, int]]:
        query = (
            select(Booking.hostel_id, Booking.status, func.count(Booking.id))
            .where(Booking.hostel_id.in_(hostel_ids))
            .group_by(Booking.hostel_id, Booking.status)
        )
        result: Dict[str, Dict[str, int]] = {}
        for hostel_id, status, count in self.db.execute(query).all():
            result.setdefault(hostel_id, {})[status.value] = count
        return result

    def paid_revenue_by_hostel(self, hostel_ids: List[str]) -> Dict[str, Decimal]:
        query = (
            select(Booking.hostel_id, func.coalesce(func.sum(Booking.total_price), 0))
            .where(
                and_(
                    Booking.hostel_id.in_(hostel_ids),
                    Booking.payment_status == BookingPaymentStatus.COMPLETED,
                )
            )
            .group_by(Booking.hostel_id)
        )
        return {hostel_id: Decimal(str(total)) for hostel_id, total in self.db.execute(query).all()}

    def occupied_units_by_hostel(self, hostel_ids: List[str]) -> Dict[str, int]:
        query = (
            select(Booking.hostel_id, func.coalesce(func.sum(Booking.number_of_rooms), 0))
            .where(
                and_(
                    Booking.hostel_id.in_(hostel_ids),
                    Booking.status == BookingStatus.CHECKED_IN,
                )
            )
            .group_by(Booking.hostel_id)
        )
        return {hostel_id: int(units) for hostel_id, units in self.db.execute(query).all()}

    def monthly_trend(
        self,
        hostel_ids: Optional[List[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, object]]:
        """Bookings created and their value per calendar month."""
        year = extract("year", Booking.created_at).label("year")
        month = extract("month", Booking.created_at).label("month")
        query = (
            select(year, month, func.count(Booking.id), func.coalesce(func.sum(Booking.total_price), 0))
            .where(Booking.status != BookingStatus.CANCELLED)
            .group_by(year, month)
            .order_by(year, month)
        )
        query = self._window(query, hostel_ids, start, end)
        return [
            {
                "month": month_key(y, m),
                "bookings": count,
                "booking_value": Decimal(str(total)).quantize(Decimal("0.01")),
            }
            for y, m, count, total in self.db.execute(query).all()
        ]
