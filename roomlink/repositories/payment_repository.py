"""Payment repository."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import extract, func, select
from sqlalchemy.orm import Session

from roomlink.core.pagination import PaginationParams
from roomlink.models.enums import PaymentProvider, PaymentStatus
from roomlink.models.payment import Payment
from roomlink.repositories.base import BaseRepository, PaginatedResult
from roomlink.utils.datetime_utils import month_key


class PaymentRepository(BaseRepository[Payment]):

    def __init__(self, db: Session):
        super().__init__(Payment, db)

    def get_by_transaction_id(self, transaction_id: str, for_update: bool = False) -> Optional[Payment]:
        query = select(Payment).where(Payment.transaction_id == transaction_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(query).scalar_one_or_none()

    def history(
        self,
        user_id: str,
        params: PaginationParams,
        status: Optional[PaymentStatus] = None,
    ) -> PaginatedResult[Payment]:
        query = select(Payment).where(Payment.user_id == user_id)
        if status:
            query = query.where(Payment.status == status)
        return self.paginate(query.order_by(Payment.created_at.desc()), params)

    def list_for_export(
        self,
        status: Optional[PaymentStatus] = None,
        provider: Optional[PaymentProvider] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Payment]:
        query = select(Payment)
        if status:
            query = query.where(Payment.status == status)
        if provider:
            query = query.where(Payment.provider == provider)
        query = self._window(query, start, end)
        return list(self.db.execute(query.order_by(Payment.created_at)).scalars().all())

    def _window(self, query, start: Optional[datetime], end: Optional[datetime]):
        if start:
            query = query.where(Payment.created_at >= start)
        if end:
            query = query.where(Payment.created_at < end)
        return query

    def summarize_by(
        self,
        column,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        status: Optional[PaymentStatus] = None,
    ) -> Dict[str, Dict[str, object]]:
        """Count and amount grouped by ``column`` (status or provider)."""
        query = select(column, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0)).group_by(column)
        if status:
            query = query.where(Payment.status == status)
        query = self._window(query, start, end)
        return {
            key.value: {"count": count, "amount": Decimal(str(total)).quantize(Decimal("0.01"))}
            for key, count, total in self.db.execute(query).all()
        }

    def completed_revenue(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Decimal:
        query = select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.status == PaymentStatus.COMPLETED
        )
        query = self._window(query, start, end)
        return Decimal(str(self.db.execute(query).scalar_one())).quantize(Decimal("0.01"))


    def monthly_revenue(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Decimal]:
        """Completed payment amounts per calendar month."""
        year = extract("year", Payment.created_at).label("year")
        month = extract("month", Payment.created_at).label("month")
        query = (
            select(year, month, func.coalesce(func.sum(Payment.amount), 0))
            .where(Payment.status == PaymentStatus.COMPLETED)
            .group_by(year, month)
        )
        query = self._window(query, start, end)
        return {
            month_key(y, m): Decimal(str(total)).quantize(Decimal("0.01"))
            for y, m, total in self.db.execute(query).all()
        }

    def daily_revenue(self, since: datetime) -> List[Dict[str, object]]:
        """Completed payment totals and counts per day since ``since``."""
        day = func.date(Payment.created_at).label("day")
        query = (
            select(day, func.coalesce(func.sum(Payment.amount), 0), func.count(Payment.id))
            .where(Payment.status == PaymentStatus.COMPLETED, Payment.created_at >= since)
            .group_by(day)
            .order_by(day)
        )
        return [
            {
                "date": str(value),
                "revenue": Decimal(str(total)).quantize(Decimal("0.01")),
                "transactions": count,
            }
            for value, total, count in self.db.execute(query).all()
        ]
