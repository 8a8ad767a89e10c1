"""Payment attempts against an external provider."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from roomlink.models.base import BaseModel, enum_column
from roomlink.models.enums import PaymentProvider, PaymentStatus, RefundStatus

TERMINAL_PAYMENT_STATUSES = (
    PaymentStatus.COMPLETED,
    PaymentStatus.FAILED,
    PaymentStatus.REFUNDED,
)


class Payment(BaseModel):
    __tablename__ = "payments"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    booking_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("bookings.id", ondelete="SET NULL"), index=True
    )

    provider: Mapped[PaymentProvider] = mapped_column(enum_column(PaymentProvider), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20))
    description: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        enum_column(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True
    )
    # Checkout request id (M-Pesa) or PaymentIntent id (Stripe)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True, index=True)
    receipt_number: Mapped[Optional[str]] = mapped_column(String(100))
    amount_received: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    failure_reason: Mapped[Optional[str]] = mapped_column(Text)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    refund_status: Mapped[RefundStatus] = mapped_column(
        enum_column(RefundStatus), nullable=False, default=RefundStatus.NONE
    )
    refund_reason: Mapped[Optional[str]] = mapped_column(Text)
    refund_requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    refund_reference: Mapped[Optional[str]] = mapped_column(String(100))

    provider_metadata: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PAYMENT_STATUSES
