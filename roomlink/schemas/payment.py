"""Payment schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from roomlink.models.enums import PaymentProvider, PaymentStatus, RefundStatus
from roomlink.schemas.common import BaseCreateSchema, BaseResponseSchema, BaseSchema, Money


class PaymentInitiateRequest(BaseCreateSchema):
    provider: PaymentProvider = PaymentProvider.MPESA
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=20)
    booking_id: Optional[str] = None

    @model_validator(mode="after")
    def phone_for_mpesa(self) -> "PaymentInitiateRequest":
        if self.provider == PaymentProvider.MPESA and not self.phone_number:
            raise ValueError("phone_number is required for M-Pesa payments")
        return self


class RefundRequest(BaseSchema):
    payment_id: str
    reason: str = Field(..., min_length=3, max_length=1000)


class RefundDecision(BaseSchema):
    approve: bool = True
    note: Optional[str] = Field(None, max_length=1000)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)


class PaymentResponse(BaseResponseSchema):
    user_id: str
    booking_id: Optional[str] = None
    provider: PaymentProvider
    amount: Money
    currency: str
    phone_number: Optional[str] = None
    description: str
    status: PaymentStatus
    transaction_id: Optional[str] = None
    receipt_number: Optional[str] = None
    amount_received: Optional[Money] = None
    failure_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    refund_status: RefundStatus
    refund_reason: Optional[str] = None
    refund_requested_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[Money] = None


class PaymentInitiateResponse(BaseSchema):
    payment: PaymentResponse
    client_secret: Optional[str] = None
    customer_message: Optional[str] = None


class InvoiceLine(BaseSchema):
    description: str
    amount: Money


class InvoiceResponse(BaseSchema):
    invoice_number: str
    issued_at: datetime
    payment_id: str
    booking_id: Optional[str] = None
    customer_name: str
    customer_email: str
    provider: PaymentProvider
    receipt_number: Optional[str] = None
    currency: str
    lines: List[InvoiceLine]
    total: Money


class ReconciliationReport(BaseSchema):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    total_count: int
    total_amount: Money
    completed_amount: Money
    by_status: Dict[str, Dict[str, Any]]
    by_provider: Dict[str, Dict[str, Any]]
