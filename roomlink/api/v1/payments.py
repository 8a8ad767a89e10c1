"""
Payment endpoints.

The M-Pesa callback and the Stripe webhook are called by the providers
themselves and therefore carry no bearer token.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Request

from roomlink.api.deps import get_current_principal, get_pagination, get_payment_service, require_permission
from roomlink.api.responses import attachment, ok, paginated
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Permission, Principal
from roomlink.models.enums import PaymentProvider, PaymentStatus
from roomlink.schemas.common import PaginatedResponse, SuccessResponse
from roomlink.schemas.payment import (
    InvoiceResponse,
    PaymentInitiateRequest,
    PaymentInitiateResponse,
    PaymentResponse,
    ReconciliationReport,
    RefundDecision,
    RefundRequest,
)
from roomlink.services.payment_service import PaymentService
from roomlink.utils.datetime_utils import to_naive_utc

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/initiate", response_model=SuccessResponse[PaymentInitiateResponse])
def initiate_payment(
    payload: PaymentInitiateRequest,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    payment, initiation = service.initiate_payment(principal, payload)
    data = PaymentInitiateResponse(
        payment=PaymentResponse.model_validate(payment),
        client_secret=initiation.client_secret,
        customer_message=initiation.customer_message,
    )
    return ok(data, "Payment initiated")


@router.get("/status/{payment_id}", response_model=SuccessResponse[PaymentResponse])
def payment_status(
    payment_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(PaymentResponse.model_validate(service.get_payment_status(principal, payment_id)))


@router.get("/history", response_model=PaginatedResponse[PaymentResponse])
def payment_history(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    params: PaginationParams = Depends(get_pagination),
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    return paginated(service.payment_history(principal, params, status_filter), PaymentResponse)


@router.get("/reconciliation", response_model=SuccessResponse[ReconciliationReport])
def reconciliation(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    principal: Principal = Depends(require_permission(Permission.PAYMENT_RECONCILE)),
    service: PaymentService = Depends(get_payment_service),
):
    report = service.reconciliation_report(
        principal,
        start=to_naive_utc(start) if start else None,
        end=to_naive_utc(end) if end else None,
    )
    return ok(ReconciliationReport.model_validate(report))


@router.get("/export")
def export_payments(
    fmt: str = Query("csv", alias="format"),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    provider: Optional[PaymentProvider] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    principal: Principal = Depends(require_permission(Permission.PAYMENT_RECONCILE)),
    service: PaymentService = Depends(get_payment_service),
):
    return attachment(*service.export_payments(
        principal,
        fmt,
        status=status_filter,
        provider=provider,
        start=to_naive_utc(start) if start else None,
        end=to_naive_utc(end) if end else None,
    ))


@router.post("/refund", response_model=SuccessResponse[PaymentResponse])
def request_refund(
    payload: RefundRequest,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    payment = service.request_refund(principal, payload.payment_id, payload.reason)
    return ok(PaymentResponse.model_validate(payment), "Refund requested")


@router.post("/{payment_id}/refund/process", response_model=SuccessResponse[PaymentResponse])
def process_refund(
    payment_id: str,
    payload: RefundDecision,
    principal: Principal = Depends(require_permission(Permission.PAYMENT_REFUND_PROCESS)),
    service: PaymentService = Depends(get_payment_service),
):
    payment = service.process_refund(principal, payment_id, payload.approve, payload.note, payload.amount)
    return ok(PaymentResponse.model_validate(payment), f"Refund {payment.refund_status.value}")


@router.get("/{payment_id}/invoice", response_model=SuccessResponse[InvoiceResponse])
def invoice(
    payment_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(InvoiceResponse.model_validate(service.invoice(principal, payment_id)))


# ==================== Provider callbacks ====================


@router.post("/callback/mpesa")
def mpesa_callback(
    payload: Dict[str, Any] = Body(...),
    service: PaymentService = Depends(get_payment_service),
) -> Dict[str, Any]:
    return service.handle_mpesa_callback(payload)


@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    service: PaymentService = Depends(get_payment_service),
) -> Dict[str, Any]:
    body = await request.body()
    return service.handle_stripe_webhook(body, stripe_signature)
