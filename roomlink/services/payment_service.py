"""
Payment processing.

Payments are created pending, handed to a provider gateway, and settled by
whichever result arrives first: an M-Pesa callback, a Stripe webhook or a
status poll. All three funnel into ``_apply_success`` / ``_apply_failure``,
which ignore results for payments that already reached a terminal state.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from roomlink.config.settings import Settings
from roomlink.core.events import ADMIN_CHANNEL, STAFF_CHANNEL, EventPublisher, user_channel
from roomlink.core.exceptions import (
    AuthorizationError,
    BookingConflictError,
    BookingNotFoundError,
    ErrorCode,
    InvalidStateError,
    PaymentGatewayError,
    PaymentNotFoundError,
    ValidationError,
)
from roomlink.core.notifications import Notifier, send_safely
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Permission, Principal, ensure_permission, has_permission
from roomlink.integrations.base import GatewayInitiation, GatewayState, GatewayStatus, PaymentGateway, WebhookGateway
from roomlink.integrations.mpesa import callback_metadata, normalize_phone
from roomlink.integrations.stripe_gateway import from_minor_units, intent_status
from roomlink.models.booking import Booking
from roomlink.models.enums import (
    BookingPaymentStatus,
    BookingStatus,
    PaymentProvider,
    PaymentStatus,
    RefundStatus,
)
from roomlink.models.payment import Payment
from roomlink.repositories.base import PaginatedResult
from roomlink.repositories.booking_repository import BookingRepository
from roomlink.repositories.payment_repository import PaymentRepository
from roomlink.repositories.user_repository import UserRepository
from roomlink.schemas.payment import PaymentInitiateRequest
from roomlink.services.base import BaseService
from roomlink.services.booking_service import BookingService
from roomlink.services.export import ensure_export_format, export_filename, render_payments
from roomlink.utils.datetime_utils import Clock, utcnow

MPESA_CURRENCY = "KES"

_ACTIVE_REFUND_STATES = (RefundStatus.REQUESTED, RefundStatus.PROCESSING, RefundStatus.COMPLETED)
LATE_PAYMENT_REFUND_REASON = "Payment received after the booking was cancelled"


class PaymentService(BaseService):

    def __init__(
        self,
        db: Session,
        settings: Settings,
        gateways: Mapping[PaymentProvider, PaymentGateway],
        publisher: Optional[EventPublisher] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(db, publisher, clock)
        self.settings = settings
        self.gateways = dict(gateways)
        self.notifier = notifier
        self.payments = PaymentRepository(db)
        self.bookings = BookingRepository(db)
        self.users = UserRepository(db)
        self.booking_service = BookingService(db, settings, publisher, notifier, clock)

    # ------------------------------------------------------------------
    # Initiation
    # ------------------------------------------------------------------

    def initiate_payment(self, principal: Principal, data: PaymentInitiateRequest) -> Tuple[Payment, GatewayInitiation]:
        ensure_permission(principal, Permission.PAYMENT_CREATE)
        if data.amount < Decimal(str(self.settings.MIN_PAYMENT_AMOUNT)):
            raise ValidationError(
                f"Minimum payment amount is {self.settings.MIN_PAYMENT_AMOUNT:g}",
                details={"amount": float(data.amount)},
            )

        phone = normalize_phone(data.phone_number) if data.provider == PaymentProvider.MPESA else None
        if data.booking_id:
            booking = self.bookings.get_by_id(data.booking_id)
            if booking is None:
                raise BookingNotFoundError(data.booking_id)
            if booking.user_id != principal.user_id:
                raise AuthorizationError("You can only pay for your own bookings")
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidStateError("Cannot pay for a cancelled booking", booking.status.value)

        gateway = self._gateway(data.provider)
        payment = Payment(
            user_id=principal.user_id,
            booking_id=data.booking_id,
            provider=data.provider,
            amount=data.amount,
            currency=self._currency(data.provider),
            phone_number=phone,
            description=data.description,
            status=PaymentStatus.PENDING,
            refund_status=RefundStatus.NONE,
            provider_metadata={},
        )
        with self.transaction():
            self.payments.add(payment)

        try:
            initiation = gateway.initiate(payment)
        except PaymentGatewayError as exc:
            with self.transaction():
                payment.status = PaymentStatus.FAILED
                payment.failure_reason = exc.message
            self._logger.error(
                f"Payment initiation failed: {exc.message}",
                extra={"payment_id": payment.id, "user_id": principal.user_id},
            )
            raise

        with self.transaction():
            payment.transaction_id = initiation.transaction_id
            payment.provider_metadata = {
                **(payment.provider_metadata or {}),
                "customer_message": initiation.customer_message,
            }

        self._logger.info(
            f"Payment initiated: {payment.amount} {payment.currency} via {payment.provider.value}",
            extra={"payment_id": payment.id, "user_id": principal.user_id},
        )
        self._publish([ADMIN_CHANNEL, STAFF_CHANNEL], "newPayment", self._event_payload(payment))
        return payment, initiation

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def get_payment_status(self, principal: Principal, payment_id: str) -> Payment:
        """Return the payment, polling the gateway while it is still pending."""
        payment = self._get_visible(principal, payment_id)
        if payment.is_terminal or not payment.transaction_id:
            return payment

        try:
            status = self._gateway(payment.provider).query(payment.transaction_id)
        except PaymentGatewayError as exc:
            self._logger.warning(
                f"Status poll failed, returning stored state: {exc.message}",
                extra={"payment_id": payment.id},
            )
            return payment

        self._apply_status(payment, status)
        return payment

    def handle_mpesa_callback(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Process an STK push callback.

        Safaricom only needs an acknowledgement; ResultCode 1 tells it the
        request was not understood.
        """
        callback = ((payload or {}).get("Body") or {}).get("stkCallback")
        if not isinstance(callback, dict) or not callback.get("CheckoutRequestID"):
            self._logger.warning("Malformed M-Pesa callback received")
            return {"ResultCode": 1, "ResultDesc": "Invalid callback payload"}

        checkout_id = callback["CheckoutRequestID"]
        payment = self.payments.get_by_transaction_id(checkout_id, for_update=True)
        if payment is None:
            self._logger.warning(f"Callback received for unknown checkout request {checkout_id}")
            return {"ResultCode": 1, "ResultDesc": "Unknown checkout request"}

        if str(callback.get("ResultCode")) == "0":
            metadata = callback_metadata(callback)
            amount = metadata.get("Amount")
            self._apply_status(
                payment,
                GatewayStatus(
                    GatewayState.SUCCEEDED,
                    receipt=metadata.get("MpesaReceiptNumber"),
                    amount=Decimal(str(amount)) if amount is not None else None,
                ),
            )
        else:
            self._apply_status(
                payment, GatewayStatus(GatewayState.FAILED, reason=callback.get("ResultDesc"))
            )
        return {"ResultCode": 0, "ResultDesc": "Received successfully"}

    def handle_stripe_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        gateway: WebhookGateway = self._gateway(PaymentProvider.CARD)
        event = gateway.parse_webhook(payload, signature)
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type in ("payment_intent.succeeded", "payment_intent.payment_failed"):
            payment = self.payments.get_by_transaction_id(obj.get("id", ""), for_update=True)
            if payment is None:
                self._logger.warning(f"Stripe event {event_type} for unknown intent {obj.get('id')}")
            else:
                status = intent_status(obj)
                if event_type == "payment_intent.payment_failed" and status.state != GatewayState.FAILED:
                    message = (obj.get("last_payment_error") or {}).get("message") or "Card payment failed"
                    status = GatewayStatus(GatewayState.FAILED, reason=message)
                self._apply_status(payment, status)
        elif event_type == "charge.refunded":
            payment = self.payments.get_by_transaction_id(obj.get("payment_intent", ""), for_update=True)
            if payment is not None:
                self._mark_refunded(payment, from_minor_units(obj.get("amount_refunded")), obj.get("id"))
        else:
            self._logger.info(f"Unhandled Stripe event type: {event_type}")
        return {"received": True}

    def _apply_status(self, payment: Payment, status: GatewayStatus) -> bool:
        if status.state == GatewayState.SUCCEEDED:
            return self._apply_success(payment, status.receipt, status.amount)
        if status.state == GatewayState.FAILED:
            return self._apply_failure(payment, status.reason)
        return False

    def _apply_success(self, payment: Payment, receipt: Optional[str], amount: Optional[Decimal]) -> bool:
        if payment.is_terminal:
            self._logger.info(
                f"Ignoring success for payment already {payment.status.value}",
                extra={"payment_id": payment.id},
            )
            return False

        now = self.clock()
        booking: Optional[Booking] = None
        late_for: Optional[Booking] = None
        confirmed = False
        with self.transaction():
            payment.status = PaymentStatus.COMPLETED
            payment.receipt_number = receipt
            payment.amount_received = amount if amount is not None else payment.amount
            payment.completed_at = now

            if payment.booking_id:
                booking = self.bookings.get_by_id(payment.booking_id)
            if booking is not None and booking.status == BookingStatus.CANCELLED:
                late_for = booking
                booking = None
                payment.refund_status = RefundStatus.REQUESTED
                payment.refund_reason = LATE_PAYMENT_REFUND_REASON
                payment.refund_requested_at = now
                payment.provider_metadata = {**(payment.provider_metadata or {}), "paid_after_cancellation": True}
            elif booking is not None:
                booking.payment_status = BookingPaymentStatus.COMPLETED
                booking.transaction_id = payment.transaction_id
                booking.payment_method = payment.provider.value
                booking.paid_at = now
                if booking.status == BookingStatus.PENDING:
                    try:
                        self.booking_service.confirm(booking, payment.transaction_id)
                        confirmed = True
                    except BookingConflictError:
                        self._logger.warning(
                            "Paid booking could not be confirmed: room is fully booked",
                            extra={"booking_id": booking.id, "payment_id": payment.id},
                        )

        self._logger.info("Payment completed", extra={"payment_id": payment.id})
        self._publish(
            [ADMIN_CHANNEL, user_channel(payment.user_id)],
            "paymentCompleted",
            self._event_payload(payment),
        )
        if late_for is not None:
            self._logger.warning(
                "Payment arrived after its booking was cancelled, refund requested",
                extra={"booking_id": late_for.id, "payment_id": payment.id},
            )
            self._publish(
                [ADMIN_CHANNEL],
                "refundRequested",
                {**self._event_payload(payment), "reason": LATE_PAYMENT_REFUND_REASON},
            )
        if confirmed:
            self.booking_service.publish_confirmed(booking)
        self._notify_confirmed(payment, booking)
        return True

    def _apply_failure(self, payment: Payment, reason: Optional[str]) -> bool:
        if payment.is_terminal:
            self._logger.info(
                f"Ignoring failure for payment already {payment.status.value}",
                extra={"payment_id": payment.id},
            )
            return False

        with self.transaction():
            payment.status = PaymentStatus.FAILED
            payment.failure_reason = reason or "Payment failed"
            if payment.booking_id:
                booking = self.bookings.get_by_id(payment.booking_id)
                if booking is not None and booking.payment_status == BookingPaymentStatus.PENDING:
                    booking.payment_status = BookingPaymentStatus.FAILED

        self._logger.warning(f"Payment failed: {payment.failure_reason}", extra={"payment_id": payment.id})
        self._publish([user_channel(payment.user_id)], "paymentFailed", self._event_payload(payment))
        return True

    def _notify_confirmed(self, payment: Payment, booking: Optional[Booking]) -> None:
        if self.notifier is None:
            return
        user = self.users.get_by_id(payment.user_id)
        if user is None:
            return
        details = self._event_payload(payment)
        details["receipt_number"] = payment.receipt_number
        if booking is not None:
            details["booking_status"] = booking.status.value
        send_safely(
            self.notifier.payment_confirmed,
            user.email,
            details,
            context={"payment_id": payment.id},
        )

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    def request_refund(self, principal: Principal, payment_id: str, reason: str) -> Payment:
        payment = self._get(payment_id)
        if payment.user_id != principal.user_id:
            raise AuthorizationError("You can only request refunds for your own payments")
        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidStateError(
                "Only completed payments can be refunded",
                payment.status.value,
                ErrorCode.REFUND_NOT_ALLOWED,
            )
        if payment.refund_status in _ACTIVE_REFUND_STATES:
            raise InvalidStateError(
                f"A refund is already {payment.refund_status.value}",
                payment.refund_status.value,
                ErrorCode.REFUND_NOT_ALLOWED,
            )

        with self.transaction():
            payment.refund_status = RefundStatus.REQUESTED
            payment.refund_reason = reason
            payment.refund_requested_at = self.clock()

        self._logger.info("Refund requested", extra={"payment_id": payment.id, "user_id": principal.user_id})
        self._publish([ADMIN_CHANNEL], "refundRequested", {**self._event_payload(payment), "reason": reason})
        return payment

    def process_refund(
        self,
        principal: Principal,
        payment_id: str,
        approve: bool,
        note: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> Payment:
        """
        Approve or reject a requested refund.

        Payments for a cancelled booking refund the amount fixed by the
        cancellation tier. ``amount`` lets an administrator override it.
        """
        ensure_permission(principal, Permission.PAYMENT_REFUND_PROCESS)
        payment = self._get(payment_id)
        if payment.refund_status != RefundStatus.REQUESTED:
            raise InvalidStateError(
                "No pending refund request for this payment",
                payment.refund_status.value,
                ErrorCode.REFUND_NOT_ALLOWED,
            )

        if not approve:
            with self.transaction():
                payment.refund_status = RefundStatus.REJECTED
                payment.provider_metadata = {**(payment.provider_metadata or {}), "refund_note": note}
            self._logger.info("Refund rejected", extra={"payment_id": payment.id, "user_id": principal.user_id})
        else:
            amount = self._refundable_amount(payment, amount)
            result = self._gateway(payment.provider).refund(payment, amount)
            with self.transaction():
                payment.refund_reference = result.reference
                payment.refund_amount = amount
                if note:
                    payment.provider_metadata = {**(payment.provider_metadata or {}), "refund_note": note}
                if result.completed:
                    self._settle_refund(payment, amount)
                else:
                    payment.refund_status = RefundStatus.PROCESSING
            self._logger.info(
                f"Refund approved, status {payment.refund_status.value}",
                extra={"payment_id": payment.id, "user_id": principal.user_id},
            )

        self._publish(
            [user_channel(payment.user_id), ADMIN_CHANNEL],
            "refundProcessed",
            {**self._event_payload(payment), "refund_status": payment.refund_status.value},
        )
        return payment

    def _refundable_amount(self, payment: Payment, override: Optional[Decimal]) -> Decimal:
        paid = payment.amount_received or payment.amount
        if override is not None:
            if override > paid:
                raise ValidationError(
                    "Refund cannot exceed the amount paid",
                    details={"amount": str(override), "paid": str(paid)},
                )
            return override

        booking = self.bookings.get_by_id(payment.booking_id) if payment.booking_id else None
        if booking is None or booking.status != BookingStatus.CANCELLED:
            return paid
        if (payment.provider_metadata or {}).get("paid_after_cancellation"):
            return paid
        if booking.refund_amount <= 0:
            raise InvalidStateError(
                f"Booking was cancelled with a {booking.refund_percentage}% refund",
                booking.status.value,
                ErrorCode.REFUND_NOT_ALLOWED,
            )
        return min(booking.refund_amount, paid)

    def _mark_refunded(self, payment: Payment, amount: Optional[Decimal], reference: Optional[str]) -> None:
        if payment.status == PaymentStatus.REFUNDED:
            return
        with self.transaction():
            if reference and not payment.refund_reference:
                payment.refund_reference = reference
            self._settle_refund(payment, amount or payment.refund_amount or payment.amount)
        self._logger.info("Refund settled by provider", extra={"payment_id": payment.id})

    def _settle_refund(self, payment: Payment, amount: Decimal) -> None:
        now = self.clock()
        payment.status = PaymentStatus.REFUNDED
        payment.refund_status = RefundStatus.COMPLETED
        payment.refund_amount = amount
        payment.refunded_at = now
        if payment.booking_id:
            booking = self.bookings.get_by_id(payment.booking_id)
            if booking is not None:
                booking.payment_status = BookingPaymentStatus.REFUNDED
                booking.refunded_at = booking.refunded_at or now
                if booking.status != BookingStatus.CANCELLED:
                    booking.refund_amount = amount

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def payment_history(
        self,
        principal: Principal,
        params: PaginationParams,
        status: Optional[PaymentStatus] = None,
    ) -> PaginatedResult[Payment]:
        return self.payments.history(principal.user_id, params, status)

    def reconciliation_report(
        self,
        principal: Principal,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        ensure_permission(principal, Permission.PAYMENT_RECONCILE)
        if start and end and end <= start:
            raise ValidationError("Report end must be after its start")

        by_status = self.payments.summarize_by(Payment.status, start, end)
        by_provider = self.payments.summarize_by(Payment.provider, start, end)
        return {
            "start": start,
            "end": end,
            "total_count": sum(row["count"] for row in by_status.values()),
            "total_amount": sum((row["amount"] for row in by_status.values()), Decimal("0.00")),
            "completed_amount": self.payments.completed_revenue(start, end),
            "by_status": by_status,
            "by_provider": by_provider,
        }

    def export_payments(
        self,
        principal: Principal,
        fmt: str,
        status: Optional[PaymentStatus] = None,
        provider: Optional[PaymentProvider] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Tuple[bytes, str, str]:
        """Render the payment report; returns (content, media type, filename)."""
        ensure_permission(principal, Permission.PAYMENT_RECONCILE)
        fmt = ensure_export_format(fmt)
        if start and end and end <= start:
            raise ValidationError("Report end must be after its start")

        payments = self.payments.list_for_export(status, provider, start, end)
        content, media_type = render_payments(payments, fmt)
        filename = export_filename("payments", fmt, self.clock())
        self._logger.info(f"Payments report generated: {filename}", extra={"user_id": principal.user_id})
        return content, media_type, filename

    def invoice(self, principal: Principal, payment_id: str) -> Dict[str, Any]:
        payment = self._get_visible(principal, payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidStateError("Invoices are only issued for completed payments", payment.status.value)

        user = self.users.get_by_id(payment.user_id)
        booking = self.bookings.get_by_id(payment.booking_id) if payment.booking_id else None
        return {
            "invoice_number": f"INV-{payment.id[:8].upper()}",
            "issued_at": payment.completed_at or self.clock(),
            "payment_id": payment.id,
            "booking_id": payment.booking_id,
            "customer_name": user.name if user else "",
            "customer_email": user.email if user else "",
            "provider": payment.provider,
            "receipt_number": payment.receipt_number,
            "currency": payment.currency,
            "lines": self._invoice_lines(payment, booking),
            "total": payment.amount_received or payment.amount,
        }

    @staticmethod
    def _invoice_lines(payment: Payment, booking: Optional[Booking]) -> List[Dict[str, Any]]:
        if booking is None:
            return [{"description": payment.description, "amount": payment.amount}]
        lines = [
            {
                "description": (
                    f"Accommodation: {booking.nights} night(s) x {booking.price_per_night:.2f}"
                    f" x {booking.number_of_rooms} room(s)"
                ),
                "amount": booking.subtotal,
            }
        ]
        if booking.discount_amount:
            lines.append({
                "description": f"Discount ({booking.discount_percent:g}%)",
                "amount": -booking.discount_amount,
            })
        lines.append({"description": "Service fee", "amount": booking.service_fee})
        lines.append({"description": "Tax", "amount": booking.tax})
        return lines

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _gateway(self, provider: PaymentProvider) -> PaymentGateway:
        gateway = self.gateways.get(provider)
        if gateway is None:
            raise PaymentGatewayError(provider.value, f"Payment provider '{provider.value}' is not available")
        return gateway

    def _currency(self, provider: PaymentProvider) -> str:
        if provider == PaymentProvider.MPESA:
            return MPESA_CURRENCY
        return self.settings.STRIPE_CURRENCY.upper()

    def _get(self, payment_id: str) -> Payment:
        payment = self.payments.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def _get_visible(self, principal: Principal, payment_id: str) -> Payment:
        payment = self._get(payment_id)
        if payment.user_id != principal.user_id and not has_permission(principal, Permission.PAYMENT_VIEW_ANY):
            raise AuthorizationError("You are not allowed to view this payment")
        return payment

    @staticmethod
    def _event_payload(payment: Payment) -> Dict[str, Any]:
        return {
            "payment_id": payment.id,
            "user_id": payment.user_id,
            "booking_id": payment.booking_id,
            "provider": payment.provider.value,
            "amount": float(payment.amount),
            "currency": payment.currency,
            "status": payment.status.value,
            "transaction_id": payment.transaction_id,
        }
