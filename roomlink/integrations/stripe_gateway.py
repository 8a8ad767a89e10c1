"""
Stripe card payments through PaymentIntents.
"""

import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional

import stripe

from roomlink.config.settings import Settings
from roomlink.core.exceptions import PaymentGatewayError, ValidationError
from roomlink.integrations.base import GatewayInitiation, GatewayRefund, GatewayState, GatewayStatus
from roomlink.models.payment import Payment

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: Optional[int]) -> Optional[Decimal]:
    if amount is None:
        return None
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def intent_status(intent: Mapping[str, Any]) -> GatewayStatus:
    """Map a PaymentIntent (API object or webhook dict) to a gateway status."""
    status = intent.get("status")
    if status == "succeeded":
        return GatewayStatus(
            GatewayState.SUCCEEDED,
            receipt=intent.get("latest_charge"),
            amount=from_minor_units(intent.get("amount_received")),
        )
    error = intent.get("last_payment_error") or {}
    if status == "canceled" or (status == "requires_payment_method" and error):
        return GatewayStatus(GatewayState.FAILED, reason=error.get("message") or f"Payment {status}")
    return GatewayStatus(GatewayState.PENDING)


class StripeGateway:
    name = "card"

    def __init__(self, settings: Settings):
        self.settings = settings
        if settings.STRIPE_SECRET_KEY:
            stripe.api_key = settings.STRIPE_SECRET_KEY

    def _ensure_configured(self) -> None:
        if not self.settings.STRIPE_SECRET_KEY:
            raise PaymentGatewayError(self.name, "Stripe is not configured")

    def initiate(self, payment: Payment) -> GatewayInitiation:
        self._ensure_configured()
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(payment.amount),
                currency=payment.currency.lower(),
                description=payment.description,
                metadata={
                    "payment_id": payment.id,
                    "user_id": payment.user_id,
                    "booking_id": payment.booking_id or "",
                },
            )
        except stripe.StripeError as exc:
            logger.error(f"Stripe PaymentIntent creation failed: {exc}", extra={"payment_id": payment.id})
            raise PaymentGatewayError(self.name, "Card payment could not be started") from exc
        return GatewayInitiation(transaction_id=intent.id, client_secret=intent.client_secret)

    def query(self, transaction_id: str) -> GatewayStatus:
        self._ensure_configured()
        try:
            intent = stripe.PaymentIntent.retrieve(transaction_id)
        except stripe.StripeError as exc:
            raise PaymentGatewayError(self.name, "Could not retrieve card payment") from exc
        return intent_status(intent)

    def refund(self, payment: Payment, amount: Decimal) -> GatewayRefund:
        self._ensure_configured()
        try:
            refund = stripe.Refund.create(
                payment_intent=payment.transaction_id,
                amount=to_minor_units(amount),
            )
        except stripe.StripeError as exc:
            logger.error(f"Stripe refund failed: {exc}", extra={"payment_id": payment.id})
            raise PaymentGatewayError(self.name, "Refund could not be processed") from exc
        return GatewayRefund(reference=refund.id, completed=refund.status == "succeeded")

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Decode a webhook body into a plain dict.

        The signature is verified whenever ``STRIPE_WEBHOOK_SECRET`` is set.
        Without it unsigned bodies are accepted outside production only.
        """
        secret = self.settings.STRIPE_WEBHOOK_SECRET
        if not secret and self.settings.is_production():
            logger.error("Stripe webhook rejected: STRIPE_WEBHOOK_SECRET is not configured")
            raise PaymentGatewayError(self.name, "Stripe webhooks are not configured")
        if secret:
            try:
                stripe.Webhook.construct_event(payload, signature or "", secret)
            except stripe.SignatureVerificationError as exc:
                raise ValidationError("Invalid Stripe signature") from exc
            except ValueError as exc:
                raise ValidationError("Invalid webhook payload") from exc
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise ValidationError("Invalid webhook payload") from exc
