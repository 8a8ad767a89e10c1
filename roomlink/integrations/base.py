"""
Payment gateway interface.

The payment service talks to providers only through ``PaymentGateway`` so
tests and alternative providers can be swapped in.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from roomlink.models.payment import Payment


class GatewayState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class GatewayInitiation:
    transaction_id: str
    client_secret: Optional[str] = None
    customer_message: Optional[str] = None


@dataclass(frozen=True)
class GatewayStatus:
    state: GatewayState
    receipt: Optional[str] = None
    amount: Optional[Decimal] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class GatewayRefund:
    reference: str
    completed: bool = True


class PaymentGateway(Protocol):
    name: str

    def initiate(self, payment: Payment) -> GatewayInitiation: ...

    def query(self, transaction_id: str) -> GatewayStatus: ...

    def refund(self, payment: Payment, amount: Decimal) -> GatewayRefund: ...


class WebhookGateway(PaymentGateway, Protocol):
    """Gateway that also pushes signed event notifications."""

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]: ...
