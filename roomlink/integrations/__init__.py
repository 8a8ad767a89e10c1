"""Payment provider integrations."""

from roomlink.integrations.base import (
    GatewayInitiation,
    GatewayRefund,
    GatewayState,
    GatewayStatus,
    PaymentGateway,
)
from roomlink.integrations.mpesa import MpesaGateway, normalize_phone
from roomlink.integrations.stripe_gateway import StripeGateway

__all__ = [
    "GatewayInitiation",
    "GatewayRefund",
    "GatewayState",
    "GatewayStatus",
    "PaymentGateway",
    "MpesaGateway",
    "StripeGateway",
    "normalize_phone",
]
