"""
M-Pesa (Safaricom Daraja) STK push gateway.
"""

import base64
import logging
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import httpx

from roomlink.config.settings import Settings
from roomlink.core.exceptions import InvalidPhoneNumberError, PaymentGatewayError
from roomlink.integrations.base import GatewayInitiation, GatewayRefund, GatewayState, GatewayStatus
from roomlink.models.payment import Payment

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^(254\d{9}|0[17]\d{8})$")

# STK query result codes that mean the customer is still being prompted
_STILL_PROCESSING = {"4999", "500.001.1001"}


def normalize_phone(phone_number: str) -> str:
    """Accept 2547XXXXXXXX / 07XXXXXXXX / 01XXXXXXXX and return 254XXXXXXXXX."""
    digits = re.sub(r"[\s\-+]", "", phone_number or "")
    if not PHONE_PATTERN.match(digits):
        raise InvalidPhoneNumberError(phone_number)
    if digits.startswith("0"):
        return "254" + digits[1:]
    return digits


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode()).decode()


def callback_metadata(callback: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten ``CallbackMetadata.Item`` [{Name, Value}] into a dict."""
    items = (callback.get("CallbackMetadata") or {}).get("Item") or []
    return {item.get("Name"): item.get("Value") for item in items if "Name" in item}


class MpesaGateway:
    name = "mpesa"

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None):
        self.settings = settings
        self.client = client or httpx.Client(
            base_url=settings.mpesa_base_url,
            timeout=settings.PAYMENT_TIMEOUT_SECONDS,
        )

    def close(self) -> None:
        self.client.close()

    # ------------------------------------------------------------------
    # Daraja calls
    # ------------------------------------------------------------------

    def _access_token(self) -> str:
        if not (self.settings.MPESA_CONSUMER_KEY and self.settings.MPESA_CONSUMER_SECRET):
            raise PaymentGatewayError(self.name, "M-Pesa credentials are not configured")
        try:
            response = self.client.get(
                "/oauth/v1/generate",
                params={"grant_type": "client_credentials"},
                auth=(self.settings.MPESA_CONSUMER_KEY, self.settings.MPESA_CONSUMER_SECRET),
            )
            response.raise_for_status()
            return response.json()["access_token"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error(f"M-Pesa token request failed: {exc}")
            raise PaymentGatewayError(self.name, "Could not authenticate with M-Pesa") from exc

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        token = self._access_token()
        try:
            response = self.client.post(path, json=body, headers={"Authorization": f"Bearer {token}"})
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"M-Pesa request to {path} failed: {exc}")
            raise PaymentGatewayError(self.name) from exc

    def _credentials(self) -> Dict[str, str]:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        shortcode = self.settings.MPESA_SHORTCODE
        return {
            "BusinessShortCode": shortcode,
            "Password": stk_password(shortcode, self.settings.MPESA_PASSKEY or "", timestamp),
            "Timestamp": timestamp,
        }

    # ------------------------------------------------------------------
    # PaymentGateway
    # ------------------------------------------------------------------

    def initiate(self, payment: Payment) -> GatewayInitiation:
        amount = int(Decimal(payment.amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        body = {
            **self._credentials(),
            "TransactionType": "CustomerPayBillOnline",
            "Amount": amount,
            "PartyA": payment.phone_number,
            "PartyB": self.settings.MPESA_SHORTCODE,
            "PhoneNumber": payment.phone_number,
            "CallBackURL": self.settings.MPESA_CALLBACK_URL,
            "AccountReference": payment.id[:12],
            "TransactionDesc": payment.description[:13],
        }
        data = self._post("/mpesa/stkpush/v1/processrequest", body)
        if str(data.get("ResponseCode")) != "0" or not data.get("CheckoutRequestID"):
            raise PaymentGatewayError(self.name, data.get("errorMessage") or "STK push was rejected")
        return GatewayInitiation(
            transaction_id=data["CheckoutRequestID"],
            customer_message=data.get("CustomerMessage") or "STK Push sent. Enter PIN to complete payment",
        )

    def query(self, transaction_id: str) -> GatewayStatus:
        data = self._post(
            "/mpesa/stkpushquery/v1/query",
            {**self._credentials(), "CheckoutRequestID": transaction_id},
        )
        result_code = str(data.get("ResultCode", data.get("errorCode", "")))
        if result_code == "0":
            return GatewayStatus(GatewayState.SUCCEEDED, receipt=data.get("MpesaReceiptNumber"))
        if result_code in _STILL_PROCESSING or result_code == "":
            return GatewayStatus(GatewayState.PENDING)
        return GatewayStatus(GatewayState.FAILED, reason=data.get("ResultDesc"))

    def refund(self, payment: Payment, amount: Decimal) -> GatewayRefund:
        # Daraja reversals are settled offline; the refund is recorded as processing
        logger.info(
            f"M-Pesa refund of {amount} recorded for manual reversal",
            extra={"payment_id": payment.id},
        )
        return GatewayRefund(reference=f"MPESA-REV-{payment.receipt_number or payment.id[:8]}", completed=False)
