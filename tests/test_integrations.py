import json
from decimal import Decimal

import httpx
import pytest

from roomlink.config.settings import Settings
from roomlink.core.exceptions import InvalidPhoneNumberError, PaymentGatewayError, ValidationError
from roomlink.integrations.base import GatewayState
from roomlink.integrations.mpesa import MpesaGateway, callback_metadata, normalize_phone, stk_password
from roomlink.integrations.stripe_gateway import StripeGateway, from_minor_units, intent_status, to_minor_units
from roomlink.models.enums import PaymentProvider, PaymentStatus, RefundStatus
from roomlink.models.payment import Payment


class TestPhoneNumbers:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("0712345678", "254712345678"),
            ("0112345678", "254112345678"),
            ("254712345678", "254712345678"),
            ("+254 712 345 678", "254712345678"),
            ("0712-345-678", "254712345678"),
        ],
    )
    def test_normalized_to_international(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", ["", "12345", "0812345678", "25471234567"])
    def test_rejected(self, raw):
        with pytest.raises(InvalidPhoneNumberError):
            normalize_phone(raw)


class TestMpesaHelpers:

    def test_callback_metadata_flattens_items(self):
        callback = {
            "CallbackMetadata": {
                "Item": [
                    {"Name": "Amount", "Value": 1.0},
                    {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
                    {"Name": "Balance"},
                ]
            }
        }
        assert callback_metadata(callback) == {
            "Amount": 1.0,
            "MpesaReceiptNumber": "NLJ7RT61SV",
            "Balance": None,
        }

    def test_missing_metadata(self):
        assert callback_metadata({"ResultCode": 1032}) == {}

    def test_stk_password_is_base64_of_parts(self):
        assert stk_password("174379", "key", "20250301120000") == "MTc0Mzc5a2V5MjAyNTAzMDExMjAwMDA="


def _payment(**extra):
    values = dict(
        id="8f14e45f-ceea-467a-9d3b-2b8c1c7e0f11",
        user_id="user-1",
        provider=PaymentProvider.MPESA,
        amount=Decimal("340.20"),
        currency="KES",
        phone_number="254712345678",
        description="Hostel booking",
        status=PaymentStatus.PENDING,
        refund_status=RefundStatus.NONE,
    )
    values.update(extra)
    return Payment(**values)


class DarajaStub:
    """Answers the Daraja endpoints the gateway calls."""

    def __init__(self, stk_response=None, query_response=None):
        self.requests = []
        self.stk_response = stk_response or {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": "ws_CO_191220191020363925",
            "ResponseCode": "0",
            "CustomerMessage": "Success. Request accepted for processing",
        }
        self.query_response = query_response or {"ResultCode": "0", "ResultDesc": "Processed"}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/v1/generate":
            return httpx.Response(200, json={"access_token": "token-123", "expires_in": "3599"})
        if request.url.path == "/mpesa/stkpush/v1/processrequest":
            return httpx.Response(200, json=self.stk_response)
        if request.url.path == "/mpesa/stkpushquery/v1/query":
            return httpx.Response(200, json=self.query_response)
        return httpx.Response(404)


@pytest.fixture
def mpesa_settings(tmp_path):
    return Settings(
        ENVIRONMENT="test",
        JWT_SECRET_KEY="test-secret",
        LOG_DIR=str(tmp_path),
        MPESA_CONSUMER_KEY="key",
        MPESA_CONSUMER_SECRET="secret",
        MPESA_PASSKEY="passkey",
        MPESA_CALLBACK_URL="https://roomlink.test/api/v1/payments/callback/mpesa",
    )


def gateway_for(settings, stub):
    client = httpx.Client(transport=httpx.MockTransport(stub), base_url="https://sandbox.safaricom.co.ke")
    return MpesaGateway(settings, client=client)


class TestMpesaGateway:

    def test_stk_push(self, mpesa_settings):
        stub = DarajaStub()

        initiation = gateway_for(mpesa_settings, stub).initiate(_payment())

        assert initiation.transaction_id == "ws_CO_191220191020363925"
        assert initiation.customer_message == "Success. Request accepted for processing"
        push = stub.requests[-1]
        assert push.headers["Authorization"] == "Bearer token-123"
        body = json.loads(push.content)
        assert body["Amount"] == 340
        assert body["PhoneNumber"] == "254712345678"
        assert body["BusinessShortCode"] == "174379"
        assert body["CallBackURL"].endswith("/callback/mpesa")

    def test_rejected_push(self, mpesa_settings):
        stub = DarajaStub(stk_response={"ResponseCode": "1", "errorMessage": "Invalid Access Token"})
        with pytest.raises(PaymentGatewayError) as exc:
            gateway_for(mpesa_settings, stub).initiate(_payment())
        assert exc.value.message == "Invalid Access Token"

    def test_http_error_becomes_gateway_error(self, mpesa_settings):
        def broken(request):
            return httpx.Response(500)

        with pytest.raises(PaymentGatewayError):
            gateway_for(mpesa_settings, broken).initiate(_payment())

    def test_missing_credentials(self, tmp_path):
        settings = Settings(ENVIRONMENT="test", JWT_SECRET_KEY="x", LOG_DIR=str(tmp_path))
        with pytest.raises(PaymentGatewayError):
            gateway_for(settings, DarajaStub()).initiate(_payment())

    @pytest.mark.parametrize(
        "response, state",
        [
            ({"ResultCode": "0", "ResultDesc": "Processed"}, GatewayState.SUCCEEDED),
            ({"ResultCode": "4999", "ResultDesc": "Still processing"}, GatewayState.PENDING),
            ({"errorCode": "500.001.1001", "errorMessage": "In progress"}, GatewayState.PENDING),
            ({"ResultCode": "1032", "ResultDesc": "Request cancelled by user"}, GatewayState.FAILED),
        ],
    )
    def test_status_query(self, mpesa_settings, response, state):
        status = gateway_for(mpesa_settings, DarajaStub(query_response=response)).query("ws_CO_1")
        assert status.state == state

    def test_refund_is_recorded_for_reversal(self, mpesa_settings):
        refund = gateway_for(mpesa_settings, DarajaStub()).refund(
            _payment(receipt_number="NLJ7RT61SV"), Decimal("340.20")
        )
        assert refund.reference == "MPESA-REV-NLJ7RT61SV"
        assert not refund.completed

    def test_close_releases_http_client(self, mpesa_settings):
        gateway = gateway_for(mpesa_settings, DarajaStub())

        gateway.close()

        assert gateway.client.is_closed


class TestStripeHelpers:

    def test_minor_units(self):
        assert to_minor_units(Decimal("340.20")) == 34020
        assert to_minor_units(Decimal("0.005")) == 1
        assert from_minor_units(34020) == Decimal("340.20")
        assert from_minor_units(None) is None

    def test_succeeded_intent(self):
        status = intent_status({"status": "succeeded", "amount_received": 1050, "latest_charge": "ch_1"})
        assert status.state == GatewayState.SUCCEEDED
        assert status.receipt == "ch_1"
        assert status.amount == Decimal("10.50")

    @pytest.mark.parametrize(
        "intent",
        [
            {"status": "canceled"},
            {"status": "requires_payment_method", "last_payment_error": {"message": "Card declined"}},
        ],
    )
    def test_failed_intent(self, intent):
        assert intent_status(intent).state == GatewayState.FAILED

    @pytest.mark.parametrize("status", ["processing", "requires_action", "requires_payment_method"])
    def test_pending_intent(self, status):
        assert intent_status({"status": status}).state == GatewayState.PENDING


class TestStripeGateway:

    def test_unconfigured_gateway_refuses(self, settings):
        with pytest.raises(PaymentGatewayError):
            StripeGateway(settings).initiate(_payment(provider=PaymentProvider.CARD, currency="USD"))

    def test_webhook_without_secret_parses_body(self, settings):
        event = StripeGateway(settings).parse_webhook(b'{"type": "payment_intent.succeeded"}', None)
        assert event["type"] == "payment_intent.succeeded"

    def test_webhook_signature_checked_when_secret_set(self, tmp_path):
        settings = Settings(
            ENVIRONMENT="test", JWT_SECRET_KEY="x", LOG_DIR=str(tmp_path), STRIPE_WEBHOOK_SECRET="whsec_test"
        )
        with pytest.raises(ValidationError):
            StripeGateway(settings).parse_webhook(b'{"type": "x"}', "t=1,v1=bad")

    def test_production_refuses_unsigned_webhooks(self, tmp_path):
        settings = Settings(ENVIRONMENT="production", JWT_SECRET_KEY="x", LOG_DIR=str(tmp_path))
        with pytest.raises(PaymentGatewayError):
            StripeGateway(settings).parse_webhook(b'{"type": "payment_intent.succeeded"}', None)

    def test_malformed_webhook_body(self, settings):
        with pytest.raises(ValidationError):
            StripeGateway(settings).parse_webhook(b"not json", None)
