"""Tests for the payment provider client."""

import json

import httpx
import pytest

from roydadyar.billing.zarinpal import ZarinpalClient, payment_status_message
from roydadyar.settings_store import SettingsStore
from roydadyar.utils.constants import (
    ZARINPAL_REQUEST_URL,
    ZARINPAL_START_PAY_URL,
    ZARINPAL_VERIFY_URL,
)
from roydadyar.utils.exceptions import PaymentGatewayError

MERCHANT = "00000000-1111-2222-3333-444444444444"
CALLBACK = "https://roydadyar.ir/api/subscriptions/verify-payment?subscription=7"


@pytest.fixture
def live_settings():
    return SettingsStore({"ZARINPAL_MERCHANT_ID": MERCHANT, "ZARINPAL_SANDBOX": "false"})


def client_with(settings, handler):
    return ZarinpalClient(settings, transport=httpx.MockTransport(handler))


async def test_request_payment(live_settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"data": {"code": 100, "message": "Success", "authority": "A0000000001"}, "errors": []},
        )

    client = client_with(live_settings, handler)
    payment = await client.request_payment(49000, "Premium plan", CALLBACK, email="sara@example.com")

    assert not client.sandbox
    assert payment.authority == "A0000000001"
    assert payment.url == ZARINPAL_START_PAY_URL + "A0000000001"
    assert seen["url"] == ZARINPAL_REQUEST_URL
    assert seen["body"]["merchant_id"] == MERCHANT
    assert seen["body"]["amount"] == 49000
    assert seen["body"]["callback_url"] == CALLBACK


async def test_request_payment_refused(live_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"data": [], "errors": {"code": -9, "message": "The input params invalid"}}
        )

    with pytest.raises(PaymentGatewayError, match="-9"):
        await client_with(live_settings, handler).request_payment(49000, "Premium plan", CALLBACK)


async def test_request_payment_unreachable(live_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out")

    with pytest.raises(PaymentGatewayError):
        await client_with(live_settings, handler).request_payment(49000, "Premium plan", CALLBACK)


async def test_verify_payment(live_settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"code": 100, "ref_id": 201}, "errors": []})

    result = await client_with(live_settings, handler).verify_payment("A0000000001", 49000)

    assert result.status == 100
    assert result.ref_id == "201"
    assert seen["url"] == ZARINPAL_VERIFY_URL
    assert seen["body"] == {"merchant_id": MERCHANT, "amount": 49000, "authority": "A0000000001"}


async def test_verify_payment_rejected(live_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [], "errors": {"code": -51, "message": "failed"}})

    result = await client_with(live_settings, handler).verify_payment("A0000000001", 49000)

    assert result.status == -51
    assert result.ref_id is None


async def test_verify_payment_invalid_json(live_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="<html>Internal error</html>")

    with pytest.raises(PaymentGatewayError):
        await client_with(live_settings, handler).verify_payment("A0000000001", 49000)


async def test_sandbox_makes_no_calls():
    """Without a merchant id nothing leaves the process."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no network call expected")

    client = client_with(SettingsStore(), handler)

    payment = await client.request_payment(49000, "Premium plan", CALLBACK)
    verification = await client.verify_payment(payment.authority, 49000)

    assert client.sandbox
    assert payment.authority.startswith("A")
    assert payment.url == f"{CALLBACK}&Authority={payment.authority}&Status=OK"
    assert verification.status == 100
    assert verification.ref_id.startswith("TEST")


async def test_sandbox_flag_overrides_merchant():
    client = ZarinpalClient(SettingsStore({"ZARINPAL_MERCHANT_ID": MERCHANT, "ZARINPAL_SANDBOX": "true"}))
    assert client.sandbox


def test_payment_status_message():
    assert payment_status_message(100) == "Transaction completed successfully"
    assert payment_status_message(-33).startswith("Transaction amount")
    assert payment_status_message(-999) == "Unknown error (code: -999)"
