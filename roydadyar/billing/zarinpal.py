"""ZarinPal payment gateway client (REST v4)."""

import logging
import time
from dataclasses import dataclass

import httpx

from roydadyar.settings_store import SettingsStore
from roydadyar.utils.constants import (
    HTTP_TIMEOUT,
    PAYMENT_OK,
    PAYMENT_STATUS_MESSAGES,
    ZARINPAL_REQUEST_URL,
    ZARINPAL_START_PAY_URL,
    ZARINPAL_VERIFY_URL,
)
from roydadyar.utils.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)


@dataclass
class PaymentResponse:
    """Result of a payment request."""

    status: int
    authority: str
    url: str  # Where to send the payer


@dataclass
class VerifyResponse:
    """Result of a payment verification."""

    status: int
    ref_id: str | None = None


def payment_status_message(status: int) -> str:
    """Human-readable text for a provider status code."""
    return PAYMENT_STATUS_MESSAGES.get(status, f"Unknown error (code: {status})")


def _unpack(result: dict) -> tuple[dict, dict]:
    """Split a v4 response into its data and errors parts.

    The provider sends an empty list instead of an object for whichever part
    is absent.
    """
    data = result.get("data") or {}
    errors = result.get("errors") or {}
    if not isinstance(data, dict):
        data = {}
    if not isinstance(errors, dict):
        errors = {}
    return data, errors


class ZarinpalClient:
    """Talks to the payment provider. One attempt per call, no retries.

    In sandbox mode (sandbox flag set, or no merchant id configured) no
    network calls are made: requests return a URL that leads straight back to
    the callback as a successful payment, and every verification succeeds.
    """

    def __init__(self, settings: SettingsStore, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._transport = transport

    @property
    def sandbox(self) -> bool:
        return self.settings.payment_sandbox

    async def _post(self, url: str, payload: dict) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(HTTP_TIMEOUT), transport=self._transport
            ) as client:
                response = await client.post(
                    url, json=payload, headers={"Accept": "application/json"}
                )
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"ZarinPal transport error: {e}")
            raise PaymentGatewayError(f"Payment provider unreachable: {e}") from e
        except ValueError as e:
            logger.error(f"ZarinPal returned invalid JSON: {e}")
            raise PaymentGatewayError("Payment provider returned an invalid response") from e

    async def request_payment(
        self,
        amount: int,
        description: str,
        callback_url: str,
        email: str | None = None,
        mobile: str | None = None,
    ) -> PaymentResponse:
        """Ask the provider for a payment authority.

        Raises:
            PaymentGatewayError: if the provider refuses or cannot be reached
        """
        if self.sandbox:
            authority = f"A{int(time.time() * 1000)}"
            logger.info("ZarinPal sandbox mode - returning mock payment URL")
            return PaymentResponse(
                status=PAYMENT_OK,
                authority=authority,
                url=f"{callback_url}&Authority={authority}&Status=OK",
            )

        payload = {
            "merchant_id": self.settings.get("ZARINPAL_MERCHANT_ID"),
            "amount": amount,
            "callback_url": callback_url,
            "description": description,
            "metadata": {"email": email, "mobile": mobile},
        }
        result = await self._post(ZARINPAL_REQUEST_URL, payload)
        data, errors = _unpack(result)

        if data.get("code") == PAYMENT_OK and data.get("authority"):
            return PaymentResponse(
                status=PAYMENT_OK,
                authority=data["authority"],
                url=ZARINPAL_START_PAY_URL + data["authority"],
            )

        code = data.get("code") or errors.get("code") or "unknown"
        message = data.get("message") or errors.get("message") or "unknown error"
        raise PaymentGatewayError(
            f"Payment request failed with code: {code}, message: {message}"
        )

    async def verify_payment(self, authority: str, amount: int) -> VerifyResponse:
        """Confirm a payment with the provider.

        Raises:
            PaymentGatewayError: if the provider cannot be reached
        """
        if self.sandbox:
            logger.info("ZarinPal sandbox mode - returning mock verification")
            return VerifyResponse(status=PAYMENT_OK, ref_id=f"TEST{int(time.time() * 1000)}")

        payload = {
            "merchant_id": self.settings.get("ZARINPAL_MERCHANT_ID"),
            "amount": amount,
            "authority": authority,
        }
        result = await self._post(ZARINPAL_VERIFY_URL, payload)
        data, errors = _unpack(result)

        code = data.get("code", errors.get("code"))
        try:
            status = int(code)
        except (TypeError, ValueError):
            status = 0

        ref_id = data.get("ref_id")
        return VerifyResponse(status=status, ref_id=str(ref_id) if ref_id is not None else None)
