"""Razorpay client wrapper for the Orders API.

Opens payment orders over HTTPS with basic auth using the configured key id
and key secret. Only the key id is ever returned to browsers; the secret
stays on the server.
"""

import logging
from typing import Any

import httpx

from campus_events.registration.exceptions import PaymentGatewayError
from campus_events.registration.razorpay_utils import obfuscate_key
from campus_events.settings import get_config

logger = logging.getLogger(__name__)


class RazorpayClient:
    """Minimal Razorpay API client.

    Args:
        key_id: The public key id, also handed to the checkout widget.
        key_secret: The private key secret used for basic auth.
        base_url: The API root, normally ``https://api.razorpay.com/v1``.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests to stub the API.

    Raises:
        ValueError: If either key is missing.
    """

    def __init__(
        self,
        key_id: str | None,
        key_secret: str | None,
        *,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not key_id or not key_secret:
            msg = (
                "Razorpay keys are not configured. Set CAMPUS_EVENTS['razorpay']['key_id'] "
                "and ['key_secret'] before initiating payments."
            )
            raise ValueError(msg)
        self.key_id = key_id
        self._key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

        logger.debug("Initialized RazorpayClient with key %s", obfuscate_key(key_id))

    @classmethod
    def from_config(cls, *, transport: httpx.BaseTransport | None = None) -> "RazorpayClient":
        """Build a client from ``CAMPUS_EVENTS['razorpay']``."""
        config = get_config().razorpay
        return cls(
            config.key_id,
            config.key_secret,
            base_url=config.api_base_url,
            timeout=config.timeout,
            transport=transport,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            auth=(self.key_id, self._key_secret),
            timeout=self.timeout,
            transport=self._transport,
        )

    def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Open a Razorpay order.

        The call is not idempotent: a retry after a lost response opens a
        second order.

        Args:
            amount: The amount in the smallest currency unit.
            currency: ISO 4217 currency code.
            receipt: Merchant reference, the registration id.
            notes: Key/value pairs echoed back in webhooks.

        Returns:
            The order object returned by Razorpay; ``id`` is always present.

        Raises:
            PaymentGatewayError: On connection errors, non-2xx responses, or
                a response without an order id.
        """
        body = {
            "amount": amount,
            "currency": currency.upper(),
            "receipt": receipt,
            "notes": notes or {},
        }
        with self._client() as client:
            try:
                response = client.post("/orders", json=body)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                msg = f"Razorpay order request failed: {exc.response.status_code} for receipt {receipt}"
                raise PaymentGatewayError(msg) from exc
            except httpx.RequestError as exc:
                msg = f"Razorpay connection error for receipt {receipt}: {exc}"
                raise PaymentGatewayError(msg) from exc

        try:
            order = response.json()
        except ValueError as exc:
            msg = f"Razorpay returned a non-JSON order response for receipt {receipt}"
            raise PaymentGatewayError(msg) from exc
        if not isinstance(order, dict) or not order.get("id"):
            msg = f"Razorpay returned no order id for receipt {receipt}"
            raise PaymentGatewayError(msg)

        logger.info("Opened Razorpay order %s for receipt %s", order["id"], receipt)
        return order
