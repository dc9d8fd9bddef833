"""
Paymob Accept client.

Three calls per payment: auth token, ecommerce order, payment key. The key
is then opened in the Paymob iframe (or the hosted pay page when no iframe
is configured).

Usage:
    client = PaymobClient()
    link = await client.create_payment(order)
    # link.url → redirect the customer
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from shared.config.logging import payments_logger as logger, mask_email
from shared.config.settings import settings
from shop_api.models import Order
from shop_api.services.payments.circuit_breaker import paymob_breaker

# Fields of the transaction callback concatenated, in this order, for the HMAC
HMAC_FIELDS = (
    "amount_cents",
    "created_at",
    "currency",
    "error_occured",
    "has_parent_transaction",
    "id",
    "integration_id",
    "is_3d_secure",
    "is_auth",
    "is_capture",
    "is_refunded",
    "is_standalone_payment",
    "is_voided",
    "order.id",
    "owner",
    "pending",
    "source_data.pan",
    "source_data.sub_type",
    "source_data.type",
    "success",
)

BILLING_PLACEHOLDER = "NA"


class PaymobError(Exception):
    """Paymob rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class PaymentLink:
    gateway_order_id: str
    token: str
    url: str


class PaymentGateway(Protocol):
    async def create_payment(self, order: Order) -> PaymentLink: ...


def billing_data(order: Order) -> dict[str, str]:
    """Billing block for the payment key. Paymob requires every field, unknowns are NA."""
    first_name, _, last_name = order.customer_name.strip().partition(" ")
    return {
        "first_name": first_name or BILLING_PLACEHOLDER,
        "last_name": last_name.strip() or BILLING_PLACEHOLDER,
        "email": order.customer_email,
        "phone_number": order.customer_phone,
        "street": order.delivery_address,
        "city": order.delivery_city or BILLING_PLACEHOLDER,
        "country": "EG",
        "apartment": BILLING_PLACEHOLDER,
        "floor": BILLING_PLACEHOLDER,
        "building": BILLING_PLACEHOLDER,
        "postal_code": BILLING_PLACEHOLDER,
        "state": BILLING_PLACEHOLDER,
        "shipping_method": BILLING_PLACEHOLDER,
    }


def _lookup(obj: dict[str, Any], dotted: str) -> Any:
    value: Any = obj
    for part in dotted.split("."):
        value = value.get(part) if isinstance(value, dict) else None
    return value


def _hmac_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def compute_hmac(obj: dict[str, Any], secret: str) -> str:
    """HMAC-SHA512 of a transaction callback object."""
    message = "".join(_hmac_value(_lookup(obj, field)) for field in HMAC_FIELDS)
    return hmac.new(secret.encode(), message.encode(), hashlib.sha512).hexdigest()


def verify_hmac(obj: dict[str, Any], received: str | None, secret: str | None = None) -> bool:
    """
    Check the `hmac` query parameter of a callback.
    Verification is skipped (with a warning) when no secret is configured.
    """
    secret = secret if secret is not None else settings.paymob_hmac_secret
    if not secret:
        logger.warning("Paymob HMAC verification skipped - no secret configured")
        return True
    if not received:
        logger.warning("Paymob callback without HMAC")
        return False
    expected = compute_hmac(obj, secret)
    if not hmac.compare_digest(expected, received.lower()):
        logger.warning("Paymob HMAC mismatch", expected=expected[:8], received=received[:8])
        return False
    return True


class PaymobClient:
    def __init__(
        self,
        api_key: str | None = None,
        integration_id: int | None = None,
        iframe_id: int | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.paymob_api_key
        self.integration_id = integration_id if integration_id is not None else settings.paymob_integration_id
        self.iframe_id = iframe_id if iframe_id is not None else settings.paymob_iframe_id
        self.base_url = (base_url or settings.paymob_base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def _post(self, client: httpx.AsyncClient, path: str, payload: dict) -> dict:
        response = await client.post(path, json=payload)
        if response.status_code not in (200, 201):
            logger.error(
                "Paymob request failed",
                path=path,
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise PaymobError(f"Paymob {path} returned {response.status_code}", response.status_code)
        return response.json()

    async def authenticate(self, client: httpx.AsyncClient) -> str:
        if not self.api_key:
            raise PaymobError("Paymob API key not configured")
        data = await self._post(client, "/auth/tokens", {"api_key": self.api_key})
        return data["token"]

    async def create_payment_order(
        self,
        client: httpx.AsyncClient,
        auth_token: str,
        amount_cents: int,
        currency: str,
        merchant_order_id: str,
        items: list[dict] | None = None,
    ) -> str:
        data = await self._post(
            client,
            "/ecommerce/orders",
            {
                "auth_token": auth_token,
                "delivery_needed": False,
                "amount_cents": amount_cents,
                "currency": currency,
                "merchant_order_id": merchant_order_id,
                "items": items or [],
            },
        )
        return str(data["id"])

    async def generate_payment_key(
        self,
        client: httpx.AsyncClient,
        auth_token: str,
        gateway_order_id: str,
        amount_cents: int,
        billing: dict[str, str],
        currency: str,
    ) -> str:
        data = await self._post(
            client,
            "/acceptance/payment_keys",
            {
                "auth_token": auth_token,
                "amount_cents": amount_cents,
                "expiration": settings.payment_key_expiration_seconds,
                "order_id": gateway_order_id,
                "billing_data": billing,
                "currency": currency,
                "integration_id": self.integration_id,
                "lock_order_when_paid": True,
                "redirect_callback": f"{settings.base_url}/payment/callback",
                "webhook_callback": f"{settings.base_url}/api/payments/paymob/webhook",
            },
        )
        return data["token"]

    def payment_url(self, token: str) -> str:
        if self.iframe_id:
            return f"{self.base_url}/acceptance/iframes/{self.iframe_id}?payment_token={token}"
        return f"{self.base_url}/acceptance/payments/pay?payment_token={token}"

    async def create_payment(self, order: Order) -> PaymentLink:
        """
        Register the order with Paymob and return the payment link.

        Raises:
            CircuitBreakerError: too many recent Paymob failures
            PaymobError, httpx.HTTPError: gateway failure
        """
        items = [
            {
                "name": item.product_name,
                "amount_cents": item.unit_price_cents,
                "description": item.product_type,
                "quantity": item.quantity,
            }
            for item in order.items
        ]

        async with paymob_breaker.call():
            async with self._client() as client:
                auth_token = await self.authenticate(client)
                gateway_order_id = await self.create_payment_order(
                    client,
                    auth_token,
                    order.total_cents,
                    settings.currency,
                    # Paymob refuses a reused merchant_order_id, so every attempt gets a suffix
                    merchant_order_id=f"{order.tracking_code}-{secrets.token_hex(3)}",
                    items=items,
                )
                token = await self.generate_payment_key(
                    client,
                    auth_token,
                    gateway_order_id,
                    order.total_cents,
                    billing_data(order),
                    settings.currency,
                )

        logger.info(
            "Paymob payment key issued",
            order_id=order.id,
            gateway_order_id=gateway_order_id,
            email=mask_email(order.customer_email),
        )
        return PaymentLink(gateway_order_id=gateway_order_id, token=token, url=self.payment_url(token))
