"""
SMS notifications.

Best effort: a failed SMS is logged and never affects the order it is about.
Outside production (or with SMS_ENABLED=false) messages are only logged.
"""

import re
from dataclasses import dataclass

import httpx

from shared.config.logging import get_logger, mask_phone
from shared.config.settings import settings
from shop_api.services.payments.circuit_breaker import CircuitBreakerError, sms_breaker

logger = get_logger(__name__)

BRAND = "CrumbledCookies"


def format_egyptian_phone(phone: str) -> str:
    """
    Normalize to the local 11-digit form (01XXXXXXXXX).

    +201001234567 / 201001234567 / 1001234567 → 01001234567.
    Numbers that do not fit are returned cleaned but otherwise unchanged.
    """
    cleaned = re.sub(r"[^\d+]", "", phone)
    if cleaned.startswith("+20"):
        cleaned = cleaned[3:]
    elif cleaned.startswith("20"):
        cleaned = cleaned[2:]
    if not cleaned.startswith("0"):
        cleaned = "0" + cleaned
    return cleaned


def order_placed_message(tracking_code: str) -> str:
    return (
        f"Your order #{tracking_code} has been received. "
        f"Thank you for choosing {BRAND}!"
    )


def order_status_message(tracking_code: str, status: str) -> str:
    return (
        f"Your order #{tracking_code} status has been updated to: {status}. "
        f"Thank you for choosing {BRAND}!"
    )


@dataclass(frozen=True)
class SmsResult:
    sent: bool
    detail: str


class SmsClient:
    def __init__(
        self,
        base_url: str | None = None,
        sender_name: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.sms_base_url).rstrip("/")
        self.sender_name = sender_name or settings.sms_sender_name
        self.timeout = timeout or settings.sms_timeout_seconds
        self._transport = transport

    @property
    def live(self) -> bool:
        return settings.sms_enabled and settings.environment == "production"

    async def send(self, phone: str, message: str) -> SmsResult:
        """
        Raises:
            CircuitBreakerError: SMS gateway failing repeatedly
            httpx.HTTPError: network failure or error status
        """
        recipient = format_egyptian_phone(phone)

        if not self.live:
            logger.info("SMS not sent (disabled)", phone=mask_phone(recipient), text=message)
            return SmsResult(sent=False, detail="logged")

        payload = {
            "senderName": self.sender_name,
            "messageType": "text",
            "shortURL": False,
            "recipients": recipient,
            "messageText": message,
        }
        async with sms_breaker.call():
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/sendSMS",
                    json=payload,
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()

        logger.info("SMS sent", phone=mask_phone(recipient))
        return SmsResult(sent=True, detail="sent")


async def send_sms_best_effort(phone: str, message: str, client: SmsClient | None = None) -> bool:
    """
    Background task body. Returns whether the gateway accepted the message;
    failures are logged, never raised.
    """
    client = client or SmsClient()
    try:
        result = await client.send(phone, message)
    except CircuitBreakerError as exc:
        logger.warning("SMS skipped, gateway circuit open", retry_after=exc.retry_after)
        return False
    except httpx.HTTPError as exc:
        logger.error("SMS failed", phone=mask_phone(phone), error=str(exc))
        return False
    return result.sent


async def send_order_placed_sms(phone: str, tracking_code: str) -> bool:
    return await send_sms_best_effort(phone, order_placed_message(tracking_code))


async def send_order_status_sms(phone: str, tracking_code: str, status: str) -> bool:
    return await send_sms_best_effort(phone, order_status_message(tracking_code, status))
