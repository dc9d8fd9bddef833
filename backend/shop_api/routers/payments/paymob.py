"""
Paymob router.
Transaction callbacks (server-to-server). Authenticated by the HMAC Paymob
sends in the query string, never by cookie or admin key.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import PaymobWebhookPayload, WebhookAck
from shop_api.services.payments import PaymentService, get_payment_gateway
from shop_api.services.payments.paymob import PaymentGateway


router = APIRouter(prefix="/api/payments/paymob", tags=["payments"])


@router.post("/webhook", response_model=WebhookAck)
def paymob_webhook(
    payload: PaymobWebhookPayload,
    hmac: str | None = Query(default=None),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> WebhookAck:
    """
    Apply a transaction callback. Repeated deliveries are acknowledged
    without changing the order again; unknown orders are acknowledged too
    so Paymob stops retrying.
    """
    order = PaymentService(db, gateway).process_webhook(payload.type, payload.obj, hmac)
    if order is None:
        return WebhookAck()
    return WebhookAck(order_id=order.id, payment_status=order.payment_status)
