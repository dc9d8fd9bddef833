"""
Order Tracking Router.
Guest access to an order by tracking code plus the checkout email.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import EmailStr
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.utils.schemas import OrderEmailRequest, OrderOutput, PaymentLinkResponse
from shop_api.services.domain import OrderService
from shop_api.services.notifications import send_order_status_sms
from shop_api.services.payments import PaymentGateway, PaymentService, get_payment_gateway


router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("/track", response_model=OrderOutput)
@limiter.limit("30/minute")
def track_order(
    request: Request,
    code: str = Query(min_length=1, max_length=32),
    email: EmailStr = Query(),
    db: Session = Depends(get_db),
) -> OrderOutput:
    order = OrderService(db).get_by_tracking_code(code, str(email))
    return OrderOutput.model_validate(order)


@router.post("/{code}/cancel", response_model=OrderOutput)
@limiter.limit("10/minute")
def cancel_order(
    request: Request,
    code: str,
    body: OrderEmailRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> OrderOutput:
    """
    Customer cancellation, allowed while the policy is enabled, the order has
    not been dispatched and the time window is still open. Reserved stock
    goes back to the counters.
    """
    order = OrderService(db).cancel_by_customer(code, str(body.email))
    background_tasks.add_task(
        send_order_status_sms, order.customer_phone, order.tracking_code, order.status
    )
    return OrderOutput.model_validate(order)


@router.post("/{code}/payment", response_model=PaymentLinkResponse)
@limiter.limit("10/minute")
async def retry_payment(
    request: Request,
    code: str,
    body: OrderEmailRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentLinkResponse:
    order, url = await PaymentService(db, gateway).retry_payment(code, str(body.email))
    return PaymentLinkResponse(tracking_code=order.tracking_code, payment_url=url)
