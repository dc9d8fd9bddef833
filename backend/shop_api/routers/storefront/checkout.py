"""
Checkout Router.
Turns the cookie's cart into an order. Stock is validated and reserved in
the same transaction that writes the order; the Paymob link is requested
only after that commit.

With REQUIRE_PHONE_VERIFICATION on, the delivery phone must first be
confirmed through the /otp endpoints.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from sqlalchemy.orm import Session

from shared.config.constants import PaymentMethod
from shared.config.logging import checkout_logger as logger, mask_phone
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.utils.exceptions import DependencyFailureError, PhoneNotVerifiedError
from shared.utils.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    OrderOutput,
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
)
from shop_api.services.domain import CartService, CheckoutService
from shop_api.services.notifications import PhoneVerificationService, send_order_placed_sms
from shop_api.services.payments import PaymentGateway, PaymentService, get_payment_gateway
from ._session import clear_cart_cookie, get_cart_token


router = APIRouter(prefix="/api/checkout", tags=["checkout"])


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def checkout(
    request: Request,
    response: Response,
    body: CheckoutRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    token: str | None = Depends(get_cart_token),
) -> CheckoutResponse:
    """
    Place an order from the current cart.

    409 when a flavor size ran out (stock_based mode) or a concurrent
    checkout took the last units first. Nothing is written in that case.
    """
    cart = CartService(db).get_by_token(token)
    if settings.require_phone_verification:
        phone = body.delivery.customer_phone
        if not PhoneVerificationService(db).is_verified(phone):
            raise PhoneNotVerifiedError(cart_id=cart.id, phone=mask_phone(phone))

    order = CheckoutService(db).finalize_order(cart.id, body.delivery, body.payment)

    payment_url = payment_error = None
    if order.payment_method == PaymentMethod.PAYMOB:
        payment_url, payment_error = await PaymentService(db, gateway).request_payment(order)

    background_tasks.add_task(send_order_placed_sms, order.customer_phone, order.tracking_code)
    clear_cart_cookie(response)

    return CheckoutResponse(
        order=OrderOutput.model_validate(order),
        payment_url=payment_url,
        payment_error=payment_error,
    )


@router.post("/otp", response_model=OtpRequestResponse)
@limiter.limit("3/minute")
async def request_verification_code(
    request: Request,
    body: OtpRequest,
    db: Session = Depends(get_db),
) -> OtpRequestResponse:
    """
    Send a verification code to the delivery phone.

    502 when the SMS gateway should have delivered it and did not.
    """
    delivery = await PhoneVerificationService(db).request_code(body.phone)
    if delivery.failed:
        raise DependencyFailureError("SMS", phone=mask_phone(delivery.phone))

    logger.info("Verification code requested", phone=mask_phone(delivery.phone), sent=delivery.sent)
    return OtpRequestResponse(
        phone=delivery.phone,
        expires_at=delivery.expires_at,
        debug_code=None if settings.environment == "production" else delivery.code,
    )


@router.post("/otp/verify", response_model=OtpVerifyResponse)
@limiter.limit("10/minute")
def verify_code(
    request: Request,
    body: OtpVerifyRequest,
    db: Session = Depends(get_db),
) -> OtpVerifyResponse:
    record = PhoneVerificationService(db).verify(body.phone, body.code)
    return OtpVerifyResponse(phone=record.phone, verified=record.is_verified)
