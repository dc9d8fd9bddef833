"""
Promo Code Router.
Quotes a promo code against a subtotal. Usage is only counted at checkout.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.utils.schemas import PromoValidateRequest, PromoValidateResponse
from shop_api.services.domain import PromoService


router = APIRouter(prefix="/api/promo-codes", tags=["promo-codes"])


@router.post("/validate", response_model=PromoValidateResponse)
@limiter.limit("30/minute")
def validate_promo_code(
    request: Request,
    body: PromoValidateRequest,
    db: Session = Depends(get_db),
) -> PromoValidateResponse:
    quote = PromoService(db).validate(
        body.code,
        body.subtotal_cents,
        customer_email=str(body.email) if body.email else None,
    )
    return PromoValidateResponse(
        code=quote.promo.code,
        name=quote.promo.name,
        discount_cents=quote.discount_cents,
        free_delivery=quote.free_delivery,
        message=quote.message,
    )
