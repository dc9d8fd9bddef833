"""
Promo Code Domain Service.

Quotes a discount for a subtotal and counts a redemption when an order
commits. Quoting has no side effects.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from shared.config.constants import DiscountType, OrderStatus, PromoType
from shared.config.logging import get_logger, mask_email
from shared.utils.exceptions import PromoCodeError, TransactionConflictError
from shop_api.models import Order, PromoCode
from shop_api.models.base import as_utc, utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class PromoQuote:
    promo: PromoCode
    discount_cents: int
    free_delivery: bool
    message: str


def compute_discount(promo: PromoCode, subtotal_cents: int) -> int:
    """Discount in minor units, never more than the subtotal."""
    if promo.enhanced_type == PromoType.FREE_DELIVERY:
        return 0

    if promo.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal_cents * promo.discount_value // 100
        if promo.maximum_discount_cents is not None:
            discount = min(discount, promo.maximum_discount_cents)
    else:
        discount = promo.discount_value

    return max(0, min(discount, subtotal_cents))


class PromoService:
    def __init__(self, db: Session):
        self._db = db

    def get_by_code(self, code: str) -> PromoCode | None:
        return self._db.scalar(
            select(PromoCode).where(
                func.upper(PromoCode.code) == code.strip().upper(),
                PromoCode.is_active.is_(True),
            )
        )

    def _has_previous_orders(self, email: str) -> bool:
        count = self._db.scalar(
            select(func.count(Order.id)).where(
                func.lower(Order.customer_email) == email.strip().lower(),
                Order.status != OrderStatus.CANCELLED,
            )
        )
        return bool(count)

    def validate(
        self,
        code: str,
        subtotal_cents: int,
        customer_email: str | None = None,
        now: datetime | None = None,
    ) -> PromoQuote:
        """
        Check a code against a subtotal and quote its effect.

        Raises:
            PromoCodeError: unknown, expired, exhausted, below minimum order,
                or a first-order code used by a returning customer
        """
        now = now or utcnow()
        promo = self.get_by_code(code)
        if not promo:
            raise PromoCodeError(code, "Invalid promo code")

        valid_until = as_utc(promo.valid_until)
        if valid_until is not None and valid_until < now:
            raise PromoCodeError(code, "Promo code has expired")

        if promo.usage_limit is not None and promo.used_count >= promo.usage_limit:
            raise PromoCodeError(code, "Promo code usage limit reached")

        if subtotal_cents < promo.minimum_order_cents:
            raise PromoCodeError(
                code,
                f"Minimum order amount is {promo.minimum_order_cents / 100:.2f}",
            )

        if promo.enhanced_type == PromoType.FIRST_TIME_CUSTOMER:
            if not customer_email:
                raise PromoCodeError(code, "Email is required for this promo code")
            if self._has_previous_orders(customer_email):
                logger.info(
                    "First-order promo refused for returning customer",
                    code=promo.code,
                    email=mask_email(customer_email),
                )
                raise PromoCodeError(code, "Promo code is only valid for first orders")

        discount = compute_discount(promo, subtotal_cents)
        free_delivery = promo.enhanced_type == PromoType.FREE_DELIVERY

        if free_delivery:
            message = "Free delivery applied"
        else:
            message = f"Discount of {discount / 100:.2f} applied"

        return PromoQuote(
            promo=promo,
            discount_cents=discount,
            free_delivery=free_delivery,
            message=message,
        )

    def redeem(self, promo_id: int) -> None:
        """
        Count one use. Conditional on the usage limit so concurrent checkouts
        cannot overshoot it. Runs inside the caller's transaction.

        Raises:
            TransactionConflictError: the last use was taken concurrently
        """
        result = self._db.execute(
            update(PromoCode)
            .where(
                PromoCode.id == promo_id,
                or_(
                    PromoCode.usage_limit.is_(None),
                    PromoCode.used_count < PromoCode.usage_limit,
                ),
            )
            .values(used_count=PromoCode.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TransactionConflictError("promo_code", promo_id=promo_id)
