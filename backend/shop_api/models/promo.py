"""
Promo code model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import DiscountType, PromoType
from .base import AuditMixin, Base, BigIntPK


class PromoCode(AuditMixin, Base):
    """
    Discount code applied at checkout.

    discount_value is a percentage (0-100) for percentage codes and an amount
    in minor units for fixed codes. used_count only grows when an order commits.
    """

    __tablename__ = "promo_code"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(Text)
    enhanced_type: Mapped[str] = mapped_column(Text, nullable=False, default=PromoType.BASIC)
    discount_type: Mapped[str] = mapped_column(Text, nullable=False, default=DiscountType.PERCENTAGE)
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    maximum_discount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    minimum_order_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="chk_promo_discount_non_negative"),
        CheckConstraint("used_count >= 0", name="chk_promo_used_count_non_negative"),
    )
