"""
Catalog Models: Flavor, Product.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import FlavorSize
from .base import AuditMixin, Base, BigIntPK


class Flavor(AuditMixin, Base):
    """
    A cookie flavor sold in three size tiers.

    Every size has its own price and stock counter. Counters are only changed
    through the stock service, which writes a StockHistory row for each change.
    Inherits: is_active, created_at, updated_at, deleted_at from AuditMixin.
    """

    __tablename__ = "flavor"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(Text)

    mini_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medium_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    large_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    stock_quantity_mini: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stock_quantity_medium: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stock_quantity_large: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("stock_quantity_mini >= 0", name="chk_flavor_stock_mini_non_negative"),
        CheckConstraint("stock_quantity_medium >= 0", name="chk_flavor_stock_medium_non_negative"),
        CheckConstraint("stock_quantity_large >= 0", name="chk_flavor_stock_large_non_negative"),
        CheckConstraint("mini_price_cents >= 0", name="chk_flavor_mini_price_non_negative"),
        CheckConstraint("medium_price_cents >= 0", name="chk_flavor_medium_price_non_negative"),
        CheckConstraint("large_price_cents >= 0", name="chk_flavor_large_price_non_negative"),
    )

    @staticmethod
    def stock_column(size: FlavorSize):
        """Mapped stock counter column for a size, usable in UPDATE statements."""
        return getattr(Flavor, f"stock_quantity_{FlavorSize(size).value}")

    def stock_for(self, size: FlavorSize) -> int:
        return getattr(self, f"stock_quantity_{FlavorSize(size).value}")

    def price_for(self, size: FlavorSize) -> int:
        return getattr(self, f"{FlavorSize(size).value}_price_cents")


class Product(AuditMixin, Base):
    """
    Sellable product.

    Packs (is_pack) are composed of `count` cookies chosen by the customer,
    optionally restricted to a single size tier (flavor_size). The unit price
    of a pack line is base_price_cents plus the size price of every chosen cookie.
    """

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    product_type: Mapped[str] = mapped_column(Text, nullable=False, default="pack")
    is_pack: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # None = customer may pick any size
    flavor_size: Mapped[Optional[str]] = mapped_column(Text)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    base_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        CheckConstraint("count > 0", name="chk_product_count_positive"),
        CheckConstraint("base_price_cents >= 0", name="chk_product_price_non_negative"),
    )
