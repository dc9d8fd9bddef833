"""
Cart Models: Cart, CartItem, CartItemFlavor.

A cart is owned by whoever holds its session token. Items are not checked
against stock until checkout.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import CartStatus
from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .catalog import Flavor, Product


class Cart(AuditMixin, Base):
    """
    Session-scoped cart.
    Inherits: is_active, created_at, updated_at, deleted_at from AuditMixin.
    """

    __tablename__ = "cart"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=CartStatus.ACTIVE)
    customer_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("customer.id"), index=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    items: Mapped[list["CartItem"]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )

    __table_args__ = (
        Index("ix_cart_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Cart(id={self.id}, status='{self.status}', items={len(self.items)})>"


class CartItem(AuditMixin, Base):
    """A product line in a cart, with its flavor breakdown for packs."""

    __tablename__ = "cart_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    cart_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("cart.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_cart_item_quantity_positive"),
    )

    cart: Mapped["Cart"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship()
    flavors: Mapped[list["CartItemFlavor"]] = relationship(
        back_populates="cart_item",
        cascade="all, delete-orphan",
        order_by="CartItemFlavor.id",
    )


class CartItemFlavor(Base):
    """One flavor selection (flavor, size, how many cookies) inside a pack."""

    __tablename__ = "cart_item_flavor"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    cart_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("cart_item.id", ondelete="CASCADE"), nullable=False, index=True
    )
    flavor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("flavor.id"), nullable=False, index=True
    )
    size: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_cart_item_flavor_quantity_positive"),
    )

    cart_item: Mapped["CartItem"] = relationship(back_populates="flavors")
    flavor: Mapped["Flavor"] = relationship()
