"""
Order Models: Order, OrderItem, OrderItemFlavor.

Order lines are snapshots: names and prices are copied at checkout so later
catalog edits never change a placed order.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderPriority, OrderStatus, PaymentStatus
from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .delivery import DeliveryMan, Kitchen, Zone
    from .promo import PromoCode


class Order(AuditMixin, Base):
    """
    A placed order.

    Only status, payment and assignment fields (kitchen, delivery man,
    priority) change after creation.
    Inherits: is_active, created_at, updated_at, deleted_at from AuditMixin.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tracking_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    customer_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("customer.id"), index=True
    )
    # Source cart, kept for traceability
    cart_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("cart.id"))

    # Contact and delivery snapshot
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    customer_phone: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_city: Mapped[Optional[str]] = mapped_column(Text)
    zone_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("zone.id"))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Payment
    payment_method: Mapped[str] = mapped_column(Text, nullable=False)
    payment_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=PaymentStatus.PENDING, index=True
    )
    payment_token: Mapped[Optional[str]] = mapped_column(Text)
    gateway_order_id: Mapped[Optional[str]] = mapped_column(Text, index=True)
    gateway_transaction_id: Mapped[Optional[str]] = mapped_column(Text)

    # Fulfilment
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=OrderStatus.RECEIVED, index=True
    )
    priority: Mapped[str] = mapped_column(Text, nullable=False, default=OrderPriority.NORMAL)
    kitchen_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("kitchen.id"), index=True
    )
    delivery_man_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("delivery_man.id"), index=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Stock bookkeeping: order_mode at creation and whether counters were decremented
    order_mode: Mapped[str] = mapped_column(Text, nullable=False)
    stock_reserved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Money (minor units)
    promo_code_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("promo_code.id"))
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    delivery_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    kitchen: Mapped[Optional["Kitchen"]] = relationship()
    delivery_man: Mapped[Optional["DeliveryMan"]] = relationship()
    zone: Mapped[Optional["Zone"]] = relationship()
    promo_code: Mapped[Optional["PromoCode"]] = relationship()

    __table_args__ = (
        CheckConstraint("subtotal_cents >= 0", name="chk_order_subtotal_non_negative"),
        CheckConstraint("total_cents >= 0", name="chk_order_total_non_negative"),
        # Kitchen queue: kitchen + status
        Index("ix_orders_kitchen_status", "kitchen_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, tracking_code='{self.tracking_code}', status='{self.status}')>"


class OrderItem(Base):
    """Frozen product line of an order."""

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Plain reference, the product may be edited or deleted later
    product_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_type: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[Optional[str]] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_quantity_positive"),
        CheckConstraint("unit_price_cents >= 0", name="chk_order_item_price_non_negative"),
    )

    order: Mapped["Order"] = relationship(back_populates="items")
    flavors: Mapped[list["OrderItemFlavor"]] = relationship(
        back_populates="order_item",
        cascade="all, delete-orphan",
        order_by="OrderItemFlavor.id",
    )


class OrderItemFlavor(Base):
    """Frozen flavor selection of an order line (per pack)."""

    __tablename__ = "order_item_flavor"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("order_item.id", ondelete="CASCADE"), nullable=False, index=True
    )
    flavor_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    flavor_name: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    order_item: Mapped["OrderItem"] = relationship(back_populates="flavors")
