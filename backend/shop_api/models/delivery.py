"""
Delivery logistics models: Zone, Kitchen, DeliveryMan.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, BigIntPK


class Zone(AuditMixin, Base):
    """Delivery zone of a city with its flat delivery fee."""

    __tablename__ = "zone"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("delivery_fee_cents >= 0", name="chk_zone_fee_non_negative"),
    )


class Kitchen(AuditMixin, Base):
    """Production kitchen. capacity = how many open orders it handles at once."""

    __tablename__ = "kitchen"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    phone: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="chk_kitchen_capacity_non_negative"),
    )


class DeliveryMan(AuditMixin, Base):
    __tablename__ = "delivery_man"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
