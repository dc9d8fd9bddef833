"""
Stock ledger model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, utcnow


class StockHistory(Base):
    """
    Append-only ledger of stock counter changes.

    Rows are never updated or deleted. For every (item, size) the sum of
    change_amount equals the current counter, because the initial stock is
    recorded here as well.
    """

    __tablename__ = "stock_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    item_type: Mapped[str] = mapped_column(Text, nullable=False, default="flavor")
    size: Mapped[Optional[str]] = mapped_column(Text)
    old_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Signed: negative for reservations and subtractions
    change_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    change_type: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    order_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    changed_by: Mapped[str] = mapped_column(Text, nullable=False, default="system")
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_stock_history_item", "item_type", "item_id", "size"),
    )

    def __repr__(self) -> str:
        return (
            f"<StockHistory(item={self.item_type}:{self.item_id}, size={self.size}, "
            f"change={self.change_amount:+d}, type='{self.change_type}')>"
        )
