"""
Customer model.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, BigIntPK


class Customer(AuditMixin, Base):
    """
    Registered customer. Guests check out without one; their orders only
    carry the contact snapshot.
    """

    __tablename__ = "customer"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)
