"""
Checkout phone verification codes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, utcnow


class PhoneVerification(Base):
    """
    One code sent by SMS. Only the newest row per phone can be verified;
    requesting a new code leaves older rows behind unused.
    """

    __tablename__ = "phone_verification"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_phone_verification_phone", "phone"),
    )

    def __repr__(self) -> str:
        return f"<PhoneVerification(id={self.id}, verified={self.is_verified}, attempts={self.attempts})>"
