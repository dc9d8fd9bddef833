"""
Key/value site settings (order mode, cancellation policy).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, utcnow


class SiteSetting(Base):
    """
    One raw setting row. Values are decoded per key by the SiteSettings accessor.
    """

    __tablename__ = "site_setting"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    setting_key: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    setting_value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
