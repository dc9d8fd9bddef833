"""
Site Settings accessor.

Typed read-through access to the site_setting key/value table. Nothing is
cached: every call reads the current row, and callers pass the decoded value
on (e.g. the order mode into the stock policy).
"""

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import OrderMode, SettingKeys
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shop_api.models import SiteSetting

logger = get_logger(__name__)

DEFAULT_ORDER_MODE = OrderMode.STOCK_BASED


class CancellationPolicy(BaseModel):
    """
    Customer self-cancellation rules.
    Stored as camelCase JSON (timeWindowMinutes, showInEmail, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    enabled: bool = True
    show_in_email: bool = True
    show_on_success_page: bool = True
    time_window_minutes: int = Field(default=30, ge=0)


class SiteSettings:
    """Read-through accessor with a typed decode step per key."""

    def __init__(self, db: Session):
        self._db = db

    def _get_row(self, key: str) -> SiteSetting | None:
        return self._db.scalar(select(SiteSetting).where(SiteSetting.setting_key == key))

    def _get_raw(self, key: str) -> str | None:
        row = self._get_row(key)
        return row.setting_value if row else None

    def _set_raw(self, key: str, value: str) -> None:
        row = self._get_row(key)
        if row:
            row.setting_value = value
        else:
            self._db.add(SiteSetting(setting_key=key, setting_value=value))
        safe_commit(self._db)

    # -------------------------------------------------------------------------
    # order_mode
    # -------------------------------------------------------------------------

    def get_order_mode(self) -> OrderMode:
        raw = self._get_raw(SettingKeys.ORDER_MODE)
        if raw is None:
            return DEFAULT_ORDER_MODE
        try:
            return OrderMode(raw.strip())
        except ValueError:
            logger.warning(
                "Unknown order mode stored, using default",
                stored_value=raw,
                default=DEFAULT_ORDER_MODE.value,
            )
            return DEFAULT_ORDER_MODE

    def set_order_mode(self, mode: OrderMode) -> OrderMode:
        """
        Switch the global order mode.

        Carts are not re-validated here; checkout validates them against
        whatever mode is active at that moment.
        """
        mode = OrderMode(mode)
        previous = self.get_order_mode()
        self._set_raw(SettingKeys.ORDER_MODE, mode.value)
        logger.info("Order mode changed", previous=previous.value, current=mode.value)
        return mode

    # -------------------------------------------------------------------------
    # cancellation_settings
    # -------------------------------------------------------------------------

    def get_cancellation_policy(self) -> CancellationPolicy:
        raw = self._get_raw(SettingKeys.CANCELLATION_SETTINGS)
        if raw is None:
            return CancellationPolicy()
        try:
            return CancellationPolicy.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Invalid cancellation settings stored, using defaults",
                error=str(e),
            )
            return CancellationPolicy()

    def set_cancellation_policy(self, policy: CancellationPolicy) -> CancellationPolicy:
        self._set_raw(
            SettingKeys.CANCELLATION_SETTINGS,
            policy.model_dump_json(by_alias=True),
        )
        logger.info("Cancellation settings updated", **policy.model_dump())
        return policy
