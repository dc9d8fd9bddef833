"""
Order Domain Service.

Customer-facing order operations after checkout: tracking lookup and
self-cancellation, plus the shared cancel step used by the kitchen and
the payment webhook.
"""

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import OrderStatus
from shared.config.logging import get_logger, mask_email
from shared.infrastructure.db import transaction
from shared.utils.exceptions import (
    ForbiddenError,
    InvalidStateError,
    OrderNotFoundError,
)
from shop_api.models import Order, OrderItem
from shop_api.models.base import as_utc, utcnow
from shop_api.services.domain.site_settings_service import SiteSettings
from shop_api.services.domain.stock_service import StockService

logger = get_logger(__name__)


class OrderService:
    def __init__(self, db: Session):
        self._db = db

    def _query(self):
        return select(Order).options(
            selectinload(Order.items).selectinload(OrderItem.flavors),
            selectinload(Order.kitchen),
            selectinload(Order.delivery_man),
        )

    def get(self, order_id: int) -> Order:
        order = self._db.scalar(self._query().where(Order.id == order_id))
        if not order:
            raise OrderNotFoundError(order_id)
        return order

    def get_by_tracking_code(self, code: str, email: str) -> Order:
        """
        Look an order up by its public tracking code. The email must match
        the one given at checkout; a mismatch looks exactly like a miss.
        """
        order = self._db.scalar(
            self._query().where(
                Order.tracking_code == code.strip().upper(),
                func.lower(Order.customer_email) == email.strip().lower(),
            )
        )
        if not order:
            raise OrderNotFoundError(tracking_code=code, email=mask_email(email))
        return order

    def cancel(self, order: Order, reason: str, changed_by: str = "system") -> Order:
        """
        Cancel an order and give back reserved stock.
        Runs inside the caller's transaction.
        """
        order.status = OrderStatus.CANCELLED
        order.cancelled_at = utcnow()
        StockService(self._db).restore_order_stock(order, reason=reason, changed_by=changed_by)
        logger.info("Order cancelled", order_id=order.id, reason=reason, changed_by=changed_by)
        return order

    def cancel_by_customer(self, code: str, email: str, now: datetime | None = None) -> Order:
        """
        Customer self-cancellation under the cancellation policy.

        Raises:
            OrderNotFoundError: unknown code / email mismatch
            ForbiddenError: cancellation disabled or time window passed
            InvalidStateError: already cancelled, dispatched or delivered
        """
        now = now or utcnow()
        order = self.get_by_tracking_code(code, email)
        policy = SiteSettings(self._db).get_cancellation_policy()

        if not policy.enabled:
            raise ForbiddenError("cancel orders", order_id=order.id)

        if order.status in OrderStatus.NOT_CANCELLABLE:
            raise InvalidStateError(
                "Order",
                order.status,
                [s for s in OrderStatus.ALL if s not in OrderStatus.NOT_CANCELLABLE],
                order_id=order.id,
            )

        deadline = as_utc(order.created_at) + timedelta(minutes=policy.time_window_minutes)
        if now > deadline:
            raise ForbiddenError(
                f"cancel after {policy.time_window_minutes} minutes",
                order_id=order.id,
            )

        with transaction(self._db):
            self.cancel(order, reason="order cancelled by customer", changed_by="customer")

        self._db.refresh(order)
        return order
