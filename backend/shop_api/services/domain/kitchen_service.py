"""
Kitchen Domain Service.

Routes committed orders to kitchens and drives the fulfilment workflow:
status transitions, priority, delivery assignment and production totals.
"""

from collections.abc import Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import ORDER_TRANSITIONS, OrderPriority, OrderStatus
from shared.config.logging import kitchen_logger as logger
from shared.infrastructure.db import safe_commit, transaction
from shared.utils.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)
from shop_api.models import DeliveryMan, Kitchen, Order, OrderItem, OrderItemFlavor
from shop_api.services.domain.order_service import OrderService

# urgent first, then high, normal, low
_PRIORITY_ORDER = case(OrderPriority.RANK, value=Order.priority, else_=len(OrderPriority.ALL))


class KitchenService:
    def __init__(self, db: Session):
        self._db = db

    def get_kitchen(self, kitchen_id: int) -> Kitchen:
        kitchen = self._db.scalar(
            select(Kitchen).where(Kitchen.id == kitchen_id, Kitchen.is_active.is_(True))
        )
        if not kitchen:
            raise NotFoundError("Kitchen", kitchen_id)
        return kitchen

    def route_order(self) -> Kitchen | None:
        """
        Kitchen with the most spare capacity (capacity minus open orders).
        None when every kitchen is full or none is active.
        """
        open_orders = (
            select(Order.kitchen_id, func.count(Order.id).label("open_count"))
            .where(Order.status.in_(OrderStatus.OPEN))
            .group_by(Order.kitchen_id)
            .subquery()
        )
        spare = Kitchen.capacity - func.coalesce(open_orders.c.open_count, 0)
        kitchen = self._db.scalar(
            select(Kitchen)
            .outerjoin(open_orders, open_orders.c.kitchen_id == Kitchen.id)
            .where(Kitchen.is_active.is_(True), spare > 0)
            .order_by(spare.desc(), Kitchen.id)
            .limit(1)
        )
        if kitchen is None:
            logger.warning("No kitchen with spare capacity")
        return kitchen

    def queue(
        self,
        kitchen_id: int,
        statuses: Sequence[str] | None = None,
        priorities: Sequence[str] | None = None,
    ) -> list[Order]:
        """Orders of a kitchen, urgent first, then oldest first."""
        self.get_kitchen(kitchen_id)
        query = (
            select(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.flavors))
            .where(Order.kitchen_id == kitchen_id)
        )
        if statuses:
            query = query.where(Order.status.in_(statuses))
        else:
            query = query.where(Order.status.in_(OrderStatus.OPEN + [OrderStatus.READY]))
        if priorities:
            query = query.where(Order.priority.in_(priorities))
        query = query.order_by(_PRIORITY_ORDER, Order.created_at, Order.id)
        return list(self._db.scalars(query).all())

    def update_status(self, order_id: int, new_status: str, changed_by: str = "admin") -> Order:
        """
        Move an order along received → preparing → packing → ready →
        dispatched → delivered. Cancelling gives back reserved stock.

        Raises:
            NotFoundError: unknown order
            InvalidTransitionError: transition not allowed from the current status
        """
        orders = OrderService(self._db)
        order = orders.get(order_id)

        if new_status not in ORDER_TRANSITIONS.get(order.status, []):
            raise InvalidTransitionError("Order", order.status, new_status, order_id=order_id)

        previous = order.status
        with transaction(self._db):
            if new_status == OrderStatus.CANCELLED:
                orders.cancel(order, reason="order cancelled by kitchen", changed_by=changed_by)
            else:
                order.status = new_status

        logger.info("Order status updated", order_id=order_id, old_status=previous, new_status=new_status)
        self._db.refresh(order)
        return order

    def set_priority(self, order_id: int, priority: str) -> Order:
        if priority not in OrderPriority.ALL:
            raise InvalidInputError(
                f"Unknown priority '{priority}'",
                extra={"allowed": OrderPriority.ALL},
            )
        order = OrderService(self._db).get(order_id)
        order.priority = priority
        safe_commit(self._db)
        logger.info("Order priority updated", order_id=order_id, priority=priority)
        return order

    def assign_delivery_man(self, order_ids: Sequence[int], delivery_man_id: int) -> int:
        """Assign a delivery man to several orders at once. Returns how many were updated."""
        delivery_man = self._db.scalar(
            select(DeliveryMan).where(
                DeliveryMan.id == delivery_man_id,
                DeliveryMan.is_active.is_(True),
            )
        )
        if not delivery_man:
            raise NotFoundError("Delivery man", delivery_man_id)
        if not order_ids:
            raise InvalidInputError("No orders given")

        result = self._db.execute(
            update(Order)
            .where(
                Order.id.in_(order_ids),
                Order.status.not_in([OrderStatus.CANCELLED, OrderStatus.DELIVERED]),
            )
            .values(delivery_man_id=delivery_man_id)
            .execution_options(synchronize_session=False)
        )
        safe_commit(self._db)
        logger.info(
            "Delivery man assigned",
            delivery_man_id=delivery_man_id,
            requested=len(order_ids),
            updated=result.rowcount,
        )
        return result.rowcount

    def stats(self, kitchen_id: int) -> dict:
        """Order counts of a kitchen by status and by priority."""
        kitchen = self.get_kitchen(kitchen_id)
        by_status = dict(
            self._db.execute(
                select(Order.status, func.count(Order.id))
                .where(Order.kitchen_id == kitchen_id)
                .group_by(Order.status)
            ).all()
        )
        by_priority = dict(
            self._db.execute(
                select(Order.priority, func.count(Order.id))
                .where(Order.kitchen_id == kitchen_id, Order.status.in_(OrderStatus.OPEN))
                .group_by(Order.priority)
            ).all()
        )
        open_count = sum(by_status.get(s, 0) for s in OrderStatus.OPEN)
        return {
            "kitchen_id": kitchen.id,
            "kitchen_name": kitchen.name,
            "capacity": kitchen.capacity,
            "open_orders": open_count,
            "spare_capacity": max(0, kitchen.capacity - open_count),
            "by_status": {s: by_status.get(s, 0) for s in OrderStatus.ALL},
            "by_priority": {p: by_priority.get(p, 0) for p in OrderPriority.ALL},
        }

    def flavor_production_summary(self, statuses: Sequence[str] | None = None) -> list[dict]:
        """Cookies to bake per flavor and size across orders in the given statuses."""
        statuses = list(statuses or OrderStatus.OPEN)
        total = func.sum(OrderItemFlavor.quantity * OrderItem.quantity)
        rows = self._db.execute(
            select(
                OrderItemFlavor.flavor_id,
                OrderItemFlavor.flavor_name,
                OrderItemFlavor.size,
                total.label("total"),
            )
            .join(OrderItem, OrderItem.id == OrderItemFlavor.order_item_id)
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status.in_(statuses))
            .group_by(OrderItemFlavor.flavor_id, OrderItemFlavor.flavor_name, OrderItemFlavor.size)
            .order_by(OrderItemFlavor.flavor_name, OrderItemFlavor.size)
        ).all()
        return [
            {
                "flavor_id": row.flavor_id,
                "flavor_name": row.flavor_name,
                "size": row.size,
                "quantity": int(row.total),
            }
            for row in rows
        ]
