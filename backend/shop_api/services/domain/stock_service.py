"""
Stock Domain Service.

Reads flavor counters for the stock policy and applies counter changes
together with their StockHistory ledger rows. Every counter change goes
through apply_stock_change, so the ledger always sums to the counter.
"""

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from shared.config.constants import FlavorSize, Limits, OrderMode, StockChangeType
from shared.config.logging import get_logger
from shared.infrastructure.db import transaction
from shared.utils.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    InvalidQuantityError,
    NotFoundError,
)
from shop_api.models import Flavor, Order, StockHistory
from shop_api.services.domain import stock_policy
from shop_api.services.domain.stock_policy import Availability

logger = get_logger(__name__)

ITEM_TYPE_FLAVOR = "flavor"


class StockService:
    """
    Domain service for flavor stock counters.

    apply_stock_change never commits: it runs inside the caller's transaction
    so the counter update and the ledger row commit or roll back together.
    """

    def __init__(self, db: Session):
        self._db = db

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_flavor(self, flavor_id: int) -> Flavor:
        flavor = self._db.scalar(
            select(Flavor).where(Flavor.id == flavor_id, Flavor.is_active.is_(True))
        )
        if not flavor:
            raise NotFoundError("Flavor", flavor_id)
        return flavor

    def current_stock(self, flavor_id: int, size: FlavorSize) -> int:
        """Counter value straight from the database, bypassing the identity map."""
        column = Flavor.stock_column(size)
        value = self._db.scalar(select(column).where(Flavor.id == flavor_id))
        if value is None:
            raise NotFoundError("Flavor", flavor_id)
        return value

    def check_availability(
        self,
        flavor_id: int,
        size: str | FlavorSize,
        quantity: int,
        mode: OrderMode,
    ) -> Availability:
        """
        Can `quantity` cookies of this flavor size be ordered under `mode`?

        Raises:
            InvalidQuantityError: quantity <= 0
            NotFoundError: unknown or inactive flavor, unknown size
        """
        stock_policy.validate_quantity(quantity)
        size = stock_policy.parse_size(size)
        self.get_flavor(flavor_id)
        stock = self.current_stock(flavor_id, size)
        return stock_policy.evaluate(stock, quantity, mode)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def apply_stock_change(
        self,
        flavor_id: int,
        size: str | FlavorSize,
        delta: int,
        change_type: str,
        reason: str | None = None,
        order_id: int | None = None,
        changed_by: str = "system",
    ) -> StockHistory:
        """
        Change a counter by `delta` and append the matching ledger row.

        Decrements are a conditional UPDATE (stock >= qty) whose affected-row
        count is checked, so two concurrent reservations can never both take
        the last unit. Must be called inside an open transaction.

        Raises:
            InsufficientStockError: decrement would drive the counter below zero
            NotFoundError: unknown flavor or size
        """
        size = stock_policy.parse_size(size)
        column = Flavor.stock_column(size)

        stmt = update(Flavor).where(Flavor.id == flavor_id)
        if delta < 0:
            stmt = stmt.where(column >= -delta)
        stmt = stmt.values({column: column + delta}).execution_options(
            synchronize_session=False
        )

        result = self._db.execute(stmt)
        if result.rowcount != 1:
            remaining = self.current_stock(flavor_id, size)
            raise InsufficientStockError(
                flavor_id=flavor_id,
                size=size.value,
                requested=-delta,
                remaining=remaining,
            )

        # Refresh any loaded Flavor so later reads in this session see the new value
        flavor = self._db.get(Flavor, flavor_id, populate_existing=True)
        new_quantity = flavor.stock_for(size)

        entry = StockHistory(
            item_id=flavor_id,
            item_type=ITEM_TYPE_FLAVOR,
            size=size.value,
            old_quantity=new_quantity - delta,
            new_quantity=new_quantity,
            change_amount=delta,
            change_type=change_type,
            reason=reason,
            order_id=order_id,
            changed_by=changed_by,
        )
        self._db.add(entry)
        self._db.flush()
        return entry

    def record_initial_stock(self, flavor: Flavor, changed_by: str = "system") -> list[StockHistory]:
        """
        Open the ledger for a newly created flavor: one `initial` row per
        size holding the starting counter.
        """
        entries = []
        for size in FlavorSize:
            quantity = flavor.stock_for(size)
            entry = StockHistory(
                item_id=flavor.id,
                item_type=ITEM_TYPE_FLAVOR,
                size=size.value,
                old_quantity=0,
                new_quantity=quantity,
                change_amount=quantity,
                change_type=StockChangeType.INITIAL,
                reason="initial stock",
                changed_by=changed_by,
            )
            self._db.add(entry)
            entries.append(entry)
        self._db.flush()
        return entries

    def adjust_stock(
        self,
        flavor_id: int,
        size: str | FlavorSize,
        quantity: int,
        change_type: str,
        notes: str | None = None,
        changed_by: str = "admin",
    ) -> StockHistory:
        """
        Back-office stock adjustment, committed immediately.

        addition: counter + quantity
        subtraction: counter - quantity, floored at zero
        replacement: counter = quantity
        """
        if change_type not in StockChangeType.ADJUSTMENTS:
            raise InvalidInputError(
                f"Unknown change type '{change_type}'",
                extra={"allowed": StockChangeType.ADJUSTMENTS},
            )
        if quantity < 0 or (quantity == 0 and change_type != StockChangeType.REPLACEMENT):
            raise InvalidQuantityError(quantity)

        size = stock_policy.parse_size(size)

        with transaction(self._db):
            # Row lock so the computed delta matches the counter it is applied to
            locked = self._db.scalar(
                select(Flavor)
                .where(Flavor.id == flavor_id, Flavor.is_active.is_(True))
                .with_for_update()
            )
            if not locked:
                raise NotFoundError("Flavor", flavor_id)
            current = self.current_stock(flavor_id, size)

            if change_type == StockChangeType.ADDITION:
                delta = quantity
            elif change_type == StockChangeType.SUBTRACTION:
                delta = -min(quantity, current)
            else:
                delta = quantity - current

            entry = self.apply_stock_change(
                flavor_id,
                size,
                delta,
                change_type=change_type,
                reason=notes or f"manual {change_type}",
                changed_by=changed_by,
            )

        logger.info(
            "Stock adjusted",
            flavor_id=flavor_id,
            size=size.value,
            change_type=change_type,
            old_quantity=entry.old_quantity,
            new_quantity=entry.new_quantity,
            changed_by=changed_by,
        )
        return entry

    def restore_order_stock(self, order: Order, reason: str, changed_by: str = "system") -> int:
        """
        Give back every cookie an order reserved. Runs inside the caller's
        transaction. Returns the number of ledger rows written.

        The reservation flag is cleared with a conditional update first, so
        of two concurrent cancellations only one restocks.
        """
        if not order.stock_reserved:
            return 0

        claimed = self._db.execute(
            update(Order)
            .where(Order.id == order.id, Order.stock_reserved.is_(True))
            .values(stock_reserved=False)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            logger.warning("Order stock already restored", order_id=order.id)
            return 0

        totals: dict[tuple[int, str], int] = {}
        for item in order.items:
            for selection in item.flavors:
                key = (selection.flavor_id, selection.size)
                totals[key] = totals.get(key, 0) + selection.quantity * item.quantity

        for (flavor_id, size), quantity in totals.items():
            self.apply_stock_change(
                flavor_id,
                size,
                quantity,
                change_type=StockChangeType.ORDER_CANCELLED,
                reason=reason,
                order_id=order.id,
                changed_by=changed_by,
            )

        order.stock_reserved = False
        logger.info("Order stock restored", order_id=order.id, rows=len(totals))
        return len(totals)

    # -------------------------------------------------------------------------
    # Ledger queries
    # -------------------------------------------------------------------------

    def history(
        self,
        item_id: int | None = None,
        item_type: str = ITEM_TYPE_FLAVOR,
        size: str | None = None,
        limit: int = Limits.DEFAULT_HISTORY_LIMIT,
    ) -> list[StockHistory]:
        """Most recent ledger rows first."""
        query = select(StockHistory).where(StockHistory.item_type == item_type)
        if item_id is not None:
            query = query.where(StockHistory.item_id == item_id)
        if size is not None:
            query = query.where(StockHistory.size == stock_policy.parse_size(size).value)
        query = query.order_by(StockHistory.changed_at.desc(), StockHistory.id.desc()).limit(
            min(limit, Limits.MAX_HISTORY_LIMIT)
        )
        return list(self._db.scalars(query).all())

    def ledger_total(self, flavor_id: int, size: str | FlavorSize) -> int:
        size = stock_policy.parse_size(size)
        total = self._db.scalar(
            select(func.coalesce(func.sum(StockHistory.change_amount), 0)).where(
                StockHistory.item_type == ITEM_TYPE_FLAVOR,
                StockHistory.item_id == flavor_id,
                StockHistory.size == size.value,
            )
        )
        return int(total or 0)

    def reconcile(self) -> list[dict]:
        """
        Compare every counter with its ledger sum.
        Returns the mismatches (empty list when the ledger is consistent).
        """
        mismatches = []
        flavors = self._db.scalars(select(Flavor).order_by(Flavor.id)).all()
        for flavor in flavors:
            for size in FlavorSize:
                counter = flavor.stock_for(size)
                ledger = self.ledger_total(flavor.id, size)
                if counter != ledger:
                    mismatches.append({
                        "flavor_id": flavor.id,
                        "flavor_name": flavor.name,
                        "size": size.value,
                        "counter": counter,
                        "ledger": ledger,
                    })
        if mismatches:
            logger.warning("Stock ledger mismatches found", count=len(mismatches))
        return mismatches
