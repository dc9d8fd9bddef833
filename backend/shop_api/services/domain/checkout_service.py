"""
Checkout Domain Service.

Order finalization: converts an active cart into an order in one attempt.

    Draft(cart) -> Validating -> Reserving -> Committed
                             \\-> Rejected

Validating re-checks every flavor requirement against the counters of this
moment. Reserving (stock_based only) decrements counters with conditional
updates inside the same transaction that inserts the order, so a lost race
rolls back the whole attempt. Nothing is retried here; the customer may
resubmit and re-enter at Validating.
"""

import secrets

from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from shared.config.constants import (
    CartStatus,
    OrderMode,
    OrderPriority,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StockChangeType,
)
from shared.config.logging import checkout_logger as logger, mask_email
from shared.infrastructure.db import transaction
from shared.utils.exceptions import (
    DatabaseError,
    InsufficientStockError,
    InvalidInputError,
    NotFoundError,
    TransactionConflictError,
)
from shared.utils.schemas import DeliveryInfo, PaymentInfo
from shop_api.models import Cart, Order, OrderItem, OrderItemFlavor, Zone
from shop_api.services.domain import stock_policy
from shop_api.services.domain.cart_service import CartService
from shop_api.services.domain.kitchen_service import KitchenService
from shop_api.services.domain.order_service import OrderService
from shop_api.services.domain.promo_service import PromoQuote, PromoService
from shop_api.services.domain.site_settings_service import SiteSettings
from shop_api.services.domain.stock_policy import Requirement
from shop_api.services.domain.stock_service import StockService

TRACKING_CODE_PREFIX = "CC"


def generate_tracking_code() -> str:
    """Public order reference, e.g. CC3F9A01B2."""
    return TRACKING_CODE_PREFIX + secrets.token_hex(4).upper()


def cart_requirements(cart: Cart) -> list[Requirement]:
    """Cookies needed per (flavor, size): selection quantity x line quantity."""
    return stock_policy.aggregate_requirements(
        (
            item.quantity,
            [(selection.flavor_id, selection.size, selection.quantity) for selection in item.flavors],
        )
        for item in cart.items
    )


class CheckoutService:
    """Domain service for the order finalization workflow."""

    def __init__(self, db: Session):
        self._db = db
        self._carts = CartService(db)
        self._stock = StockService(db)

    def _validate_stock(self, requirements: list[Requirement], mode: OrderMode) -> None:
        """Reject the attempt on the first requirement the counters cannot cover."""
        for requirement in requirements:
            availability = self._stock.check_availability(
                requirement.flavor_id,
                requirement.size,
                requirement.quantity,
                mode,
            )
            if not availability.available:
                raise InsufficientStockError(
                    flavor_id=requirement.flavor_id,
                    size=requirement.size.value,
                    requested=requirement.quantity,
                    remaining=availability.remaining,
                )

    def _delivery_zone(self, zone_id: int | None) -> Zone | None:
        if zone_id is None:
            return None
        zone = self._db.scalar(select(Zone).where(Zone.id == zone_id, Zone.is_active.is_(True)))
        if not zone:
            raise NotFoundError("Zone", zone_id)
        return zone

    def _claim_cart(self, cart_id: int) -> None:
        """
        Mark the cart converted, only if it is still active. A second checkout
        of the same cart finds no active row and rolls back.

        Raises:
            TransactionConflictError: the cart was converted concurrently
        """
        result = self._db.execute(
            update(Cart)
            .where(Cart.id == cart_id, Cart.status == CartStatus.ACTIVE)
            .values(status=CartStatus.CONVERTED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TransactionConflictError("cart", cart_id=cart_id)

    def _reserve(self, order: Order, requirements: list[Requirement], mode: OrderMode) -> None:
        for requirement in requirements:
            self._stock.apply_stock_change(
                requirement.flavor_id,
                requirement.size,
                stock_policy.reservation_delta(requirement.quantity, mode),
                change_type=StockChangeType.ORDER_PLACED,
                reason="order placed",
                order_id=order.id,
                changed_by="checkout",
            )
        order.stock_reserved = True

    def _snapshot_items(self, order: Order, cart: Cart) -> None:
        """Freeze names, sizes and prices of the cart lines onto the order."""
        for item in cart.items:
            unit_price = CartService.line_unit_price(item)
            order_item = OrderItem(
                product_id=item.product_id,
                product_name=item.product.name,
                product_type=item.product.product_type,
                size=item.product.flavor_size,
                quantity=item.quantity,
                unit_price_cents=unit_price,
                line_total_cents=unit_price * item.quantity,
            )
            order_item.flavors = [
                OrderItemFlavor(
                    flavor_id=selection.flavor_id,
                    flavor_name=selection.flavor.name,
                    size=selection.size,
                    quantity=selection.quantity,
                    unit_price_cents=selection.flavor.price_for(selection.size),
                )
                for selection in item.flavors
            ]
            order.items.append(order_item)

    def finalize_order(
        self,
        cart_id: int,
        delivery: DeliveryInfo,
        payment: PaymentInfo,
        customer_id: int | None = None,
    ) -> Order:
        """
        Convert an active cart into an order.

        Raises:
            CartNotFoundError / InvalidStateError: unknown or non-active cart
            InvalidInputError: empty cart
            InsufficientStockError: a requirement exceeds its counter (stock_based)
            PromoCodeError: promo code cannot be applied
            NotFoundError: unknown zone, flavor or size
            TransactionConflictError: concurrent writer won a row this attempt needed
            DatabaseError: any other persistence failure
        """
        # Validating
        cart = self._carts.get_active(cart_id)
        if not cart.items:
            raise InvalidInputError("Cart is empty", cart_id=cart_id)

        mode = SiteSettings(self._db).get_order_mode()
        requirements = cart_requirements(cart)
        self._validate_stock(requirements, mode)

        subtotal = sum(CartService.line_unit_price(item) * item.quantity for item in cart.items)
        zone = self._delivery_zone(delivery.zone_id)
        delivery_fee = zone.delivery_fee_cents if zone else 0

        quote: PromoQuote | None = None
        discount = 0
        if payment.promo_code:
            quote = PromoService(self._db).validate(
                payment.promo_code,
                subtotal,
                customer_email=delivery.customer_email,
            )
            discount = quote.discount_cents
            if quote.free_delivery:
                delivery_fee = 0

        total = max(0, subtotal + delivery_fee - discount)

        logger.info(
            "Checkout validated",
            cart_id=cart_id,
            mode=mode.value,
            requirements=len(requirements),
            subtotal_cents=subtotal,
        )

        order = Order(
            tracking_code=generate_tracking_code(),
            customer_id=customer_id or cart.customer_id,
            cart_id=cart.id,
            customer_name=delivery.customer_name.strip(),
            customer_email=str(delivery.customer_email).lower(),
            customer_phone=delivery.customer_phone.strip(),
            delivery_address=delivery.delivery_address.strip(),
            delivery_city=delivery.delivery_city or (zone.city if zone else None),
            zone_id=zone.id if zone else None,
            notes=delivery.notes,
            payment_method=payment.method,
            payment_status=(
                PaymentStatus.PENDING if payment.method == PaymentMethod.COD else PaymentStatus.UNPAID
            ),
            status=OrderStatus.RECEIVED,
            priority=OrderPriority.NORMAL,
            order_mode=mode.value,
            stock_reserved=False,
            promo_code_id=quote.promo.id if quote else None,
            subtotal_cents=subtotal,
            delivery_fee_cents=delivery_fee,
            discount_cents=discount,
            total_cents=total,
        )

        # Reserving + Committed, one transaction
        try:
            with transaction(self._db):
                self._claim_cart(cart.id)
                self._db.add(order)
                self._db.flush()

                if mode == OrderMode.STOCK_BASED:
                    self._reserve(order, requirements, mode)

                self._snapshot_items(order, cart)

                kitchen = KitchenService(self._db).route_order()
                order.kitchen_id = kitchen.id if kitchen else None

                if quote:
                    PromoService(self._db).redeem(quote.promo.id)
        except OperationalError as exc:
            raise TransactionConflictError("stock", cart_id=cart_id, error=str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise DatabaseError("checkout", cart_id=cart_id, error=str(exc)) from exc

        logger.info(
            "Order committed",
            order_id=order.id,
            tracking_code=order.tracking_code,
            cart_id=cart_id,
            mode=mode.value,
            stock_reserved=order.stock_reserved,
            total_cents=total,
            email=mask_email(order.customer_email),
        )
        return OrderService(self._db).get(order.id)
