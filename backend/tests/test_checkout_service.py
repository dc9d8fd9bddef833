"""
Tests for the order finalization workflow.

Checkout validates every flavor requirement against the counters of that
moment and, in stock_based mode, reserves with conditional decrements in
the same transaction that writes the order.
"""

import pytest
from sqlalchemy import func, select

from shared.config.constants import (
    CartStatus,
    DiscountType,
    FlavorSize,
    OrderMode,
    OrderStatus,
    PaymentStatus,
    PromoType,
    StockChangeType,
)
from shared.utils.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    PromoCodeError,
    TransactionConflictError,
)
from shared.utils.schemas import PaymentInfo
from shop_api.models import Order, PromoCode, StockHistory
from shop_api.services.domain import CartService, CheckoutService, StockService
from shop_api.services.domain.checkout_service import generate_tracking_code
from shop_api.services.domain.site_settings_service import SiteSettings
from shop_api.services.domain.stock_policy import Availability
from tests.factories import cod_payment, delivery_info, make_cart, selection


def large_cart(db_session, flavor, product, quantity):
    return make_cart(db_session, [(product, quantity, [selection(flavor.id, "large", 1)])])


def order_count(db_session) -> int:
    return db_session.scalar(select(func.count(Order.id)))


def placed_rows(db_session) -> list[StockHistory]:
    return list(db_session.scalars(
        select(StockHistory).where(StockHistory.change_type == StockChangeType.ORDER_PLACED)
    ).all())


class TestTrackingCode:
    def test_format(self):
        code = generate_tracking_code()

        assert code.startswith("CC")
        assert len(code) == 10
        assert code == code.upper()


class TestStockBasedCheckout:
    def test_order_reserves_stock(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 2)

        order = CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert order.status == OrderStatus.RECEIVED
        assert order.order_mode == OrderMode.STOCK_BASED.value
        assert order.stock_reserved is True
        assert order.payment_status == PaymentStatus.PENDING
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 0

    def test_ledger_row_per_requirement(self, db_session, seed_flavor, seed_second_flavor, seed_mixed_box):
        cart = make_cart(db_session, [(
            seed_mixed_box,
            2,
            [selection(seed_flavor.id, "mini", 2), selection(seed_second_flavor.id, "mini", 1)],
        )])

        order = CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        rows = {(row.item_id, row.size): row for row in placed_rows(db_session)}
        assert set(rows) == {(seed_flavor.id, "mini"), (seed_second_flavor.id, "mini")}
        assert rows[(seed_flavor.id, "mini")].change_amount == -4
        assert rows[(seed_second_flavor.id, "mini")].change_amount == -2
        assert all(row.order_id == order.id for row in rows.values())
        assert StockService(db_session).reconcile() == []

    def test_cart_converted(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        with pytest.raises(InvalidStateError):
            CartService(db_session).get_active(cart.id)

    def test_converted_cart_cannot_checkout_twice(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)
        checkout = CheckoutService(db_session)
        checkout.finalize_order(cart.id, delivery_info(), cod_payment())

        with pytest.raises(InvalidStateError):
            checkout.finalize_order(cart.id, delivery_info(), cod_payment())

        assert order_count(db_session) == 1
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 1

    def test_items_snapshot(self, db_session, seed_flavor, seed_mixed_box):
        cart = make_cart(db_session, [(seed_mixed_box, 1, [selection(seed_flavor.id, "medium", 3)])])

        order = CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert len(order.items) == 1
        item = order.items[0]
        assert item.product_name == "Mixed Box of 3"
        assert item.unit_price_cents == 1000 + 3 * 4500
        assert item.flavors[0].flavor_name == "Chocolate Chip"
        assert item.flavors[0].quantity == 3

    def test_customer_fields_normalized(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        order = CheckoutService(db_session).finalize_order(
            cart.id,
            delivery_info(customer_email="Mona@Example.com", customer_name="  Mona Adel "),
            cod_payment(),
        )

        assert order.customer_email == "mona@example.com"
        assert order.customer_name == "Mona Adel"

    def test_online_payment_starts_unpaid(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        order = CheckoutService(db_session).finalize_order(
            cart.id, delivery_info(), PaymentInfo(method="paymob")
        )

        assert order.payment_status == PaymentStatus.UNPAID


class TestRejectedCheckout:
    def test_insufficient_stock_writes_nothing(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 3)

        with pytest.raises(InsufficientStockError) as exc_info:
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert exc_info.value.status_code == 409
        assert exc_info.value.remaining == 2
        assert exc_info.value.requested == 3
        assert order_count(db_session) == 0
        assert placed_rows(db_session) == []
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 2
        assert CartService(db_session).get_active(cart.id).status == CartStatus.ACTIVE

    def test_requirement_summed_across_lines(self, db_session, seed_flavor, seed_single_large, seed_mixed_box):
        """1 large from a single plus 2 large from a mixed box exceed the 2 in stock."""
        cart = make_cart(db_session, [
            (seed_single_large, 1, [selection(seed_flavor.id, "large", 1)]),
            (seed_mixed_box, 1, [selection(seed_flavor.id, "large", 2), selection(seed_flavor.id, "mini", 1)]),
        ])

        with pytest.raises(InsufficientStockError):
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.MINI) == 10

    def test_empty_cart(self, db_session):
        cart = CartService(db_session).create()

        with pytest.raises(InvalidInputError):
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert order_count(db_session) == 0

    def test_unknown_zone(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        with pytest.raises(NotFoundError):
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(zone_id=999), cod_payment())

        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 2

    def test_unknown_promo_code(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        with pytest.raises(PromoCodeError):
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment("NOPE"))

        assert order_count(db_session) == 0


class TestPreorderCheckout:
    def test_counters_untouched(self, db_session, preorder_mode, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 5)

        order = CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert order.order_mode == OrderMode.PREORDER.value
        assert order.stock_reserved is False
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 2
        assert placed_rows(db_session) == []

    def test_out_of_stock_flavor_accepted(self, db_session, preorder_mode, seed_flavor, seed_single_large):
        seed_flavor.stock_quantity_large = 0
        db_session.commit()
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        order = CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert order.id is not None

    def test_mode_read_at_checkout(self, db_session, seed_flavor, seed_single_large):
        """A cart filled under preorder is validated under the mode active at checkout."""
        from shop_api.services.domain import SiteSettings

        SiteSettings(db_session).set_order_mode(OrderMode.PREORDER)
        cart = large_cart(db_session, seed_flavor, seed_single_large, 5)
        SiteSettings(db_session).set_order_mode(OrderMode.STOCK_BASED)

        with pytest.raises(InsufficientStockError):
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())


class TestConcurrentCheckouts:
    """
    Two carts competing for the same counter. Flavor large stock is 2;
    cart A wants 2 and cart B wants 1, so exactly one of them can win.
    """

    def test_first_large_order_wins(self, db_session, seed_flavor, seed_single_large):
        cart_a = large_cart(db_session, seed_flavor, seed_single_large, 2)
        cart_b = large_cart(db_session, seed_flavor, seed_single_large, 1)
        checkout = CheckoutService(db_session)

        checkout.finalize_order(cart_a.id, delivery_info(), cod_payment())
        with pytest.raises(InsufficientStockError):
            checkout.finalize_order(cart_b.id, delivery_info(), cod_payment())

        assert order_count(db_session) == 1
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 0

    def test_first_small_order_wins(self, db_session, seed_flavor, seed_single_large):
        cart_a = large_cart(db_session, seed_flavor, seed_single_large, 2)
        cart_b = large_cart(db_session, seed_flavor, seed_single_large, 1)
        checkout = CheckoutService(db_session)

        checkout.finalize_order(cart_b.id, delivery_info(), cod_payment())
        with pytest.raises(InsufficientStockError) as exc_info:
            checkout.finalize_order(cart_a.id, delivery_info(), cod_payment())

        assert exc_info.value.remaining == 1
        assert order_count(db_session) == 1
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 1

    def test_stale_validation_rejected_by_conditional_update(
        self, db_session, seed_flavor, seed_single_large, monkeypatch
    ):
        """
        Validation saw enough stock but another checkout took it before the
        reservation: the conditional decrement refuses and nothing commits.
        """
        cart = large_cart(db_session, seed_flavor, seed_single_large, 3)
        monkeypatch.setattr(
            StockService,
            "check_availability",
            lambda self, *args, **kwargs: Availability(available=True, remaining=99),
        )

        with pytest.raises(InsufficientStockError):
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert order_count(db_session) == 0
        assert placed_rows(db_session) == []
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 2
        assert CartService(db_session).get_active(cart.id).status == CartStatus.ACTIVE

    def test_partial_reservation_rolled_back(
        self, db_session, seed_flavor, seed_single_large, seed_mixed_box, monkeypatch
    ):
        """The mini decrement succeeds, the large one fails: both are undone."""
        cart = make_cart(db_session, [
            (seed_mixed_box, 1, [selection(seed_flavor.id, "mini", 3)]),
            (seed_single_large, 3, [selection(seed_flavor.id, "large", 1)]),
        ])
        monkeypatch.setattr(
            StockService,
            "check_availability",
            lambda self, *args, **kwargs: Availability(available=True, remaining=99),
        )

        with pytest.raises(InsufficientStockError):
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        stock = StockService(db_session)
        assert stock.current_stock(seed_flavor.id, FlavorSize.MINI) == 10
        assert stock.current_stock(seed_flavor.id, FlavorSize.LARGE) == 2
        assert stock.reconcile() == []

    def test_same_cart_checked_out_twice(self, db_session, seed_flavor, seed_single_large, monkeypatch):
        """
        A second checkout of the same cart commits while the first is still
        validating: the first finds the cart already converted and rolls back.
        """
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)
        original = SiteSettings.get_order_mode
        interleaved = []

        def mode_then_competing_checkout(self):
            if not interleaved:
                interleaved.append(cart.id)
                CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())
            return original(self)

        monkeypatch.setattr(SiteSettings, "get_order_mode", mode_then_competing_checkout)

        with pytest.raises(TransactionConflictError):
            CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        stock = StockService(db_session)
        assert len(interleaved) == 1
        assert order_count(db_session) == 1
        assert len(placed_rows(db_session)) == 1
        assert stock.current_stock(seed_flavor.id, FlavorSize.LARGE) == 1
        assert stock.reconcile() == []


class TestPricingAtCheckout:
    def test_delivery_fee_from_zone(self, db_session, seed_flavor, seed_single_large, seed_zone):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        order = CheckoutService(db_session).finalize_order(
            cart.id, delivery_info(zone_id=seed_zone.id, delivery_city=None), cod_payment()
        )

        assert order.subtotal_cents == 6500
        assert order.delivery_fee_cents == 3000
        assert order.total_cents == 9500
        assert order.delivery_city == "Cairo"

    def test_percentage_promo(self, db_session, seed_flavor, seed_single_large, seed_zone):
        promo = PromoCode(
            code="SAVE10",
            enhanced_type=PromoType.BASIC,
            discount_type=DiscountType.PERCENTAGE,
            discount_value=10,
            usage_limit=5,
        )
        db_session.add(promo)
        db_session.commit()
        cart = large_cart(db_session, seed_flavor, seed_single_large, 2)

        order = CheckoutService(db_session).finalize_order(
            cart.id, delivery_info(zone_id=seed_zone.id), cod_payment("save10")
        )

        assert order.discount_cents == 1300
        assert order.total_cents == 13000 + 3000 - 1300
        assert order.promo_code_id == promo.id
        db_session.refresh(promo)
        assert promo.used_count == 1

    def test_free_delivery_promo(self, db_session, seed_flavor, seed_single_large, seed_zone):
        db_session.add(PromoCode(
            code="FREESHIP",
            enhanced_type=PromoType.FREE_DELIVERY,
            discount_type=DiscountType.FIXED_AMOUNT,
            discount_value=0,
        ))
        db_session.commit()
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        order = CheckoutService(db_session).finalize_order(
            cart.id, delivery_info(zone_id=seed_zone.id), cod_payment("FREESHIP")
        )

        assert order.delivery_fee_cents == 0
        assert order.discount_cents == 0
        assert order.total_cents == 6500


class TestKitchenRouting:
    def test_order_routed_to_kitchen(self, db_session, seed_flavor, seed_single_large, seed_kitchen):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        order = CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert order.kitchen_id == seed_kitchen.id

    def test_no_kitchen_leaves_order_unrouted(self, db_session, seed_flavor, seed_single_large):
        cart = large_cart(db_session, seed_flavor, seed_single_large, 1)

        order = CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        assert order.kitchen_id is None
