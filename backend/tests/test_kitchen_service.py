"""
Tests for KitchenService: routing, queue, status workflow and reports.
"""

import pytest

from shared.config.constants import FlavorSize, OrderPriority, OrderStatus
from shared.utils.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from shop_api.models import DeliveryMan, Kitchen
from shop_api.services.domain import CheckoutService, KitchenService, StockService
from tests.factories import cod_payment, delivery_info, make_cart, selection


def place_order(db_session, flavor, product, quantity=1, size="large"):
    cart = make_cart(db_session, [(product, quantity, [selection(flavor.id, size, 1)])])
    return CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())


class TestRouting:
    def test_most_spare_capacity_wins(self, db_session):
        small = Kitchen(name="Small", capacity=2)
        big = Kitchen(name="Big", capacity=8)
        db_session.add_all([small, big])
        db_session.commit()

        assert KitchenService(db_session).route_order().id == big.id

    def test_full_kitchen_skipped(self, db_session, seed_flavor, seed_single_large):
        only = Kitchen(name="Tiny", capacity=1)
        db_session.add(only)
        db_session.commit()

        first = place_order(db_session, seed_flavor, seed_single_large)
        second = place_order(db_session, seed_flavor, seed_single_large)

        assert first.kitchen_id == only.id
        assert second.kitchen_id is None

    def test_inactive_kitchen_ignored(self, db_session):
        kitchen = Kitchen(name="Closed", capacity=10, is_active=False)
        db_session.add(kitchen)
        db_session.commit()

        assert KitchenService(db_session).route_order() is None


class TestStatusWorkflow:
    def test_forward_transition(self, db_session, seed_kitchen, seed_flavor, seed_single_large):
        order = place_order(db_session, seed_flavor, seed_single_large)

        updated = KitchenService(db_session).update_status(order.id, OrderStatus.PREPARING)

        assert updated.status == OrderStatus.PREPARING

    def test_skipping_steps_rejected(self, db_session, seed_flavor, seed_single_large):
        order = place_order(db_session, seed_flavor, seed_single_large)

        with pytest.raises(InvalidTransitionError):
            KitchenService(db_session).update_status(order.id, OrderStatus.DELIVERED)

    def test_delivered_is_terminal(self, db_session, seed_flavor, seed_single_large):
        kitchens = KitchenService(db_session)
        order = place_order(db_session, seed_flavor, seed_single_large)
        for status in [
            OrderStatus.PREPARING,
            OrderStatus.PACKING,
            OrderStatus.READY,
            OrderStatus.DISPATCHED,
            OrderStatus.DELIVERED,
        ]:
            kitchens.update_status(order.id, status)

        with pytest.raises(InvalidTransitionError):
            kitchens.update_status(order.id, OrderStatus.CANCELLED)

    def test_kitchen_cancel_restores_stock(self, db_session, seed_flavor, seed_single_large):
        order = place_order(db_session, seed_flavor, seed_single_large, quantity=2)

        KitchenService(db_session).update_status(order.id, OrderStatus.CANCELLED, changed_by="kitchen")

        stock = StockService(db_session)
        assert stock.current_stock(seed_flavor.id, FlavorSize.LARGE) == 2
        assert stock.reconcile() == []

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            KitchenService(db_session).update_status(999, OrderStatus.PREPARING)


class TestQueue:
    def test_urgent_first_then_oldest(self, db_session, seed_kitchen, seed_flavor, seed_single_large):
        kitchens = KitchenService(db_session)
        first = place_order(db_session, seed_flavor, seed_single_large, size="large")
        second = place_order(db_session, seed_flavor, seed_single_large, size="large")
        kitchens.set_priority(second.id, OrderPriority.URGENT)

        queue = kitchens.queue(seed_kitchen.id)

        assert [order.id for order in queue] == [second.id, first.id]

    def test_filter_by_status(self, db_session, seed_kitchen, seed_flavor, seed_single_large):
        kitchens = KitchenService(db_session)
        first = place_order(db_session, seed_flavor, seed_single_large)
        place_order(db_session, seed_flavor, seed_single_large)
        kitchens.update_status(first.id, OrderStatus.PREPARING)

        queue = kitchens.queue(seed_kitchen.id, statuses=[OrderStatus.PREPARING])

        assert [order.id for order in queue] == [first.id]

    def test_unknown_kitchen(self, db_session):
        with pytest.raises(NotFoundError):
            KitchenService(db_session).queue(999)

    def test_unknown_priority(self, db_session, seed_flavor, seed_single_large):
        order = place_order(db_session, seed_flavor, seed_single_large)

        with pytest.raises(InvalidInputError):
            KitchenService(db_session).set_priority(order.id, "whenever")


class TestDeliveryAssignment:
    def test_assign_skips_closed_orders(self, db_session, seed_flavor, seed_single_large):
        driver = DeliveryMan(name="Ahmed", phone="01100000001")
        db_session.add(driver)
        db_session.commit()
        kitchens = KitchenService(db_session)
        open_order = place_order(db_session, seed_flavor, seed_single_large)
        cancelled = place_order(db_session, seed_flavor, seed_single_large)
        kitchens.update_status(cancelled.id, OrderStatus.CANCELLED)

        updated = kitchens.assign_delivery_man([open_order.id, cancelled.id], driver.id)

        assert updated == 1

    def test_unknown_delivery_man(self, db_session, seed_flavor, seed_single_large):
        order = place_order(db_session, seed_flavor, seed_single_large)

        with pytest.raises(NotFoundError):
            KitchenService(db_session).assign_delivery_man([order.id], 999)


class TestReports:
    def test_stats(self, db_session, seed_kitchen, seed_flavor, seed_single_large):
        kitchens = KitchenService(db_session)
        first = place_order(db_session, seed_flavor, seed_single_large)
        place_order(db_session, seed_flavor, seed_single_large)
        kitchens.set_priority(first.id, OrderPriority.HIGH)

        stats = kitchens.stats(seed_kitchen.id)

        assert stats["open_orders"] == 2
        assert stats["spare_capacity"] == 8
        assert stats["by_status"][OrderStatus.RECEIVED] == 2
        assert stats["by_priority"][OrderPriority.HIGH] == 1
        assert stats["by_priority"][OrderPriority.NORMAL] == 1

    def test_production_summary(self, db_session, seed_flavor, seed_mixed_box):
        cart = make_cart(db_session, [(seed_mixed_box, 2, [selection(seed_flavor.id, "mini", 3)])])
        CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        summary = KitchenService(db_session).flavor_production_summary()

        assert summary == [{
            "flavor_id": seed_flavor.id,
            "flavor_name": "Chocolate Chip",
            "size": "mini",
            "quantity": 6,
        }]
