"""
Tests for the Paymob integration: HMAC, client, payment workflow and webhook.
"""

import asyncio
import json
import logging

import httpx
import pytest

from shared.config.constants import FlavorSize, OrderStatus, PaymentStatus
from shared.config.settings import settings
from shared.utils.exceptions import (
    DependencyFailureError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
)
from shared.utils.schemas import PaymentInfo
from shop_api.models import Order
from shop_api.services.domain import CheckoutService, OrderService, StockService
from shop_api.services.payments import (
    CircuitBreakerError,
    CircuitState,
    PaymentService,
    PaymobClient,
    PaymobError,
    compute_hmac,
    paymob_breaker,
    verify_hmac,
)
from tests.factories import FakeGateway, cod_payment, delivery_info, make_cart, selection


def transaction_obj(order_id, success=True, **flags) -> dict:
    obj = {
        "id": 555001,
        "amount_cents": 6500,
        "created_at": "2026-10-19T10:00:00.000000",
        "currency": "EGP",
        "error_occured": False,
        "has_parent_transaction": False,
        "integration_id": 1234,
        "is_3d_secure": True,
        "is_auth": False,
        "is_capture": False,
        "is_refunded": False,
        "is_standalone_payment": True,
        "is_voided": False,
        "is_canceled": False,
        "order": {"id": order_id},
        "owner": 42,
        "pending": False,
        "source_data": {"pan": "2346", "sub_type": "MasterCard", "type": "card"},
        "success": success,
    }
    obj.update(flags)
    return obj


@pytest.fixture
def paymob_order(db_session, seed_flavor, seed_single_large):
    """Online order for 2 large cookies."""
    cart = make_cart(db_session, [(seed_single_large, 2, [selection(seed_flavor.id, "large", 1)])])
    return CheckoutService(db_session).finalize_order(cart.id, delivery_info(), PaymentInfo(method="paymob"))


@pytest.fixture
def linked_order(db_session, paymob_order):
    """Online order that already received a payment link from the fake gateway."""
    asyncio.run(PaymentService(db_session, FakeGateway()).request_payment(paymob_order))
    db_session.refresh(paymob_order)
    return paymob_order


class TestHmac:
    def test_verify_with_matching_signature(self):
        obj = transaction_obj(1)
        signature = compute_hmac(obj, "s3cret")

        assert verify_hmac(obj, signature, secret="s3cret")
        assert verify_hmac(obj, signature.upper(), secret="s3cret")

    def test_tampered_object_rejected(self):
        obj = transaction_obj(1)
        signature = compute_hmac(obj, "s3cret")
        obj["amount_cents"] = 1

        assert not verify_hmac(obj, signature, secret="s3cret")

    def test_missing_signature_rejected(self):
        assert not verify_hmac(transaction_obj(1), None, secret="s3cret")

    def test_booleans_serialized_lowercase(self):
        obj = transaction_obj(1)
        as_strings = dict(obj, success="true", pending="false")

        assert compute_hmac(obj, "k") == compute_hmac(as_strings, "k")

    def test_skipped_without_secret(self):
        assert verify_hmac(transaction_obj(1), None, secret="")


class TestPaymobClient:
    @staticmethod
    def transport(status_code=200):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, json.loads(request.content)))
            if status_code != 200:
                return httpx.Response(status_code, json={"detail": "boom"})
            if request.url.path.endswith("/auth/tokens"):
                return httpx.Response(201, json={"token": "auth-token"})
            if request.url.path.endswith("/ecommerce/orders"):
                return httpx.Response(201, json={"id": 777})
            return httpx.Response(201, json={"token": "payment-key"})

        return httpx.MockTransport(handler), seen

    @staticmethod
    def order() -> Order:
        return Order(
            id=1,
            tracking_code="CCABCDEF12",
            customer_name="Mona Adel",
            customer_email="mona@example.com",
            customer_phone="01001234567",
            delivery_address="12 Shagaret El Dor St",
            delivery_city=None,
            total_cents=9500,
        )

    @pytest.mark.asyncio
    async def test_three_step_payment(self):
        transport, seen = self.transport()
        client = PaymobClient(api_key="key", integration_id=1234, iframe_id=99, transport=transport)

        link = await client.create_payment(self.order())

        assert link.gateway_order_id == "777"
        assert link.token == "payment-key"
        assert link.url.endswith("/acceptance/iframes/99?payment_token=payment-key")
        paths = [path for path, _ in seen]
        assert paths[0].endswith("/auth/tokens")
        assert paths[1].endswith("/ecommerce/orders")
        assert paths[2].endswith("/acceptance/payment_keys")
        assert seen[1][1]["merchant_order_id"].startswith("CCABCDEF12-")
        assert seen[2][1]["billing_data"]["city"] == "NA"
        assert seen[2][1]["amount_cents"] == 9500

    @pytest.mark.asyncio
    async def test_hosted_page_without_iframe(self):
        transport, _ = self.transport()
        client = PaymobClient(api_key="key", integration_id=1234, iframe_id=0, transport=transport)

        link = await client.create_payment(self.order())

        assert "/acceptance/payments/pay?payment_token=payment-key" in link.url

    @pytest.mark.asyncio
    async def test_gateway_error(self):
        transport, _ = self.transport(status_code=500)
        client = PaymobClient(api_key="key", integration_id=1234, transport=transport)

        with pytest.raises(PaymobError) as exc_info:
            await client.create_payment(self.order())

        assert exc_info.value.status_code == 500
        assert paymob_breaker.stats.failed_calls >= 1

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        transport, seen = self.transport()
        client = PaymobClient(api_key="", integration_id=1234, transport=transport)

        with pytest.raises(PaymobError):
            await client.create_payment(self.order())

        assert seen == []

    @pytest.mark.asyncio
    async def test_circuit_opens_after_repeated_failures(self):
        transport, _ = self.transport(status_code=503)
        client = PaymobClient(api_key="key", integration_id=1234, transport=transport)

        for _ in range(paymob_breaker.config.failure_threshold):
            with pytest.raises(PaymobError):
                await client.create_payment(self.order())

        assert paymob_breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerError):
            await client.create_payment(self.order())


class TestRequestPayment:
    @pytest.mark.asyncio
    async def test_link_stored_on_order(self, db_session, paymob_order):
        gateway = FakeGateway()

        url, error = await PaymentService(db_session, gateway).request_payment(paymob_order)

        assert error is None
        assert url.startswith("https://")
        assert paymob_order.gateway_order_id == str(900000 + paymob_order.id)
        assert paymob_order.payment_status == PaymentStatus.UNPAID

    @pytest.mark.asyncio
    async def test_gateway_failure_keeps_order(self, db_session, seed_flavor, paymob_order):
        gateway = FakeGateway()
        gateway.error = PaymobError("Paymob /auth/tokens returned 500", 500)

        url, error = await PaymentService(db_session, gateway).request_payment(paymob_order)

        assert url is None
        assert error is not None
        db_session.refresh(paymob_order)
        assert paymob_order.status == OrderStatus.RECEIVED
        assert paymob_order.payment_status == PaymentStatus.FAILED
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 0

    @pytest.mark.asyncio
    async def test_open_circuit_reported(self, db_session, paymob_order):
        gateway = FakeGateway()
        gateway.error = CircuitBreakerError("paymob", 12.0)

        url, error = await PaymentService(db_session, gateway).request_payment(paymob_order)

        assert url is None
        assert "temporarily unavailable" in error


class TestRetryPayment:
    @pytest.mark.asyncio
    async def test_new_link(self, db_session, paymob_order):
        gateway = FakeGateway()

        order, url = await PaymentService(db_session, gateway).retry_payment(
            paymob_order.tracking_code, "mona@example.com"
        )

        assert order.id == paymob_order.id
        assert url

    @pytest.mark.asyncio
    async def test_cash_order_rejected(self, db_session, seed_flavor, seed_single_large):
        cart = make_cart(db_session, [(seed_single_large, 1, [selection(seed_flavor.id, "large", 1)])])
        order = CheckoutService(db_session).finalize_order(cart.id, delivery_info(), cod_payment())

        with pytest.raises(InvalidInputError):
            await PaymentService(db_session, FakeGateway()).retry_payment(order.tracking_code, "mona@example.com")

    @pytest.mark.asyncio
    async def test_paid_order_rejected(self, db_session, paymob_order):
        paymob_order.payment_status = PaymentStatus.PAID
        db_session.commit()

        with pytest.raises(InvalidStateError):
            await PaymentService(db_session, FakeGateway()).retry_payment(
                paymob_order.tracking_code, "mona@example.com"
            )

    @pytest.mark.asyncio
    async def test_open_circuit_is_service_unavailable(self, db_session, paymob_order):
        gateway = FakeGateway()
        gateway.error = CircuitBreakerError("paymob", 12.0)

        with pytest.raises(DependencyFailureError) as exc_info:
            await PaymentService(db_session, gateway).retry_payment(
                paymob_order.tracking_code, "mona@example.com"
            )

        assert exc_info.value.status_code == 503
        assert exc_info.value.headers["Retry-After"] == "13"

    @pytest.mark.asyncio
    async def test_gateway_error_is_bad_gateway(self, db_session, paymob_order):
        gateway = FakeGateway()
        gateway.error = httpx.ConnectError("connection refused")

        with pytest.raises(DependencyFailureError) as exc_info:
            await PaymentService(db_session, gateway).retry_payment(
                paymob_order.tracking_code, "mona@example.com"
            )

        assert exc_info.value.status_code == 502


class TestWebhook:
    def test_success_marks_paid(self, db_session, linked_order):
        obj = transaction_obj(int(linked_order.gateway_order_id))

        order = PaymentService(db_session, FakeGateway()).process_webhook("TRANSACTION", obj, None)

        assert order.id == linked_order.id
        assert order.payment_status == PaymentStatus.PAID
        assert order.gateway_transaction_id == "555001"

    def test_repeated_callback_is_idempotent(self, db_session, seed_flavor, linked_order):
        payments = PaymentService(db_session, FakeGateway())
        obj = transaction_obj(int(linked_order.gateway_order_id))
        payments.process_webhook("TRANSACTION", obj, None)

        cancelled = transaction_obj(int(linked_order.gateway_order_id), success=False, is_voided=True)
        order = payments.process_webhook("TRANSACTION", cancelled, None)

        assert order.payment_status == PaymentStatus.PAID
        assert order.status == OrderStatus.RECEIVED
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 0

    def test_cancelled_payment_cancels_order_and_restocks(self, db_session, seed_flavor, linked_order):
        obj = transaction_obj(int(linked_order.gateway_order_id), success=False, is_canceled=True)

        order = PaymentService(db_session, FakeGateway()).process_webhook("TRANSACTION", obj, None)

        stock = StockService(db_session)
        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.CANCELLED
        assert stock.current_stock(seed_flavor.id, FlavorSize.LARGE) == 2
        assert stock.reconcile() == []

    def test_error_marks_failed_only(self, db_session, linked_order):
        obj = transaction_obj(int(linked_order.gateway_order_id), success=False, error_occured=True)

        order = PaymentService(db_session, FakeGateway()).process_webhook("TRANSACTION", obj, None)

        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.RECEIVED

    def test_success_after_cancellation_flagged_for_refund(self, db_session, seed_flavor, linked_order, caplog):
        OrderService(db_session).cancel_by_customer(linked_order.tracking_code, "mona@example.com")
        obj = transaction_obj(int(linked_order.gateway_order_id))

        with caplog.at_level(logging.WARNING):
            order = PaymentService(db_session, FakeGateway()).process_webhook("TRANSACTION", obj, None)

        assert order.payment_status == PaymentStatus.PAID
        assert order.status == OrderStatus.CANCELLED
        assert StockService(db_session).current_stock(seed_flavor.id, FlavorSize.LARGE) == 2
        flagged = [r for r in caplog.records if r.getMessage() == "Payment captured for cancelled order"]
        assert len(flagged) == 1
        assert flagged[0].extra_data["refund_required"] is True
        assert flagged[0].extra_data["order_id"] == linked_order.id

    def test_found_by_merchant_order_id(self, db_session, linked_order):
        obj = transaction_obj(424242)
        obj["order"]["merchant_order_id"] = f"{linked_order.tracking_code}-a1b2c3"

        order = PaymentService(db_session, FakeGateway()).process_webhook("TRANSACTION", obj, None)

        assert order.id == linked_order.id

    def test_unknown_order_ignored(self, db_session):
        assert PaymentService(db_session, FakeGateway()).process_webhook(
            "TRANSACTION", transaction_obj(424242), None
        ) is None

    def test_other_callback_types_ignored(self, db_session, linked_order):
        obj = transaction_obj(int(linked_order.gateway_order_id))

        assert PaymentService(db_session, FakeGateway()).process_webhook("TOKEN", obj, None) is None
        db_session.refresh(linked_order)
        assert linked_order.payment_status == PaymentStatus.UNPAID

    def test_bad_hmac_rejected(self, db_session, linked_order, monkeypatch):
        monkeypatch.setattr(settings, "paymob_hmac_secret", "s3cret")
        obj = transaction_obj(int(linked_order.gateway_order_id))

        with pytest.raises(ForbiddenError):
            PaymentService(db_session, FakeGateway()).process_webhook("TRANSACTION", obj, "deadbeef")

        db_session.refresh(linked_order)
        assert linked_order.payment_status == PaymentStatus.UNPAID

    def test_valid_hmac_accepted(self, db_session, linked_order, monkeypatch):
        monkeypatch.setattr(settings, "paymob_hmac_secret", "s3cret")
        obj = transaction_obj(int(linked_order.gateway_order_id))

        order = PaymentService(db_session, FakeGateway()).process_webhook(
            "TRANSACTION", obj, compute_hmac(obj, "s3cret")
        )

        assert order.payment_status == PaymentStatus.PAID
