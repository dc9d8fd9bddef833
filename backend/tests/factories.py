"""
Test helpers shared across test modules.
"""

from shared.utils.schemas import DeliveryInfo, FlavorSelectionInput, PaymentInfo
from shop_api.services.domain import CartService
from shop_api.services.payments import PaymentLink


class FakeGateway:
    """
    Stand-in for PaymobClient. Set `error` to make the next calls raise it.
    """

    def __init__(self):
        self.error: Exception | None = None
        self.calls: list[int] = []

    async def create_payment(self, order) -> PaymentLink:
        self.calls.append(order.id)
        if self.error is not None:
            raise self.error
        gateway_order_id = str(900000 + order.id)
        return PaymentLink(
            gateway_order_id=gateway_order_id,
            token=f"token-{order.id}-{len(self.calls)}",
            url=f"https://accept.paymob.com/api/acceptance/iframes/1?payment_token=token-{order.id}",
        )


def selection(flavor_id: int, size: str, quantity: int) -> FlavorSelectionInput:
    return FlavorSelectionInput(flavor_id=flavor_id, size=size, quantity=quantity)


def make_cart(db_session, lines=()):
    """
    Create an active cart holding the given lines.
    Each line is (product, quantity, [selection, ...]).
    """
    carts = CartService(db_session)
    cart = carts.create()
    for product, quantity, selections in lines:
        carts.add_item(cart.id, product.id, quantity, selections)
    return carts.get_active(cart.id)


def delivery_info(**overrides) -> DeliveryInfo:
    data = {
        "customer_name": "Mona Adel",
        "customer_email": "mona@example.com",
        "customer_phone": "01001234567",
        "delivery_address": "12 Shagaret El Dor St",
        "delivery_city": "Cairo",
    }
    data.update(overrides)
    return DeliveryInfo(**data)


def cod_payment(promo_code: str | None = None) -> PaymentInfo:
    return PaymentInfo(method="cod", promo_code=promo_code)


def delivery_payload(**overrides) -> dict:
    """Checkout request body for the HTTP API."""
    return {
        "delivery": delivery_info(**overrides).model_dump(mode="json"),
        "payment": {"method": "cod"},
    }
