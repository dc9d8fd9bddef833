"""
Domain Services - application layer.

Routers stay thin and delegate to these services; services hold the business
rules and raise AppException subclasses directly.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Model (entity)

Usage:
    from shop_api.services.domain import CheckoutService

    order = CheckoutService(db).finalize_order(cart.id, body.delivery, body.payment)
"""

from .site_settings_service import CancellationPolicy, SiteSettings
from .stock_service import StockService
from .cart_service import CartService
from .promo_service import PromoQuote, PromoService
from .order_service import OrderService
from .kitchen_service import KitchenService
from .checkout_service import CheckoutService

__all__ = [
    # Settings
    "CancellationPolicy",
    "SiteSettings",
    # Stock
    "StockService",
    # Cart
    "CartService",
    # Pricing
    "PromoQuote",
    "PromoService",
    # Orders
    "OrderService",
    "KitchenService",
    "CheckoutService",
]
