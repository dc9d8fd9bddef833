"""
SQLAlchemy ORM Models Package.

All models are organized into domain-specific modules:
- base: Base class and AuditMixin
- catalog: Flavor, Product
- cart: Cart, CartItem, CartItemFlavor
- order: Order, OrderItem, OrderItemFlavor
- stock: StockHistory
- site_setting: SiteSetting
- promo: PromoCode
- delivery: Zone, Kitchen, DeliveryMan
- customer: Customer
- verification: PhoneVerification
"""

from .base import Base, AuditMixin

from .customer import Customer
from .catalog import Flavor, Product
from .cart import Cart, CartItem, CartItemFlavor
from .delivery import Zone, Kitchen, DeliveryMan
from .promo import PromoCode
from .order import Order, OrderItem, OrderItemFlavor
from .stock import StockHistory
from .site_setting import SiteSetting
from .verification import PhoneVerification

__all__ = [
    # Base
    "Base",
    "AuditMixin",
    # Customer
    "Customer",
    # Catalog
    "Flavor",
    "Product",
    # Cart
    "Cart",
    "CartItem",
    "CartItemFlavor",
    # Delivery
    "Zone",
    "Kitchen",
    "DeliveryMan",
    # Promo
    "PromoCode",
    # Order
    "Order",
    "OrderItem",
    "OrderItemFlavor",
    # Stock
    "StockHistory",
    # Settings
    "SiteSetting",
    # Verification
    "PhoneVerification",
]
