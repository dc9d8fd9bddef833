"""
Centralized constants for the backend application.

Usage:
    from shared.config.constants import OrderStatus, ORDER_TRANSITIONS

    if order.status in OrderStatus.OPEN:
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# Stock Domain Enums
# =============================================================================


class FlavorSize(str, Enum):
    """Cookie size tiers, each with its own price and stock counter."""

    MINI = "mini"
    MEDIUM = "medium"
    LARGE = "large"


class OrderMode(str, Enum):
    """Global switch between enforcing stock counters and taking preorders."""

    STOCK_BASED = "stock_based"
    PREORDER = "preorder"


# =============================================================================
# Entity Status Constants
# =============================================================================


class CartStatus:
    """Cart lifecycle constants."""

    ACTIVE: Final[str] = "active"
    CONVERTED: Final[str] = "converted"
    ABANDONED: Final[str] = "abandoned"

    ALL: Final[list[str]] = [ACTIVE, CONVERTED, ABANDONED]


class OrderStatus:
    """Order fulfilment status constants."""

    RECEIVED: Final[str] = "received"
    PREPARING: Final[str] = "preparing"
    PACKING: Final[str] = "packing"
    READY: Final[str] = "ready"
    DISPATCHED: Final[str] = "dispatched"
    DELIVERED: Final[str] = "delivered"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [
        RECEIVED, PREPARING, PACKING, READY, DISPATCHED, DELIVERED, CANCELLED
    ]
    # Orders still occupying kitchen capacity
    OPEN: Final[list[str]] = [RECEIVED, PREPARING, PACKING]
    # Customer cancellation is refused once an order reaches these
    NOT_CANCELLABLE: Final[list[str]] = [CANCELLED, DISPATCHED, DELIVERED]


class PaymentStatus:
    """Payment status constants."""

    PENDING: Final[str] = "pending"  # Cash on delivery, collected later
    UNPAID: Final[str] = "unpaid"  # Waiting for the online gateway
    PAID: Final[str] = "paid"
    FAILED: Final[str] = "failed"

    ALL: Final[list[str]] = [PENDING, UNPAID, PAID, FAILED]


class PaymentMethod:
    """Payment method constants."""

    COD: Final[str] = "cod"
    PAYMOB: Final[str] = "paymob"

    ALL: Final[list[str]] = [COD, PAYMOB]


class OrderPriority:
    """Kitchen priority constants, highest first."""

    URGENT: Final[str] = "urgent"
    HIGH: Final[str] = "high"
    NORMAL: Final[str] = "normal"
    LOW: Final[str] = "low"

    ALL: Final[list[str]] = [URGENT, HIGH, NORMAL, LOW]
    RANK: Final[dict[str, int]] = {URGENT: 0, HIGH: 1, NORMAL: 2, LOW: 3}


class StockChangeType:
    """Stock ledger change type constants."""

    INITIAL: Final[str] = "initial"
    ORDER_PLACED: Final[str] = "order_placed"
    ORDER_CANCELLED: Final[str] = "order_cancelled"
    ADDITION: Final[str] = "addition"
    SUBTRACTION: Final[str] = "subtraction"
    REPLACEMENT: Final[str] = "replacement"

    ADJUSTMENTS: Final[list[str]] = [ADDITION, SUBTRACTION, REPLACEMENT]


class PromoType:
    """Promo code behaviour constants."""

    BASIC: Final[str] = "basic"
    FREE_DELIVERY: Final[str] = "free_delivery"
    FIRST_TIME_CUSTOMER: Final[str] = "first_time_customer"

    ALL: Final[list[str]] = [BASIC, FREE_DELIVERY, FIRST_TIME_CUSTOMER]


class DiscountType:
    """Promo discount kind constants."""

    PERCENTAGE: Final[str] = "percentage"
    FIXED_AMOUNT: Final[str] = "fixed_amount"

    ALL: Final[list[str]] = [PERCENTAGE, FIXED_AMOUNT]


# =============================================================================
# Status Transitions
# =============================================================================

# Valid order status transitions (from -> [allowed to states])
# Flow: received → preparing → packing → ready → dispatched → delivered
ORDER_TRANSITIONS: Final[dict[str, list[str]]] = {
    OrderStatus.RECEIVED: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
    OrderStatus.PREPARING: [OrderStatus.PACKING, OrderStatus.CANCELLED],
    OrderStatus.PACKING: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.DISPATCHED, OrderStatus.CANCELLED],
    OrderStatus.DISPATCHED: [OrderStatus.DELIVERED],
    OrderStatus.DELIVERED: [],  # Terminal state
    OrderStatus.CANCELLED: [],  # Terminal state
}


# =============================================================================
# Site Setting Keys
# =============================================================================


class SettingKeys:
    """Keys of the site_settings key/value table."""

    ORDER_MODE: Final[str] = "order_mode"
    CANCELLATION_SETTINGS: Final[str] = "cancellation_settings"


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Quantity limits
    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99

    # Stock counters shown as "low stock" at or below this value
    LOW_STOCK_THRESHOLD: Final[int] = 5

    # Pagination defaults
    DEFAULT_HISTORY_LIMIT: Final[int] = 100
    MAX_HISTORY_LIMIT: Final[int] = 500

    # String lengths
    MAX_NAME_LENGTH: Final[int] = 200
    MAX_NOTES_LENGTH: Final[int] = 1000
    MAX_ADDRESS_LENGTH: Final[int] = 500

    TRACKING_CODE_LENGTH: Final[int] = 10

    # Checkout phone verification
    OTP_LENGTH: Final[int] = 6
    OTP_TTL_MINUTES: Final[int] = 10
    OTP_MAX_ATTEMPTS: Final[int] = 5
    # A verified phone may check out for this long
    OTP_VERIFIED_WINDOW_MINUTES: Final[int] = 30
