"""
Shared Pydantic schemas used across the application.

Request bodies are explicit input models; decode failures are rendered as
invalid_input by the application exception handler.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from shared.config.constants import Limits, OrderMode


# =============================================================================
# Common Types
# =============================================================================

PaymentMethodType = Literal["cod", "paymob"]
StockAdjustmentType = Literal["addition", "subtraction", "replacement"]
AvailabilityStatus = Literal["in_stock", "low_stock", "out_of_stock", "preorder_available"]


# =============================================================================
# Catalog Schemas
# =============================================================================


class FlavorOutput(BaseModel):
    """Flavor with per-size prices, counters and storefront badges."""

    id: int
    name: str
    description: str | None = None
    category: str | None = None
    mini_price_cents: int
    medium_price_cents: int
    large_price_cents: int
    stock_quantity_mini: int
    stock_quantity_medium: int
    stock_quantity_large: int
    availability: dict[str, AvailabilityStatus] = {}


class ProductOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    product_type: str
    is_pack: bool
    flavor_size: str | None = None
    count: int
    base_price_cents: int


# =============================================================================
# Cart Schemas
# =============================================================================


class FlavorSelectionInput(BaseModel):
    """One flavor in a pack: `quantity` cookies of `flavor_id` in `size`."""

    flavor_id: int
    size: str
    quantity: int


class AddCartItemRequest(BaseModel):
    product_id: int
    quantity: int = 1
    flavors: list[FlavorSelectionInput] = []


class UpdateCartItemRequest(BaseModel):
    quantity: int


class CartItemFlavorOutput(BaseModel):
    flavor_id: int
    flavor_name: str
    size: str
    quantity: int
    unit_price_cents: int


class CartItemOutput(BaseModel):
    item_id: int
    product_id: int
    product_name: str
    product_type: str
    is_pack: bool
    flavor_size: str | None = None
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    flavors: list[CartItemFlavorOutput] = []


class CartOutput(BaseModel):
    """Cart contents priced from the live catalog."""

    status: str
    items: list[CartItemOutput]
    item_count: int
    subtotal_cents: int
    expires_at: datetime | None = None


class CartItemAddedResponse(BaseModel):
    item_id: int
    cart: CartOutput


class CartItemRemovedResponse(BaseModel):
    removed: bool
    cart: CartOutput


# =============================================================================
# Stock Schemas
# =============================================================================


class AvailabilityOutput(BaseModel):
    flavor_id: int
    size: str
    quantity: int
    mode: OrderMode
    available: bool
    remaining: int
    status: AvailabilityStatus


class StockAdjustRequest(BaseModel):
    """Back-office stock adjustment."""

    size: str
    quantity: int = Field(ge=0)
    change_type: StockAdjustmentType
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class StockHistoryOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    item_type: str
    size: str | None = None
    old_quantity: int
    new_quantity: int
    change_amount: int
    change_type: str
    reason: str | None = None
    order_id: int | None = None
    changed_by: str
    changed_at: datetime


# =============================================================================
# Checkout Schemas
# =============================================================================


class DeliveryInfo(BaseModel):
    """Contact and delivery details captured at checkout."""

    customer_name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    customer_email: EmailStr
    customer_phone: str = Field(min_length=6, max_length=20)
    delivery_address: str = Field(min_length=1, max_length=Limits.MAX_ADDRESS_LENGTH)
    delivery_city: str | None = Field(default=None, max_length=Limits.MAX_NAME_LENGTH)
    zone_id: int | None = None
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class PaymentInfo(BaseModel):
    method: PaymentMethodType = "cod"
    promo_code: str | None = Field(default=None, max_length=50)


class CheckoutRequest(BaseModel):
    delivery: DeliveryInfo
    payment: PaymentInfo = PaymentInfo()


class OrderItemFlavorOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    flavor_id: int
    flavor_name: str
    size: str
    quantity: int
    unit_price_cents: int


class OrderItemOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int | None = None
    product_name: str
    product_type: str
    size: str | None = None
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    flavors: list[OrderItemFlavorOutput] = []


class OrderOutput(BaseModel):
    """Placed order as shown to the customer."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tracking_code: str
    status: str
    priority: str
    order_mode: str
    payment_method: str
    payment_status: str
    customer_name: str
    customer_email: str
    delivery_address: str
    delivery_city: str | None = None
    zone_id: int | None = None
    kitchen_id: int | None = None
    delivery_man_id: int | None = None
    notes: str | None = None
    subtotal_cents: int
    delivery_fee_cents: int
    discount_cents: int
    total_cents: int
    created_at: datetime
    cancelled_at: datetime | None = None
    items: list[OrderItemOutput] = []


class CheckoutResponse(BaseModel):
    """
    Committed order. For online payment, payment_url points to the gateway;
    payment_error is set when the gateway could not be reached (the order
    stands and payment can be retried).
    """

    order: OrderOutput
    payment_url: str | None = None
    payment_error: str | None = None


class OtpRequest(BaseModel):
    phone: str = Field(min_length=6, max_length=20)


class OtpRequestResponse(BaseModel):
    """debug_code is only filled outside production."""

    phone: str
    expires_at: datetime
    debug_code: str | None = None


class OtpVerifyRequest(BaseModel):
    phone: str = Field(min_length=6, max_length=20)
    code: str = Field(min_length=Limits.OTP_LENGTH, max_length=Limits.OTP_LENGTH, pattern=r"^\d+$")


class OtpVerifyResponse(BaseModel):
    phone: str
    verified: bool


# =============================================================================
# Order Schemas
# =============================================================================


class OrderEmailRequest(BaseModel):
    """Customer proof of ownership for cancel / payment retry."""

    email: EmailStr


class PaymentLinkResponse(BaseModel):
    tracking_code: str
    payment_url: str


class UpdateOrderStatusRequest(BaseModel):
    status: str


class UpdateOrderPriorityRequest(BaseModel):
    priority: str


class AssignDeliveryRequest(BaseModel):
    order_ids: list[int] = Field(min_length=1)
    delivery_man_id: int


class AssignDeliveryResponse(BaseModel):
    delivery_man_id: int
    updated: int


class KitchenStatsOutput(BaseModel):
    kitchen_id: int
    kitchen_name: str
    capacity: int
    open_orders: int
    spare_capacity: int
    by_status: dict[str, int]
    by_priority: dict[str, int]


class ProductionSummaryRow(BaseModel):
    flavor_id: int
    flavor_name: str
    size: str
    quantity: int


# =============================================================================
# Promo Code Schemas
# =============================================================================


class PromoValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    subtotal_cents: int = Field(ge=0)
    email: EmailStr | None = None


class PromoValidateResponse(BaseModel):
    code: str
    name: str | None = None
    discount_cents: int
    free_delivery: bool
    message: str


# =============================================================================
# Settings Schemas
# =============================================================================


class OrderModeOutput(BaseModel):
    mode: OrderMode


class UpdateOrderModeRequest(BaseModel):
    mode: OrderMode


# =============================================================================
# Payment Webhook Schemas
# =============================================================================


class PaymobWebhookPayload(BaseModel):
    """
    Paymob transaction callback. `obj` is kept as sent: the HMAC is computed
    over its raw field values.
    """

    type: str = "TRANSACTION"
    obj: dict


class WebhookAck(BaseModel):
    received: bool = True
    order_id: int | None = None
    payment_status: str | None = None


# =============================================================================
# Error Schema
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str
