"""
Cart Domain Service.

The cart aggregate: session-token carts holding product lines, each with an
optional flavor breakdown. Stock is deliberately not checked here; checkout
validates against the stock counters of that moment.
"""

import secrets
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import CartStatus, FlavorSize
from shared.config.logging import cart_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    CartNotFoundError,
    InvalidCompositionError,
    InvalidStateError,
    NotFoundError,
)
from shop_api.models import Cart, CartItem, CartItemFlavor, Flavor, Product
from shop_api.models.base import utcnow
from shop_api.services.domain import stock_policy


class FlavorSelectionLike(Protocol):
    flavor_id: int
    size: str
    quantity: int


def generate_session_token() -> str:
    """Opaque, URL-safe cart handle."""
    return secrets.token_urlsafe(32)


def check_composition(product: Product, selections: Sequence[FlavorSelectionLike]) -> None:
    """
    Validate the flavor breakdown of a cart line.

    Packs: selection quantities must sum to product.count and match the
    pack's size tier when it has one. Other products take no selections.

    Raises:
        InvalidCompositionError: breakdown does not fit the product
        InvalidQuantityError: a selection quantity <= 0
        NotFoundError: unknown size
    """
    if not product.is_pack:
        if selections:
            raise InvalidCompositionError(product.id, "product does not take flavor selections")
        return

    for selection in selections:
        stock_policy.validate_quantity(selection.quantity)
        size = stock_policy.parse_size(selection.size)
        if product.flavor_size and size != FlavorSize(product.flavor_size):
            raise InvalidCompositionError(
                product.id,
                f"pack only takes {product.flavor_size} cookies, got {size.value}",
            )

    selected = sum(selection.quantity for selection in selections)
    if selected != product.count:
        raise InvalidCompositionError(
            product.id,
            f"expected {product.count} cookies, got {selected}",
            required=product.count,
            selected=selected,
        )


def unit_price_cents(product: Product, selections: Sequence[tuple[Flavor, str, int]]) -> int:
    """Price of one unit of a line: base price plus the size price of every cookie."""
    return product.base_price_cents + sum(
        flavor.price_for(size) * quantity for flavor, size, quantity in selections
    )


class CartService:
    """Domain service for the cart aggregate."""

    def __init__(self, db: Session):
        self._db = db

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def _load(self, **criteria) -> Cart | None:
        query = select(Cart).options(
            selectinload(Cart.items).selectinload(CartItem.flavors).selectinload(CartItemFlavor.flavor),
            selectinload(Cart.items).selectinload(CartItem.product),
        ).execution_options(populate_existing=True)
        for column, value in criteria.items():
            query = query.where(getattr(Cart, column) == value)
        return self._db.scalar(query)

    def find_active_by_token(self, token: str | None) -> Cart | None:
        """Active cart for a session token, None when there is none."""
        cart = self._load(session_token=token) if token else None
        if cart and cart.status == CartStatus.ACTIVE:
            return cart
        return None

    def get_by_token(self, token: str | None) -> Cart:
        """Active cart for a session token."""
        cart = self._load(session_token=token) if token else None
        if not cart:
            raise CartNotFoundError()
        if cart.status != CartStatus.ACTIVE:
            raise InvalidStateError("Cart", cart.status, [CartStatus.ACTIVE], cart_id=cart.id)
        return cart

    def get_active(self, cart_id: int) -> Cart:
        cart = self._load(id=cart_id)
        if not cart:
            raise CartNotFoundError(cart_id=cart_id)
        if cart.status != CartStatus.ACTIVE:
            raise InvalidStateError("Cart", cart.status, [CartStatus.ACTIVE], cart_id=cart.id)
        return cart

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create(self, customer_id: int | None = None) -> Cart:
        cart = Cart(
            session_token=generate_session_token(),
            status=CartStatus.ACTIVE,
            customer_id=customer_id,
            expires_at=utcnow() + timedelta(days=settings.cart_lifetime_days),
        )
        self._db.add(cart)
        safe_commit(self._db)
        self._db.refresh(cart)
        logger.info("Cart created", cart_id=cart.id, customer_id=customer_id)
        return cart

    def clear(self, cart_id: int) -> Cart:
        cart = self.get_active(cart_id)
        cart.items.clear()
        safe_commit(self._db)
        logger.info("Cart cleared", cart_id=cart_id)
        return cart

    def reset(self, cart_id: int) -> Cart:
        """Abandon the cart and hand out a fresh one under a new token."""
        cart = self.get_active(cart_id)
        cart.status = CartStatus.ABANDONED
        replacement = Cart(
            session_token=generate_session_token(),
            status=CartStatus.ACTIVE,
            customer_id=cart.customer_id,
            expires_at=utcnow() + timedelta(days=settings.cart_lifetime_days),
        )
        self._db.add(replacement)
        safe_commit(self._db)
        self._db.refresh(replacement)
        logger.info("Cart reset", old_cart_id=cart_id, new_cart_id=replacement.id)
        return replacement

    def expire_stale(self, now: datetime | None = None) -> int:
        """Mark active carts past expires_at as abandoned. Returns how many."""
        now = now or utcnow()
        result = self._db.execute(
            update(Cart)
            .where(
                Cart.status == CartStatus.ACTIVE,
                Cart.expires_at.is_not(None),
                Cart.expires_at < now,
            )
            .values(status=CartStatus.ABANDONED)
            .execution_options(synchronize_session=False)
        )
        safe_commit(self._db)
        if result.rowcount:
            logger.info("Stale carts expired", count=result.rowcount)
        return result.rowcount

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def add_item(
        self,
        cart_id: int,
        product_id: int,
        quantity: int,
        selections: Sequence[FlavorSelectionLike] = (),
    ) -> CartItem:
        """
        Add a product line. The flavor breakdown is validated against the
        product; stock is not checked.

        Raises:
            NotFoundError: unknown/inactive product or flavor
            InvalidCompositionError: breakdown does not fit the product
            InvalidQuantityError: quantity <= 0
        """
        cart = self.get_active(cart_id)
        stock_policy.validate_quantity(quantity)

        product = self._db.scalar(
            select(Product).where(Product.id == product_id, Product.is_active.is_(True))
        )
        if not product:
            raise NotFoundError("Product", product_id)

        check_composition(product, selections)

        flavor_ids = {selection.flavor_id for selection in selections}
        if flavor_ids:
            found = set(
                self._db.scalars(
                    select(Flavor.id).where(Flavor.id.in_(flavor_ids), Flavor.is_active.is_(True))
                ).all()
            )
            missing = sorted(flavor_ids - found)
            if missing:
                raise NotFoundError("Flavor", missing[0])

        item = CartItem(product_id=product.id, quantity=quantity)
        item.flavors = [
            CartItemFlavor(
                flavor_id=selection.flavor_id,
                size=stock_policy.parse_size(selection.size).value,
                quantity=selection.quantity,
            )
            for selection in selections
        ]
        cart.items.append(item)
        safe_commit(self._db)
        self._db.refresh(item)

        logger.info(
            "Cart item added",
            cart_id=cart.id,
            item_id=item.id,
            product_id=product.id,
            quantity=quantity,
        )
        return item

    def update_quantity(self, cart_id: int, item_id: int, quantity: int) -> CartItem | None:
        """Set a line quantity. Unknown items are ignored (returns None)."""
        stock_policy.validate_quantity(quantity)
        cart = self.get_active(cart_id)
        item = next((i for i in cart.items if i.id == item_id), None)
        if item is None:
            return None
        item.quantity = quantity
        safe_commit(self._db)
        return item

    def remove_item(self, cart_id: int, item_id: int) -> bool:
        """Remove a line. Removing an item that is not there is a no-op."""
        cart = self.get_active(cart_id)
        item = next((i for i in cart.items if i.id == item_id), None)
        if item is None:
            return False
        cart.items.remove(item)
        safe_commit(self._db)
        logger.info("Cart item removed", cart_id=cart_id, item_id=item_id)
        return True

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------

    @staticmethod
    def line_unit_price(item: CartItem) -> int:
        return unit_price_cents(
            item.product,
            [(selection.flavor, selection.size, selection.quantity) for selection in item.flavors],
        )

    def compute_subtotal(self, cart_id: int) -> int:
        """Sum of unit price x quantity, priced from the live catalog."""
        cart = self.get_active(cart_id)
        return sum(self.line_unit_price(item) * item.quantity for item in cart.items)

    def get_view(self, cart_id: int) -> dict:
        """Cart contents with live prices, shaped for CartOutput."""
        cart = self.get_active(cart_id)
        items = []
        for item in cart.items:
            unit_price = self.line_unit_price(item)
            items.append({
                "item_id": item.id,
                "product_id": item.product_id,
                "product_name": item.product.name,
                "product_type": item.product.product_type,
                "is_pack": item.product.is_pack,
                "flavor_size": item.product.flavor_size,
                "quantity": item.quantity,
                "unit_price_cents": unit_price,
                "line_total_cents": unit_price * item.quantity,
                "flavors": [
                    {
                        "flavor_id": selection.flavor_id,
                        "flavor_name": selection.flavor.name,
                        "size": selection.size,
                        "quantity": selection.quantity,
                        "unit_price_cents": selection.flavor.price_for(selection.size),
                    }
                    for selection in item.flavors
                ],
            })
        return {
            "status": cart.status,
            "items": items,
            "item_count": sum(item.quantity for item in cart.items),
            "subtotal_cents": sum(i["line_total_cents"] for i in items),
            "expires_at": cart.expires_at,
        }
