"""
Cart Router.
Guest carts identified by the cart_token cookie. Stock is not checked
here; checkout validates the cart against the counters of that moment.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.utils.schemas import (
    AddCartItemRequest,
    CartItemAddedResponse,
    CartItemRemovedResponse,
    CartOutput,
    UpdateCartItemRequest,
)
from shop_api.services.domain import CartService
from ._session import get_cart_token, get_or_create_cart, set_cart_cookie


router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.post("", response_model=CartOutput, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_cart(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> CartOutput:
    """Start a new cart and hand its token out in the cookie."""
    carts = CartService(db)
    cart = carts.create()
    set_cart_cookie(response, cart.session_token)
    return CartOutput.model_validate(carts.get_view(cart.id))


@router.get("", response_model=CartOutput)
def get_cart(
    db: Session = Depends(get_db),
    token: str | None = Depends(get_cart_token),
) -> CartOutput:
    """Current cart priced from the live catalog."""
    carts = CartService(db)
    cart = carts.get_by_token(token)
    return CartOutput.model_validate(carts.get_view(cart.id))


@router.delete("", response_model=CartOutput)
def clear_cart(
    db: Session = Depends(get_db),
    token: str | None = Depends(get_cart_token),
) -> CartOutput:
    carts = CartService(db)
    cart = carts.get_by_token(token)
    carts.clear(cart.id)
    return CartOutput.model_validate(carts.get_view(cart.id))


@router.post("/reset", response_model=CartOutput)
def reset_cart(
    response: Response,
    db: Session = Depends(get_db),
    token: str | None = Depends(get_cart_token),
) -> CartOutput:
    """Abandon the current cart and issue a new token."""
    carts = CartService(db)
    cart = carts.get_by_token(token)
    replacement = carts.reset(cart.id)
    set_cart_cookie(response, replacement.session_token)
    return CartOutput.model_validate(carts.get_view(replacement.id))


@router.post("/items", response_model=CartItemAddedResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_cart_item(
    request: Request,
    response: Response,
    body: AddCartItemRequest,
    db: Session = Depends(get_db),
    token: str | None = Depends(get_cart_token),
) -> CartItemAddedResponse:
    """
    Add a product line. Packs need flavor selections summing to the pack
    size; a cart is created on the fly when the cookie has none.
    """
    cart = get_or_create_cart(db, token, response)
    carts = CartService(db)
    item = carts.add_item(cart.id, body.product_id, body.quantity, body.flavors)
    return CartItemAddedResponse(
        item_id=item.id,
        cart=CartOutput.model_validate(carts.get_view(cart.id)),
    )


@router.patch("/items/{item_id}", response_model=CartOutput)
def update_cart_item(
    item_id: int,
    body: UpdateCartItemRequest,
    db: Session = Depends(get_db),
    token: str | None = Depends(get_cart_token),
) -> CartOutput:
    carts = CartService(db)
    cart = carts.get_by_token(token)
    carts.update_quantity(cart.id, item_id, body.quantity)
    return CartOutput.model_validate(carts.get_view(cart.id))


@router.delete("/items/{item_id}", response_model=CartItemRemovedResponse)
def remove_cart_item(
    item_id: int,
    db: Session = Depends(get_db),
    token: str | None = Depends(get_cart_token),
) -> CartItemRemovedResponse:
    """Removing an item that is not in the cart succeeds with removed=false."""
    carts = CartService(db)
    cart = carts.get_by_token(token)
    removed = carts.remove_item(cart.id, item_id)
    return CartItemRemovedResponse(
        removed=removed,
        cart=CartOutput.model_validate(carts.get_view(cart.id)),
    )
