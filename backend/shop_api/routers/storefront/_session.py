"""
Cart session plumbing: the cart token travels in an http-only cookie.
"""

from fastapi import Cookie, Response
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shop_api.models import Cart
from shop_api.services.domain import CartService


def get_cart_token(
    cart_token: str | None = Cookie(default=None, alias=settings.cart_cookie_name),
) -> str | None:
    return cart_token


def set_cart_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.cart_cookie_name,
        value=token,
        max_age=settings.cart_cookie_max_age_days * 24 * 3600,
        httponly=True,
        secure=settings.cart_cookie_secure,
        samesite="lax",
    )


def clear_cart_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.cart_cookie_name)


def get_or_create_cart(db: Session, token: str | None, response: Response) -> Cart:
    """Active cart for the cookie, or a fresh one (cookie set) when there is none."""
    carts = CartService(db)
    cart = carts.find_active_by_token(token)
    if cart:
        return cart
    cart = carts.create()
    set_cart_cookie(response, cart.session_token)
    return cart
