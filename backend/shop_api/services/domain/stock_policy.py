"""
Stock Allocation Policy.

Pure decision rules: no database access, no side effects. Callers resolve the
order mode (SiteSettings) and the current counter (StockService) and pass them in.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from shared.config.constants import FlavorSize, Limits, OrderMode
from shared.utils.exceptions import InvalidQuantityError, NotFoundError


@dataclass(frozen=True)
class Availability:
    """Outcome of an availability check. remaining is the counter before the request."""

    available: bool
    remaining: int


@dataclass(frozen=True)
class Requirement:
    """Total cookies of one flavor size needed by a cart."""

    flavor_id: int
    size: FlavorSize
    quantity: int


def parse_size(value: str | FlavorSize) -> FlavorSize:
    """Decode a size tier. Unknown sizes are reported as NotFound."""
    try:
        return FlavorSize(value)
    except ValueError:
        raise NotFoundError("Size", value) from None


def validate_quantity(quantity: int) -> int:
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


def evaluate(stock: int, quantity: int, mode: OrderMode) -> Availability:
    """
    Decide whether `quantity` cookies can be taken from a counter holding `stock`.

    stock_based: only when quantity <= stock.
    preorder: always, counters are not consulted.
    """
    validate_quantity(quantity)
    if mode == OrderMode.PREORDER:
        return Availability(available=True, remaining=stock)
    return Availability(available=quantity <= stock, remaining=stock)


def reservation_delta(quantity: int, mode: OrderMode) -> int:
    """Signed counter change to apply when an order takes `quantity` cookies."""
    validate_quantity(quantity)
    if mode == OrderMode.PREORDER:
        return 0
    return -quantity


def availability_status(stock: int, mode: OrderMode) -> str:
    """Storefront badge for a counter."""
    if mode == OrderMode.PREORDER:
        return "preorder_available"
    if stock <= 0:
        return "out_of_stock"
    if stock <= Limits.LOW_STOCK_THRESHOLD:
        return "low_stock"
    return "in_stock"


def aggregate_requirements(
    lines: Iterable[tuple[int, Iterable[tuple[int, str | FlavorSize, int]]]],
) -> list[Requirement]:
    """
    Collapse cart lines into one requirement per (flavor, size).

    Each line is (line_quantity, [(flavor_id, size, quantity_per_unit), ...]).
    Order follows the first appearance in the cart, so the first failing
    requirement reported at checkout matches what the customer sees first.
    """
    totals: dict[tuple[int, FlavorSize], int] = {}
    for line_quantity, selections in lines:
        for flavor_id, size, quantity in selections:
            key = (flavor_id, parse_size(size))
            totals[key] = totals.get(key, 0) + quantity * line_quantity

    return [
        Requirement(flavor_id=flavor_id, size=size, quantity=quantity)
        for (flavor_id, size), quantity in totals.items()
    ]
