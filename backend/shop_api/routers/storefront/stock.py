"""
Stock Router.
Availability check for one flavor size under the current order mode.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import AvailabilityOutput
from shop_api.services.domain import SiteSettings, StockService
from shop_api.services.domain.stock_policy import availability_status, parse_size


router = APIRouter(prefix="/api/stock", tags=["stock"])


@router.get("/availability", response_model=AvailabilityOutput)
def check_availability(
    flavor_id: int,
    size: str,
    quantity: int = Query(default=1),
    db: Session = Depends(get_db),
) -> AvailabilityOutput:
    """
    Can `quantity` cookies be ordered right now? Informational only:
    nothing is reserved until checkout.
    """
    mode = SiteSettings(db).get_order_mode()
    availability = StockService(db).check_availability(flavor_id, size, quantity, mode)
    return AvailabilityOutput(
        flavor_id=flavor_id,
        size=parse_size(size).value,
        quantity=quantity,
        mode=mode,
        available=availability.available,
        remaining=availability.remaining,
        status=availability_status(availability.remaining, mode),
    )
