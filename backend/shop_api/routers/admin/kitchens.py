"""
Kitchen dashboard: order queue, counts and the baking summary.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import KitchenStatsOutput, OrderOutput, ProductionSummaryRow
from shop_api.services.domain import KitchenService


router = APIRouter(tags=["admin-kitchens"])


@router.get("/kitchens/{kitchen_id}/orders", response_model=list[OrderOutput])
def get_kitchen_orders(
    kitchen_id: int,
    status: list[str] | None = Query(default=None),
    priority: list[str] | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[OrderOutput]:
    """Urgent orders first, then oldest first. Defaults to orders not yet dispatched."""
    orders = KitchenService(db).queue(kitchen_id, statuses=status, priorities=priority)
    return [OrderOutput.model_validate(order) for order in orders]


@router.get("/kitchens/{kitchen_id}/stats", response_model=KitchenStatsOutput)
def get_kitchen_stats(kitchen_id: int, db: Session = Depends(get_db)) -> KitchenStatsOutput:
    return KitchenStatsOutput(**KitchenService(db).stats(kitchen_id))


@router.get("/production-summary", response_model=list[ProductionSummaryRow])
def get_production_summary(
    status: list[str] | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ProductionSummaryRow]:
    rows = KitchenService(db).flavor_production_summary(statuses=status)
    return [ProductionSummaryRow(**row) for row in rows]
