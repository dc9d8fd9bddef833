"""
Stock management: manual adjustments, ledger history and reconciliation.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.infrastructure.db import get_db
from shared.security.admin import require_admin
from shared.utils.schemas import StockAdjustRequest, StockHistoryOutput
from shop_api.services.domain import StockService


router = APIRouter(tags=["admin-stock"])


@router.put("/flavors/{flavor_id}/stock", response_model=StockHistoryOutput)
def adjust_flavor_stock(
    flavor_id: int,
    body: StockAdjustRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
) -> StockHistoryOutput:
    """Add to, subtract from or replace one size counter. Every change is logged."""
    entry = StockService(db).adjust_stock(
        flavor_id,
        body.size,
        body.quantity,
        body.change_type,
        notes=body.notes,
        changed_by=actor,
    )
    return StockHistoryOutput.model_validate(entry)


@router.get("/stock/history", response_model=list[StockHistoryOutput])
def get_stock_history(
    flavor_id: int | None = None,
    size: str | None = None,
    limit: int = Query(default=Limits.DEFAULT_HISTORY_LIMIT, ge=1, le=Limits.MAX_HISTORY_LIMIT),
    db: Session = Depends(get_db),
) -> list[StockHistoryOutput]:
    entries = StockService(db).history(item_id=flavor_id, size=size, limit=limit)
    return [StockHistoryOutput.model_validate(entry) for entry in entries]


@router.get("/stock/reconcile")
def reconcile_stock(db: Session = Depends(get_db)) -> dict:
    """Counters whose value differs from the sum of their ledger rows."""
    mismatches = StockService(db).reconcile()
    return {"consistent": not mismatches, "mismatches": mismatches}
