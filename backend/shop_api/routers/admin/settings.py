"""
Site settings management: order mode and cancellation policy.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import OrderModeOutput, UpdateOrderModeRequest
from shop_api.services.domain import CancellationPolicy, SiteSettings


router = APIRouter(tags=["admin-settings"])


@router.put("/order-mode", response_model=OrderModeOutput)
def update_order_mode(
    body: UpdateOrderModeRequest,
    db: Session = Depends(get_db),
) -> OrderModeOutput:
    """
    Switch between stock_based and preorder. Takes effect for the next
    checkout; carts already holding items are not touched.
    """
    return OrderModeOutput(mode=SiteSettings(db).set_order_mode(body.mode))


@router.put("/cancellation-settings", response_model=CancellationPolicy)
def update_cancellation_settings(
    body: CancellationPolicy,
    db: Session = Depends(get_db),
) -> CancellationPolicy:
    return SiteSettings(db).set_cancellation_policy(body)
