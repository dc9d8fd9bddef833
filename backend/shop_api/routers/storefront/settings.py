"""
Public Settings Router.
Read-only view of the order mode and the cancellation policy.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import OrderModeOutput
from shop_api.services.domain import CancellationPolicy, SiteSettings


router = APIRouter(prefix="/api", tags=["settings"])


@router.get("/order-mode", response_model=OrderModeOutput)
def get_order_mode(db: Session = Depends(get_db)) -> OrderModeOutput:
    return OrderModeOutput(mode=SiteSettings(db).get_order_mode())


@router.get("/cancellation-settings", response_model=CancellationPolicy)
def get_cancellation_settings(db: Session = Depends(get_db)) -> CancellationPolicy:
    return SiteSettings(db).get_cancellation_policy()
