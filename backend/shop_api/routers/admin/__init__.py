"""
Admin API router - combines all admin sub-routers.

- settings: order mode and cancellation policy
- stock: manual adjustments, ledger history, reconciliation
- kitchens: order queue, stats, production summary
- orders: status workflow, priority, delivery assignment

All routes are prefixed with /api/admin and require the X-Admin-Key header.
"""

from fastapi import APIRouter, Depends

from shared.security.admin import require_admin
from .kitchens import router as kitchens_router
from .orders import router as orders_router
from .settings import router as settings_router
from .stock import router as stock_router


router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])

router.include_router(settings_router)
router.include_router(stock_router)
router.include_router(kitchens_router)
router.include_router(orders_router)

__all__ = ["router"]
