"""
Order management: status workflow, priority and delivery assignment.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.admin import require_admin
from shared.utils.schemas import (
    AssignDeliveryRequest,
    AssignDeliveryResponse,
    OrderOutput,
    UpdateOrderPriorityRequest,
    UpdateOrderStatusRequest,
)
from shop_api.services.domain import KitchenService
from shop_api.services.notifications import send_order_status_sms


router = APIRouter(tags=["admin-orders"])


@router.patch("/orders/{order_id}/status", response_model=OrderOutput)
def update_order_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
) -> OrderOutput:
    """
    Move an order one step along its workflow. The customer gets an SMS;
    cancelling returns reserved stock to the counters.
    """
    order = KitchenService(db).update_status(order_id, body.status, changed_by=actor)
    background_tasks.add_task(
        send_order_status_sms, order.customer_phone, order.tracking_code, order.status
    )
    return OrderOutput.model_validate(order)


@router.patch("/orders/{order_id}/priority", response_model=OrderOutput)
def update_order_priority(
    order_id: int,
    body: UpdateOrderPriorityRequest,
    db: Session = Depends(get_db),
) -> OrderOutput:
    return OrderOutput.model_validate(KitchenService(db).set_priority(order_id, body.priority))


@router.post("/orders/assign-delivery", response_model=AssignDeliveryResponse)
def assign_delivery(
    body: AssignDeliveryRequest,
    db: Session = Depends(get_db),
) -> AssignDeliveryResponse:
    """Orders already delivered or cancelled are skipped."""
    updated = KitchenService(db).assign_delivery_man(body.order_ids, body.delivery_man_id)
    return AssignDeliveryResponse(delivery_man_id=body.delivery_man_id, updated=updated)
