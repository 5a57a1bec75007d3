from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_actor, get_db
from backend.app.core.permissions import Actor
from backend.app.schemas.common import Envelope
from backend.app.schemas.order import OrderProcessRequest, ProcessedOrderRead
from backend.services import orders as order_service
from backend.services.orders import OrderLine

router = APIRouter(prefix="/orders")


@router.post("/process", status_code=201, response_model=Envelope[ProcessedOrderRead])
def process_order(
    payload: OrderProcessRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    result = order_service.process_order(
        db,
        actor,
        client_id=payload.client_id,
        warehouse_id=payload.warehouse_id,
        items=[OrderLine(product_id=i.product_id, quantity=i.quantity, unit_price=i.unit_price) for i in payload.items],
        payment_method=payload.payment_method,
        delivery_option=payload.delivery_option,
        delivery_address=payload.delivery_address,
    )
    return {"data": ProcessedOrderRead.model_validate(result), "message": "Order processed successfully"}


@router.get("/{order_id}", response_model=Envelope[ProcessedOrderRead])
def get_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    result = order_service.get_order(db, actor, order_id)
    return {"data": ProcessedOrderRead.model_validate(result), "message": "Order found"}
