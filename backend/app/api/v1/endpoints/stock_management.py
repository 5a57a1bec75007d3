"""
Opérations de stock : ajustement, transfert, rapport, alerte.

POST /stock/management accepte un champ `action` ; chaque action
a aussi sa route dédiée.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_actor, get_db
from backend.app.core.permissions import Actor
from backend.app.schemas.common import Envelope
from backend.app.schemas.stock import (
    InventoryReportRead,
    StockAdjustmentRead,
    StockAdjustRequest,
    StockAlertRead,
    StockAlertRequest,
    StockManagementRequest,
    StockTransferRead,
    StockTransferRequest,
)
from backend.services import stock_management

router = APIRouter(prefix="/stock/management")


def _adjust(db: Session, actor: Actor, payload) -> dict:
    result = stock_management.adjust(
        db,
        actor,
        product_id=payload.product_id,
        warehouse_id=payload.warehouse_id,
        quantity=payload.quantity,
        reason=payload.reason,
    )
    return {"data": StockAdjustmentRead.model_validate(result), "message": "Stock adjusted successfully"}


def _transfer(db: Session, actor: Actor, payload) -> dict:
    result = stock_management.transfer(
        db,
        actor,
        product_id=payload.product_id,
        from_warehouse_id=payload.from_warehouse_id,
        to_warehouse_id=payload.to_warehouse_id,
        quantity=payload.quantity,
        reason=payload.reason,
    )
    return {"data": StockTransferRead.model_validate(result), "message": "Stock transferred successfully"}


def _report(db: Session, actor: Actor, payload=None) -> dict:
    result = stock_management.report(db, actor)
    return {"data": InventoryReportRead.model_validate(result), "message": "Inventory report generated"}


def _alert(db: Session, actor: Actor, payload) -> dict:
    result = stock_management.alert(
        db,
        actor,
        product_id=payload.product_id,
        threshold=payload.threshold,
        warehouse_id=payload.warehouse_id,
    )
    message = "Low stock alert sent" if result.alert_sent else "Stock level is above threshold"
    return {"data": StockAlertRead.model_validate(result), "message": message}


_ACTIONS = {
    "adjust": _adjust,
    "transfer": _transfer,
    "report": _report,
    "alert": _alert,
}


@router.post("", response_model=Envelope)
def manage_stock(
    payload: StockManagementRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _ACTIONS[payload.action](db, actor, payload)


@router.post("/adjust", response_model=Envelope[StockAdjustmentRead])
def adjust_stock(
    payload: StockAdjustRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _adjust(db, actor, payload)


@router.post("/transfer", response_model=Envelope[StockTransferRead])
def transfer_stock(
    payload: StockTransferRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _transfer(db, actor, payload)


@router.get("/report", response_model=Envelope[InventoryReportRead])
def stock_report(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _report(db, actor)


@router.post("/alert", response_model=Envelope[StockAlertRead])
def stock_alert(
    payload: StockAlertRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _alert(db, actor, payload)
