from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_actor, get_db
from backend.app.core.permissions import Actor, Operation, require_role
from backend.app.db.models.models_v1 import Product, Stock, Warehouse
from backend.app.schemas.common import Envelope
from backend.app.schemas.stock import StockRead

router = APIRouter(prefix="/stock")


@router.get(
    "",
    response_model=Envelope[list[StockRead]],
)
def get_stock(
    warehouse_id: UUID | None = None,
    product_id: UUID | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Stock (lecture seule)
    - une ligne par couple (produit, entrepôt)
    - les mouvements passent par /stock/management
    """
    require_role(actor, Operation.read_stock)

    stmt = (
        select(Stock)
        .join(Warehouse, Warehouse.id == Stock.warehouse_id)
        .join(Product, Product.id == Stock.product_id)
        .order_by(Warehouse.name, Product.name)
    )

    if warehouse_id is not None:
        stmt = stmt.where(Stock.warehouse_id == warehouse_id)

    if product_id is not None:
        stmt = stmt.where(Stock.product_id == product_id)

    stocks = db.execute(stmt).scalars().all()
    return {"data": [StockRead.model_validate(s) for s in stocks], "message": f"{len(stocks)} stock lines"}
