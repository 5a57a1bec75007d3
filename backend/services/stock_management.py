"""
Opérations de gestion de stock (stock_manager / admin).

adjust et transfer verrouillent les lignes du ledger comme le font les
workflows (FOR UPDATE, ordre déterministe) : un ajustement ne peut pas
s'entrelacer avec le décrément d'une commande au point de rendre une
quantité négative.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.core.config import get_settings
from backend.app.core.errors import (
    InvalidTransferError,
    NegativeStockError,
    NotFoundError,
    ValidationError,
)
from backend.app.core.permissions import Actor, Operation, require_role
from backend.app.db.base import utcnow
from backend.app.db.models.core_types import ENTITY_STOCKS, AuditAction
from backend.app.db.models.models_v1 import Product, Stock, TransactionLog, Warehouse
from backend.services import audit, notifications
from backend.services.inventory import credit, debit, find_first_stock, get_or_create_stock, lock_stocks
from backend.services.notifications import PendingNotification
from backend.services.transactions import atomic

logger = logging.getLogger(__name__)


@dataclass
class StockAdjustment:
    stock: Stock
    adjustment: Decimal
    previous_quantity: Decimal
    new_quantity: Decimal
    reason: str


@dataclass
class StockTransfer:
    source_stock: Stock
    destination_stock: Stock
    quantity_transferred: Decimal
    reason: str


@dataclass
class WarehouseBreakdown:
    warehouse: Warehouse
    items: list[Stock] = field(default_factory=list)
    total_value: Decimal = Decimal("0")


@dataclass
class InventoryReport:
    total_items: int
    total_quantity: Decimal
    total_value: Decimal
    low_stock_threshold: Decimal
    low_stock_items: list[Stock]
    warehouses: list[WarehouseBreakdown]
    recent_movements: list[TransactionLog]
    generated_at: datetime
    generated_by: str


@dataclass
class StockAlert:
    stock: Stock
    current_quantity: Decimal
    threshold: Decimal
    is_low_stock: bool
    alert_sent: bool


def _value(sl: Stock) -> Decimal:
    return Decimal(sl.quantity) * Decimal(sl.unit_price)


def adjust(
    db: Session,
    actor: Actor,
    *,
    product_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    quantity: Decimal,
    reason: str | None = None,
) -> StockAdjustment:
    """Ajustement signé (+ ajout, - retrait). Jamais en dessous de zéro."""
    require_role(actor, Operation.adjust_stock)
    reason = reason or "Manual adjustment"

    with atomic(db, "stock_adjustment"):
        sl = lock_stocks(db, [(product_id, warehouse_id)]).get((product_id, warehouse_id))
        if not sl:
            raise NotFoundError(
                "Stock record not found for this product and warehouse",
                details={"product_id": str(product_id), "warehouse_id": str(warehouse_id)},
            )

        previous_quantity = Decimal(sl.quantity)
        new_quantity = previous_quantity + Decimal(quantity)
        if new_quantity < 0:
            raise NegativeStockError(
                "Stock adjustment would result in negative quantity",
                product_id=product_id,
                available=previous_quantity,
                requested=-Decimal(quantity),
            )

        if quantity >= 0:
            credit(sl, quantity)
        else:
            debit(sl, -quantity)

        audit.append(
            db,
            entity_type=ENTITY_STOCKS,
            entity_id=sl.id,
            action=AuditAction.update,
            user_id=actor.id,
            details={
                "action": "stock_adjustment",
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "previous_quantity": previous_quantity,
                "adjustment": quantity,
                "new_quantity": new_quantity,
                "reason": reason,
            },
        )

    logger.info(
        "Stock %s/%s adjusted by %s (%s -> %s)",
        product_id,
        warehouse_id,
        quantity,
        previous_quantity,
        new_quantity,
    )
    return StockAdjustment(
        stock=sl,
        adjustment=Decimal(quantity),
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        reason=reason,
    )


def transfer(
    db: Session,
    actor: Actor,
    *,
    product_id: uuid.UUID,
    from_warehouse_id: uuid.UUID,
    to_warehouse_id: uuid.UUID,
    quantity: Decimal,
    reason: str | None = None,
) -> StockTransfer:
    require_role(actor, Operation.transfer_stock)

    if from_warehouse_id == to_warehouse_id:
        raise InvalidTransferError("Source and destination warehouses must be different")
    if quantity <= 0:
        raise ValidationError("quantity must be positive", details=[{"loc": ["quantity"], "msg": "must be > 0"}])
    reason = reason or "Manual transfer"

    with atomic(db, "stock_transfer"):
        if not db.get(Warehouse, to_warehouse_id):
            raise NotFoundError("Destination warehouse not found", details={"warehouse_id": str(to_warehouse_id)})

        # lock stock levels (ordre déterministe)
        locked = lock_stocks(db, [(product_id, from_warehouse_id), (product_id, to_warehouse_id)])
        src = locked.get((product_id, from_warehouse_id))
        if not src:
            raise NotFoundError(
                "Source stock not found",
                details={"product_id": str(product_id), "warehouse_id": str(from_warehouse_id)},
            )

        product = db.get(Product, product_id)
        debit(src, quantity, product_name=product.name if product else None)

        dst = locked.get((product_id, to_warehouse_id))
        if dst is None:
            # nouvelle ligne : hérite du prix unitaire de la source
            dst = get_or_create_stock(
                db,
                product_id=product_id,
                warehouse_id=to_warehouse_id,
                unit_price=src.unit_price,
            )
        credit(dst, quantity)
        db.flush()

        audit.append(
            db,
            entity_type=ENTITY_STOCKS,
            entity_id=src.id,
            action=AuditAction.update,
            user_id=actor.id,
            details={
                "action": "stock_transfer",
                "product_id": product_id,
                "from_warehouse_id": from_warehouse_id,
                "to_warehouse_id": to_warehouse_id,
                "destination_stock_id": dst.id,
                "quantity_transferred": quantity,
                "reason": reason,
            },
        )

    logger.info(
        "Transferred %s of product %s from %s to %s",
        quantity,
        product_id,
        from_warehouse_id,
        to_warehouse_id,
    )
    return StockTransfer(
        source_stock=src,
        destination_stock=dst,
        quantity_transferred=Decimal(quantity),
        reason=reason,
    )


def report(db: Session, actor: Actor) -> InventoryReport:
    """Rapport d'inventaire (lecture seule, aucune entrée d'audit)."""
    require_role(actor, Operation.stock_report)
    settings = get_settings()

    rows = (
        db.execute(
            select(Stock)
            .join(Warehouse, Warehouse.id == Stock.warehouse_id)
            .join(Product, Product.id == Stock.product_id)
            .order_by(Warehouse.name.asc(), Product.name.asc())
        )
        .scalars()
        .all()
    )

    threshold = settings.low_stock_threshold
    by_warehouse: dict[uuid.UUID, WarehouseBreakdown] = {}
    total_value = Decimal("0")
    total_quantity = Decimal("0")
    low_stock = []
    for sl in rows:
        value = _value(sl)
        total_value += value
        total_quantity += Decimal(sl.quantity)
        if Decimal(sl.quantity) < threshold:
            low_stock.append(sl)

        breakdown = by_warehouse.get(sl.warehouse_id)
        if breakdown is None:
            breakdown = by_warehouse[sl.warehouse_id] = WarehouseBreakdown(warehouse=sl.warehouse)
        breakdown.items.append(sl)
        breakdown.total_value += value

    now = utcnow()
    movements = audit.recent_entries(
        db,
        entity_type=ENTITY_STOCKS,
        since=now - timedelta(days=settings.stock_report_window_days),
        limit=settings.stock_report_movements_limit,
    )

    return InventoryReport(
        total_items=len(rows),
        total_quantity=total_quantity,
        total_value=total_value,
        low_stock_threshold=threshold,
        low_stock_items=low_stock,
        warehouses=list(by_warehouse.values()),
        recent_movements=movements,
        generated_at=now,
        generated_by=actor.id,
    )


def alert(
    db: Session,
    actor: Actor,
    *,
    product_id: uuid.UUID,
    threshold: Decimal,
    warehouse_id: uuid.UUID | None = None,
) -> StockAlert:
    """
    Compare la quantité au seuil. Si quantity <= threshold :
    une entrée d'audit + une notification à l'appelant.
    Sinon : aucun effet de bord.
    """
    require_role(actor, Operation.stock_alert)
    if threshold <= 0:
        raise ValidationError("threshold must be positive", details=[{"loc": ["threshold"], "msg": "must be > 0"}])

    sl = find_first_stock(db, product_id, warehouse_id)
    if not sl:
        raise NotFoundError("Stock not found for this product", details={"product_id": str(product_id)})

    current = Decimal(sl.quantity)
    is_low = current <= threshold
    if not is_low:
        return StockAlert(stock=sl, current_quantity=current, threshold=threshold, is_low_stock=False, alert_sent=False)

    product_name = sl.product.name
    with atomic(db, "stock_alert"):
        audit.append(
            db,
            entity_type=ENTITY_STOCKS,
            entity_id=sl.id,
            action=AuditAction.create,
            user_id=actor.id,
            details={
                "action": "low_stock_alert",
                "product_id": product_id,
                "warehouse_id": sl.warehouse_id,
                "current_quantity": current,
                "threshold": threshold,
                "alert_triggered": True,
            },
        )

    logger.warning("Low stock for %s: %s <= %s", product_name, current, threshold)
    sent = notifications.dispatch(
        db,
        [
            PendingNotification(
                user_id=actor.id,
                message=(
                    f"LOW STOCK ALERT: {product_name} is below threshold. "
                    f"Current: {current}, Threshold: {threshold}"
                ),
            )
        ],
    )
    return StockAlert(stock=sl, current_quantity=current, threshold=threshold, is_low_stock=True, alert_sent=sent > 0)
