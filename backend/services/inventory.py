from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import InsufficientStockError
from backend.app.db.base import utcnow
from backend.app.db.models.models_v1 import Stock, Warehouse


def lock_stock(db: Session, product_id: uuid.UUID, warehouse_id: uuid.UUID) -> Stock | None:
    """
    Lit la ligne (product, warehouse) du ledger avec verrou (FOR UPDATE).

    Toute lecture suivie d'une écriture de quantité DOIT passer par ici :
    deux transactions concurrentes sur la même ligne sont sérialisées.
    """
    return (
        db.execute(
            select(Stock)
            .where(Stock.product_id == product_id)
            .where(Stock.warehouse_id == warehouse_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )


def lock_stocks(
    db: Session,
    pairs: Iterable[tuple[uuid.UUID, uuid.UUID]],
) -> dict[tuple[uuid.UUID, uuid.UUID], Stock]:
    """
    Verrouille plusieurs lignes dans un ordre déterministe
    (product_id, warehouse_id) pour éviter les deadlocks entre commandes
    qui touchent les mêmes produits dans un ordre différent.

    Les paires absentes du ledger ne figurent pas dans le résultat.
    """
    locked: dict[tuple[uuid.UUID, uuid.UUID], Stock] = {}
    for product_id, warehouse_id in sorted(set(pairs)):
        sl = lock_stock(db, product_id, warehouse_id)
        if sl is not None:
            locked[(product_id, warehouse_id)] = sl
    return locked


def get_or_create_stock(
    db: Session,
    *,
    product_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    unit_price: Decimal,
) -> Stock:
    sl = lock_stock(db, product_id, warehouse_id)
    if sl:
        return sl

    sl = Stock(
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity=Decimal("0"),
        unit_price=unit_price,
    )
    # Concurrence: une autre transaction peut créer la même paire en parallèle
    try:
        with db.begin_nested():
            db.add(sl)
    except IntegrityError:
        sl = lock_stock(db, product_id, warehouse_id)
        if sl is None:
            raise
    return sl


def credit(sl: Stock, quantity: Decimal) -> None:
    sl.quantity = Decimal(sl.quantity) + Decimal(quantity)
    sl.last_updated = utcnow()


def debit(sl: Stock, quantity: Decimal, *, product_name: str | None = None) -> None:
    available = Decimal(sl.quantity)
    if available < quantity:
        raise InsufficientStockError(
            f"Insufficient stock for product {product_name or sl.product_id} "
            f"(available={available}, requested={quantity})",
            product_id=sl.product_id,
            product_name=product_name,
            available=available,
            requested=Decimal(quantity),
        )
    sl.quantity = available - Decimal(quantity)
    sl.last_updated = utcnow()


def find_first_stock(
    db: Session,
    product_id: uuid.UUID,
    warehouse_id: uuid.UUID | None = None,
) -> Stock | None:
    """
    Première ligne du ledger pour un produit.
    Sans warehouse_id : ordre stable par nom d'entrepôt puis id.
    """
    stmt = (
        select(Stock)
        .join(Warehouse, Warehouse.id == Stock.warehouse_id)
        .where(Stock.product_id == product_id)
        .order_by(Warehouse.name.asc(), Stock.id.asc())
    )
    if warehouse_id is not None:
        stmt = stmt.where(Stock.warehouse_id == warehouse_id)

    return db.execute(stmt.limit(1)).scalars().first()
