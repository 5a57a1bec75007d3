"""
Order service : traitement d'une commande client.

1. contrôle de rôle (client / admin)
2. passe de validation du stock sur TOUS les articles, sans mutation
3. total = somme(quantity * unit_price) avec les prix fournis par le client
4. transaction : order + items + décrément du ledger (lignes verrouillées)
   + delivery optionnelle + paiement, puis statut paid si paiement direct
5. après commit (best-effort) : audit + notifications client et entrepôt

Le contrôle de l'étape 2 sert à échouer vite ; la vraie garde contre la
survente est le décrément sous verrou de l'étape 4.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.core.config import get_settings
from backend.app.core.errors import InsufficientStockError, NotFoundError, PermissionDeniedError, ValidationError
from backend.app.core.permissions import Actor, Operation, require_role
from backend.app.db.models.core_types import (
    ENTITY_ORDERS,
    AuditAction,
    DeliveryStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from backend.app.db.models.models_v1 import Delivery, Order, OrderItem, Payment, Product, Stock, User, Warehouse
from backend.services import audit, notifications
from backend.services.inventory import debit, lock_stocks
from backend.services.notifications import PendingNotification
from backend.services.transactions import atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLine:
    product_id: uuid.UUID
    quantity: Decimal
    unit_price: Decimal


@dataclass
class ProcessedOrder:
    order: Order
    items: list[OrderItem]
    delivery: Delivery | None
    payment: Payment | None


# ---------- Helpers ----------
def _validate_lines(items: Sequence[OrderLine]) -> None:
    if not items:
        raise ValidationError("items must contain at least one line", details=[{"loc": ["items"], "msg": "empty"}])

    errors = []
    for idx, item in enumerate(items):
        if item.quantity < 1:
            errors.append({"loc": ["items", idx, "quantity"], "msg": "must be >= 1"})
        if item.unit_price < 0:
            errors.append({"loc": ["items", idx, "unit_price"], "msg": "must be >= 0"})
    if errors:
        raise ValidationError("Invalid order items", details=errors)


def _product_names(db: Session, product_ids: set[uuid.UUID]) -> dict[uuid.UUID, str]:
    rows = db.execute(select(Product.id, Product.name).where(Product.id.in_(product_ids))).all()
    return {pid: name for pid, name in rows}


def _requested_by_product(items: Sequence[OrderLine]) -> dict[uuid.UUID, Decimal]:
    # un même produit peut apparaître sur plusieurs lignes
    requested: dict[uuid.UUID, Decimal] = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, Decimal("0")) + Decimal(item.quantity)
    return requested


def check_availability(
    db: Session,
    *,
    warehouse_id: uuid.UUID,
    items: Sequence[OrderLine],
) -> None:
    """
    Passe de validation : inspecte tous les articles avant toute mutation.
    Lève InsufficientStockError pour le premier produit en défaut.
    """
    requested = _requested_by_product(items)
    names = _product_names(db, set(requested))

    rows = db.execute(
        select(Stock)
        .where(Stock.warehouse_id == warehouse_id)
        .where(Stock.product_id.in_(list(requested)))
    ).scalars().all()
    on_hand = {sl.product_id: Decimal(sl.quantity) for sl in rows}

    for item in items:
        available = on_hand.get(item.product_id, Decimal("0"))
        wanted = requested[item.product_id]
        if item.product_id not in on_hand or available < wanted:
            name = names.get(item.product_id, f"Product ID: {item.product_id}")
            raise InsufficientStockError(
                f"Insufficient stock for product: {name} (available={available}, requested={wanted})",
                product_id=item.product_id,
                product_name=name,
                available=available,
                requested=wanted,
            )


# ---------- Endpoint-facing ----------
def process_order(
    db: Session,
    actor: Actor,
    *,
    client_id: str,
    warehouse_id: uuid.UUID,
    items: Sequence[OrderLine],
    payment_method: PaymentMethod,
    delivery_option: bool = False,
    delivery_address: str | None = None,
) -> ProcessedOrder:
    require_role(actor, Operation.process_order)
    # un client ne commande que pour son propre compte
    if actor.role == Role.client and client_id != actor.id:
        raise PermissionDeniedError("Clients can only place orders for themselves")
    _validate_lines(items)

    total_amount = sum((Decimal(i.quantity) * Decimal(i.unit_price) for i in items), Decimal("0"))
    is_direct = payment_method == PaymentMethod.direct

    with atomic(db, "process_order"):
        if not db.get(User, client_id):
            raise NotFoundError("Client not found", details={"client_id": client_id})
        if not db.get(Warehouse, warehouse_id):
            raise NotFoundError("Warehouse not found", details={"warehouse_id": str(warehouse_id)})

        check_availability(db, warehouse_id=warehouse_id, items=items)

        order = Order(
            client_id=client_id,
            warehouse_id=warehouse_id,
            total_amount=total_amount,
            status=OrderStatus.pending,
            delivery_option=delivery_option,
            delivery_address=delivery_address,
            payment_method=payment_method,
        )
        db.add(order)
        db.flush()  # get order.id

        # lock stock levels
        locked = lock_stocks(db, [(i.product_id, warehouse_id) for i in items])
        names = _product_names(db, {i.product_id for i in items})

        order_items = []
        for item in items:
            sl = locked.get((item.product_id, warehouse_id))
            if sl is None:
                # la ligne a disparu entre la validation et le verrou
                raise InsufficientStockError(
                    f"Insufficient stock for product: {names.get(item.product_id, item.product_id)}",
                    product_id=item.product_id,
                    product_name=names.get(item.product_id),
                    available=Decimal("0"),
                    requested=Decimal(item.quantity),
                )
            debit(sl, Decimal(item.quantity), product_name=names.get(item.product_id))

            oi = OrderItem(
                order_id=order.id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            db.add(oi)
            order_items.append(oi)

        delivery = None
        if delivery_option:
            delivery = Delivery(order_id=order.id, status=DeliveryStatus.assigned)
            db.add(delivery)

        payment = Payment(
            order_id=order.id,
            amount=total_amount,
            payment_method=payment_method,
            status=PaymentStatus.completed if is_direct else PaymentStatus.pending,
        )
        db.add(payment)

        order.status = OrderStatus.paid if is_direct else OrderStatus.pending
        db.flush()

        staff_ids = notifications.staff_recipients(db, get_settings().warehouse_notification_role)

    result = ProcessedOrder(order=order, items=order_items, delivery=delivery, payment=payment)
    logger.info(
        "Order %s processed for client %s: %d items, total %s (%s)",
        order.id,
        client_id,
        len(order_items),
        total_amount,
        payment_method.value,
    )

    # ---------- hors transaction, best-effort ----------
    audit.append_committed(
        db,
        entity_type=ENTITY_ORDERS,
        entity_id=order.id,
        action=AuditAction.create,
        user_id=actor.id,
        details={
            "action": "process_order",
            "total_amount": total_amount,
            "items_count": len(order_items),
            "delivery_option": delivery_option,
            "payment_method": payment_method.value,
            "warehouse_id": warehouse_id,
        },
    )

    pending = [
        PendingNotification(
            user_id=client_id,
            message=f"Your order #{order.id} has been processed successfully. Total: {total_amount}",
        )
    ]
    for staff_id in staff_ids:
        pending.append(
            PendingNotification(
                user_id=staff_id,
                message=f"New order #{order.id} received. {len(order_items)} items to prepare.",
            )
        )
    notifications.dispatch(db, pending)
    return result


def get_order(db: Session, actor: Actor, order_id: uuid.UUID) -> ProcessedOrder:
    require_role(actor, Operation.read_order)

    order = db.get(Order, order_id)
    if not order or (actor.role == Role.client and order.client_id != actor.id):
        raise NotFoundError("Order not found", details={"order_id": str(order_id)})

    payment = db.execute(select(Payment).where(Payment.order_id == order.id)).scalars().first()
    return ProcessedOrder(order=order, items=list(order.items), delivery=order.delivery, payment=payment)
