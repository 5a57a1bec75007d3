"""
Procurement service : workflow des approvisionnements.

    pending --validate_bd--> validated_bd --receive_stock--> received
       |                          |
       +--reject_bd--> rejected <-+--reject_stock

- business_developer (ou admin) : validate_bd / reject_bd   (depuis pending)
- stock_manager (ou admin)      : receive_stock / reject_stock (depuis validated_bd)
- rejected et received sont terminaux.

La réception (receive_stock) est atomique : statut + ledger + paiement +
audit sont commités ensemble ou pas du tout. Les notifications partent
après le commit.

Toute la logique de quantité passe par backend.services.inventory.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.core.config import get_settings
from backend.app.core.errors import NotFoundError, PermissionDeniedError, StateConflictError, ValidationError
from backend.app.core.permissions import Actor, Operation, require_role
from backend.app.db.models.core_types import (
    ENTITY_APPROVISIONNEMENTS,
    ApprovisionnementStatus,
    AuditAction,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from backend.app.db.models.models_v1 import Approvisionnement, Payment, Product, User, Warehouse
from backend.services import audit, notifications
from backend.services.inventory import credit, get_or_create_stock
from backend.services.notifications import PendingNotification
from backend.services.transactions import atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    operation: Operation
    source: ApprovisionnementStatus
    target: ApprovisionnementStatus
    # colonne qui enregistre l'acteur de cette moitié de la décision
    actor_field: str
    conflict_message: str


VALIDATE_BD = Transition(
    Operation.validate_bd,
    ApprovisionnementStatus.pending,
    ApprovisionnementStatus.validated_bd,
    "business_developer_id",
    "Approvisionnement must be in pending status to be validated",
)
REJECT_BD = Transition(
    Operation.reject_bd,
    ApprovisionnementStatus.pending,
    ApprovisionnementStatus.rejected,
    "business_developer_id",
    "Approvisionnement must be in pending status to be rejected",
)
RECEIVE_STOCK = Transition(
    Operation.receive_stock,
    ApprovisionnementStatus.validated_bd,
    ApprovisionnementStatus.received,
    "stock_manager_id",
    "Approvisionnement must be validated by Business Developer before stock can be received",
)
REJECT_STOCK = Transition(
    Operation.reject_stock,
    ApprovisionnementStatus.validated_bd,
    ApprovisionnementStatus.rejected,
    "stock_manager_id",
    "Approvisionnement must be validated by Business Developer before stock can be rejected",
)


# ---------- Helpers ----------
def _lock_approvisionnement(db: Session, approvisionnement_id: uuid.UUID) -> Approvisionnement:
    appro = (
        db.execute(
            select(Approvisionnement)
            .where(Approvisionnement.id == approvisionnement_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if not appro:
        raise NotFoundError("Approvisionnement not found", details={"approvisionnement_id": str(approvisionnement_id)})
    return appro


def _apply_transition(
    db: Session,
    actor: Actor,
    approvisionnement_id: uuid.UUID,
    transition: Transition,
) -> tuple[Approvisionnement, ApprovisionnementStatus]:
    """
    Verrouille la ligne, vérifie le statut source et applique la transition.
    Le verrou garantit qu'une double soumission voit le statut déjà avancé.
    """
    appro = _lock_approvisionnement(db, approvisionnement_id)
    previous = appro.status
    if previous != transition.source:
        logger.warning(
            "%s refused on approvisionnement %s: status is %s",
            transition.operation.value,
            approvisionnement_id,
            previous.value,
        )
        raise StateConflictError(
            transition.conflict_message,
            details={
                "approvisionnement_id": str(approvisionnement_id),
                "current_status": previous.value,
                "required_status": transition.source.value,
            },
        )

    appro.status = transition.target
    setattr(appro, transition.actor_field, actor.id)
    return appro, previous


def _audit_transition(
    db: Session,
    actor: Actor,
    appro: Approvisionnement,
    transition: Transition,
    previous: ApprovisionnementStatus,
    **extra,
) -> None:
    audit.append(
        db,
        entity_type=ENTITY_APPROVISIONNEMENTS,
        entity_id=appro.id,
        action=AuditAction.update,
        user_id=actor.id,
        details={
            "action": transition.operation.value,
            "previous_status": previous.value,
            "new_status": transition.target.value,
            **extra,
        },
    )


def _rejection_reason(reason: str | None, notes: str | None) -> str:
    return reason or notes or "No reason provided"


# ---------- Submission / lecture ----------
def submit_approvisionnement(
    db: Session,
    actor: Actor,
    *,
    product_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    quantity: Decimal,
    proposed_price: Decimal,
    delivery_date: date,
    supplier_id: str | None = None,
) -> Approvisionnement:
    require_role(actor, Operation.submit_approvisionnement)

    if actor.role == Role.supplier:
        if supplier_id is not None and supplier_id != actor.id:
            raise PermissionDeniedError("Suppliers can only submit their own approvisionnements")
        supplier_id = actor.id
    elif supplier_id is None:
        raise ValidationError("supplier_id is required", details=[{"loc": ["supplier_id"], "msg": "Field required"}])

    if quantity <= 0:
        raise ValidationError("quantity must be positive", details=[{"loc": ["quantity"], "msg": "must be > 0"}])
    if proposed_price <= 0:
        raise ValidationError(
            "proposed_price must be positive",
            details=[{"loc": ["proposed_price"], "msg": "must be > 0"}],
        )

    with atomic(db, "submit_approvisionnement"):
        if not db.get(User, supplier_id):
            raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
        if not db.get(Product, product_id):
            raise NotFoundError("Product not found", details={"product_id": str(product_id)})
        if not db.get(Warehouse, warehouse_id):
            raise NotFoundError("Warehouse not found", details={"warehouse_id": str(warehouse_id)})

        appro = Approvisionnement(
            supplier_id=supplier_id,
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=quantity,
            proposed_price=proposed_price,
            delivery_date=delivery_date,
            status=ApprovisionnementStatus.pending,
        )
        db.add(appro)
        db.flush()  # get appro.id

        audit.append(
            db,
            entity_type=ENTITY_APPROVISIONNEMENTS,
            entity_id=appro.id,
            action=AuditAction.create,
            user_id=actor.id,
            details={
                "action": "submit",
                "supplier_id": supplier_id,
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "quantity": quantity,
                "proposed_price": proposed_price,
            },
        )

    logger.info("Approvisionnement %s submitted by %s", appro.id, actor.id)
    return appro


def list_approvisionnements(
    db: Session,
    actor: Actor,
    *,
    status: ApprovisionnementStatus | None = None,
) -> list[Approvisionnement]:
    require_role(actor, Operation.read_approvisionnement)

    stmt = select(Approvisionnement).order_by(Approvisionnement.created_at.desc())
    if status is not None:
        stmt = stmt.where(Approvisionnement.status == status)
    if actor.role == Role.supplier:
        stmt = stmt.where(Approvisionnement.supplier_id == actor.id)

    return list(db.execute(stmt).scalars().all())


def get_approvisionnement(db: Session, actor: Actor, approvisionnement_id: uuid.UUID) -> Approvisionnement:
    require_role(actor, Operation.read_approvisionnement)

    appro = db.get(Approvisionnement, approvisionnement_id)
    # un fournisseur ne voit pas les propositions des autres
    if not appro or (actor.role == Role.supplier and appro.supplier_id != actor.id):
        raise NotFoundError("Approvisionnement not found", details={"approvisionnement_id": str(approvisionnement_id)})
    return appro


# ---------- Workflow ----------
def validate_bd(
    db: Session,
    actor: Actor,
    approvisionnement_id: uuid.UUID,
    *,
    notes: str | None = None,
    reason: str | None = None,
) -> Approvisionnement:
    require_role(actor, Operation.validate_bd)

    with atomic(db, "validate_bd"):
        appro, previous = _apply_transition(db, actor, approvisionnement_id, VALIDATE_BD)
        _audit_transition(db, actor, appro, VALIDATE_BD, previous, notes=notes or reason)

        recipients = notifications.staff_recipients(db, get_settings().warehouse_notification_role)
        message = (
            "New approvisionnement validated by Business Developer: "
            f"{appro.product.name} - {appro.quantity} units"
        )
        pending = [PendingNotification(user_id=uid, message=message) for uid in recipients]

    logger.info("Approvisionnement %s validated by %s", appro.id, actor.id)
    if not pending:
        logger.warning("No stock manager to notify for approvisionnement %s", appro.id)
    notifications.dispatch(db, pending)
    return appro


def reject_bd(
    db: Session,
    actor: Actor,
    approvisionnement_id: uuid.UUID,
    *,
    notes: str | None = None,
    reason: str | None = None,
) -> Approvisionnement:
    require_role(actor, Operation.reject_bd)

    with atomic(db, "reject_bd"):
        appro, previous = _apply_transition(db, actor, approvisionnement_id, REJECT_BD)
        why = _rejection_reason(reason, notes)
        _audit_transition(db, actor, appro, REJECT_BD, previous, notes=notes, reason=why)
        supplier_id = appro.supplier_id

    logger.info("Approvisionnement %s rejected by business developer %s", appro.id, actor.id)
    notifications.dispatch(
        db,
        [
            PendingNotification(
                user_id=supplier_id,
                message=f"Your approvisionnement has been rejected by Business Developer. Reason: {why}",
            )
        ],
    )
    return appro


def receive_stock(
    db: Session,
    actor: Actor,
    approvisionnement_id: uuid.UUID,
    *,
    notes: str | None = None,
    reason: str | None = None,
) -> Approvisionnement:
    """
    Réception physique : statut -> received, crédit du ledger
    (quantité ajoutée, prix unitaire écrasé par proposed_price),
    paiement fournisseur en attente, une entrée d'audit.
    """
    require_role(actor, Operation.receive_stock)

    with atomic(db, "receive_stock"):
        appro, previous = _apply_transition(db, actor, approvisionnement_id, RECEIVE_STOCK)

        sl = get_or_create_stock(
            db,
            product_id=appro.product_id,
            warehouse_id=appro.warehouse_id,
            unit_price=appro.proposed_price,
        )
        previous_quantity = sl.quantity
        credit(sl, appro.quantity)
        sl.unit_price = appro.proposed_price
        sl.approvisionnement_id = appro.id

        amount = Decimal(appro.quantity) * Decimal(appro.proposed_price)
        payment = Payment(
            approvisionnement_id=appro.id,
            amount=amount,
            payment_method=PaymentMethod.direct,
            status=PaymentStatus.pending,
        )
        db.add(payment)
        db.flush()

        _audit_transition(
            db,
            actor,
            appro,
            RECEIVE_STOCK,
            previous,
            quantity_received=appro.quantity,
            stock_id=sl.id,
            previous_quantity=previous_quantity,
            new_quantity=sl.quantity,
            unit_price=appro.proposed_price,
            payment_id=payment.id,
            notes=notes or reason,
        )
        supplier_id = appro.supplier_id

    logger.info(
        "Approvisionnement %s received by %s: +%s into warehouse %s",
        appro.id,
        actor.id,
        appro.quantity,
        appro.warehouse_id,
    )
    notifications.dispatch(
        db,
        [
            PendingNotification(
                user_id=supplier_id,
                message=f"Your stock has been received and payment of {amount} has been initiated.",
            )
        ],
    )
    return appro


def reject_stock(
    db: Session,
    actor: Actor,
    approvisionnement_id: uuid.UUID,
    *,
    notes: str | None = None,
    reason: str | None = None,
) -> Approvisionnement:
    require_role(actor, Operation.reject_stock)

    with atomic(db, "reject_stock"):
        appro, previous = _apply_transition(db, actor, approvisionnement_id, REJECT_STOCK)
        why = _rejection_reason(reason, notes)
        _audit_transition(db, actor, appro, REJECT_STOCK, previous, notes=notes, reason=why)
        supplier_id = appro.supplier_id

    logger.info("Approvisionnement %s rejected at receipt by %s", appro.id, actor.id)
    notifications.dispatch(
        db,
        [
            PendingNotification(
                user_id=supplier_id,
                message=f"Your stock has been rejected by Stock Manager. Reason: {why}",
            )
        ],
    )
    return appro


WorkflowAction = Callable[..., Approvisionnement]

WORKFLOW_ACTIONS: dict[str, tuple[WorkflowAction, str]] = {
    "validate_bd": (validate_bd, "Approvisionnement validated successfully by Business Developer"),
    "reject_bd": (reject_bd, "Approvisionnement rejected successfully by Business Developer"),
    "receive_stock": (receive_stock, "Stock received successfully. Inventory updated and payment initiated."),
    "reject_stock": (reject_stock, "Stock rejected successfully by Stock Manager"),
}
