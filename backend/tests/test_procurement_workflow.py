import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from backend.app.core.errors import InternalError, NotFoundError, PermissionDeniedError, StateConflictError
from backend.app.db.models.core_types import (
    ENTITY_APPROVISIONNEMENTS,
    ApprovisionnementStatus,
    AuditAction,
    PaymentStatus,
    Role,
)
from backend.app.db.models.models_v1 import Notification, Payment, Stock, User
from backend.services import audit, procurement


def _submit(db, world, quantity="100", price="2.50"):
    return procurement.submit_approvisionnement(
        db,
        world.actors[Role.supplier],
        product_id=world.tomatoes.id,
        warehouse_id=world.north.id,
        quantity=Decimal(quantity),
        proposed_price=Decimal(price),
        delivery_date=date.today() + timedelta(days=2),
    )


def _stock(db, world):
    return db.execute(
        select(Stock).where(Stock.product_id == world.tomatoes.id).where(Stock.warehouse_id == world.north.id)
    ).scalar_one_or_none()


def _notifications_for(db, user_id):
    return db.execute(select(Notification).where(Notification.user_id == user_id)).scalars().all()


def test_submit_creates_pending_proposal_with_audit(db_session, world):
    appro = _submit(db_session, world)

    assert appro.status == ApprovisionnementStatus.pending
    assert appro.supplier_id == world.users[Role.supplier].id

    entries = audit.entries_for(db_session, entity_type=ENTITY_APPROVISIONNEMENTS, entity_id=appro.id)
    assert [e.action for e in entries] == [AuditAction.create]
    assert entries[0].details["action"] == "submit"


def test_supplier_cannot_submit_for_another_supplier(db_session, world):
    with pytest.raises(PermissionDeniedError):
        procurement.submit_approvisionnement(
            db_session,
            world.actors[Role.supplier],
            product_id=world.tomatoes.id,
            warehouse_id=world.north.id,
            quantity=Decimal("10"),
            proposed_price=Decimal("1"),
            delivery_date=date.today(),
            supplier_id="someone-else",
        )


def test_full_workflow_credits_ledger_exactly_once(db_session, world):
    """
    GIVEN
    - une proposition de 100 kg à 2.50, aucun stock existant

    WHEN
    - validate_bd puis receive_stock, puis un second receive_stock

    THEN
    - le ledger est crédité une seule fois (100), prix unitaire 2.50
    - un paiement fournisseur en attente de 250
    - le second receive_stock est refusé (statut déjà received)
    """
    appro = _submit(db_session, world)

    procurement.validate_bd(db_session, world.actors[Role.business_developer], appro.id)
    assert appro.status == ApprovisionnementStatus.validated_bd
    assert appro.business_developer_id == world.users[Role.business_developer].id

    procurement.receive_stock(db_session, world.actors[Role.stock_manager], appro.id)
    assert appro.status == ApprovisionnementStatus.received
    assert appro.stock_manager_id == world.users[Role.stock_manager].id

    sl = _stock(db_session, world)
    assert Decimal(str(sl.quantity)) == Decimal("100")
    assert Decimal(str(sl.unit_price)) == Decimal("2.50")
    assert sl.approvisionnement_id == appro.id

    payment = db_session.execute(select(Payment).where(Payment.approvisionnement_id == appro.id)).scalar_one()
    assert payment.status == PaymentStatus.pending
    assert payment.order_id is None
    assert Decimal(str(payment.amount)) == Decimal("250.00")

    with pytest.raises(StateConflictError) as exc:
        procurement.receive_stock(db_session, world.actors[Role.stock_manager], appro.id)
    assert exc.value.details["current_status"] == "received"

    db_session.refresh(sl)
    assert Decimal(str(sl.quantity)) == Decimal("100")
    assert len(db_session.execute(select(Payment)).scalars().all()) == 1


def test_receive_adds_to_existing_stock_and_overwrites_price(db_session, world, put_stock):
    put_stock(world.tomatoes, world.north, 40, unit_price="3.00")
    appro = _submit(db_session, world, quantity="60", price="2.00")

    procurement.validate_bd(db_session, world.actors[Role.business_developer], appro.id)
    procurement.receive_stock(db_session, world.actors[Role.admin], appro.id)

    sl = _stock(db_session, world)
    assert Decimal(str(sl.quantity)) == Decimal("100")
    assert Decimal(str(sl.unit_price)) == Decimal("2.00")

    entries = audit.entries_for(db_session, entity_type=ENTITY_APPROVISIONNEMENTS, entity_id=appro.id)
    received = [e for e in entries if e.details.get("action") == "receive_stock"]
    assert len(received) == 1
    assert received[0].details["quantity_received"] == 60


def test_failed_receipt_leaves_status_ledger_and_payment_untouched(db_session, world, monkeypatch):
    """
    GIVEN une proposition validée
    WHEN  l'insert du paiement fournisseur échoue (montant négatif refusé par la base)
    THEN  InternalError ; statut validated_bd, aucune ligne de stock, aucun paiement,
          aucune entrée d'audit receive_stock, fournisseur non notifié
    """
    appro = _submit(db_session, world)
    procurement.validate_bd(db_session, world.actors[Role.business_developer], appro.id)

    def negative_payment(**kwargs):
        kwargs["amount"] = Decimal("-1")
        return Payment(**kwargs)

    monkeypatch.setattr(procurement, "Payment", negative_payment)

    with pytest.raises(InternalError):
        procurement.receive_stock(db_session, world.actors[Role.stock_manager], appro.id)

    db_session.refresh(appro)
    assert appro.status == ApprovisionnementStatus.validated_bd
    assert appro.stock_manager_id is None
    assert _stock(db_session, world) is None
    assert db_session.execute(select(Payment)).scalars().all() == []
    entries = audit.entries_for(db_session, entity_type=ENTITY_APPROVISIONNEMENTS, entity_id=appro.id)
    assert {e.details["action"] for e in entries} == {"submit", "validate_bd"}
    assert _notifications_for(db_session, world.users[Role.supplier].id) == []

    # une fois la cause levée, la réception passe normalement
    monkeypatch.undo()
    procurement.receive_stock(db_session, world.actors[Role.stock_manager], appro.id)
    assert Decimal(str(_stock(db_session, world).quantity)) == Decimal("100")


def test_validation_notifies_stock_managers_and_receipt_notifies_supplier(db_session, world):
    appro = _submit(db_session, world)

    db_session.add(User(id="sm-2", name="Second Stock Manager", role=Role.stock_manager, active=True))
    db_session.add(User(id="sm-off", name="Ancien Stock Manager", role=Role.stock_manager, active=False))
    db_session.commit()

    procurement.validate_bd(db_session, world.actors[Role.business_developer], appro.id)
    to_sm = _notifications_for(db_session, world.users[Role.stock_manager].id)
    assert len(to_sm) == 1
    assert len(_notifications_for(db_session, "sm-2")) == 1
    assert _notifications_for(db_session, "sm-off") == []
    assert "validated by Business Developer" in to_sm[0].message

    procurement.receive_stock(db_session, world.actors[Role.stock_manager], appro.id)
    to_supplier = _notifications_for(db_session, world.users[Role.supplier].id)
    assert len(to_supplier) == 1
    assert "250" in to_supplier[0].message


def test_rejected_is_terminal(db_session, world):
    appro = _submit(db_session, world)

    procurement.reject_bd(db_session, world.actors[Role.business_developer], appro.id, reason="Prix trop élevé")
    assert appro.status == ApprovisionnementStatus.rejected

    with pytest.raises(StateConflictError):
        procurement.validate_bd(db_session, world.actors[Role.business_developer], appro.id)
    with pytest.raises(StateConflictError):
        procurement.reject_stock(db_session, world.actors[Role.stock_manager], appro.id)

    (note,) = _notifications_for(db_session, world.users[Role.supplier].id)
    assert "Prix trop élevé" in note.message
    assert _stock(db_session, world) is None


def test_reject_stock_after_validation(db_session, world):
    appro = _submit(db_session, world)
    procurement.validate_bd(db_session, world.actors[Role.business_developer], appro.id)

    procurement.reject_stock(db_session, world.actors[Role.stock_manager], appro.id, notes="Produits abîmés")

    assert appro.status == ApprovisionnementStatus.rejected
    assert _stock(db_session, world) is None
    with pytest.raises(StateConflictError):
        procurement.receive_stock(db_session, world.actors[Role.stock_manager], appro.id)


def test_receive_requires_bd_validation(db_session, world):
    appro = _submit(db_session, world)

    with pytest.raises(StateConflictError) as exc:
        procurement.receive_stock(db_session, world.actors[Role.stock_manager], appro.id)

    assert "validated by Business Developer" in exc.value.message
    db_session.refresh(appro)
    assert appro.status == ApprovisionnementStatus.pending


@pytest.mark.parametrize(
    "action, role",
    [
        ("validate_bd", Role.client),
        ("validate_bd", Role.stock_manager),
        ("reject_bd", Role.supplier),
        ("receive_stock", Role.business_developer),
        ("reject_stock", Role.driver),
    ],
)
def test_workflow_actions_are_role_gated(db_session, world, action, role):
    appro = _submit(db_session, world)
    func, _ = procurement.WORKFLOW_ACTIONS[action]

    with pytest.raises(PermissionDeniedError):
        func(db_session, world.actors[role], appro.id)

    db_session.refresh(appro)
    assert appro.status == ApprovisionnementStatus.pending


def test_unknown_approvisionnement(db_session, world):
    with pytest.raises(NotFoundError):
        procurement.validate_bd(db_session, world.actors[Role.admin], uuid.uuid4())


def test_supplier_sees_only_own_proposals(db_session, world):
    other = User(id="supplier-2", name="Autre fournisseur", role=Role.supplier, active=True)
    db_session.add(other)
    db_session.commit()

    mine = _submit(db_session, world)
    procurement.submit_approvisionnement(
        db_session,
        world.actors[Role.admin],
        product_id=world.potatoes.id,
        warehouse_id=world.north.id,
        quantity=Decimal("5"),
        proposed_price=Decimal("1"),
        delivery_date=date.today(),
        supplier_id="supplier-2",
    )

    visible = procurement.list_approvisionnements(db_session, world.actors[Role.supplier])
    assert [a.id for a in visible] == [mine.id]
    assert len(procurement.list_approvisionnements(db_session, world.actors[Role.business_developer])) == 2
    assert procurement.list_approvisionnements(
        db_session, world.actors[Role.admin], status=ApprovisionnementStatus.validated_bd
    ) == []
