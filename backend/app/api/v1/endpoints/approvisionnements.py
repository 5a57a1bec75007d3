from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_actor, get_db
from backend.app.core.permissions import Actor
from backend.app.db.models.core_types import ApprovisionnementStatus
from backend.app.schemas.approvisionnement import (
    ApprovisionnementCreate,
    ApprovisionnementRead,
    WorkflowActionName,
    WorkflowActionRequest,
    WorkflowNote,
)
from backend.app.schemas.common import Envelope
from backend.services import procurement

router = APIRouter(prefix="/approvisionnements")


def _run_action(db: Session, actor: Actor, action: str, approvisionnement_id: UUID, note: WorkflowNote):
    func, message = procurement.WORKFLOW_ACTIONS[action]
    appro = func(db, actor, approvisionnement_id, notes=note.notes, reason=note.reason)
    return {"data": ApprovisionnementRead.model_validate(appro), "message": message}


@router.get("", response_model=Envelope[list[ApprovisionnementRead]])
def list_approvisionnements(
    status: ApprovisionnementStatus | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    rows = procurement.list_approvisionnements(db, actor, status=status)
    return {
        "data": [ApprovisionnementRead.model_validate(a) for a in rows],
        "message": f"{len(rows)} approvisionnements",
    }


@router.post("", status_code=201, response_model=Envelope[ApprovisionnementRead])
def submit_approvisionnement(
    payload: ApprovisionnementCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    appro = procurement.submit_approvisionnement(
        db,
        actor,
        product_id=payload.product_id,
        warehouse_id=payload.warehouse_id,
        quantity=payload.quantity,
        proposed_price=payload.proposed_price,
        delivery_date=payload.delivery_date,
        supplier_id=payload.supplier_id,
    )
    return {"data": ApprovisionnementRead.model_validate(appro), "message": "Approvisionnement submitted"}


@router.post("/workflow", response_model=Envelope[ApprovisionnementRead])
def run_workflow_action(
    payload: WorkflowActionRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _run_action(db, actor, payload.action, payload.approvisionnement_id, payload)


@router.get("/{approvisionnement_id}", response_model=Envelope[ApprovisionnementRead])
def get_approvisionnement(
    approvisionnement_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    appro = procurement.get_approvisionnement(db, actor, approvisionnement_id)
    return {"data": ApprovisionnementRead.model_validate(appro), "message": "Approvisionnement found"}


@router.post("/{approvisionnement_id}/{action}", response_model=Envelope[ApprovisionnementRead])
def run_named_action(
    approvisionnement_id: UUID,
    action: WorkflowActionName,
    payload: WorkflowNote | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _run_action(db, actor, action, approvisionnement_id, payload or WorkflowNote())
