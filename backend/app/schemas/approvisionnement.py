from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from backend.app.db.models.core_types import ApprovisionnementStatus

WorkflowActionName = Literal["validate_bd", "reject_bd", "receive_stock", "reject_stock"]


class ApprovisionnementCreate(BaseModel):
    product_id: UUID
    warehouse_id: UUID
    quantity: Decimal = Field(gt=0, decimal_places=3)
    proposed_price: Decimal = Field(gt=0, decimal_places=2)
    delivery_date: date
    # seulement quand un admin soumet pour le compte d'un fournisseur
    supplier_id: str | None = Field(default=None, max_length=64)


class WorkflowNote(BaseModel):
    notes: str | None = None
    reason: str | None = None


class WorkflowActionRequest(WorkflowNote):
    action: WorkflowActionName
    approvisionnement_id: UUID


class ApprovisionnementRead(BaseModel):
    id: UUID
    supplier_id: str
    product_id: UUID
    warehouse_id: UUID
    quantity: Decimal
    proposed_price: Decimal
    delivery_date: date
    status: ApprovisionnementStatus
    business_developer_id: str | None = None
    stock_manager_id: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
