from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel

from backend.app.db.models.core_types import AuditAction

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    data: T
    message: str


class ErrorResponse(BaseModel):
    error: str
    code: str
    details: Any | None = None


class TransactionLogRead(BaseModel):
    id: UUID
    entity_type: str
    entity_id: str
    action: AuditAction
    user_id: str | None
    details: dict[str, Any] | None
    created_at: datetime

    class Config:
        from_attributes = True
