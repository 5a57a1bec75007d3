from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from backend.app.schemas.common import TransactionLogRead


class StockRead(BaseModel):
    id: UUID
    product_id: UUID
    warehouse_id: UUID

    quantity: Decimal
    unit_price: Decimal
    approvisionnement_id: UUID | None = None
    last_updated: datetime

    class Config:
        from_attributes = True


class WarehouseRead(BaseModel):
    id: UUID
    name: str
    address: str

    class Config:
        from_attributes = True


# ---------- Requests ----------
class StockAdjustRequest(BaseModel):
    product_id: UUID
    warehouse_id: UUID
    quantity: Decimal = Field(decimal_places=3)  # signé
    reason: str | None = None


class StockTransferRequest(BaseModel):
    product_id: UUID
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    quantity: Decimal = Field(gt=0, decimal_places=3)
    reason: str | None = None


class StockAlertRequest(BaseModel):
    product_id: UUID
    threshold: Decimal = Field(gt=0, decimal_places=3)
    warehouse_id: UUID | None = None


_REQUIRED_BY_ACTION = {
    "adjust": ("product_id", "warehouse_id", "quantity"),
    "transfer": ("product_id", "from_warehouse_id", "to_warehouse_id", "quantity"),
    "report": (),
    "alert": ("product_id", "threshold"),
}


class StockManagementRequest(BaseModel):
    """Payload unique de POST /stock/management (champ `action`)."""

    action: Literal["adjust", "transfer", "report", "alert"]
    product_id: UUID | None = None
    warehouse_id: UUID | None = None
    quantity: Decimal | None = Field(default=None, decimal_places=3)
    from_warehouse_id: UUID | None = None
    to_warehouse_id: UUID | None = None
    reason: str | None = None
    threshold: Decimal | None = Field(default=None, gt=0, decimal_places=3)

    @model_validator(mode="after")
    def _check_required(self):
        missing = [name for name in _REQUIRED_BY_ACTION[self.action] if getattr(self, name) is None]
        if missing:
            raise ValueError(f"{', '.join(missing)} required for {self.action}")
        return self


# ---------- Responses ----------
class StockAdjustmentRead(BaseModel):
    stock: StockRead
    adjustment: Decimal
    previous_quantity: Decimal
    new_quantity: Decimal
    reason: str

    class Config:
        from_attributes = True


class StockTransferRead(BaseModel):
    source_stock: StockRead
    destination_stock: StockRead
    quantity_transferred: Decimal
    reason: str

    class Config:
        from_attributes = True


class WarehouseBreakdownRead(BaseModel):
    warehouse: WarehouseRead
    items: list[StockRead]
    total_value: Decimal

    class Config:
        from_attributes = True


class InventoryReportRead(BaseModel):
    total_items: int
    total_quantity: Decimal
    total_value: Decimal
    low_stock_threshold: Decimal
    low_stock_items: list[StockRead]
    warehouses: list[WarehouseBreakdownRead]
    recent_movements: list[TransactionLogRead]
    generated_at: datetime
    generated_by: str

    class Config:
        from_attributes = True


class StockAlertRead(BaseModel):
    stock: StockRead
    current_quantity: Decimal
    threshold: Decimal
    is_low_stock: bool
    alert_sent: bool

    class Config:
        from_attributes = True
