from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from backend.app.db.models.core_types import DeliveryStatus, OrderStatus, PaymentMethod, PaymentStatus


class OrderItemCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(ge=1, decimal_places=3)
    unit_price: Decimal = Field(ge=0, decimal_places=2)


class OrderProcessRequest(BaseModel):
    client_id: str = Field(min_length=1, max_length=64)
    warehouse_id: UUID
    items: list[OrderItemCreate] = Field(min_length=1)
    delivery_option: bool = False
    delivery_address: str | None = None
    payment_method: PaymentMethod


class OrderItemRead(BaseModel):
    id: UUID
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal

    class Config:
        from_attributes = True


class DeliveryRead(BaseModel):
    id: UUID
    order_id: UUID
    driver_id: str | None = None
    status: DeliveryStatus
    eta: datetime | None = None
    delivery_date: datetime | None = None

    class Config:
        from_attributes = True


class PaymentRead(BaseModel):
    id: UUID
    order_id: UUID | None = None
    approvisionnement_id: UUID | None = None
    amount: Decimal
    payment_method: PaymentMethod
    status: PaymentStatus
    payment_date: datetime

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: UUID
    client_id: str
    warehouse_id: UUID
    total_amount: Decimal
    status: OrderStatus
    delivery_option: bool
    delivery_address: str | None = None
    payment_method: PaymentMethod
    created_at: datetime

    class Config:
        from_attributes = True


class ProcessedOrderRead(BaseModel):
    order: OrderRead
    items: list[OrderItemRead]
    delivery: DeliveryRead | None = None
    payment: PaymentRead | None = None

    class Config:
        from_attributes = True
