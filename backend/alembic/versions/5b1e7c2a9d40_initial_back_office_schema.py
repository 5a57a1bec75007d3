"""initial back office schema

Revision ID: 5b1e7c2a9d40
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5b1e7c2a9d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Les types ENUM sont créés une seule fois (payment_method sert à deux tables).
ENUMS = {
    "role": ("admin", "business_developer", "stock_manager", "supplier", "client", "driver"),
    "approvisionnement_status": ("pending", "validated_bd", "rejected", "received"),
    "order_status": ("pending", "paid", "shipped", "delivered", "cancelled"),
    "payment_method": ("direct", "credit"),
    "payment_status": ("pending", "completed", "failed"),
    "delivery_status": ("assigned", "in_transit", "delivered", "failed"),
    "audit_action": ("create", "update", "delete"),
    "notification_type": ("email", "sms"),
    "notification_status": ("sent", "failed"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return cols


def upgrade() -> None:
    bind = op.get_bind()
    for name, labels in ENUMS.items():
        postgresql.ENUM(*labels, name=name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("address", sa.Text()),
        sa.Column("role", _enum("role"), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "warehouses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("address", sa.Text(), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("unit", sa.String(20), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "approvisionnements",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("supplier_id", sa.String(64), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("warehouse_id", sa.Uuid(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("proposed_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("delivery_date", sa.Date(), nullable=False),
        sa.Column("status", _enum("approvisionnement_status"), nullable=False),
        sa.Column("business_developer_id", sa.String(64), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("stock_manager_id", sa.String(64), sa.ForeignKey("users.id", ondelete="SET NULL")),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_appro_quantity_pos"),
        sa.CheckConstraint("proposed_price > 0", name="ck_appro_price_pos"),
    )
    op.create_index("ix_approvisionnements_supplier_id", "approvisionnements", ["supplier_id"])
    op.create_index("ix_appro_status", "approvisionnements", ["status"])

    op.create_table(
        "stocks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("warehouse_id", sa.Uuid(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column(
            "approvisionnement_id",
            sa.Uuid(),
            sa.ForeignKey("approvisionnements.id", ondelete="SET NULL"),
        ),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("product_id", "warehouse_id", name="uq_stock_product_warehouse"),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_quantity_nonneg"),
        sa.CheckConstraint("unit_price >= 0", name="ck_stock_unit_price_nonneg"),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("client_id", sa.String(64), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("warehouse_id", sa.Uuid(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", _enum("order_status"), nullable=False),
        sa.Column("delivery_option", sa.Boolean(), nullable=False),
        sa.Column("delivery_address", sa.Text()),
        sa.Column("payment_method", _enum("payment_method"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_amount >= 0", name="ck_order_total_nonneg"),
    )
    op.create_index("ix_orders_client_id", "orders", ["client_id"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_order_item_qty_min"),
        sa.CheckConstraint("unit_price >= 0", name="ck_order_item_unit_price_nonneg"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "deliveries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("driver_id", sa.String(64), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("status", _enum("delivery_status"), nullable=False),
        sa.Column("eta", sa.DateTime(timezone=True)),
        sa.Column("delivery_date", sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id", ondelete="CASCADE")),
        sa.Column(
            "approvisionnement_id",
            sa.Uuid(),
            sa.ForeignKey("approvisionnements.id", ondelete="RESTRICT"),
        ),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("payment_method", _enum("payment_method"), nullable=False),
        sa.Column("status", _enum("payment_status"), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint("amount >= 0", name="ck_payment_amount_nonneg"),
        sa.CheckConstraint(
            "(order_id IS NULL) <> (approvisionnement_id IS NULL)",
            name="ck_payment_single_target",
        ),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"])
    op.create_index("ix_payments_approvisionnement_id", "payments", ["approvisionnement_id"])

    op.create_table(
        "transaction_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("action", _enum("audit_action"), nullable=False),
        sa.Column("user_id", sa.String(64)),
        sa.Column("details", sa.JSON()),
        *_timestamps(updated=False),
    )
    op.create_index("ix_transaction_logs_entity", "transaction_logs", ["entity_type", "entity_id"])
    op.create_index("ix_transaction_logs_type_time", "transaction_logs", ["entity_type", "created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", _enum("notification_type"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", _enum("notification_status"), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    for table in (
        "notifications",
        "transaction_logs",
        "payments",
        "deliveries",
        "order_items",
        "orders",
        "stocks",
        "approvisionnements",
        "products",
        "warehouses",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
