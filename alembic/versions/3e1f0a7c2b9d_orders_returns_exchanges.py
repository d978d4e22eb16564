"""orders, returns, exchanges

Revision ID: 3e1f0a7c2b9d
Revises:
Create Date: 2026-10-17 10:12:04.118220

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3e1f0a7c2b9d"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("order_id", sa.String(64), primary_key=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("customer_name", sa.String(200)),
        sa.Column("customer_phone", sa.String(20)),
        sa.Column("customer_email", sa.String(200)),
        sa.Column("shipping_address", sa.Text()),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("shipping_order_ref", sa.String(64)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_orders_customer_phone", "orders", ["customer_phone"])

    op.create_table(
        "returns",
        sa.Column("return_id", sa.String(40), primary_key=True),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("customer_phone", sa.String(20), nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("reason", sa.String(100), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="initiated"),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("refund_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("shipping_return_ref", sa.String(64)),
        sa.Column("awb", sa.String(64)),
        sa.Column("pickup_date", sa.Date()),
        *_timestamps(),
    )
    op.create_index("ix_returns_order_id", "returns", ["order_id"])
    op.create_index("ix_returns_shipping_return_ref", "returns", ["shipping_return_ref"])

    op.create_table(
        "exchanges",
        sa.Column("exchange_id", sa.String(40), primary_key=True),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("customer_phone", sa.String(20), nullable=False),
        sa.Column("old_items", sa.JSON(), nullable=False),
        sa.Column("new_items", sa.JSON(), nullable=False),
        sa.Column("reason", sa.String(100), nullable=False),
        sa.Column("price_difference", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="initiated"),
        sa.Column("payment_link_id", sa.String(64)),
        sa.Column("payment_link_url", sa.Text()),
        sa.Column("payment_ref", sa.String(64)),
        sa.Column("shipping_exchange_ref", sa.String(64)),
        sa.Column("awb", sa.String(64)),
        sa.Column("pickup_date", sa.Date()),
        *_timestamps(),
    )
    op.create_index("ix_exchanges_order_id", "exchanges", ["order_id"])
    op.create_index("ix_exchanges_shipping_exchange_ref", "exchanges", ["shipping_exchange_ref"])
    op.create_index("ix_exchanges_order_payment", "exchanges", ["order_id", "payment_status"])


def downgrade() -> None:
    op.drop_table("exchanges")
    op.drop_table("returns")
    op.drop_index("ix_orders_customer_phone", table_name="orders")
    op.drop_table("orders")
