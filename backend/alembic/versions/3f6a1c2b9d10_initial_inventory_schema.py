"""initial inventory schema

Revision ID: 3f6a1c2b9d10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f6a1c2b9d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUS = sa.Enum("pending", "confirmed", "partial", "completed", "cancelled", name="order_status")
MOVEMENT_TYPE = sa.Enum("inbound", "outbound", name="movement_type")
REFERENCE_TYPE = sa.Enum("purchase_order", "sale", "adjustment", "transfer", "return_", name="reference_type")


def upgrade() -> None:
    op.create_table(
        "suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("contact_person", sa.String(100)),
        sa.Column("email", sa.String(100)),
        sa.Column("phone", sa.String(20)),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500)),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("current_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_stock", sa.Integer()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("current_stock >= 0", name="ck_product_current_stock_nonneg"),
        sa.CheckConstraint("min_stock >= 0", name="ck_product_min_stock_nonneg"),
        sa.CheckConstraint("max_stock IS NULL OR max_stock >= 0", name="ck_product_max_stock_nonneg"),
        sa.CheckConstraint("unit_price > 0", name="ck_product_unit_price_pos"),
    )

    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("order_number", sa.String(50), nullable=False, unique=True),
        sa.Column(
            "supplier_id",
            sa.BigInteger(),
            sa.ForeignKey("suppliers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", ORDER_STATUS, nullable=False, server_default="pending"),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("expected_date", sa.Date()),
        sa.Column("received_date", sa.Date()),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_purchase_orders_status_expected", "purchase_orders", ["status", "expected_date"])

    op.create_table(
        "order_details",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "order_id",
            sa.BigInteger(),
            sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.BigInteger(),
            sa.ForeignKey("products.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity_ordered", sa.Integer(), nullable=False),
        sa.Column("quantity_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.CheckConstraint("quantity_ordered > 0", name="ck_order_detail_qty_ordered_pos"),
        sa.CheckConstraint("quantity_received >= 0", name="ck_order_detail_qty_received_nonneg"),
        sa.CheckConstraint("quantity_received <= quantity_ordered", name="ck_order_detail_no_over_receipt"),
        sa.CheckConstraint("unit_price > 0", name="ck_order_detail_unit_price_pos"),
    )
    op.create_index("ix_order_details_order_id", "order_details", ["order_id"])

    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "product_id",
            sa.BigInteger(),
            sa.ForeignKey("products.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("movement_type", MOVEMENT_TYPE, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reference_type", REFERENCE_TYPE),
        sa.Column("reference_id", sa.BigInteger()),
        sa.Column("source_system", sa.String(50)),
        sa.Column("notes", sa.String(500)),
        sa.Column("created_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_inventory_movement_qty_pos"),
    )
    op.create_index("ix_inventory_movements_product_id", "inventory_movements", ["product_id"])
    op.create_index("ix_inventory_movements_source_system", "inventory_movements", ["source_system"])
    op.create_index("ix_inventory_movements_product_time", "inventory_movements", ["product_id", "created_at"])
    op.create_index("ix_inventory_movements_reference", "inventory_movements", ["reference_type", "reference_id"])

    # Ledger append-only côté base aussi (hors ORM)
    op.execute(
        """
        CREATE OR REPLACE FUNCTION reject_inventory_movement_change() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'inventory_movements is append-only';
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_inventory_movements_append_only
        BEFORE UPDATE OR DELETE ON inventory_movements
        FOR EACH ROW EXECUTE FUNCTION reject_inventory_movement_change();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_inventory_movements_append_only ON inventory_movements")
    op.execute("DROP FUNCTION IF EXISTS reject_inventory_movement_change()")

    op.drop_index("ix_inventory_movements_reference", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_product_time", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_source_system", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_product_id", table_name="inventory_movements")
    op.drop_table("inventory_movements")

    op.drop_index("ix_order_details_order_id", table_name="order_details")
    op.drop_table("order_details")

    op.drop_index("ix_purchase_orders_status_expected", table_name="purchase_orders")
    op.drop_table("purchase_orders")

    op.drop_table("products")
    op.drop_table("suppliers")

    REFERENCE_TYPE.drop(op.get_bind(), checkfirst=True)
    MOVEMENT_TYPE.drop(op.get_bind(), checkfirst=True)
    ORDER_STATUS.drop(op.get_bind(), checkfirst=True)
