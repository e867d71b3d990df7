"""create_inventory_ledger_tables

Revision ID: 5f2a9c1d7e34
Revises:
Create Date: 2026-10-18 09:12:44.118204
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5f2a9c1d7e34'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    # INVENTORY ITEMS
    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("business_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("sku", sa.String(), nullable=False),
        sa.Column("barcode", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column("cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("supplier_name", sa.String(), nullable=True),
        sa.Column("supplier_contact", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("on_hand_qty", sa.Integer(), nullable=False),
        sa.Column("allocated_qty", sa.Integer(), nullable=False),
        sa.Column("min_stock_level", sa.Integer(), nullable=False),
        sa.Column("reorder_point", sa.Integer(), nullable=False),
        sa.Column("reorder_quantity", sa.Integer(), nullable=False),
        sa.Column("last_movement_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("cost >= 0", name="ck_inventory_items_cost_non_negative"),
        sa.CheckConstraint("price >= 0", name="ck_inventory_items_price_non_negative"),
        sa.CheckConstraint("on_hand_qty >= 0", name="ck_inventory_items_on_hand_non_negative"),
        sa.CheckConstraint("allocated_qty >= 0", name="ck_inventory_items_allocated_non_negative"),
        sa.CheckConstraint("min_stock_level >= 0", name="ck_inventory_items_min_stock_non_negative"),
        sa.CheckConstraint("reorder_point >= 0", name="ck_inventory_items_reorder_point_non_negative"),
        sa.CheckConstraint("reorder_quantity >= 0", name="ck_inventory_items_reorder_qty_non_negative"),
    )

    op.create_index("ix_inventory_items_id", "inventory_items", ["id"], unique=False)
    op.create_index("ix_inventory_items_business_id", "inventory_items", ["business_id"], unique=False)
    op.create_index("ix_inventory_items_category", "inventory_items", ["category"], unique=False)
    op.create_index("ix_inventory_items_deleted_at", "inventory_items", ["deleted_at"], unique=False)

    # SKU unique per business among live (not soft-deleted) items
    op.create_index(
        "uq_inventory_items_business_sku_active",
        "inventory_items",
        ["business_id", "sku"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
        sqlite_where=sa.text("deleted_at IS NULL"),
    )

    # INVENTORY MOVEMENTS
    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("business_id", sa.Integer(), nullable=False),
        sa.Column("movement_type", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("balance_before", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("from_location", sa.String(), nullable=True),
        sa.Column("to_location", sa.String(), nullable=True),
        sa.Column("reference_type", sa.String(), nullable=True),
        sa.Column("reference_id", sa.String(), nullable=True),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("invoice_file_url", sa.String(), nullable=True),
        sa.Column("invoice_file_name", sa.String(), nullable=True),
        sa.Column("invoice_file_size", sa.Integer(), nullable=True),
        sa.Column("performed_by", sa.String(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_movements_quantity_non_negative"),
        sa.CheckConstraint("balance_after >= 0", name="ck_inventory_movements_balance_non_negative"),
    )

    op.create_index("ix_inventory_movements_id", "inventory_movements", ["id"], unique=False)
    op.create_index("ix_inventory_movements_item_id", "inventory_movements", ["item_id"], unique=False)
    op.create_index("ix_inventory_movements_business_id", "inventory_movements", ["business_id"], unique=False)
    op.create_index("ix_inventory_movements_occurred_at", "inventory_movements", ["occurred_at"], unique=False)
    op.create_index(
        "ix_inventory_movements_item_occurred",
        "inventory_movements",
        ["item_id", "occurred_at"],
        unique=False,
    )
    op.create_index(
        "ix_inventory_movements_business_occurred",
        "inventory_movements",
        ["business_id", "occurred_at"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_inventory_movements_business_occurred", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_item_occurred", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_occurred_at", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_business_id", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_item_id", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_id", table_name="inventory_movements")
    op.drop_table("inventory_movements")

    op.drop_index("uq_inventory_items_business_sku_active", table_name="inventory_items")
    op.drop_index("ix_inventory_items_deleted_at", table_name="inventory_items")
    op.drop_index("ix_inventory_items_category", table_name="inventory_items")
    op.drop_index("ix_inventory_items_business_id", table_name="inventory_items")
    op.drop_index("ix_inventory_items_id", table_name="inventory_items")
    op.drop_table("inventory_items")
