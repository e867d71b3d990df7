# app/models/inventory.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    case,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.services.alerts import stock_status_for


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, nullable=False, index=True)

    name = Column(String, nullable=False)
    category = Column(String, nullable=True, index=True)
    sku = Column(String, nullable=False)
    barcode = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    attributes = Column(JSON, nullable=False, default=dict)

    cost = Column(Numeric(10, 2), nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    supplier_name = Column(String, nullable=True)
    supplier_contact = Column(String, nullable=True)
    location = Column(String, nullable=True)

    # Only the ledger writes these two
    on_hand_qty = Column(Integer, nullable=False, default=0)
    allocated_qty = Column(Integer, nullable=False, default=0)

    min_stock_level = Column(Integer, nullable=False, default=10)
    reorder_point = Column(Integer, nullable=False, default=5)
    reorder_quantity = Column(Integer, nullable=False, default=20)

    last_movement_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    movements = relationship(
        "InventoryMovement",
        back_populates="item",
        order_by="InventoryMovement.id",
    )

    @hybrid_property
    def available_qty(self):
        return max(self.on_hand_qty - self.allocated_qty, 0)

    @available_qty.expression
    def available_qty(cls):
        return case(
            (cls.on_hand_qty > cls.allocated_qty, cls.on_hand_qty - cls.allocated_qty),
            else_=0,
        )

    @property
    def stock_status(self):
        return stock_status_for(self.on_hand_qty, self.reorder_point)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    __table_args__ = (
        # SKU is unique per tenant among live items; a deleted SKU can be reused
        Index(
            "uq_inventory_items_business_sku_active",
            "business_id",
            "sku",
            unique=True,
            postgresql_where=deleted_at.is_(None),
            sqlite_where=deleted_at.is_(None),
        ),
        CheckConstraint("cost >= 0", name="ck_inventory_items_cost_non_negative"),
        CheckConstraint("price >= 0", name="ck_inventory_items_price_non_negative"),
        CheckConstraint("on_hand_qty >= 0", name="ck_inventory_items_on_hand_non_negative"),
        CheckConstraint("allocated_qty >= 0", name="ck_inventory_items_allocated_non_negative"),
        CheckConstraint("min_stock_level >= 0", name="ck_inventory_items_min_stock_non_negative"),
        CheckConstraint("reorder_point >= 0", name="ck_inventory_items_reorder_point_non_negative"),
        CheckConstraint("reorder_quantity >= 0", name="ck_inventory_items_reorder_qty_non_negative"),
    )


# Registers InventoryMovement so the relationship above resolves
from app.models.inventory_movements import InventoryMovement  # noqa: E402, F401
