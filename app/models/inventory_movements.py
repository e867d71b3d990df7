# app/models/inventory_movements.py

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
    inspect,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.exceptions import ImmutableMovementError
from app.database import Base


class MovementType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUST = "ADJUST"
    TRANSFER = "TRANSFER"


class InventoryMovement(Base):
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, index=True)

    # No ondelete cascade: items are only ever soft-deleted
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    business_id = Column(Integer, nullable=False, index=True)

    movement_type = Column(
        SAEnum(MovementType, name="inventory_movement_type", native_enum=False, length=16),
        nullable=False,
    )

    # Quantity as requested, even when the OUT floor clamps the balance
    quantity = Column(Integer, nullable=False)
    balance_before = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)

    unit_cost = Column(Numeric(10, 2), nullable=True)
    from_location = Column(String, nullable=True)
    to_location = Column(String, nullable=True)
    reference_type = Column(String, nullable=True)
    reference_id = Column(String, nullable=True)
    reason = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    invoice_file_url = Column(String, nullable=True)
    invoice_file_name = Column(String, nullable=True)
    invoice_file_size = Column(Integer, nullable=True)

    performed_by = Column(String, nullable=True)

    occurred_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    item = relationship("InventoryItem", back_populates="movements")

    __table_args__ = (
        Index("ix_inventory_movements_item_occurred", "item_id", "occurred_at"),
        Index("ix_inventory_movements_business_occurred", "business_id", "occurred_at"),
        CheckConstraint("quantity >= 0", name="ck_inventory_movements_quantity_non_negative"),
        CheckConstraint("balance_after >= 0", name="ck_inventory_movements_balance_non_negative"),
    )


# The invoice triple is attached after the movement commits; nothing else may change.
ATTACHMENT_FIELDS = frozenset({"invoice_file_url", "invoice_file_name", "invoice_file_size"})


@event.listens_for(InventoryMovement, "before_update")
def _reject_movement_edits(mapper, connection, target):
    state = inspect(target)
    changed = {
        attr.key
        for attr in state.attrs
        if attr.key != "item" and attr.history.has_changes()
    }
    if changed - ATTACHMENT_FIELDS:
        raise ImmutableMovementError(
            f"Inventory movement {target.id} is append-only; record a compensating movement instead"
        )


@event.listens_for(InventoryMovement, "before_delete")
def _reject_movement_deletes(mapper, connection, target):
    raise ImmutableMovementError(
        f"Inventory movement {target.id} cannot be deleted; record a compensating movement instead"
    )
