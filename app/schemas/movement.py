# schemas/movement.py

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal

from app.models.inventory_movements import MovementType


class MovementCreate(BaseModel):
    movement_type: MovementType
    quantity: int = Field(..., description="Delta for IN/OUT/TRANSFER, absolute target for ADJUST")

    unit_cost: Decimal | None = Field(None, ge=0, lt=100_000_000)
    from_location: str | None = None
    to_location: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    reason: str | None = None
    notes: str | None = None

    occurred_at: datetime | None = None


class MovementResponse(BaseModel):
    id: int
    item_id: int
    movement_type: MovementType
    quantity: int
    balance_before: int
    balance_after: int

    unit_cost: Decimal | None
    from_location: str | None
    to_location: str | None
    reference_type: str | None
    reference_id: str | None
    reason: str | None
    notes: str | None

    invoice_file_url: str | None
    invoice_file_name: str | None
    invoice_file_size: int | None

    performed_by: str | None
    occurred_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class ReconciliationResult(BaseModel):
    item_id: int
    sku: str
    stored_qty: int
    replayed_qty: int
    movement_count: int
    balanced: bool
    repaired: bool = False
