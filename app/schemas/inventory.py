from decimal import Decimal
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.alert import StockStatus


# Scalar-valued attributes ("color": "gold", "size": 7); not enforced beyond JSON
Attributes = dict[str, Any]


class InventoryItemCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=64)
    name: str | None = None
    category: str | None = None
    barcode: str | None = None
    description: str | None = None
    attributes: Attributes | None = None

    cost: Decimal | None = Field(None, lt=100_000_000)
    price: Decimal | None = Field(None, lt=100_000_000)

    supplier_name: str | None = None
    supplier_contact: str | None = None
    location: str | None = None

    on_hand_qty: int | None = Field(
        None,
        description="Opening balance, recorded as an ADJUST movement",
    )
    allocated_qty: int | None = None

    min_stock_level: int | None = None
    reorder_point: int | None = None
    reorder_quantity: int | None = None


class InventoryItemUpdate(BaseModel):
    # Quantities only move through the ledger, so they are rejected here
    model_config = ConfigDict(extra="forbid")

    sku: str | None = Field(None, min_length=1, max_length=64)
    name: str | None = None
    category: str | None = None
    barcode: str | None = None
    description: str | None = None
    attributes: Attributes | None = None

    cost: Decimal | None = Field(None, lt=100_000_000)
    price: Decimal | None = Field(None, lt=100_000_000)

    supplier_name: str | None = None
    supplier_contact: str | None = None
    location: str | None = None

    min_stock_level: int | None = None
    reorder_point: int | None = None
    reorder_quantity: int | None = None


class AllocationUpdate(BaseModel):
    delta: int = Field(..., description="Positive to reserve, negative to release")


class InventoryItemResponse(BaseModel):
    id: int
    sku: str
    name: str
    category: str | None
    barcode: str | None
    description: str | None
    attributes: Attributes

    cost: Decimal
    price: Decimal

    supplier_name: str | None
    supplier_contact: str | None
    location: str | None

    on_hand_qty: int
    allocated_qty: int
    available_qty: int
    stock_status: StockStatus

    min_stock_level: int
    reorder_point: int
    reorder_quantity: int

    last_movement_at: datetime | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
