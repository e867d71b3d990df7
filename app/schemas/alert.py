# schemas/alert.py

import enum
from decimal import Decimal
from pydantic import BaseModel


class AlertType(str, enum.Enum):
    OUT_OF_STOCK = "OUT_OF_STOCK"
    LOW_STOCK = "LOW_STOCK"


class AlertPriority(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class StockStatus(str, enum.Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class InventoryAlert(BaseModel):
    id: str
    item_id: int
    sku: str
    name: str
    alert_type: AlertType
    priority: AlertPriority
    current_stock: int
    threshold: int
    suggested_quantity: int
    auto_reorder_suggested: bool
    message: str


class InventorySummary(BaseModel):
    total_items: int
    in_stock: int
    low_stock: int
    out_of_stock: int
    total_value: Decimal
    alerts_count: int
