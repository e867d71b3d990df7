# =========================================================
# INVENTORY ALERTS
#
# Alerts are never stored. They are recomputed from the
# current item state on every read:
# - on_hand == 0                   -> OUT_OF_STOCK / HIGH
# - 0 < on_hand <= reorder_point   -> LOW_STOCK / MEDIUM
#
# Everything here is pure: no session, no I/O.
# =========================================================

from decimal import Decimal
from typing import Iterable

from app.schemas.alert import (
    AlertPriority,
    AlertType,
    InventoryAlert,
    InventorySummary,
    StockStatus,
)


def stock_status_for(on_hand_qty: int, reorder_point: int) -> StockStatus:
    if on_hand_qty <= 0:
        return StockStatus.OUT_OF_STOCK
    if on_hand_qty <= reorder_point:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def _live(items: Iterable) -> list:
    return [item for item in items if getattr(item, "deleted_at", None) is None]


def _alert_for(item) -> InventoryAlert | None:
    status = stock_status_for(item.on_hand_qty, item.reorder_point)

    if status == StockStatus.OUT_OF_STOCK:
        alert_type = AlertType.OUT_OF_STOCK
        priority = AlertPriority.HIGH
        alert_id = f"out-{item.id}"
        message = f"{item.name} ({item.sku}) is out of stock"
    elif status == StockStatus.LOW_STOCK:
        alert_type = AlertType.LOW_STOCK
        priority = AlertPriority.MEDIUM
        alert_id = f"low-{item.id}"
        message = (
            f"{item.name} ({item.sku}) is low on stock: "
            f"{item.on_hand_qty} left, reorder point {item.reorder_point}"
        )
    else:
        return None

    if item.reorder_quantity > 0:
        message += f". Suggested reorder: {item.reorder_quantity} units"

    return InventoryAlert(
        id=alert_id,
        item_id=item.id,
        sku=item.sku,
        name=item.name,
        alert_type=alert_type,
        priority=priority,
        current_stock=item.on_hand_qty,
        threshold=item.reorder_point,
        suggested_quantity=item.reorder_quantity,
        auto_reorder_suggested=item.reorder_quantity > 0,
        message=message,
    )


def derive_alerts(items: Iterable) -> list[InventoryAlert]:
    """
    Zero or one alert per live item, HIGH priority first, then by item id.

    Soft-deleted items are skipped even if the caller passes them in.
    """
    alerts = [alert for alert in map(_alert_for, _live(items)) if alert is not None]

    return sorted(
        alerts,
        key=lambda a: (a.priority != AlertPriority.HIGH, a.item_id),
    )


def summarize_inventory(items: Iterable) -> InventorySummary:
    live = _live(items)

    counts = {status: 0 for status in StockStatus}
    total_value = Decimal("0.00")

    for item in live:
        counts[stock_status_for(item.on_hand_qty, item.reorder_point)] += 1
        total_value += Decimal(item.on_hand_qty) * Decimal(item.cost or 0)

    return InventorySummary(
        total_items=len(live),
        in_stock=counts[StockStatus.IN_STOCK],
        low_stock=counts[StockStatus.LOW_STOCK],
        out_of_stock=counts[StockStatus.OUT_OF_STOCK],
        total_value=total_value.quantize(Decimal("0.01")),
        alerts_count=counts[StockStatus.LOW_STOCK] + counts[StockStatus.OUT_OF_STOCK],
    )
