# app/routers/alerts.py

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.auth import CurrentUser, get_current_user
from app.schemas.alert import InventoryAlert, InventorySummary
from app.services import ledger
from app.services.alerts import derive_alerts, summarize_inventory

logger = logging.getLogger("app")

router = APIRouter(prefix="/inventory", tags=["Inventory Alerts"])


@router.get("/alerts", response_model=list[InventoryAlert])
def list_alerts(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    items = ledger.live_items(db, business_id=current_user.business_id)

    return derive_alerts(items)


# Alerts have no stored state: acknowledge/resolve just hand back the fresh set
@router.post("/alerts/{alert_id}/acknowledge", response_model=list[InventoryAlert])
def acknowledge_alert(
    alert_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    logger.info(f"Alert {alert_id} acknowledged by {current_user.user_id}")

    items = ledger.live_items(db, business_id=current_user.business_id)

    return derive_alerts(items)


@router.post("/alerts/{alert_id}/resolve", response_model=list[InventoryAlert])
def resolve_alert(
    alert_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    logger.info(f"Alert {alert_id} resolved by {current_user.user_id}")

    items = ledger.live_items(db, business_id=current_user.business_id)

    return derive_alerts(items)


@router.get("/summary", response_model=InventorySummary)
def inventory_summary(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    items = ledger.live_items(db, business_id=current_user.business_id)

    return summarize_inventory(items)
