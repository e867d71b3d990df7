# app/routers/inventory.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.auth import CurrentUser, get_current_user
from app.schemas.alert import StockStatus
from app.schemas.inventory import (
    AllocationUpdate,
    InventoryItemCreate,
    InventoryItemUpdate,
    InventoryItemResponse,
)
from app.services import ledger

router = APIRouter(
    prefix="/inventory/items",
    tags=["Inventory"],
)


@router.post(
    "",
    response_model=InventoryItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_item(
    item_data: InventoryItemCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return ledger.create_item(
        db,
        business_id=current_user.business_id,
        data=item_data.model_dump(exclude_unset=True),
        actor_id=current_user.user_id,
    )


@router.get("", response_model=list[InventoryItemResponse])
def list_items(
    search: str | None = Query(None, description="Matches name, SKU or supplier"),
    category: str | None = None,
    supplier: str | None = None,
    location: str | None = None,
    stock_status: StockStatus | None = None,
    sort: str = Query("created_at", pattern="^(created_at|name|sku)$"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return ledger.list_items(
        db,
        business_id=current_user.business_id,
        search=search,
        category=category,
        supplier=supplier,
        location=location,
        stock_status=stock_status,
        sort=sort,
        limit=limit,
        offset=offset,
    )


@router.get("/{item_id}", response_model=InventoryItemResponse)
def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return ledger.get_item(db, business_id=current_user.business_id, item_id=item_id)


@router.put("/{item_id}", response_model=InventoryItemResponse)
def update_item(
    item_id: int,
    item_data: InventoryItemUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return ledger.update_item(
        db,
        business_id=current_user.business_id,
        item_id=item_id,
        data=item_data.model_dump(exclude_unset=True),
    )


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    ledger.delete_item(db, business_id=current_user.business_id, item_id=item_id)

    return None


@router.post("/{item_id}/allocation", response_model=InventoryItemResponse)
def adjust_allocation(
    item_id: int,
    allocation: AllocationUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return ledger.adjust_allocation(
        db,
        business_id=current_user.business_id,
        item_id=item_id,
        delta=allocation.delta,
    )
