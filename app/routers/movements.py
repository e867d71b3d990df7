# =========================================================
# STOCK MOVEMENTS ROUTER
#
# - Record IN / OUT / ADJUST / TRANSFER against an item
# - Optional invoice upload (best effort, never fails the movement)
# - Per-item history and tenant-wide feed, newest first
# - Admin reconciliation of stored balances against the ledger
# =========================================================

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.auth import CurrentUser, get_admin_user, get_current_user
from app.core.config import settings
from app.core.rate_limiter import limiter
from app.core.storage import InvoiceFile, InvoiceStorage, get_invoice_storage
from app.models.inventory_movements import MovementType
from app.schemas.movement import MovementCreate, MovementResponse, ReconciliationResult
from app.services import ledger

router = APIRouter(prefix="/inventory", tags=["Stock Movements"])


# =========================================================
# RECORD MOVEMENT
# =========================================================
@router.post(
    "/items/{item_id}/movements",
    response_model=MovementResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.MOVEMENT_RATE_LIMIT)
def record_movement(
    request: Request,
    item_id: int,
    movement_data: MovementCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return ledger.record_movement(
        db,
        business_id=current_user.business_id,
        item_id=item_id,
        movement_type=movement_data.movement_type,
        quantity=movement_data.quantity,
        actor_id=current_user.user_id,
        metadata=movement_data.model_dump(exclude={"movement_type", "quantity"}),
    )


# =========================================================
# RECORD MOVEMENT WITH INVOICE (MULTIPART)
# =========================================================
@router.post(
    "/items/{item_id}/movements/invoice",
    response_model=MovementResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.MOVEMENT_RATE_LIMIT)
def record_movement_with_invoice(
    request: Request,
    item_id: int,
    movement_type: MovementType = Form(...),
    quantity: int = Form(...),
    unit_cost: Decimal | None = Form(None),
    from_location: str | None = Form(None),
    to_location: str | None = Form(None),
    reference_type: str | None = Form(None),
    reference_id: str | None = Form(None),
    reason: str | None = Form(None),
    notes: str | None = Form(None),
    occurred_at: datetime | None = Form(None),
    invoice: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: InvoiceStorage = Depends(get_invoice_storage),
    current_user: CurrentUser = Depends(get_current_user),
):
    upload = InvoiceFile(
        filename=invoice.filename or "invoice.pdf",
        content=invoice.file.read(),
        content_type=invoice.content_type or "application/octet-stream",
    )

    return ledger.record_movement(
        db,
        business_id=current_user.business_id,
        item_id=item_id,
        movement_type=movement_type,
        quantity=quantity,
        actor_id=current_user.user_id,
        metadata={
            "unit_cost": unit_cost,
            "from_location": from_location,
            "to_location": to_location,
            "reference_type": reference_type,
            "reference_id": reference_id,
            "reason": reason,
            "notes": notes,
            "occurred_at": occurred_at,
        },
        invoice=upload,
        storage=storage,
    )


# =========================================================
# MOVEMENT HISTORY
# =========================================================
@router.get("/items/{item_id}/movements", response_model=list[MovementResponse])
def list_item_movements(
    item_id: int,
    limit: int = Query(ledger.DEFAULT_MOVEMENT_LIMIT, ge=1, le=ledger.MAX_MOVEMENT_LIMIT),
    sort: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return ledger.list_movements(
        db,
        business_id=current_user.business_id,
        item_id=item_id,
        limit=limit,
        sort=sort,
    )


@router.get("/movements", response_model=list[MovementResponse])
def list_movements(
    limit: int = Query(ledger.DEFAULT_MOVEMENT_LIMIT, ge=1, le=ledger.MAX_MOVEMENT_LIMIT),
    sort: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return ledger.list_movements(
        db,
        business_id=current_user.business_id,
        limit=limit,
        sort=sort,
    )


# =========================================================
# RECONCILIATION (ADMIN)
# =========================================================
@router.post("/reconcile", response_model=list[ReconciliationResult])
def reconcile(
    repair: bool = Query(False),
    db: Session = Depends(get_db),
    admin_user: CurrentUser = Depends(get_admin_user),
):
    return ledger.reconcile_items(
        db,
        business_id=admin_user.business_id,
        repair=repair,
        actor_id=admin_user.user_id,
    )
