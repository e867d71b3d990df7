# =========================================================
# INVENTORY LEDGER
#
# Owns inventory items and their movement history.
# - on_hand_qty only changes through a recorded movement
# - a movement row and its balance update commit together
# - movements are append-only; mistakes get a compensating movement
# - items are soft-deleted, their history stays
#
# Every operation takes the session and the tenant explicitly.
# =========================================================

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    DuplicateSkuError,
    NotFoundError,
    PartialApplicationError,
    StorageError,
    ValidationError,
)
from app.core.storage import InvoiceFile, InvoiceStorage, get_invoice_storage
from app.models.inventory import InventoryItem
from app.models.inventory_movements import InventoryMovement, MovementType
from app.schemas.alert import StockStatus
from app.schemas.movement import ReconciliationResult

logger = logging.getLogger(__name__)


QUANTITY_FIELDS = frozenset({"on_hand_qty", "allocated_qty", "available_qty"})

EDITABLE_FIELDS = (
    "name",
    "category",
    "barcode",
    "description",
    "attributes",
    "cost",
    "price",
    "supplier_name",
    "supplier_contact",
    "location",
    "min_stock_level",
    "reorder_point",
    "reorder_quantity",
)

# Columns that cannot hold NULL; an explicit None on update leaves them alone
NON_NULLABLE_FIELDS = frozenset({
    "name",
    "attributes",
    "cost",
    "price",
    "min_stock_level",
    "reorder_point",
    "reorder_quantity",
})

NON_NEGATIVE_FIELDS = (
    "cost",
    "price",
    "on_hand_qty",
    "allocated_qty",
    "min_stock_level",
    "reorder_point",
    "reorder_quantity",
)

MOVEMENT_METADATA_FIELDS = frozenset({
    "unit_cost",
    "from_location",
    "to_location",
    "reference_type",
    "reference_id",
    "reason",
    "notes",
    "occurred_at",
})

DEFAULT_MOVEMENT_LIMIT = 50
MAX_MOVEMENT_LIMIT = 500


@dataclass(frozen=True)
class LedgerPolicy:
    # "clamp": OUT beyond on-hand floors the balance at zero
    # "reject": OUT beyond on-hand is a ValidationError
    overdraw: str = "clamp"
    require_stock_in_reference: bool = False
    min_reason_words: int = 0

    @classmethod
    def from_settings(cls) -> "LedgerPolicy":
        return cls(
            overdraw=settings.OVERDRAW_POLICY,
            require_stock_in_reference=settings.REQUIRE_STOCK_IN_REFERENCE,
            min_reason_words=settings.MIN_REASON_WORDS,
        )


@dataclass(frozen=True)
class ItemDefaults:
    min_stock_level: int = 10
    reorder_point: int = 5
    reorder_quantity: int = 20

    @classmethod
    def from_settings(cls) -> "ItemDefaults":
        return cls(
            min_stock_level=settings.DEFAULT_MIN_STOCK_LEVEL,
            reorder_point=settings.DEFAULT_REORDER_POINT,
            reorder_quantity=settings.DEFAULT_REORDER_QUANTITY,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =========================================================
# BALANCE RULES (PURE)
# =========================================================
def apply_movement(balance: int, movement_type: MovementType, quantity: int) -> int:
    movement_type = MovementType(movement_type)

    if movement_type == MovementType.IN:
        return balance + quantity
    if movement_type == MovementType.OUT:
        return max(balance - quantity, 0)
    if movement_type == MovementType.ADJUST:
        return quantity
    # TRANSFER moves stock between locations of the same item
    return balance


def replay_balance(movements: Iterable) -> int:
    """Fold movements in occurred_at order (ties by id), starting from zero."""
    ordered = sorted(
        movements,
        key=lambda m: (_as_utc(m.occurred_at), m.id or 0),
    )

    balance = 0
    for movement in ordered:
        balance = apply_movement(balance, movement.movement_type, movement.quantity)
    return balance


# =========================================================
# VALIDATION
# =========================================================
def _check_non_negative(data: dict) -> None:
    for field in NON_NEGATIVE_FIELDS:
        value = data.get(field)
        if value is not None and value < 0:
            raise ValidationError(f"{field} cannot be negative")


def _parse_movement_type(value) -> MovementType:
    try:
        return MovementType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in MovementType)
        raise ValidationError(f"Unknown movement type '{value}'. Expected one of: {allowed}")


def _validate_movement(
    movement_type: MovementType,
    quantity: int,
    metadata: dict,
    policy: LedgerPolicy,
) -> None:
    unknown = set(metadata) - MOVEMENT_METADATA_FIELDS
    if unknown:
        raise ValidationError(f"Unknown movement fields: {', '.join(sorted(unknown))}")

    if quantity is None or isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Movement quantity must be an integer")

    if movement_type == MovementType.ADJUST:
        if quantity < 0:
            raise ValidationError("ADJUST quantity cannot be negative")
    elif quantity <= 0:
        raise ValidationError(f"{movement_type.value} quantity must be greater than zero")

    unit_cost = metadata.get("unit_cost")
    if unit_cost is not None and unit_cost < 0:
        raise ValidationError("unit_cost cannot be negative")

    if movement_type == MovementType.TRANSFER:
        source = (metadata.get("from_location") or "").strip()
        target = (metadata.get("to_location") or "").strip()
        if not source or not target:
            raise ValidationError("TRANSFER requires both from_location and to_location")
        if source == target:
            raise ValidationError("TRANSFER from_location and to_location must differ")

    if (
        policy.require_stock_in_reference
        and movement_type == MovementType.IN
        and not (metadata.get("reference_id") or "").strip()
    ):
        raise ValidationError("Invoice number (reference_id) is required for stock in movements")

    if policy.min_reason_words and movement_type != MovementType.IN:
        text = (metadata.get("reason") or metadata.get("notes") or "").strip()
        word_count = len(text.split())
        if word_count < policy.min_reason_words:
            raise ValidationError(
                f"{movement_type.value} needs a reason of at least "
                f"{policy.min_reason_words} words (got {word_count})"
            )


# =========================================================
# QUERY HELPERS
# =========================================================
def _live_items(db: Session, business_id: int):
    return db.query(InventoryItem).filter(
        InventoryItem.business_id == business_id,
        InventoryItem.deleted_at.is_(None),
    )


def _lock_item(db: Session, business_id: int, item_id: int) -> InventoryItem:
    item = (
        _live_items(db, business_id)
        .filter(InventoryItem.id == item_id)
        .with_for_update()
        .populate_existing()
        .first()
    )

    if not item:
        db.rollback()
        raise NotFoundError(f"Inventory item {item_id} not found")

    return item


def _sku_taken(db: Session, business_id: int, sku: str, exclude_id: int | None = None) -> bool:
    query = _live_items(db, business_id).filter(InventoryItem.sku == sku)
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    return query.first() is not None


def _contains_pattern(text: str) -> str:
    # % and _ in user input are literals, not wildcards
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _normalize_sku(sku: str | None) -> str:
    sku = (sku or "").strip()
    if not sku:
        raise ValidationError("SKU is required")
    return sku


def _commit_item(db: Session, business_id: int, sku: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # The partial unique index caught a concurrent insert of the same SKU
        if _sku_taken(db, business_id, sku):
            raise DuplicateSkuError(sku)
        raise


# =========================================================
# ITEMS
# =========================================================
def get_item(db: Session, *, business_id: int, item_id: int) -> InventoryItem:
    item = _live_items(db, business_id).filter(InventoryItem.id == item_id).first()

    if not item:
        raise NotFoundError(f"Inventory item {item_id} not found")

    return item


def list_items(
    db: Session,
    *,
    business_id: int,
    search: str | None = None,
    category: str | None = None,
    supplier: str | None = None,
    location: str | None = None,
    stock_status: StockStatus | None = None,
    sort: str = "created_at",
    limit: int = 100,
    offset: int = 0,
) -> list[InventoryItem]:
    query = _live_items(db, business_id)

    if search:
        pattern = _contains_pattern(search.strip())
        query = query.filter(
            or_(
                InventoryItem.name.ilike(pattern, escape="\\"),
                InventoryItem.sku.ilike(pattern, escape="\\"),
                InventoryItem.supplier_name.ilike(pattern, escape="\\"),
            )
        )

    if category:
        query = query.filter(InventoryItem.category == category)

    if supplier:
        query = query.filter(InventoryItem.supplier_name == supplier)

    if location:
        query = query.filter(InventoryItem.location == location)

    if stock_status == StockStatus.OUT_OF_STOCK:
        query = query.filter(InventoryItem.on_hand_qty <= 0)
    elif stock_status == StockStatus.LOW_STOCK:
        query = query.filter(
            InventoryItem.on_hand_qty > 0,
            InventoryItem.on_hand_qty <= InventoryItem.reorder_point,
        )
    elif stock_status == StockStatus.IN_STOCK:
        query = query.filter(InventoryItem.on_hand_qty > InventoryItem.reorder_point)

    if sort == "name":
        query = query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
    elif sort == "sku":
        query = query.order_by(InventoryItem.sku.asc())
    elif sort == "created_at":
        query = query.order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc())
    else:
        raise ValidationError(f"Unsupported sort '{sort}'")

    return query.offset(offset).limit(limit).all()


def live_items(db: Session, *, business_id: int) -> list[InventoryItem]:
    return _live_items(db, business_id).order_by(InventoryItem.id.asc()).all()


def create_item(
    db: Session,
    *,
    business_id: int,
    data: dict[str, Any],
    actor_id: str | None = None,
    defaults: ItemDefaults | None = None,
) -> InventoryItem:
    defaults = defaults or ItemDefaults.from_settings()
    data = dict(data)

    sku = _normalize_sku(data.get("sku"))
    _check_non_negative(data)

    if _sku_taken(db, business_id, sku):
        raise DuplicateSkuError(sku)

    now = _utcnow()
    item = InventoryItem(
        business_id=business_id,
        sku=sku,
        name=(data.get("name") or "").strip() or sku,
        category=data.get("category"),
        barcode=data.get("barcode"),
        description=data.get("description"),
        attributes=data.get("attributes") or {},
        cost=data.get("cost") if data.get("cost") is not None else Decimal("0.00"),
        price=data.get("price") if data.get("price") is not None else Decimal("0.00"),
        supplier_name=data.get("supplier_name"),
        supplier_contact=data.get("supplier_contact"),
        location=data.get("location"),
        on_hand_qty=0,
        allocated_qty=data.get("allocated_qty") or 0,
        min_stock_level=_or_default(data.get("min_stock_level"), defaults.min_stock_level),
        reorder_point=_or_default(data.get("reorder_point"), defaults.reorder_point),
        reorder_quantity=_or_default(data.get("reorder_quantity"), defaults.reorder_quantity),
        created_at=now,
        updated_at=now,
    )
    db.add(item)

    opening_qty = data.get("on_hand_qty") or 0
    try:
        db.flush()
        if opening_qty:
            # Opening stock goes through the ledger so replay matches the balance
            _write_movement(
                db,
                item,
                MovementType.ADJUST,
                opening_qty,
                occurred_at=now,
                actor_id=actor_id,
                metadata={"reason": "opening balance"},
            )
    except IntegrityError:
        db.rollback()
        if _sku_taken(db, business_id, sku):
            raise DuplicateSkuError(sku)
        raise

    _commit_item(db, business_id, sku)
    db.refresh(item)

    logger.info(f"Inventory item created: id={item.id} sku={item.sku} opening={opening_qty}")

    return item


def _or_default(value, default):
    return default if value is None else value


def update_item(
    db: Session,
    *,
    business_id: int,
    item_id: int,
    data: dict[str, Any],
) -> InventoryItem:
    protected = QUANTITY_FIELDS & set(data)
    if protected:
        raise ValidationError(
            f"{', '.join(sorted(protected))} can only change through inventory movements"
        )

    unknown = set(data) - set(EDITABLE_FIELDS) - {"sku"}
    if unknown:
        raise ValidationError(f"Unknown item fields: {', '.join(sorted(unknown))}")

    _check_non_negative(data)

    item = get_item(db, business_id=business_id, item_id=item_id)

    if data.get("sku") is not None:
        sku = _normalize_sku(data["sku"])
        if sku != item.sku and _sku_taken(db, business_id, sku, exclude_id=item.id):
            raise DuplicateSkuError(sku)
        item.sku = sku

    if "name" in data and data["name"] is not None and not data["name"].strip():
        raise ValidationError("name cannot be empty")

    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if value is None and field in NON_NULLABLE_FIELDS:
            continue
        setattr(item, field, value)

    item.updated_at = _utcnow()

    _commit_item(db, business_id, item.sku)
    db.refresh(item)

    return item


def delete_item(db: Session, *, business_id: int, item_id: int) -> InventoryItem:
    item = (
        db.query(InventoryItem)
        .filter(
            InventoryItem.id == item_id,
            InventoryItem.business_id == business_id,
        )
        .first()
    )

    if not item:
        raise NotFoundError(f"Inventory item {item_id} not found")

    if item.deleted_at is not None:
        return item

    now = _utcnow()
    item.deleted_at = now
    item.updated_at = now
    db.commit()
    db.refresh(item)

    logger.info(f"Inventory item soft-deleted: id={item.id} sku={item.sku}")

    return item


def adjust_allocation(db: Session, *, business_id: int, item_id: int, delta: int) -> InventoryItem:
    item = _lock_item(db, business_id, item_id)

    new_allocated = item.allocated_qty + delta
    if new_allocated < 0:
        db.rollback()
        raise ValidationError(
            f"Cannot release {-delta} units; only {item.allocated_qty} allocated"
        )

    item.allocated_qty = new_allocated
    item.updated_at = _utcnow()
    db.commit()
    db.refresh(item)

    return item


# =========================================================
# MOVEMENTS
# =========================================================
def _write_movement(
    db: Session,
    item: InventoryItem,
    movement_type: MovementType,
    quantity: int,
    *,
    occurred_at: datetime,
    actor_id: str | None,
    metadata: dict,
) -> InventoryMovement:
    """Append the movement and apply it to the item. Caller commits."""
    balance_before = item.on_hand_qty
    balance_after = apply_movement(balance_before, movement_type, quantity)

    movement = InventoryMovement(
        item_id=item.id,
        business_id=item.business_id,
        movement_type=movement_type,
        quantity=quantity,
        balance_before=balance_before,
        balance_after=balance_after,
        unit_cost=metadata.get("unit_cost"),
        from_location=metadata.get("from_location"),
        to_location=metadata.get("to_location"),
        reference_type=metadata.get("reference_type"),
        reference_id=metadata.get("reference_id"),
        reason=metadata.get("reason"),
        notes=metadata.get("notes"),
        performed_by=actor_id,
        occurred_at=occurred_at,
        created_at=_utcnow(),
    )
    db.add(movement)
    db.flush()

    item.on_hand_qty = balance_after
    item.last_movement_at = occurred_at
    item.updated_at = _utcnow()
    db.flush()

    return movement


def _commit_movement(db: Session, item_id: int) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.critical(
                f"Movement on item {item_id} could not be rolled back; "
                f"ledger and balance may disagree: {exc}"
            )
            raise PartialApplicationError(
                item_id,
                f"Movement on item {item_id} may be partially applied; run a reconciliation",
            ) from exc

        logger.error(f"Movement on item {item_id} rolled back: {exc}")
        raise


def record_movement(
    db: Session,
    *,
    business_id: int,
    item_id: int,
    movement_type: MovementType | str,
    quantity: int,
    actor_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    policy: LedgerPolicy | None = None,
    invoice: InvoiceFile | None = None,
    storage: InvoiceStorage | None = None,
) -> InventoryMovement:
    policy = policy or LedgerPolicy.from_settings()
    metadata = {k: v for k, v in (metadata or {}).items() if v is not None}
    movement_type = _parse_movement_type(movement_type)

    _validate_movement(movement_type, quantity, metadata, policy)

    item = _lock_item(db, business_id, item_id)

    # Replay order is occurred_at order, so the ledger only accepts events
    # at or after the item's latest one
    last_movement_at = _as_utc(item.last_movement_at) if item.last_movement_at else None
    occurred_at = metadata.pop("occurred_at", None)

    if occurred_at is None:
        occurred_at = _utcnow()
        if last_movement_at is not None and occurred_at < last_movement_at:
            occurred_at = last_movement_at
    else:
        occurred_at = _as_utc(occurred_at)
        if last_movement_at is not None and occurred_at < last_movement_at:
            db.rollback()
            raise ValidationError(
                "occurred_at cannot be earlier than the item's latest movement"
            )

    if (
        movement_type == MovementType.OUT
        and policy.overdraw == "reject"
        and quantity > item.on_hand_qty
    ):
        available = item.on_hand_qty
        db.rollback()
        raise ValidationError(f"Cannot remove {quantity} units; only {available} on hand")

    try:
        movement = _write_movement(
            db,
            item,
            movement_type,
            quantity,
            occurred_at=occurred_at,
            actor_id=actor_id,
            metadata=metadata,
        )
    except SQLAlchemyError:
        db.rollback()
        raise

    _commit_movement(db, item_id)
    db.refresh(movement)

    logger.info(
        f"Movement recorded: item={item_id} {movement_type.value} {quantity} "
        f"balance {movement.balance_before} -> {movement.balance_after}"
    )

    if invoice is not None:
        attach_invoice(db, movement, invoice, storage=storage)

    return movement


def attach_invoice(
    db: Session,
    movement: InventoryMovement,
    invoice: InvoiceFile,
    *,
    storage: InvoiceStorage | None = None,
) -> bool:
    """
    Best-effort: upload the file and store url/name/size on the movement.

    The movement is already committed, so any failure here is logged and
    reported as False instead of being raised.
    """
    try:
        storage = storage or get_invoice_storage()
        stored = storage.save(movement.id, invoice)
    except (StorageError, RuntimeError) as exc:
        logger.warning(f"Invoice upload for movement {movement.id} failed: {exc}")
        return False

    movement.invoice_file_url = stored.url
    movement.invoice_file_name = stored.name
    movement.invoice_file_size = stored.size

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(f"Could not attach invoice to movement {movement.id}: {exc}")
        return False

    db.refresh(movement)
    return True


def list_movements(
    db: Session,
    *,
    business_id: int,
    item_id: int | None = None,
    limit: int = DEFAULT_MOVEMENT_LIMIT,
    sort: str = "desc",
) -> list[InventoryMovement]:
    if limit < 1 or limit > MAX_MOVEMENT_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_MOVEMENT_LIMIT}")

    if sort not in ("asc", "desc"):
        raise ValidationError("sort must be 'asc' or 'desc'")

    query = db.query(InventoryMovement).filter(InventoryMovement.business_id == business_id)

    if item_id is not None:
        # History outlives soft deletion, so deleted items are still looked up
        exists = (
            db.query(InventoryItem.id)
            .filter(
                InventoryItem.id == item_id,
                InventoryItem.business_id == business_id,
            )
            .first()
        )
        if not exists:
            raise NotFoundError(f"Inventory item {item_id} not found")

        query = query.filter(InventoryMovement.item_id == item_id)

    if sort == "desc":
        query = query.order_by(InventoryMovement.occurred_at.desc(), InventoryMovement.id.desc())
    else:
        query = query.order_by(InventoryMovement.occurred_at.asc(), InventoryMovement.id.asc())

    return query.limit(limit).all()


# =========================================================
# RECONCILIATION
# =========================================================
def _load_for_reconcile(db: Session, business_id: int, item_id: int, lock: bool = False) -> InventoryItem:
    # Soft-deleted items are reconciled too
    query = db.query(InventoryItem).filter(
        InventoryItem.id == item_id,
        InventoryItem.business_id == business_id,
    )
    if lock:
        query = query.with_for_update().populate_existing()
    return query.one()


def reconcile_items(
    db: Session,
    *,
    business_id: int,
    repair: bool = False,
    actor_id: str | None = None,
) -> list[ReconciliationResult]:
    """
    Replay every item's movements and compare with the stored balance.

    With repair=True a mismatch gets a compensating ADJUST to the replayed
    value, so the ledger stays the source of truth.
    """
    item_ids = [
        row.id
        for row in db.query(InventoryItem.id)
        .filter(InventoryItem.business_id == business_id)
        .order_by(InventoryItem.id.asc())
    ]

    results = []

    for item_id in item_ids:
        # Under repair the row stays locked from replay until the ADJUST commits
        item = _load_for_reconcile(db, business_id, item_id, lock=repair)
        movements = (
            db.query(InventoryMovement)
            .filter(InventoryMovement.item_id == item.id)
            .all()
        )
        replayed = replay_balance(movements)
        balanced = replayed == item.on_hand_qty

        result = ReconciliationResult(
            item_id=item.id,
            sku=item.sku,
            stored_qty=item.on_hand_qty,
            replayed_qty=replayed,
            movement_count=len(movements),
            balanced=balanced,
        )

        if not balanced:
            logger.warning(
                f"Balance mismatch on item {item.id} ({item.sku}): "
                f"stored={item.on_hand_qty} replayed={replayed}"
            )

            if repair:
                latest = max((_as_utc(m.occurred_at) for m in movements), default=None)
                now = _utcnow()
                _write_movement(
                    db,
                    item,
                    MovementType.ADJUST,
                    replayed,
                    occurred_at=max(now, latest) if latest else now,
                    actor_id=actor_id,
                    metadata={"reason": "reconciliation"},
                )
                _commit_movement(db, item.id)
                result.repaired = True
        elif repair:
            db.commit()

        results.append(result)

    return results
