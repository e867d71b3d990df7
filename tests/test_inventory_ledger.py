from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    ImmutableMovementError,
    NotFoundError,
    PartialApplicationError,
    ValidationError,
)
from app.models.inventory import InventoryItem
from app.models.inventory_movements import InventoryMovement, MovementType
from app.services import ledger
from app.services.ledger import LedgerPolicy, apply_movement, replay_balance


BUSINESS_ID = 1


def _create_item(db, sku="SKU-RING-01", **extra):
    data = {"sku": sku, "name": "Gold ring", "reorder_point": 5, "reorder_quantity": 20}
    data.update(extra)
    return ledger.create_item(db, business_id=BUSINESS_ID, data=data)


def _move(db, item, movement_type, quantity, **kwargs):
    return ledger.record_movement(
        db,
        business_id=BUSINESS_ID,
        item_id=item.id,
        movement_type=movement_type,
        quantity=quantity,
        **kwargs,
    )


def _history(db, item):
    return ledger.list_movements(db, business_id=BUSINESS_ID, item_id=item.id, sort="asc")


def test_apply_movement_rules():
    assert apply_movement(5, MovementType.IN, 3) == 8
    assert apply_movement(5, MovementType.OUT, 3) == 2
    assert apply_movement(5, MovementType.OUT, 9) == 0
    assert apply_movement(5, MovementType.ADJUST, 12) == 12
    assert apply_movement(5, MovementType.ADJUST, 0) == 0
    assert apply_movement(5, MovementType.TRANSFER, 4) == 5
    assert apply_movement(0, "IN", 1) == 1


def test_ledger_scenario_in_out_clamp_adjust(db_session):
    item = _create_item(db_session)

    first = _move(db_session, item, MovementType.IN, 20, actor_id="user-1")
    assert (first.balance_before, first.balance_after) == (0, 20)

    second = _move(db_session, item, MovementType.OUT, 16)
    assert second.balance_after == 4

    third = _move(db_session, item, MovementType.OUT, 10)
    assert third.balance_before == 4
    assert third.balance_after == 0
    # requested quantity is kept on the row even though the balance floored
    assert third.quantity == 10

    fourth = _move(db_session, item, MovementType.ADJUST, 25)
    assert fourth.balance_after == 25

    refreshed = ledger.get_item(db_session, business_id=BUSINESS_ID, item_id=item.id)
    assert refreshed.on_hand_qty == 25
    assert refreshed.last_movement_at is not None

    history = _history(db_session, item)
    assert [m.movement_type for m in history] == [
        MovementType.IN,
        MovementType.OUT,
        MovementType.OUT,
        MovementType.ADJUST,
    ]
    assert [m.quantity for m in history] == [20, 16, 10, 25]
    assert history[0].performed_by == "user-1"
    assert replay_balance(history) == refreshed.on_hand_qty


def test_balance_chain_links_each_movement(db_session):
    item = _create_item(db_session)
    for movement_type, quantity in [("IN", 8), ("OUT", 3), ("TRANSFER", 2), ("ADJUST", 1), ("IN", 4)]:
        _move(
            db_session,
            item,
            movement_type,
            quantity,
            metadata={"from_location": "Shelf A", "to_location": "Shelf B"}
            if movement_type == "TRANSFER"
            else None,
        )

    history = _history(db_session, item)
    for previous, current in zip(history, history[1:]):
        assert current.balance_before == previous.balance_after
    assert history[-1].balance_after == item.on_hand_qty == 5


def test_transfer_keeps_balance_and_requires_locations(db_session):
    item = _create_item(db_session, on_hand_qty=7)

    movement = _move(
        db_session,
        item,
        MovementType.TRANSFER,
        3,
        metadata={"from_location": "Back room", "to_location": "Display case"},
    )
    assert movement.balance_before == movement.balance_after == 7
    assert movement.from_location == "Back room"

    with pytest.raises(ValidationError, match="from_location and to_location"):
        _move(db_session, item, MovementType.TRANSFER, 3, metadata={"to_location": "Display case"})

    with pytest.raises(ValidationError, match="must differ"):
        _move(
            db_session,
            item,
            MovementType.TRANSFER,
            3,
            metadata={"from_location": "Shelf", "to_location": "Shelf"},
        )


@pytest.mark.parametrize(
    "movement_type, quantity, message",
    [
        ("IN", 0, "greater than zero"),
        ("OUT", -2, "greater than zero"),
        ("TRANSFER", 0, "greater than zero"),
        ("ADJUST", -1, "cannot be negative"),
        ("TELEPORT", 1, "Unknown movement type"),
    ],
)
def test_invalid_movements_are_rejected_without_writing(db_session, movement_type, quantity, message):
    item = _create_item(db_session, on_hand_qty=3)

    with pytest.raises(ValidationError, match=message):
        _move(db_session, item, movement_type, quantity)

    assert len(_history(db_session, item)) == 1
    assert ledger.get_item(db_session, business_id=BUSINESS_ID, item_id=item.id).on_hand_qty == 3


def test_unknown_metadata_and_negative_unit_cost(db_session):
    item = _create_item(db_session)

    with pytest.raises(ValidationError, match="Unknown movement fields"):
        _move(db_session, item, "IN", 1, metadata={"balance_after": 99})

    with pytest.raises(ValidationError, match="unit_cost"):
        _move(db_session, item, "IN", 1, metadata={"unit_cost": -1})


def test_movement_on_missing_or_deleted_item(db_session):
    with pytest.raises(NotFoundError):
        ledger.record_movement(
            db_session,
            business_id=BUSINESS_ID,
            item_id=9999,
            movement_type="IN",
            quantity=1,
        )

    item = _create_item(db_session)
    ledger.delete_item(db_session, business_id=BUSINESS_ID, item_id=item.id)

    with pytest.raises(NotFoundError):
        _move(db_session, item, "IN", 1)


def test_other_tenant_cannot_move_stock(db_session):
    item = _create_item(db_session)

    with pytest.raises(NotFoundError):
        ledger.record_movement(
            db_session,
            business_id=2,
            item_id=item.id,
            movement_type="IN",
            quantity=5,
        )


def test_reject_policy_refuses_overdraw(db_session):
    item = _create_item(db_session, on_hand_qty=4)
    policy = LedgerPolicy(overdraw="reject")

    with pytest.raises(ValidationError, match="only 4 on hand"):
        _move(db_session, item, "OUT", 5, policy=policy)

    assert len(_history(db_session, item)) == 1

    movement = _move(db_session, item, "OUT", 4, policy=policy)
    assert movement.balance_after == 0


def test_stock_in_reference_and_reason_policies(db_session):
    item = _create_item(db_session)
    policy = LedgerPolicy(require_stock_in_reference=True, min_reason_words=3)

    with pytest.raises(ValidationError, match="reference_id"):
        _move(db_session, item, "IN", 5, policy=policy)

    movement = _move(db_session, item, "IN", 5, policy=policy, metadata={"reference_id": "INV-1001"})
    assert movement.reference_id == "INV-1001"

    with pytest.raises(ValidationError, match="at least 3 words"):
        _move(db_session, item, "OUT", 1, policy=policy, metadata={"reason": "sold"})

    movement = _move(
        db_session,
        item,
        "OUT",
        1,
        policy=policy,
        metadata={"reason": "sold to walk-in customer"},
    )
    assert movement.balance_after == 4


@pytest.mark.parametrize(
    "sequence",
    [
        [("IN", 10), ("OUT", 3), ("OUT", 3)],
        [("OUT", 5), ("IN", 2), ("ADJUST", 9), ("OUT", 20), ("IN", 1)],
        [("ADJUST", 0), ("IN", 7), ("TRANSFER", 7), ("OUT", 1)],
    ],
)
def test_replay_matches_stored_balance(db_session, sequence):
    item = _create_item(db_session)

    for movement_type, quantity in sequence:
        metadata = None
        if movement_type == "TRANSFER":
            metadata = {"from_location": "A", "to_location": "B"}
        _move(db_session, item, movement_type, quantity, metadata=metadata)

    assert replay_balance(_history(db_session, item)) == item.on_hand_qty


def test_replay_orders_by_occurred_at_then_id():
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    class Row:
        def __init__(self, id, movement_type, quantity, occurred_at):
            self.id = id
            self.movement_type = movement_type
            self.quantity = quantity
            self.occurred_at = occurred_at

    rows = [
        Row(3, "ADJUST", 4, base + timedelta(minutes=5)),
        Row(2, "OUT", 1, base),
        Row(1, "IN", 10, base),
    ]

    assert replay_balance(rows) == 4
    assert replay_balance([rows[1], rows[2]]) == 9
    assert replay_balance([]) == 0


def test_compensating_movement_restores_balance(db_session):
    item = _create_item(db_session, on_hand_qty=10)

    _move(db_session, item, "OUT", 5, metadata={"reason": "entered by mistake"})
    _move(db_session, item, "IN", 5, metadata={"reason": "reverses mistaken stock out"})

    history = _history(db_session, item)
    assert item.on_hand_qty == 10
    assert len(history) == 3
    assert replay_balance(history) == 10


def test_backdated_movement_is_rejected(db_session):
    item = _create_item(db_session)
    first = _move(db_session, item, "IN", 5)

    earlier = first.occurred_at.replace(tzinfo=timezone.utc) - timedelta(days=1)
    with pytest.raises(ValidationError, match="earlier than the item's latest movement"):
        _move(db_session, item, "IN", 1, metadata={"occurred_at": earlier})

    later = datetime.now(timezone.utc) + timedelta(hours=1)
    movement = _move(db_session, item, "IN", 1, metadata={"occurred_at": later})
    assert movement.balance_after == 6

    # a default timestamp never lands before the future-dated one
    follow_up = _move(db_session, item, "OUT", 2)
    assert follow_up.occurred_at.replace(tzinfo=None) >= later.replace(tzinfo=None)
    assert replay_balance(_history(db_session, item)) == item.on_hand_qty == 4


def test_movements_are_append_only(db_session):
    item = _create_item(db_session)
    movement = _move(db_session, item, "IN", 5)

    movement.quantity = 50
    with pytest.raises(ImmutableMovementError):
        db_session.commit()
    db_session.rollback()

    stored = db_session.get(InventoryMovement, movement.id)
    db_session.delete(stored)
    with pytest.raises(ImmutableMovementError):
        db_session.commit()
    db_session.rollback()

    assert db_session.get(InventoryMovement, movement.id).quantity == 5


def test_failed_commit_rolls_back_both_writes(db_session, monkeypatch):
    item = _create_item(db_session, on_hand_qty=2)

    def failing_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(SQLAlchemyError, match="disk full"):
        _move(db_session, item, "IN", 5)

    monkeypatch.undo()

    assert db_session.query(InventoryMovement).filter_by(item_id=item.id).count() == 1
    assert db_session.get(InventoryItem, item.id).on_hand_qty == 2


def test_failed_rollback_reports_partial_application(db_session, monkeypatch):
    item = _create_item(db_session)

    def failing_commit():
        raise SQLAlchemyError("connection lost")

    def failing_rollback():
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(db_session, "commit", failing_commit)
    monkeypatch.setattr(db_session, "rollback", failing_rollback)

    with pytest.raises(PartialApplicationError) as exc_info:
        _move(db_session, item, "IN", 5)

    assert exc_info.value.item_id == item.id


def test_list_movements_ordering_and_feed(db_session):
    ring = _create_item(db_session, sku="SKU-RING-01")
    chain = _create_item(db_session, sku="SKU-CHAIN-01")

    _move(db_session, ring, "IN", 3)
    _move(db_session, chain, "IN", 4)
    _move(db_session, ring, "OUT", 1)

    newest_first = ledger.list_movements(db_session, business_id=BUSINESS_ID, item_id=ring.id)
    assert [m.movement_type for m in newest_first] == [MovementType.OUT, MovementType.IN]

    feed = ledger.list_movements(db_session, business_id=BUSINESS_ID)
    assert len(feed) == 3
    assert feed[0].item_id == ring.id
    assert feed[0].movement_type == MovementType.OUT

    assert len(ledger.list_movements(db_session, business_id=BUSINESS_ID, limit=2)) == 2
    assert ledger.list_movements(db_session, business_id=2) == []

    with pytest.raises(ValidationError):
        ledger.list_movements(db_session, business_id=BUSINESS_ID, limit=0)

    with pytest.raises(ValidationError):
        ledger.list_movements(db_session, business_id=BUSINESS_ID, limit=501)

    with pytest.raises(NotFoundError):
        ledger.list_movements(db_session, business_id=BUSINESS_ID, item_id=9999)


def test_history_survives_soft_delete(db_session):
    item = _create_item(db_session)
    _move(db_session, item, "IN", 3)

    ledger.delete_item(db_session, business_id=BUSINESS_ID, item_id=item.id)

    history = ledger.list_movements(db_session, business_id=BUSINESS_ID, item_id=item.id)
    assert len(history) == 1
