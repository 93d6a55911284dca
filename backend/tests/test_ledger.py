from datetime import timedelta

import pytest

from backend.app.core.exceptions import LedgerImmutableError
from backend.app.db.models.core_types import MovementType, ReferenceType
from backend.app.db.models.models_v1 import InventoryMovement, utcnow
from backend.services import inventory, ledger


@pytest.fixture
def window():
    now = utcnow()
    return now - timedelta(hours=1), now + timedelta(hours=1)


def test_query_movements_newest_first_with_filters(db_session, product):
    inventory.increase_stock(db_session, product.id, 5)
    inventory.decrease_stock(db_session, product.id, 2, reference_type=ReferenceType.sale, reference_id=7)
    inventory.deduct_for_external_system(db_session, "SKU1", 1)

    rows = ledger.query_movements(db_session)
    assert [m.quantity for m in rows] == [1, 2, 5]

    outbound = ledger.query_movements(db_session, movement_type=MovementType.outbound)
    assert len(outbound) == 2

    by_ref = ledger.query_movements(db_session, reference_type=ReferenceType.sale, reference_id=7)
    assert [m.quantity for m in by_ref] == [2]

    billing = ledger.query_movements(db_session, source_system="EXTERNAL_BILLING")
    assert [m.quantity for m in billing] == [1]

    assert len(ledger.query_movements(db_session, limit=2)) == 2


def test_query_movements_time_window(db_session, product, window):
    inventory.increase_stock(db_session, product.id, 5)
    start, end = window

    assert len(ledger.query_movements(db_session, start=start, end=end)) == 1
    assert ledger.query_movements(db_session, start=end) == []


def test_summary_by_product(db_session, product, window):
    inventory.increase_stock(db_session, product.id, 5)
    inventory.decrease_stock(db_session, product.id, 3)
    start, end = window

    [row] = ledger.summarize_by_product(db_session, start=start, end=end)
    assert row.product_code == "SKU1"
    assert row.inbound == 5
    assert row.outbound == 3
    assert row.net == 2


def test_outbound_summary_by_source(db_session, product, window):
    inventory.decrease_stock(db_session, product.id, 1)
    inventory.deduct_for_external_system(db_session, "SKU1", 2)
    inventory.deduct_for_external_system(db_session, "SKU1", 3)
    inventory.increase_stock(db_session, product.id, 9)
    start, end = window

    rows = ledger.summarize_outbound_by_source(db_session, start=start, end=end)
    assert [(r.source_system, r.movement_count, r.total_quantity) for r in rows] == [
        ("EXTERNAL_BILLING", 2, 5),
        ("SYSTEM", 1, 1),
    ]


def test_ledger_rows_cannot_be_updated(db_session, product):
    mv = inventory.increase_stock(db_session, product.id, 5)

    mv.quantity = 500
    with pytest.raises(LedgerImmutableError):
        db_session.flush()
    db_session.rollback()

    assert db_session.get(InventoryMovement, mv.id).quantity == 5


def test_ledger_rows_cannot_be_deleted(db_session, product):
    mv = inventory.increase_stock(db_session, product.id, 5)

    db_session.delete(mv)
    with pytest.raises(LedgerImmutableError):
        db_session.flush()
    db_session.rollback()

    assert db_session.get(InventoryMovement, mv.id) is not None


def test_signed_quantity_follows_direction(db_session, product):
    inbound = inventory.increase_stock(db_session, product.id, 4)
    outbound = inventory.decrease_stock(db_session, product.id, 3)

    assert inbound.signed_quantity == 4
    assert outbound.signed_quantity == -3
    # stock = 10 (fixture, sans écriture ledger) + somme signée
    db_session.refresh(product)
    assert product.current_stock == 10 + sum(m.signed_quantity for m in ledger.query_movements(db_session))


def test_statistics_by_type_and_reference(db_session, product, window):
    inventory.increase_stock(db_session, product.id, 5)
    inventory.decrease_stock(db_session, product.id, 2, reference_type=ReferenceType.sale)
    inventory.deduct_for_external_system(db_session, "SKU1", 1)
    inventory.deduct_for_external_system(db_session, "SKU1", 2)
    inventory.adjust_stock(db_session, product.id, 20)
    start, end = window

    rows = ledger.summarize_by_type_and_reference(db_session, start=start, end=end)
    assert [(r.movement_type, r.reference_type, r.movement_count, r.total_quantity) for r in rows] == [
        (MovementType.inbound, ReferenceType.adjustment, 1, 10),
        (MovementType.inbound, None, 1, 5),
        (MovementType.outbound, ReferenceType.sale, 3, 5),
    ]


def test_daily_summary(db_session, product, window):
    inventory.increase_stock(db_session, product.id, 6)
    inventory.decrease_stock(db_session, product.id, 4)
    start, end = window

    [day] = ledger.summarize_daily(db_session, start=start, end=end)
    assert day.day == utcnow().date()
    assert (day.inbound, day.outbound, day.net) == (6, 4, 2)

    assert ledger.summarize_daily(db_session, start=end, end=end + timedelta(hours=1)) == []
