from decimal import Decimal

import pytest
from sqlalchemy import func, select

from backend.app.core.exceptions import (
    DuplicateProductCodeError,
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
)
from backend.app.db.models.core_types import MovementType, ReferenceType
from backend.app.db.models.models_v1 import InventoryMovement, Product
from backend.services import inventory


def _movement_count(db) -> int:
    return db.execute(select(func.count(InventoryMovement.id))).scalar_one()


class RecordingSink:
    def __init__(self):
        self.calls = []

    def record(self, *, action, entity_type, entity_id, actor):
        self.calls.append((action, entity_type, entity_id, actor))


class BrokenSink:
    def record(self, **kwargs):
        raise RuntimeError("audit backend down")


# ---------- increase / decrease ----------
def test_increase_stock_writes_one_inbound_movement(db_session, product):
    mv = inventory.increase_stock(db_session, product.id, 5, notes="restock", actor="alice")

    db_session.refresh(product)
    assert product.current_stock == 15
    assert mv.movement_type == MovementType.inbound
    assert mv.quantity == 5
    assert mv.source_system == "SYSTEM"
    assert mv.reference_type is None
    assert mv.created_by == "alice"
    assert _movement_count(db_session) == 1


def test_decrease_stock_with_reference(db_session, product):
    mv = inventory.decrease_stock(
        db_session,
        product.id,
        3,
        reference_type=ReferenceType.sale,
        reference_id=42,
    )

    db_session.refresh(product)
    assert product.current_stock == 7
    assert mv.movement_type == MovementType.outbound
    assert mv.reference_type == ReferenceType.sale
    assert mv.reference_id == 42


def test_decrease_insufficient_stock_leaves_everything_unchanged(db_session, product):
    """
    GIVEN stock = 10
    WHEN on demande 11
    THEN erreur, stock inchangé, aucun mouvement
    """
    with pytest.raises(InsufficientStockError) as exc:
        inventory.decrease_stock(db_session, product.id, 11)

    assert exc.value.available == 10
    assert exc.value.requested == 11
    assert exc.value.product_code == "SKU1"

    db_session.refresh(product)
    assert product.current_stock == 10
    assert _movement_count(db_session) == 0


@pytest.mark.parametrize("quantity", [0, -2])
def test_non_positive_quantities_are_rejected(db_session, product, quantity):
    with pytest.raises(InvalidQuantityError):
        inventory.increase_stock(db_session, product.id, quantity)
    with pytest.raises(InsufficientStockError):
        inventory.decrease_stock(db_session, product.id, quantity)

    db_session.refresh(product)
    assert product.current_stock == 10
    assert _movement_count(db_session) == 0


def test_unknown_product_raises_not_found(db_session):
    with pytest.raises(ProductNotFoundError):
        inventory.increase_stock(db_session, 999, 1)


# ---------- adjust ----------
def test_adjust_to_same_value_is_a_noop(db_session, product):
    assert inventory.adjust_stock(db_session, product.id, 10) is None
    assert _movement_count(db_session) == 0


def test_adjust_up_writes_single_adjustment(db_session, product):
    mv = inventory.adjust_stock(db_session, product.id, 15)

    db_session.refresh(product)
    assert product.current_stock == 15
    assert mv.movement_type == MovementType.inbound
    assert mv.quantity == 5
    assert mv.reference_type == ReferenceType.adjustment
    assert mv.notes == inventory.ADJUSTMENT_NOTES
    assert _movement_count(db_session) == 1


def test_adjust_down_writes_single_outbound(db_session, product):
    mv = inventory.adjust_stock(db_session, product.id, 4, "cycle count")

    db_session.refresh(product)
    assert product.current_stock == 4
    assert mv.movement_type == MovementType.outbound
    assert mv.quantity == 6
    assert mv.notes == "cycle count"


def test_adjust_to_negative_is_rejected(db_session, product):
    with pytest.raises(InvalidQuantityError):
        inventory.adjust_stock(db_session, product.id, -1)


# ---------- external billing ----------
def test_external_deduction_returns_billing_contract(db_session, product):
    resp = inventory.deduct_for_external_system(db_session, "SKU1", 3)

    assert resp.product_code == "SKU1"
    assert resp.product_name == "Widget"
    assert resp.quantity_deducted == 3
    assert resp.previous_stock == 10
    assert resp.current_stock == 7
    assert resp.source_system == "EXTERNAL_BILLING"

    mv = db_session.get(InventoryMovement, resp.movement_id)
    assert mv.movement_type == MovementType.outbound
    assert mv.reference_type == ReferenceType.sale
    assert mv.notes == inventory.EXTERNAL_DEDUCTION_NOTES


def test_external_deduction_keeps_caller_source(db_session, product):
    resp = inventory.deduct_for_external_system(db_session, "SKU1", 1, "POS", "ticket 77")

    mv = db_session.get(InventoryMovement, resp.movement_id)
    assert resp.source_system == "POS"
    assert mv.notes == "ticket 77"


def test_external_deduction_on_inactive_product_is_not_found(db_session, product):
    product.active = False
    db_session.commit()

    with pytest.raises(ProductNotFoundError):
        inventory.deduct_for_external_system(db_session, "SKU1", 1)

    db_session.refresh(product)
    assert product.current_stock == 10


def test_external_deduction_unknown_code(db_session):
    with pytest.raises(ProductNotFoundError) as exc:
        inventory.deduct_for_external_system(db_session, "NOPE", 1)
    assert exc.value.details == {"code": "NOPE"}


# ---------- products ----------
def test_create_product_records_initial_stock(db_session):
    p = inventory.create_product(
        db_session,
        code="NEW-1",
        name="Gadget",
        unit_price=Decimal("12.50"),
        initial_stock=8,
        min_stock=1,
    )

    assert p.current_stock == 8
    mv = db_session.execute(select(InventoryMovement).where(InventoryMovement.product_id == p.id)).scalar_one()
    assert mv.quantity == 8
    assert mv.notes == inventory.INITIAL_STOCK_NOTES


def test_create_product_duplicate_code(db_session, product):
    with pytest.raises(DuplicateProductCodeError):
        inventory.create_product(db_session, code="SKU1", name="Other", unit_price=Decimal("1.00"))


def test_deactivate_product_hides_it_from_listing(db_session, product):
    inventory.deactivate_product(db_session, product.id)

    assert inventory.list_products(db_session) == []
    assert [p.code for p in inventory.list_products(db_session, active_only=False)] == ["SKU1"]


def test_stock_level_queries(db_session, product):
    db_session.add_all(
        [
            Product(code="EMPTY", name="Empty", unit_price=Decimal("1.00"), current_stock=0, min_stock=1),
            Product(code="FULL", name="Full", unit_price=Decimal("1.00"), current_stock=50, min_stock=1, max_stock=20),
        ]
    )
    db_session.commit()

    assert [p.code for p in inventory.low_stock_products(db_session)] == ["EMPTY"]
    assert [p.code for p in inventory.out_of_stock_products(db_session)] == ["EMPTY"]
    assert [p.code for p in inventory.over_stock_products(db_session)] == ["FULL"]


# ---------- audit ----------
def test_audit_sink_receives_mutation(db_session, product):
    sink = RecordingSink()
    inventory.increase_stock(db_session, product.id, 1, actor="bob", audit=sink)

    assert sink.calls == [("STOCK_INCREASE", "PRODUCT", product.id, "bob")]


def test_audit_failure_does_not_undo_mutation(db_session, product):
    inventory.increase_stock(db_session, product.id, 2, audit=BrokenSink())

    db_session.refresh(product)
    assert product.current_stock == 12
    assert _movement_count(db_session) == 1


def test_external_deduction_audits_the_product(db_session, product):
    """
    GIVEN un mouvement déjà présent (ids produit et mouvement différents)
    THEN l'audit de la déduction porte l'id produit, pas l'id du mouvement
    """
    inventory.increase_stock(db_session, product.id, 1)
    sink = RecordingSink()

    resp = inventory.deduct_for_external_system(db_session, "SKU1", 3, "BILLING", audit=sink)

    assert resp.movement_id != product.id
    assert sink.calls == [("EXTERNAL_STOCK_DEDUCTION", "PRODUCT", product.id, "BILLING")]


# ---------- update ----------
def test_update_product_thresholds_drive_stock_queries(db_session, product):
    assert inventory.low_stock_products(db_session) == []

    inventory.update_product(db_session, product.id, min_stock=12, max_stock=8)

    db_session.refresh(product)
    assert product.min_stock == 12
    assert product.max_stock == 8
    assert product.current_stock == 10
    assert [p.code for p in inventory.low_stock_products(db_session)] == ["SKU1"]
    assert [p.code for p in inventory.over_stock_products(db_session)] == ["SKU1"]
    assert _movement_count(db_session) == 0


def test_update_product_partial_fields(db_session, product):
    sink = RecordingSink()
    inventory.update_product(
        db_session,
        product.id,
        name="Widget XL",
        unit_price=Decimal("6.50"),
        max_stock=None,
        actor="carol",
        audit=sink,
    )

    db_session.refresh(product)
    assert product.name == "Widget XL"
    assert product.unit_price == Decimal("6.50")
    assert product.max_stock is None
    assert product.min_stock == 2
    assert product.code == "SKU1"
    assert sink.calls == [("UPDATE", "PRODUCT", product.id, "carol")]


def test_update_product_rejects_invalid_values(db_session, product):
    with pytest.raises(InvalidQuantityError):
        inventory.update_product(db_session, product.id, min_stock=-1)
    with pytest.raises(InvalidQuantityError):
        inventory.update_product(db_session, product.id, unit_price=Decimal("0"))
    with pytest.raises(ProductNotFoundError):
        inventory.update_product(db_session, 999, name="ghost")

    db_session.refresh(product)
    assert product.min_stock == 2
    assert product.unit_price == Decimal("5.00")
