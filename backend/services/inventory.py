from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.config import get_settings
from backend.app.core.exceptions import (
    DuplicateProductCodeError,
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
)
from backend.app.core.logging import get_logger
from backend.app.db.models.core_types import MovementType, ReferenceType
from backend.app.db.models.models_v1 import InventoryMovement, Product
from backend.app.schemas.inventory import ExternalStockDeductionResponse
from backend.services.audit import AuditSink, report_audit
from backend.services.ledger import record_movement
from backend.services.uow import unit_of_work

logger = get_logger(__name__)

SYSTEM_SOURCE = "SYSTEM"
ADJUSTMENT_NOTES = "Inventory adjustment"
INITIAL_STOCK_NOTES = "Initial product stock"
EXTERNAL_DEDUCTION_NOTES = "Deduction from external billing system"


# ---------- LOCKS ----------
def lock_product(db: Session, product_id: int) -> Product:
    """
    Charge le produit avec verrou ligne (FOR UPDATE) pour toute la durée
    de l'unité de travail. populate_existing : on relit la valeur en base,
    pas celle de l'identity map.
    """
    product = (
        db.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if not product:
        raise ProductNotFoundError.by_id(product_id)
    return product


def lock_product_by_code(db: Session, code: str) -> Product:
    product = (
        db.execute(
            select(Product)
            .where(Product.code == code)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if not product:
        raise ProductNotFoundError.by_code(code)
    return product


# ---------- PRIMITIVES (pas de commit) ----------
def apply_increase(
    db: Session,
    product: Product,
    quantity: int,
    *,
    reference_type: ReferenceType | None,
    reference_id: int | None = None,
    source_system: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> InventoryMovement:
    product.increase(quantity)
    db.flush()
    return record_movement(
        db,
        product=product,
        movement_type=MovementType.inbound,
        quantity=quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        source_system=source_system,
        notes=notes,
        actor=actor,
    )


def apply_decrease(
    db: Session,
    product: Product,
    quantity: int,
    *,
    reference_type: ReferenceType | None,
    reference_id: int | None = None,
    source_system: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> InventoryMovement:
    if not product.has_available_stock(quantity):
        raise InsufficientStockError(
            product_id=product.id,
            product_code=product.code,
            available=product.current_stock,
            requested=quantity,
        )
    product.decrease(quantity)
    db.flush()
    return record_movement(
        db,
        product=product,
        movement_type=MovementType.outbound,
        quantity=quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        source_system=source_system,
        notes=notes,
        actor=actor,
    )


# ---------- STOCK OPERATIONS ----------
def increase_stock(
    db: Session,
    product_id: int,
    quantity: int,
    *,
    reference_type: ReferenceType | None = None,
    reference_id: int | None = None,
    source_system: str | None = SYSTEM_SOURCE,
    notes: str | None = None,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> InventoryMovement:
    with unit_of_work(db):
        product = lock_product(db, product_id)
        movement = apply_increase(
            db,
            product,
            quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            source_system=source_system,
            notes=notes,
            actor=actor,
        )
        new_stock = product.current_stock

    logger.info("stock_increased", product_id=product_id, quantity=quantity, current_stock=new_stock)
    report_audit(audit, action="STOCK_INCREASE", entity_type="PRODUCT", entity_id=product_id, actor=actor)
    return movement


def decrease_stock(
    db: Session,
    product_id: int,
    quantity: int,
    *,
    reference_type: ReferenceType | None = None,
    reference_id: int | None = None,
    source_system: str | None = SYSTEM_SOURCE,
    notes: str | None = None,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> InventoryMovement:
    with unit_of_work(db):
        product = lock_product(db, product_id)
        movement = apply_decrease(
            db,
            product,
            quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            source_system=source_system,
            notes=notes,
            actor=actor,
        )
        new_stock = product.current_stock

    logger.info("stock_decreased", product_id=product_id, quantity=quantity, current_stock=new_stock)
    report_audit(audit, action="STOCK_DECREASE", entity_type="PRODUCT", entity_id=product_id, actor=actor)
    return movement


def adjust_stock(
    db: Session,
    product_id: int,
    new_stock: int,
    notes: str | None = None,
    *,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> InventoryMovement | None:
    """
    Aligne le stock sur une valeur cible.

    Retourne None (et n'écrit rien au ledger) si la valeur ne change pas.
    Sinon un seul mouvement ADJUSTMENT de quantité |delta|.
    """
    if new_stock < 0:
        raise InvalidQuantityError(new_stock, "Adjusted stock cannot be negative")

    with unit_of_work(db):
        product = lock_product(db, product_id)
        previous = product.current_stock
        delta = new_stock - previous

        if delta == 0:
            logger.info("stock_adjust_noop", product_id=product_id, current_stock=previous)
            return None

        apply = apply_increase if delta > 0 else apply_decrease
        movement = apply(
            db,
            product,
            abs(delta),
            reference_type=ReferenceType.adjustment,
            source_system=SYSTEM_SOURCE,
            notes=notes or ADJUSTMENT_NOTES,
            actor=actor,
        )

    logger.info("stock_adjusted", product_id=product_id, previous_stock=previous, current_stock=new_stock)
    report_audit(audit, action="STOCK_ADJUST", entity_type="PRODUCT", entity_id=product_id, actor=actor)
    return movement


def deduct_for_external_system(
    db: Session,
    product_code: str,
    quantity: int,
    source_system: str | None = None,
    notes: str | None = None,
    *,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> ExternalStockDeductionResponse:
    """
    Décompte demandé par un système externe (facturation).

    Produit recherché par code et obligatoirement actif. La réponse est le
    contrat consommé côté facturation.
    """
    source = source_system or get_settings().external_source_system

    with unit_of_work(db):
        product = lock_product_by_code(db, product_code)
        if not product.active:
            raise ProductNotFoundError.by_code(product_code)

        previous_stock = product.current_stock
        movement = apply_decrease(
            db,
            product,
            quantity,
            reference_type=ReferenceType.sale,
            source_system=source,
            notes=notes or EXTERNAL_DEDUCTION_NOTES,
            actor=actor,
        )

        response = ExternalStockDeductionResponse(
            product_code=product.code,
            product_name=product.name,
            quantity_deducted=quantity,
            previous_stock=previous_stock,
            current_stock=product.current_stock,
            source_system=movement.source_system,
            timestamp=movement.created_at,
            movement_id=movement.id,
        )
        product_id = product.id

    logger.info(
        "external_stock_deducted",
        product_code=product_code,
        source_system=source,
        previous_stock=response.previous_stock,
        current_stock=response.current_stock,
    )
    report_audit(
        audit,
        action="EXTERNAL_STOCK_DEDUCTION",
        entity_type="PRODUCT",
        entity_id=product_id,
        actor=actor or source,
    )
    return response


# ---------- PRODUCTS ----------
def create_product(
    db: Session,
    *,
    code: str,
    name: str,
    unit_price: Decimal,
    initial_stock: int = 0,
    min_stock: int = 0,
    max_stock: int | None = None,
    description: str | None = None,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> Product:
    if initial_stock < 0:
        raise InvalidQuantityError(initial_stock, "Initial stock cannot be negative")

    with unit_of_work(db):
        exists = db.execute(select(Product.id).where(Product.code == code)).scalar_one_or_none()
        if exists:
            raise DuplicateProductCodeError(code)

        product = Product(
            code=code,
            name=name,
            description=description,
            unit_price=unit_price,
            current_stock=0,
            min_stock=min_stock,
            max_stock=max_stock,
            active=True,
        )
        db.add(product)
        try:
            db.flush()
        except IntegrityError as exc:
            # course avec une création concurrente du même code
            raise DuplicateProductCodeError(code) from exc

        if initial_stock > 0:
            apply_increase(
                db,
                product,
                initial_stock,
                reference_type=ReferenceType.adjustment,
                source_system=SYSTEM_SOURCE,
                notes=INITIAL_STOCK_NOTES,
                actor=actor,
            )
        product_id = product.id

    logger.info("product_created", product_id=product_id, code=code, initial_stock=initial_stock)
    report_audit(audit, action="CREATE", entity_type="PRODUCT", entity_id=product_id, actor=actor)
    return product


def deactivate_product(
    db: Session,
    product_id: int,
    *,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> Product:
    """Suppression logique : les mouvements gardent leur référence."""
    with unit_of_work(db):
        product = lock_product(db, product_id)
        product.active = False

    logger.info("product_deactivated", product_id=product_id)
    report_audit(audit, action="DEACTIVATE", entity_type="PRODUCT", entity_id=product_id, actor=actor)
    return product


_UNSET = object()


def update_product(
    db: Session,
    product_id: int,
    *,
    name: str | None = None,
    description: str | None = None,
    unit_price: Decimal | None = None,
    min_stock: int | None = None,
    max_stock: int | None | object = _UNSET,
    active: bool | None = None,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> Product:
    """
    Mise à jour partielle des données descriptives et des seuils.

    Le stock courant et le code ne passent jamais par ici : le stock ne bouge
    que via le ledger. `max_stock=None` retire le plafond.
    """
    if unit_price is not None and unit_price <= 0:
        raise InvalidQuantityError(unit_price, "Unit price must be positive")
    if min_stock is not None and min_stock < 0:
        raise InvalidQuantityError(min_stock, "Minimum stock cannot be negative")
    if max_stock is not _UNSET and max_stock is not None and max_stock < 0:
        raise InvalidQuantityError(max_stock, "Maximum stock cannot be negative")

    with unit_of_work(db):
        product = lock_product(db, product_id)
        if name is not None:
            product.name = name
        if description is not None:
            product.description = description
        if unit_price is not None:
            product.unit_price = unit_price
        if min_stock is not None:
            product.min_stock = min_stock
        if max_stock is not _UNSET:
            product.max_stock = max_stock
        if active is not None:
            product.active = active

    logger.info("product_updated", product_id=product_id)
    report_audit(audit, action="UPDATE", entity_type="PRODUCT", entity_id=product_id, actor=actor)
    return product


def get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise ProductNotFoundError.by_id(product_id)
    return product


def get_product_by_code(db: Session, code: str) -> Product:
    product = db.execute(select(Product).where(Product.code == code)).scalar_one_or_none()
    if not product:
        raise ProductNotFoundError.by_code(code)
    return product


def list_products(db: Session, *, active_only: bool = True) -> list[Product]:
    stmt = select(Product).order_by(Product.code)
    if active_only:
        stmt = stmt.where(Product.active.is_(True))
    return list(db.execute(stmt).scalars().all())


def low_stock_products(db: Session) -> list[Product]:
    return list(
        db.execute(
            select(Product)
            .where(Product.active.is_(True))
            .where(Product.current_stock <= Product.min_stock)
            .order_by(Product.code)
        )
        .scalars()
        .all()
    )


def out_of_stock_products(db: Session) -> list[Product]:
    return list(
        db.execute(
            select(Product)
            .where(Product.active.is_(True))
            .where(Product.current_stock == 0)
            .order_by(Product.code)
        )
        .scalars()
        .all()
    )


def over_stock_products(db: Session) -> list[Product]:
    return list(
        db.execute(
            select(Product)
            .where(Product.active.is_(True))
            .where(Product.max_stock.is_not(None))
            .where(Product.current_stock > Product.max_stock)
            .order_by(Product.code)
        )
        .scalars()
        .all()
    )
