"""
Journal des mouvements de stock (append-only).

`record_movement` est appelé par le moteur d'inventaire DANS l'unité de
travail de la mutation produit ; il ne commit jamais.
Les fonctions de lecture alimentent les rapports de mouvements.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from backend.app.core.exceptions import InvalidQuantityError
from backend.app.db.models.core_types import MovementType, ReferenceType
from backend.app.db.models.models_v1 import InventoryMovement, Product, utcnow
from backend.app.schemas.inventory import (
    DailyMovementSummary,
    MovementTypeStatistics,
    ProductMovementSummary,
    SourceSystemSummary,
)


def record_movement(
    db: Session,
    *,
    product: Product,
    movement_type: MovementType,
    quantity: int,
    reference_type: ReferenceType | None,
    reference_id: int | None = None,
    source_system: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> InventoryMovement:
    if quantity <= 0:
        raise InvalidQuantityError(quantity)

    mv = InventoryMovement(
        product_id=product.id,
        movement_type=movement_type,
        quantity=quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        source_system=source_system,
        notes=notes,
        created_by=actor,
        created_at=utcnow(),
    )
    db.add(mv)
    db.flush()  # id + timestamp disponibles pour la réponse
    return mv


def query_movements(
    db: Session,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    product_id: int | None = None,
    movement_type: MovementType | None = None,
    reference_type: ReferenceType | None = None,
    reference_id: int | None = None,
    source_system: str | None = None,
    limit: int | None = None,
) -> list[InventoryMovement]:
    stmt = select(InventoryMovement).order_by(
        InventoryMovement.created_at.desc(), InventoryMovement.id.desc()
    )

    if start is not None:
        stmt = stmt.where(InventoryMovement.created_at >= start)

    if end is not None:
        stmt = stmt.where(InventoryMovement.created_at <= end)

    if product_id is not None:
        stmt = stmt.where(InventoryMovement.product_id == product_id)

    if movement_type is not None:
        stmt = stmt.where(InventoryMovement.movement_type == movement_type)

    if reference_type is not None:
        stmt = stmt.where(InventoryMovement.reference_type == reference_type)

    if reference_id is not None:
        stmt = stmt.where(InventoryMovement.reference_id == reference_id)

    if source_system is not None:
        stmt = stmt.where(InventoryMovement.source_system == source_system)

    if limit is not None:
        stmt = stmt.limit(limit)

    return list(db.execute(stmt).scalars().all())


def _directional_sum(direction: MovementType):
    return func.coalesce(
        func.sum(
            case(
                (InventoryMovement.movement_type == direction, InventoryMovement.quantity),
                else_=0,
            )
        ),
        0,
    )


def summarize_by_product(
    db: Session,
    *,
    start: datetime,
    end: datetime,
) -> list[ProductMovementSummary]:
    """
    Entrées / sorties / net par produit sur la période, trié par net décroissant.
    """
    inbound = _directional_sum(MovementType.inbound)
    outbound = _directional_sum(MovementType.outbound)

    rows = db.execute(
        select(
            Product.id,
            Product.code,
            Product.name,
            inbound.label("inbound"),
            outbound.label("outbound"),
        )
        .join(InventoryMovement, InventoryMovement.product_id == Product.id)
        .where(InventoryMovement.created_at >= start)
        .where(InventoryMovement.created_at <= end)
        .group_by(Product.id, Product.code, Product.name)
    ).all()

    summaries = [
        ProductMovementSummary(
            product_id=int(pid),
            product_code=code,
            product_name=name,
            inbound=int(inb),
            outbound=int(outb),
            net=int(inb) - int(outb),
        )
        for pid, code, name, inb, outb in rows
    ]
    summaries.sort(key=lambda s: (-s.net, s.product_code))
    return summaries


def summarize_outbound_by_source(
    db: Session,
    *,
    start: datetime,
    end: datetime,
) -> list[SourceSystemSummary]:
    rows = db.execute(
        select(
            InventoryMovement.source_system,
            func.count(InventoryMovement.id),
            func.coalesce(func.sum(InventoryMovement.quantity), 0),
        )
        .where(InventoryMovement.movement_type == MovementType.outbound)
        .where(InventoryMovement.created_at >= start)
        .where(InventoryMovement.created_at <= end)
        .group_by(InventoryMovement.source_system)
        .order_by(func.sum(InventoryMovement.quantity).desc())
    ).all()

    return [
        SourceSystemSummary(
            source_system=source,
            movement_count=int(count),
            total_quantity=int(total),
        )
        for source, count, total in rows
    ]


def summarize_by_type_and_reference(
    db: Session,
    *,
    start: datetime,
    end: datetime,
) -> list[MovementTypeStatistics]:
    rows = db.execute(
        select(
            InventoryMovement.movement_type,
            InventoryMovement.reference_type,
            func.count(InventoryMovement.id),
            func.coalesce(func.sum(InventoryMovement.quantity), 0),
        )
        .where(InventoryMovement.created_at >= start)
        .where(InventoryMovement.created_at <= end)
        .group_by(InventoryMovement.movement_type, InventoryMovement.reference_type)
    ).all()

    stats = [
        MovementTypeStatistics(
            movement_type=mtype,
            reference_type=rtype,
            movement_count=int(count),
            total_quantity=int(total),
        )
        for mtype, rtype, count, total in rows
    ]
    # IN avant OUT, références sans type en dernier
    stats.sort(key=lambda s: (s.movement_type.value, s.reference_type is None, s.reference_type or ""))
    return stats


def summarize_daily(
    db: Session,
    *,
    start: datetime,
    end: datetime,
) -> list[DailyMovementSummary]:
    """
    Entrées / sorties par jour calendaire, du plus ancien au plus récent.
    """
    day = func.date(InventoryMovement.created_at)
    rows = db.execute(
        select(
            day.label("day"),
            _directional_sum(MovementType.inbound).label("inbound"),
            _directional_sum(MovementType.outbound).label("outbound"),
        )
        .where(InventoryMovement.created_at >= start)
        .where(InventoryMovement.created_at <= end)
        .group_by(day)
        .order_by(day)
    ).all()

    return [
        DailyMovementSummary(
            # SQLite renvoie 'YYYY-MM-DD', Postgres un date
            day=d if isinstance(d, date) else date.fromisoformat(str(d)),
            inbound=int(inb),
            outbound=int(outb),
            net=int(inb) - int(outb),
        )
        for d, inb, outb in rows
    ]
