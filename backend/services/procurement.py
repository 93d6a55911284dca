"""
Procurement service.

Ce module orchestre le cycle de vie des commandes fournisseur (création,
transitions de statut, réceptions partielles/totales) mais ne contient AUCUNE
logique de calcul de stock.

Toute la logique stock est centralisée dans :
    backend.services.inventory
"""

from __future__ import annotations

from collections import Counter
from datetime import date, timedelta
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.exceptions import (
    DuplicateOrderNumberError,
    InvalidOrderOperationError,
    InvalidQuantityError,
    OrderDetailNotFoundError,
    OrderNotFoundError,
    OrderStateConflictError,
    ProductNotFoundError,
    SupplierNotFoundError,
)
from backend.app.core.logging import get_logger
from backend.app.db.models.core_types import OrderStatus, ReferenceType
from backend.app.db.models.models_v1 import OrderDetail, Product, PurchaseOrder, Supplier
from backend.app.schemas.orders import (
    OrderDetailReceiptSummary,
    OrderLineCreate,
    OrderReceiptResponse,
    ReceiptLine,
)
from backend.services.audit import AuditSink, report_audit
from backend.services.inventory import apply_increase, lock_product
from backend.services.uow import unit_of_work

logger = get_logger(__name__)

RECEIPT_SOURCE = "ORDER_RECEIPT"
RECEIPT_NOTES = "Purchase order receipt"

# Commandes encore attendues (alertes retard)
OVERDUE_ORDER_STATUSES = {
    OrderStatus.pending,
    OrderStatus.confirmed,
    OrderStatus.partial,
}
DUE_SOON_ORDER_STATUSES = {
    OrderStatus.pending,
    OrderStatus.confirmed,
}


# ---------- LOCKS ----------
def lock_order(db: Session, order_id: int) -> PurchaseOrder:
    order = (
        db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if not order:
        raise OrderNotFoundError("id", order_id)
    return order


def lock_order_details(db: Session, order_id: int) -> dict[int, OrderDetail]:
    rows = (
        db.execute(
            select(OrderDetail)
            .where(OrderDetail.order_id == order_id)
            .order_by(OrderDetail.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )
    return {int(d.id): d for d in rows}


# ---------- CREATION ----------
def create_order(
    db: Session,
    *,
    order_number: str,
    supplier_id: int,
    order_date: date,
    expected_date: date | None = None,
    lines: Sequence[OrderLineCreate],
    notes: str | None = None,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> PurchaseOrder:
    if not lines:
        raise InvalidOrderOperationError("An order must contain at least one line")
    for ln in lines:
        if ln.quantity_ordered <= 0:
            raise InvalidQuantityError(ln.quantity_ordered)
        if ln.unit_price <= 0:
            raise InvalidOrderOperationError(
                f"Unit price must be positive for product {ln.product_id}",
                product_id=ln.product_id,
            )

    with unit_of_work(db):
        exists = db.execute(
            select(PurchaseOrder.id).where(PurchaseOrder.order_number == order_number)
        ).scalar_one_or_none()
        if exists:
            raise DuplicateOrderNumberError(order_number)

        supplier = db.get(Supplier, supplier_id)
        if not supplier:
            raise SupplierNotFoundError(supplier_id)
        if not supplier.active:
            raise SupplierNotFoundError(supplier_id, f"Supplier is inactive: {supplier_id}")

        # fail fast : tous les produits validés avant d'écrire quoi que ce soit
        for ln in lines:
            product = db.get(Product, ln.product_id)
            if not product:
                raise ProductNotFoundError.by_id(ln.product_id)
            if not product.active:
                raise ProductNotFoundError(
                    "id", ln.product_id, f"Product is inactive: {ln.product_id}"
                )

        order = PurchaseOrder(
            order_number=order_number,
            supplier_id=supplier_id,
            status=OrderStatus.pending,
            order_date=order_date,
            expected_date=expected_date,
            total_amount=0,
            notes=notes,
            created_by=actor,
        )
        db.add(order)
        try:
            db.flush()  # get order.id
        except IntegrityError as exc:
            raise DuplicateOrderNumberError(order_number) from exc

        for ln in lines:
            # prix figé depuis la requête, jamais relu sur le produit
            order.details.append(
                OrderDetail(
                    product_id=ln.product_id,
                    quantity_ordered=ln.quantity_ordered,
                    quantity_received=0,
                    unit_price=ln.unit_price,
                )
            )
        db.flush()

        order.recalculate_total()
        order_id = order.id
        total = order.total_amount

    logger.info("order_created", order_id=order_id, order_number=order_number, total_amount=str(total))
    report_audit(audit, action="CREATE", entity_type="PURCHASE_ORDER", entity_id=order_id, actor=actor)
    return order


# ---------- STATUS ----------
def update_order_status(
    db: Session,
    order_id: int,
    new_status: OrderStatus,
    notes: str | None = None,
    *,
    today: date | None = None,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> PurchaseOrder:
    with unit_of_work(db):
        order = lock_order(db, order_id)
        current = order.status

        if not order.can_transition_to(new_status):
            if order.is_terminal:
                message = f"Cannot change status of a {current.value.lower()} order"
            else:
                message = f"Invalid status transition: {current.value} -> {new_status.value}"
            raise InvalidOrderOperationError(
                message,
                current_status=current,
                target_status=new_status,
            )

        order.status = new_status
        order.append_notes(notes)

        if new_status == OrderStatus.completed and order.received_date is None:
            order.received_date = today or date.today()

    logger.info("order_status_updated", order_id=order_id, previous=current.value, status=new_status.value)
    report_audit(audit, action="UPDATE_STATUS", entity_type="PURCHASE_ORDER", entity_id=order_id, actor=actor)
    return order


# ---------- RECEIPT ----------
def _ensure_can_receive(order: PurchaseOrder) -> None:
    if order.status == OrderStatus.cancelled:
        raise OrderStateConflictError(order.id, "Cannot receive products from a cancelled order")
    if order.status == OrderStatus.completed:
        raise InvalidOrderOperationError(
            "Order is already completed",
            current_status=order.status,
        )
    if order.status == OrderStatus.pending:
        raise InvalidOrderOperationError(
            "Order must be confirmed before receiving products",
            current_status=order.status,
        )


def receive_order(
    db: Session,
    order_id: int,
    lines: Sequence[ReceiptLine],
    received_date: date | None = None,
    notes: str | None = None,
    *,
    actor: str | None = None,
    audit: AuditSink | None = None,
) -> OrderReceiptResponse:
    """
    Enregistre une réception (partielle ou totale) d'une commande.

    Une seule unité de travail : lignes de commande, stocks, ledger et statut
    sont validés ensemble ; une ligne invalide annule toute la réception.
    """
    if not lines:
        raise InvalidOrderOperationError("At least one received line is required")

    effective_date = received_date or date.today()

    with unit_of_work(db):
        order = lock_order(db, order_id)
        _ensure_can_receive(order)

        details = lock_order_details(db, order.id)

        # ---------- VALIDATION (aucune mutation) ----------
        requested: Counter[int] = Counter()
        for ln in lines:
            detail = details.get(ln.order_detail_id)
            if detail is None:
                if db.get(OrderDetail, ln.order_detail_id) is None:
                    raise OrderDetailNotFoundError(ln.order_detail_id)
                raise InvalidOrderOperationError(
                    f"Order detail {ln.order_detail_id} does not belong to order {order.id}",
                    order_detail_id=ln.order_detail_id,
                    order_id=order.id,
                )
            if ln.quantity_received < 0:
                raise InvalidQuantityError(ln.quantity_received)

            requested[detail.id] += ln.quantity_received
            pending = detail.quantity_pending
            if requested[detail.id] > pending:
                raise InvalidOrderOperationError(
                    f"Quantity to receive ({requested[detail.id]}) exceeds pending quantity "
                    f"({pending}) for product {detail.product.code}",
                    order_detail_id=detail.id,
                    requested=requested[detail.id],
                    pending=pending,
                )

        # verrous produits en ordre croissant (pas d'interblocage)
        product_ids = sorted({details[did].product_id for did, qty in requested.items() if qty > 0})
        products = {pid: lock_product(db, pid) for pid in product_ids}

        # ---------- APPLICATION ----------
        summaries: list[OrderDetailReceiptSummary] = []
        for ln in lines:
            if ln.quantity_received == 0:
                continue

            detail = details[ln.order_detail_id]
            product = products[detail.product_id]
            previously_received = detail.quantity_received

            detail.receive(ln.quantity_received)
            apply_increase(
                db,
                product,
                ln.quantity_received,
                reference_type=ReferenceType.purchase_order,
                reference_id=order.id,
                source_system=RECEIPT_SOURCE,
                notes=notes or RECEIPT_NOTES,
                actor=actor,
            )

            summaries.append(
                OrderDetailReceiptSummary(
                    order_detail_id=detail.id,
                    product_id=product.id,
                    product_code=product.code,
                    product_name=product.name,
                    quantity_ordered=detail.quantity_ordered,
                    previously_received=previously_received,
                    quantity_received_now=ln.quantity_received,
                    total_received=detail.quantity_received,
                    pending=detail.quantity_pending,
                    is_fully_received=detail.is_fully_received,
                )
            )
            logger.info(
                "order_line_received",
                order_id=order.id,
                product_code=product.code,
                quantity=ln.quantity_received,
                current_stock=product.current_stock,
            )

        # ---------- STATUT ----------
        if order.received_date is None:
            order.received_date = effective_date

        if order.is_fully_received():
            order.status = OrderStatus.completed
        elif order.is_partially_received():
            order.status = OrderStatus.partial

        db.flush()

        response = OrderReceiptResponse(
            order_id=order.id,
            order_number=order.order_number,
            new_status=order.status,
            received_date=effective_date,
            notes=notes,
            received_details=summaries,
            order_fully_received=order.is_fully_received(),
        )

    logger.info(
        "order_received",
        order_id=response.order_id,
        order_number=response.order_number,
        status=response.new_status.value,
        lines=len(summaries),
    )
    report_audit(audit, action="RECEIVE", entity_type="PURCHASE_ORDER", entity_id=order_id, actor=actor)
    return response


# ---------- QUERIES ----------
def get_order(db: Session, order_id: int) -> PurchaseOrder:
    order = db.get(PurchaseOrder, order_id)
    if not order:
        raise OrderNotFoundError("id", order_id)
    return order


def get_order_by_number(db: Session, order_number: str) -> PurchaseOrder:
    order = db.execute(
        select(PurchaseOrder).where(PurchaseOrder.order_number == order_number)
    ).scalar_one_or_none()
    if not order:
        raise OrderNotFoundError("order_number", order_number)
    return order


def list_orders(
    db: Session,
    *,
    status: OrderStatus | None = None,
    supplier_id: int | None = None,
    order_date_from: date | None = None,
    order_date_to: date | None = None,
) -> list[PurchaseOrder]:
    if supplier_id is not None and not db.get(Supplier, supplier_id):
        raise SupplierNotFoundError(supplier_id)

    stmt = select(PurchaseOrder).order_by(PurchaseOrder.id.desc())

    if status is not None:
        stmt = stmt.where(PurchaseOrder.status == status)

    if supplier_id is not None:
        stmt = stmt.where(PurchaseOrder.supplier_id == supplier_id)

    if order_date_from is not None:
        stmt = stmt.where(PurchaseOrder.order_date >= order_date_from)

    if order_date_to is not None:
        stmt = stmt.where(PurchaseOrder.order_date <= order_date_to)

    return list(db.execute(stmt).scalars().all())


def get_overdue_orders(db: Session, *, today: date | None = None) -> list[PurchaseOrder]:
    today = today or date.today()
    return list(
        db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.expected_date < today)
            .where(PurchaseOrder.status.in_(OVERDUE_ORDER_STATUSES))
            .order_by(PurchaseOrder.expected_date.asc(), PurchaseOrder.id.asc())
        )
        .scalars()
        .all()
    )


def get_orders_due_soon(
    db: Session,
    days_ahead: int,
    *,
    today: date | None = None,
) -> list[PurchaseOrder]:
    today = today or date.today()
    return list(
        db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.expected_date >= today)
            .where(PurchaseOrder.expected_date <= today + timedelta(days=days_ahead))
            .where(PurchaseOrder.status.in_(DUE_SOON_ORDER_STATUSES))
            .order_by(PurchaseOrder.expected_date.asc(), PurchaseOrder.id.asc())
        )
        .scalars()
        .all()
    )
