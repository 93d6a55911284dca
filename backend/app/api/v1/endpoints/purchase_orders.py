from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_audit_sink, get_current_actor, get_db
from backend.app.core.config import get_settings
from backend.app.db.models.core_types import OrderStatus
from backend.app.schemas.common import CamelModel
from backend.app.schemas.orders import (
    OrderLineCreate,
    OrderReceiptResponse,
    PurchaseOrderRead,
    ReceiptLine,
)
from backend.services import procurement
from backend.services.audit import AuditSink

router = APIRouter(prefix="/purchase-orders")


class OrderCreate(BaseModel):
    order_number: str = Field(min_length=1, max_length=50)
    supplier_id: int
    order_date: date | None = None
    expected_date: date | None = None
    notes: str | None = None
    lines: list[OrderLineCreate] = Field(min_length=1)


class StatusUpdate(BaseModel):
    status: OrderStatus
    notes: str | None = None


class ReceiveRequest(CamelModel):
    received_details: list[ReceiptLine] = Field(min_length=1)
    received_date: date | None = None
    notes: str | None = None


@router.get("", response_model=list[PurchaseOrderRead])
def list_orders(
    status: OrderStatus | None = None,
    supplier_id: int | None = None,
    order_date_from: date | None = None,
    order_date_to: date | None = None,
    db: Session = Depends(get_db),
):
    return procurement.list_orders(
        db,
        status=status,
        supplier_id=supplier_id,
        order_date_from=order_date_from,
        order_date_to=order_date_to,
    )


@router.post("", response_model=PurchaseOrderRead, status_code=201)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    return procurement.create_order(
        db,
        order_number=payload.order_number,
        supplier_id=payload.supplier_id,
        order_date=payload.order_date or date.today(),
        expected_date=payload.expected_date,
        lines=payload.lines,
        notes=payload.notes,
        actor=actor,
        audit=audit,
    )


# ---------- Alertes (avant /{order_id}) ----------
@router.get("/overdue", response_model=list[PurchaseOrderRead])
def overdue_orders(db: Session = Depends(get_db)):
    return procurement.get_overdue_orders(db)


@router.get("/due-soon", response_model=list[PurchaseOrderRead])
def orders_due_soon(
    days: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    days_ahead = get_settings().order_due_soon_days if days is None else days
    return procurement.get_orders_due_soon(db, days_ahead)


@router.get("/by-number/{order_number}", response_model=PurchaseOrderRead)
def get_order_by_number(order_number: str, db: Session = Depends(get_db)):
    return procurement.get_order_by_number(db, order_number)


@router.get("/{order_id}", response_model=PurchaseOrderRead)
def get_order(order_id: int, db: Session = Depends(get_db)):
    return procurement.get_order(db, order_id)


@router.put("/{order_id}/status", response_model=PurchaseOrderRead)
def update_status(
    order_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    return procurement.update_order_status(
        db,
        order_id,
        payload.status,
        payload.notes,
        actor=actor,
        audit=audit,
    )


@router.post("/{order_id}/receive", response_model=OrderReceiptResponse)
def receive_order(
    order_id: int,
    payload: ReceiveRequest,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    return procurement.receive_order(
        db,
        order_id,
        payload.received_details,
        payload.received_date,
        payload.notes,
        actor=actor,
        audit=audit,
    )
