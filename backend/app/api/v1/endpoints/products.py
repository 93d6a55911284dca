from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_audit_sink, get_current_actor, get_db
from backend.app.db.models.core_types import ReferenceType
from backend.app.schemas.inventory import MovementRead, ProductRead
from backend.services import inventory
from backend.services.audit import AuditSink

router = APIRouter(prefix="/products")


class ProductCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    unit_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    initial_stock: int = Field(default=0, ge=0)
    min_stock: int = Field(default=0, ge=0)
    max_stock: int | None = Field(default=None, ge=0)


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    unit_price: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    min_stock: int | None = Field(default=None, ge=0)
    max_stock: int | None = Field(default=None, ge=0)
    active: bool | None = None


class StockUpdate(BaseModel):
    quantity: int = Field(gt=0)
    reference_type: ReferenceType | None = None
    reference_id: int | None = None
    source_system: str | None = Field(default=None, max_length=50)
    notes: str | None = Field(default=None, max_length=500)


class StockAdjust(BaseModel):
    new_stock: int = Field(ge=0)
    notes: str | None = Field(default=None, max_length=500)


@router.get("", response_model=list[ProductRead])
def list_products(include_inactive: bool = False, db: Session = Depends(get_db)):
    return inventory.list_products(db, active_only=not include_inactive)


@router.post("", response_model=ProductRead, status_code=201)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    return inventory.create_product(
        db,
        code=payload.code,
        name=payload.name,
        description=payload.description,
        unit_price=payload.unit_price,
        initial_stock=payload.initial_stock,
        min_stock=payload.min_stock,
        max_stock=payload.max_stock,
        actor=actor,
        audit=audit,
    )


# ---------- Stock level queries (avant /{product_id}) ----------
@router.get("/low-stock", response_model=list[ProductRead])
def low_stock(db: Session = Depends(get_db)):
    return inventory.low_stock_products(db)


@router.get("/out-of-stock", response_model=list[ProductRead])
def out_of_stock(db: Session = Depends(get_db)):
    return inventory.out_of_stock_products(db)


@router.get("/over-stock", response_model=list[ProductRead])
def over_stock(db: Session = Depends(get_db)):
    return inventory.over_stock_products(db)


@router.get("/by-code/{code}", response_model=ProductRead)
def get_product_by_code(code: str, db: Session = Depends(get_db)):
    return inventory.get_product_by_code(db, code)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return inventory.get_product(db, product_id)


@router.patch("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    changes = payload.model_dump(exclude_unset=True)
    # max_stock: null explicite = retirer le plafond
    return inventory.update_product(db, product_id, **changes, actor=actor, audit=audit)


@router.delete("/{product_id}", response_model=ProductRead)
def deactivate_product(
    product_id: int,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    return inventory.deactivate_product(db, product_id, actor=actor, audit=audit)


# ---------- Stock mutations ----------
@router.post("/{product_id}/stock/increase", response_model=MovementRead)
def increase_stock(
    product_id: int,
    payload: StockUpdate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    return inventory.increase_stock(
        db,
        product_id,
        payload.quantity,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
        source_system=payload.source_system or inventory.SYSTEM_SOURCE,
        notes=payload.notes,
        actor=actor,
        audit=audit,
    )


@router.post("/{product_id}/stock/decrease", response_model=MovementRead)
def decrease_stock(
    product_id: int,
    payload: StockUpdate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    return inventory.decrease_stock(
        db,
        product_id,
        payload.quantity,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
        source_system=payload.source_system or inventory.SYSTEM_SOURCE,
        notes=payload.notes,
        actor=actor,
        audit=audit,
    )


@router.post("/{product_id}/stock/adjust")
def adjust_stock(
    product_id: int,
    payload: StockAdjust,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    movement = inventory.adjust_stock(db, product_id, payload.new_stock, payload.notes, actor=actor, audit=audit)
    if movement is None:
        # pas d'écart : aucun mouvement créé (distinct d'une erreur)
        return {"adjusted": False, "movement": None}
    return {"adjusted": True, "movement": MovementRead.model_validate(movement)}
