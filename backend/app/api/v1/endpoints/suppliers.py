from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.core.exceptions import DuplicateSupplierError, SupplierNotFoundError
from backend.app.db.models.models_v1 import Supplier

router = APIRouter(prefix="/suppliers")


class SupplierCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    contact_person: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)


def _to_dict(s: Supplier) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "contact_person": s.contact_person,
        "email": s.email,
        "phone": s.phone,
        "active": s.active,
    }


@router.get("")
def list_suppliers(include_inactive: bool = False, db: Session = Depends(get_db)):
    stmt = select(Supplier).order_by(Supplier.name)
    if not include_inactive:
        stmt = stmt.where(Supplier.active.is_(True))
    rows = db.execute(stmt).scalars().all()
    return [_to_dict(s) for s in rows]


@router.post("", status_code=201)
def create_supplier(payload: SupplierCreate, db: Session = Depends(get_db)):
    exists = db.execute(select(Supplier).where(Supplier.name == payload.name)).scalar_one_or_none()
    if exists:
        raise DuplicateSupplierError(payload.name)

    s = Supplier(
        name=payload.name,
        contact_person=payload.contact_person,
        email=payload.email,
        phone=payload.phone,
        active=True,
    )
    db.add(s)
    db.commit()
    db.refresh(s)
    return _to_dict(s)


@router.delete("/{supplier_id}")
def deactivate_supplier(supplier_id: int, db: Session = Depends(get_db)):
    s = db.get(Supplier, supplier_id)
    if not s:
        raise SupplierNotFoundError(supplier_id)

    s.active = False
    db.commit()
    db.refresh(s)
    return _to_dict(s)
