from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.db.models.core_types import MovementType, ReferenceType
from backend.app.schemas.inventory import (
    DailyMovementSummary,
    MovementRead,
    MovementTypeStatistics,
    ProductMovementSummary,
    SourceSystemSummary,
)
from backend.services import ledger

router = APIRouter(prefix="/stock-movements")


@router.get("", response_model=list[MovementRead])
def list_movements(
    start: datetime | None = None,
    end: datetime | None = None,
    product_id: int | None = None,
    movement_type: MovementType | None = None,
    reference_type: ReferenceType | None = None,
    reference_id: int | None = None,
    source_system: str | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return ledger.query_movements(
        db,
        start=start,
        end=end,
        product_id=product_id,
        movement_type=movement_type,
        reference_type=reference_type,
        reference_id=reference_id,
        source_system=source_system,
        limit=limit,
    )


@router.get("/summary/products", response_model=list[ProductMovementSummary])
def summary_by_product(start: datetime, end: datetime, db: Session = Depends(get_db)):
    return ledger.summarize_by_product(db, start=start, end=end)


@router.get("/summary/sources", response_model=list[SourceSystemSummary])
def summary_by_source(start: datetime, end: datetime, db: Session = Depends(get_db)):
    return ledger.summarize_outbound_by_source(db, start=start, end=end)


@router.get("/summary/types", response_model=list[MovementTypeStatistics])
def summary_by_type(start: datetime, end: datetime, db: Session = Depends(get_db)):
    return ledger.summarize_by_type_and_reference(db, start=start, end=end)


@router.get("/summary/daily", response_model=list[DailyMovementSummary])
def summary_daily(start: datetime, end: datetime, db: Session = Depends(get_db)):
    return ledger.summarize_daily(db, start=start, end=end)
