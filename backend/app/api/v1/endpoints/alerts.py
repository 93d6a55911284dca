from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.services.alerts import scan_order_alerts

router = APIRouter(prefix="/alerts")


@router.get("/orders")
def order_alerts(
    days_ahead: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    summary = scan_order_alerts(db, days_ahead=days_ahead)
    return {
        "generated_on": summary.generated_on,
        "total": summary.total,
        "overdue": [asdict(a) for a in summary.overdue],
        "due_soon": [asdict(a) for a in summary.due_soon],
    }
