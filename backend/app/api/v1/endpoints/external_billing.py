from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_audit_sink, get_current_actor, get_db
from backend.app.schemas.inventory import ExternalStockDeductionRequest, ExternalStockDeductionResponse
from backend.services import inventory
from backend.services.audit import AuditSink

router = APIRouter(prefix="/external/billing")


@router.post("/stock/deduct", response_model=ExternalStockDeductionResponse)
def deduct_stock(
    payload: ExternalStockDeductionRequest,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_current_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    # contrat facturation : clés camelCase en entrée comme en sortie
    return inventory.deduct_for_external_system(
        db,
        payload.product_code,
        payload.quantity,
        payload.source_system,
        payload.notes,
        actor=actor,
        audit=audit,
    )
