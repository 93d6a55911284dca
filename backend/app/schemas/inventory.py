from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from backend.app.db.models.core_types import MovementType, ReferenceType
from backend.app.schemas.common import CamelModel


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    description: str | None = None
    unit_price: Decimal
    current_stock: int
    min_stock: int
    max_stock: int | None = None
    active: bool


class MovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    movement_type: MovementType
    quantity: int
    reference_type: ReferenceType | None = None
    reference_id: int | None = None
    source_system: str | None = None
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime


class ProductMovementSummary(BaseModel):
    product_id: int
    product_code: str
    product_name: str
    inbound: int
    outbound: int
    net: int


class SourceSystemSummary(BaseModel):
    source_system: str | None
    movement_count: int
    total_quantity: int


class MovementTypeStatistics(BaseModel):
    movement_type: MovementType
    reference_type: ReferenceType | None
    movement_count: int
    total_quantity: int


class DailyMovementSummary(BaseModel):
    day: date
    inbound: int
    outbound: int
    net: int


# ---------- External billing contract ----------
class ExternalStockDeductionRequest(CamelModel):
    product_code: str = Field(min_length=1, max_length=50)
    quantity: int = Field(gt=0)
    source_system: str | None = Field(default=None, max_length=50)
    notes: str | None = Field(default=None, max_length=500)


class ExternalStockDeductionResponse(CamelModel):
    product_code: str
    product_name: str
    quantity_deducted: int
    previous_stock: int
    current_stock: int
    source_system: str
    timestamp: datetime
    movement_id: int
