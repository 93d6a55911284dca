from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from backend.app.db.models.core_types import OrderStatus
from backend.app.schemas.common import CamelModel


class OrderLineCreate(BaseModel):
    product_id: int
    quantity_ordered: int = Field(gt=0)
    unit_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class ReceiptLine(CamelModel):
    order_detail_id: int
    quantity_received: int = Field(ge=0)


class OrderDetailRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity_ordered: int
    quantity_received: int
    quantity_pending: int
    unit_price: Decimal
    line_total: Decimal


class PurchaseOrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    supplier_id: int
    status: OrderStatus
    order_date: date
    expected_date: date | None = None
    received_date: date | None = None
    total_amount: Decimal
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime
    details: list[OrderDetailRead] = Field(default_factory=list)


# ---------- Receipt contract ----------
class OrderDetailReceiptSummary(CamelModel):
    order_detail_id: int
    product_id: int
    product_code: str
    product_name: str
    quantity_ordered: int
    previously_received: int
    quantity_received_now: int
    total_received: int
    pending: int
    is_fully_received: bool


class OrderReceiptResponse(CamelModel):
    order_id: int
    order_number: str
    new_status: OrderStatus
    received_date: date
    notes: str | None = None
    received_details: list[OrderDetailReceiptSummary] = Field(default_factory=list)
    order_fully_received: bool
