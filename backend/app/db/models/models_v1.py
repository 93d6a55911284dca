from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    Index,
    CheckConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, object_session

from backend.app.core.exceptions import (
    InsufficientStockError,
    InvalidOrderOperationError,
    InvalidQuantityError,
    LedgerImmutableError,
)
from backend.app.db.base import Base
from backend.app.db.models.core_types import (
    MovementType,
    ReferenceType,
    OrderStatus,
    ORDER_STATUS_TRANSITIONS,
    TERMINAL_ORDER_STATUSES,
)

# BIGINT en Postgres, INTEGER sous SQLite (sinon pas d'autoincrement rowid)
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

MONEY_QUANT = Decimal("0.01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- MASTER DATA ----------
class Supplier(Base):
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    contact_person: Mapped[str | None] = mapped_column(String(100))
    email: Mapped[str | None] = mapped_column(String(100))
    phone: Mapped[str | None] = mapped_column(String(20))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    current_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_stock: Mapped[int | None] = mapped_column(Integer)  # indicatif, jamais bloquant

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_product_current_stock_nonneg"),
        CheckConstraint("min_stock >= 0", name="ck_product_min_stock_nonneg"),
        CheckConstraint("max_stock IS NULL OR max_stock >= 0", name="ck_product_max_stock_nonneg"),
        CheckConstraint("unit_price > 0", name="ck_product_unit_price_pos"),
    )

    # ---------- stock primitives (aucune écriture ledger ici) ----------
    def has_available_stock(self, quantity: int) -> bool:
        return 0 < quantity <= self.current_stock

    def increase(self, quantity: int) -> None:
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        self.current_stock += quantity

    def decrease(self, quantity: int) -> None:
        if not self.has_available_stock(quantity):
            raise InsufficientStockError(
                product_id=self.id,
                product_code=self.code,
                available=self.current_stock,
                requested=quantity,
            )
        self.current_stock -= quantity

    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock

    def is_over_stock(self) -> bool:
        return self.max_stock is not None and self.current_stock > self.max_stock


# ---------- PROCUREMENT ----------
class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status"),
        default=OrderStatus.pending,
        nullable=False,
    )

    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_date: Mapped[date | None] = mapped_column(Date)
    received_date: Mapped[date | None] = mapped_column(Date)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    supplier: Mapped[Supplier] = relationship()
    details: Mapped[list["OrderDetail"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderDetail.id",
    )

    __table_args__ = (
        Index("ix_purchase_orders_status_expected", "status", "expected_date"),
    )

    def recalculate_total(self) -> Decimal:
        total = sum((d.line_total for d in self.details), Decimal("0.00"))
        self.total_amount = total.quantize(MONEY_QUANT)
        return self.total_amount

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        return new_status in ORDER_STATUS_TRANSITIONS[self.status]

    def is_fully_received(self) -> bool:
        return bool(self.details) and all(d.is_fully_received for d in self.details)

    def is_partially_received(self) -> bool:
        return any(d.quantity_received > 0 for d in self.details) and not self.is_fully_received()

    def is_overdue(self, today: date) -> bool:
        return (
            self.expected_date is not None
            and today > self.expected_date
            and not self.is_terminal
        )

    def append_notes(self, notes: str | None) -> None:
        # concaténation, jamais de remplacement
        if not notes or not notes.strip():
            return
        self.notes = notes if not self.notes else f"{self.notes}\n{notes}"


class OrderDetail(Base):
    __tablename__ = "order_details"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    quantity_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)  # snapshot à la commande

    order: Mapped[PurchaseOrder] = relationship(back_populates="details")
    product: Mapped[Product] = relationship()

    __table_args__ = (
        CheckConstraint("quantity_ordered > 0", name="ck_order_detail_qty_ordered_pos"),
        CheckConstraint("quantity_received >= 0", name="ck_order_detail_qty_received_nonneg"),
        CheckConstraint("quantity_received <= quantity_ordered", name="ck_order_detail_no_over_receipt"),
        CheckConstraint("unit_price > 0", name="ck_order_detail_unit_price_pos"),
    )

    @property
    def quantity_pending(self) -> int:
        return self.quantity_ordered - (self.quantity_received or 0)

    @property
    def is_fully_received(self) -> bool:
        return self.quantity_pending == 0

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity_ordered

    def receive(self, quantity: int) -> None:
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        if quantity > self.quantity_pending:
            raise InvalidOrderOperationError(
                f"Quantity to receive ({quantity}) exceeds pending quantity "
                f"({self.quantity_pending}) for order detail {self.id}",
                order_detail_id=self.id,
                requested=quantity,
                pending=self.quantity_pending,
            )
        self.quantity_received = (self.quantity_received or 0) + quantity


# ---------- INVENTORY LEDGER ----------
class InventoryMovement(Base):
    __tablename__ = "inventory_movements"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    movement_type: Mapped[MovementType] = mapped_column(Enum(MovementType, name="movement_type"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_type: Mapped[ReferenceType | None] = mapped_column(Enum(ReferenceType, name="reference_type"))
    reference_id: Mapped[int | None] = mapped_column(BigInteger)
    source_system: Mapped[str | None] = mapped_column(String(50), index=True)
    notes: Mapped[str | None] = mapped_column(String(500))

    created_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    product: Mapped[Product] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_movement_qty_pos"),
        Index("ix_inventory_movements_product_time", "product_id", "created_at"),
        Index("ix_inventory_movements_reference", "reference_type", "reference_id"),
    )

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.movement_type == MovementType.inbound else -self.quantity


# Ledger append-only : ni UPDATE ni DELETE via l'ORM
@event.listens_for(InventoryMovement, "before_update")
def _reject_movement_update(mapper, connection, target: InventoryMovement) -> None:
    session = object_session(target)
    if session is None or session.is_modified(target, include_collections=False):
        raise LedgerImmutableError(target.id)


@event.listens_for(InventoryMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target: InventoryMovement) -> None:
    raise LedgerImmutableError(target.id)
