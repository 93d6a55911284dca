"""
Exceptions métier du coeur stock / commandes.

Chaque exception porte un code machine, un payload `details` et le statut HTTP
équivalent. Elles sont levées AVANT toute mutation (fail-fast).
"""

from __future__ import annotations

from typing import Any


class InventoryError(Exception):
    """Base de toutes les erreurs métier."""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# ---------- NOT FOUND ----------
class NotFoundError(InventoryError):
    status_code = 404


class ProductNotFoundError(NotFoundError):
    def __init__(self, key: str, value: Any, message: str | None = None):
        super().__init__(
            message or f"Product not found with {key}: {value}",
            code="PRODUCT_NOT_FOUND",
            details={key: value},
        )

    @classmethod
    def by_id(cls, product_id: int) -> "ProductNotFoundError":
        return cls("id", product_id)

    @classmethod
    def by_code(cls, code: str) -> "ProductNotFoundError":
        return cls("code", code)


class SupplierNotFoundError(NotFoundError):
    def __init__(self, supplier_id: int, message: str | None = None):
        super().__init__(
            message or f"Supplier not found: {supplier_id}",
            code="SUPPLIER_NOT_FOUND",
            details={"supplier_id": supplier_id},
        )


class OrderNotFoundError(NotFoundError):
    def __init__(self, key: str, value: Any):
        super().__init__(
            f"Purchase order not found with {key}: {value}",
            code="ORDER_NOT_FOUND",
            details={key: value},
        )


class OrderDetailNotFoundError(NotFoundError):
    def __init__(self, order_detail_id: int):
        super().__init__(
            f"Order detail not found: {order_detail_id}",
            code="ORDER_DETAIL_NOT_FOUND",
            details={"order_detail_id": order_detail_id},
        )


# ---------- CONFLICT ----------
class ConflictError(InventoryError):
    status_code = 409


class DuplicateOrderNumberError(ConflictError):
    def __init__(self, order_number: str):
        super().__init__(
            f"Order number already exists: {order_number}",
            code="DUPLICATE_ORDER_NUMBER",
            details={"order_number": order_number},
        )


class DuplicateProductCodeError(ConflictError):
    def __init__(self, code: str):
        super().__init__(
            f"Product code already exists: {code}",
            code="DUPLICATE_PRODUCT_CODE",
            details={"code": code},
        )


class DuplicateSupplierError(ConflictError):
    def __init__(self, name: str):
        super().__init__(
            f"Supplier already exists: {name}",
            code="DUPLICATE_SUPPLIER",
            details={"name": name},
        )


class OrderStateConflictError(ConflictError):
    def __init__(self, order_id: int | None, message: str):
        super().__init__(
            message,
            code="ORDER_STATE_CONFLICT",
            details={"order_id": order_id},
        )
        self.order_id = order_id


# ---------- INVALID STATE ----------
class InvalidOrderOperationError(InventoryError):
    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        current_status: Any = None,
        target_status: Any = None,
        **details: Any,
    ):
        payload = dict(details)
        if current_status is not None:
            payload["current_status"] = getattr(current_status, "value", current_status)
        if target_status is not None:
            payload["target_status"] = getattr(target_status, "value", target_status)
        super().__init__(message, code="INVALID_ORDER_OPERATION", details=payload)
        self.current_status = current_status
        self.target_status = target_status


# ---------- VALIDATION ----------
class ValidationFailure(InventoryError):
    status_code = 400


class InsufficientStockError(ValidationFailure):
    def __init__(
        self,
        *,
        product_id: int | None,
        product_code: str | None,
        available: int,
        requested: int,
    ):
        super().__init__(
            f"Insufficient stock for product {product_code} (id={product_id}): "
            f"available={available}, requested={requested}",
            code="INSUFFICIENT_STOCK",
            details={
                "product_id": product_id,
                "product_code": product_code,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.product_code = product_code
        self.available = available
        self.requested = requested


class InvalidQuantityError(ValidationFailure):
    def __init__(self, quantity: Any, message: str | None = None):
        super().__init__(
            message or f"Quantity must be a positive integer (got {quantity})",
            code="INVALID_QUANTITY",
            details={"quantity": quantity},
        )


# ---------- LEDGER ----------
class LedgerImmutableError(InventoryError):
    status_code = 500

    def __init__(self, movement_id: int | None):
        super().__init__(
            f"Inventory movements are append-only (movement {movement_id})",
            code="LEDGER_IMMUTABLE",
            details={"movement_id": movement_id},
        )
