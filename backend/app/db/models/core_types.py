import enum

class MovementType(str, enum.Enum):
    inbound = "IN"
    outbound = "OUT"

class ReferenceType(str, enum.Enum):
    purchase_order = "PURCHASE_ORDER"
    sale = "SALE"
    adjustment = "ADJUSTMENT"
    transfer = "TRANSFER"
    return_ = "RETURN"

class OrderStatus(str, enum.Enum):
    pending = "PENDING"
    confirmed = "CONFIRMED"
    partial = "PARTIAL"
    completed = "COMPLETED"
    cancelled = "CANCELLED"


# Machine à états des commandes fournisseur : statut courant -> statuts autorisés
ORDER_STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.pending: frozenset({OrderStatus.confirmed, OrderStatus.cancelled}),
    OrderStatus.confirmed: frozenset(
        {OrderStatus.partial, OrderStatus.completed, OrderStatus.cancelled}
    ),
    OrderStatus.partial: frozenset({OrderStatus.completed, OrderStatus.cancelled}),
    OrderStatus.completed: frozenset(),
    OrderStatus.cancelled: frozenset(),
}

TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.completed, OrderStatus.cancelled})
