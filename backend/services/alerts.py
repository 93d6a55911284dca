"""
Alertes commandes fournisseur (en retard / bientôt dues).

Lecture seule : ne modifie jamais ni stock ni statut de commande, donc aucune
course possible avec les unités de travail du coeur. L'envoi effectif
(mail, chat...) est délégué au `notifier` fourni par l'appelant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from sqlalchemy.orm import Session

from backend.app.core.config import get_settings
from backend.app.core.logging import get_logger
from backend.app.db.models.models_v1 import PurchaseOrder
from backend.services.procurement import get_orders_due_soon, get_overdue_orders

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrderAlert:
    kind: str  # "OVERDUE" | "DUE_SOON"
    order_id: int
    order_number: str
    supplier_id: int
    status: str
    expected_date: date
    days: int  # jours de retard, ou jours restants


@dataclass
class OrderAlertSummary:
    generated_on: date
    overdue: list[OrderAlert] = field(default_factory=list)
    due_soon: list[OrderAlert] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.overdue) + len(self.due_soon)


Notifier = Callable[[OrderAlert], None]


def _to_alert(order: PurchaseOrder, kind: str, today: date) -> OrderAlert:
    if kind == "OVERDUE":
        days = (today - order.expected_date).days
    else:
        days = (order.expected_date - today).days
    return OrderAlert(
        kind=kind,
        order_id=int(order.id),
        order_number=order.order_number,
        supplier_id=int(order.supplier_id),
        status=order.status.value,
        expected_date=order.expected_date,
        days=days,
    )


def _dispatch(alert: OrderAlert, notifier: Notifier | None) -> None:
    if notifier is None:
        return
    try:
        notifier(alert)
    except Exception:
        # une notification ratée ne bloque pas les suivantes
        logger.exception("order_alert_notification_failed", order_number=alert.order_number, kind=alert.kind)


def scan_order_alerts(
    db: Session,
    *,
    days_ahead: int | None = None,
    today: date | None = None,
    notifier: Notifier | None = None,
) -> OrderAlertSummary:
    today = today or date.today()
    days_ahead = get_settings().order_due_soon_days if days_ahead is None else days_ahead

    summary = OrderAlertSummary(generated_on=today)

    for order in get_overdue_orders(db, today=today):
        alert = _to_alert(order, "OVERDUE", today)
        summary.overdue.append(alert)
        _dispatch(alert, notifier)

    for order in get_orders_due_soon(db, days_ahead, today=today):
        alert = _to_alert(order, "DUE_SOON", today)
        summary.due_soon.append(alert)
        _dispatch(alert, notifier)

    logger.info(
        "order_alerts_scanned",
        overdue=len(summary.overdue),
        due_soon=len(summary.due_soon),
        days_ahead=days_ahead,
    )
    return summary
