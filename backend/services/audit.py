"""
Remontée d'audit vers un collaborateur externe.

Le coeur ne persiste rien lui-même : il signale {action, entity_type,
entity_id, actor}. Un échec du sink est loggé puis ignoré, l'opération
principale reste validée.
"""

from __future__ import annotations

from typing import Protocol

from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class AuditSink(Protocol):
    def record(
        self,
        *,
        action: str,
        entity_type: str,
        entity_id: int | None,
        actor: str | None,
    ) -> None: ...


class LoggingAuditSink:
    def record(
        self,
        *,
        action: str,
        entity_type: str,
        entity_id: int | None,
        actor: str | None,
    ) -> None:
        logger.info(
            "audit",
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor or "system",
        )


def report_audit(
    sink: AuditSink | None,
    *,
    action: str,
    entity_type: str,
    entity_id: int | None,
    actor: str | None,
) -> None:
    if sink is None:
        return
    try:
        sink.record(action=action, entity_type=entity_type, entity_id=entity_id, actor=actor)
    except Exception:
        logger.exception(
            "audit_report_failed",
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
        )
