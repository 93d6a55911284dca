from __future__ import annotations

from typing import Generator

from fastapi import Header

from backend.app.db.session import SessionLocal
from backend.services.audit import AuditSink, LoggingAuditSink


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_actor(x_actor: str | None = Header(default=None, alias="X-Actor")) -> str | None:
    """Identité opaque fournie par la couche auth (jamais vérifiée ici)."""
    if x_actor is None or not x_actor.strip():
        return None
    return x_actor.strip()[:100]


def get_audit_sink() -> AuditSink:
    return LoggingAuditSink()
