"""
Unité de travail : tout ou rien.

Toute opération publique du coeur s'exécute dans `unit_of_work(db)` :
commit si le bloc se termine, rollback complet sur n'importe quelle exception
(aucune mutation partielle, aucune écriture ledger orpheline).
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
