import os
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.api.deps import get_db
from backend.app.db.base import Base
from backend.app.db.models import models_v1  # noqa: F401  (enregistre les tables)
from backend.app.db.models.models_v1 import Product, Supplier


@pytest.fixture(scope="function")
def engine():
    """
    Base de test jetable.

    SQLite en mémoire par défaut ; TEST_DATABASE_URL permet de viser un vrai
    Postgres (verrous FOR UPDATE effectifs). Schéma recréé à chaque test.
    """
    url = os.getenv("TEST_DATABASE_URL")
    if url:
        eng = create_engine(url, pool_pre_ping=True)
    else:
        eng = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def supplier(db_session) -> Supplier:
    s = Supplier(name="ACME Supplies", contact_person="Jane Roe", email="jane@acme.test", active=True)
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def product(db_session) -> Product:
    p = Product(
        code="SKU1",
        name="Widget",
        unit_price=Decimal("5.00"),
        current_stock=10,
        min_stock=2,
        max_stock=100,
        active=True,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture
def client(db_session):
    from backend.app.main import create_app

    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
