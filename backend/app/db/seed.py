from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from backend.app.core.logging import configure_logging, get_logger
from backend.app.db.models.models_v1 import Product, Supplier
from backend.app.db.session import SessionLocal
from backend.services.inventory import create_product

logger = get_logger(__name__)


def run_seed():
    db = SessionLocal()
    try:
        # 1) Fournisseur par défaut
        supplier = db.scalar(select(Supplier).where(Supplier.name == "Default Supplier"))
        if not supplier:
            supplier = Supplier(name="Default Supplier", contact_person="Purchasing", active=True)
            db.add(supplier)
            db.commit()

        # 2) Produit de démo, stock initial tracé au ledger
        product = db.scalar(select(Product).where(Product.code == "SKU-DEMO"))
        if not product:
            product = create_product(
                db,
                code="SKU-DEMO",
                name="Demo product",
                unit_price=Decimal("9.90"),
                initial_stock=25,
                min_stock=5,
                max_stock=200,
                actor="seed",
            )

        logger.info("seed_ok", supplier_id=supplier.id, product_code=product.code)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
