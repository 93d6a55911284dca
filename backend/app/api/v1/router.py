from fastapi import APIRouter

from backend.app.api.v1.endpoints.alerts import router as alerts_router
from backend.app.api.v1.endpoints.external_billing import router as external_billing_router
from backend.app.api.v1.endpoints.products import router as products_router
from backend.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router
from backend.app.api.v1.endpoints.stock_movements import router as stock_movements_router
from backend.app.api.v1.endpoints.suppliers import router as suppliers_router

router = APIRouter()
router.include_router(products_router, tags=["products"])
router.include_router(suppliers_router, tags=["suppliers"])
router.include_router(purchase_orders_router, tags=["purchase_orders"])
router.include_router(external_billing_router, tags=["external_billing"])
router.include_router(stock_movements_router, tags=["stock_movements"])
router.include_router(alerts_router, tags=["alerts"])
