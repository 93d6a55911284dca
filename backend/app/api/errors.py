from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from backend.app.core.exceptions import InventoryError
from backend.app.core.logging import get_logger

logger = get_logger(__name__)


async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "business_error",
        error_code=exc.code,
        message=exc.message,
        path=request.url.path,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "INTERNAL_SERVER_ERROR", "message": "Internal server error", "details": {}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InventoryError, inventory_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
