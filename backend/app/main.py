from fastapi import FastAPI

from backend.app.api.errors import register_exception_handlers
from backend.app.api.v1.router import router as v1_router
from backend.app.core.config import get_settings
from backend.app.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    app = FastAPI(title=settings.app_name, version=settings.app_version)
    register_exception_handlers(app)
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
