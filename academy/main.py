import logging

from fastapi import FastAPI
from academy.core.config import settings
from academy.db.session import init_db

# Import routers
from academy.api.access import router as access_router
from academy.api.categories import router as categories_router
from academy.api.payments import router as payments_router
from academy.api.purchases import router as purchases_router

def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.app_name)

    if settings.db_auto_create:
        init_db()

    @app.get("/health")
    def health():
        return {"status" : "ok", "env" : settings.app_env}

    # Include category / topic admin routes
    app.include_router(categories_router)
    # Include purchase routes
    app.include_router(purchases_router)
    # Include access check routes
    app.include_router(access_router)
    # Include payment gateway webhooks
    app.include_router(payments_router)

    return app

app = create_app()
